"""SQLAlchemy models for analysed contracts and their source files."""

from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import Date, DateTime, Enum as SAEnum, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.session import Base


class ContractStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class Contract(Base):
    __tablename__ = "contracts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    file_name: Mapped[str] = mapped_column(String(512), nullable=False)  # "a.pdf + b.docx"
    sector: Mapped[str] = mapped_column(String(64), nullable=False, default="legal")
    status: Mapped[ContractStatus] = mapped_column(
        SAEnum(ContractStatus), nullable=False, default=ContractStatus.pending
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    page_count: Mapped[Optional[int]] = mapped_column(Integer)
    model_used: Mapped[Optional[str]] = mapped_column(String(80))
    provider: Mapped[Optional[str]] = mapped_column(String(40))
    risk_score: Mapped[Optional[int]] = mapped_column(Integer)
    effective_date: Mapped[Optional[date]] = mapped_column(Date)
    renewal_date: Mapped[Optional[date]] = mapped_column(Date)

    analysis: Mapped[Optional[dict]] = mapped_column(JSON)  # ContractAnalysis, camelCase keys
    requested_data_points: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    custom_query: Mapped[Optional[str]] = mapped_column(Text)
    extracted_text: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    files: Mapped[list["ContractFile"]] = relationship(
        "ContractFile",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractFile.position",
    )

    __table_args__ = (
        Index("idx_contracts_created", "created_at"),
        Index("idx_contracts_renewal", "renewal_date"),
    )


class ContractFile(Base):
    __tablename__ = "contract_files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    contract_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # upload order
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)

    bucket: Mapped[str] = mapped_column(String(63), nullable=False, default="contracts")
    object_key: Mapped[str] = mapped_column(String(512), nullable=False)  # "<contract_id>/<n>-<name>"

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    contract: Mapped["Contract"] = relationship("Contract", back_populates="files")

    __table_args__ = (
        Index("idx_contract_files_contract", "contract_id", "position"),
    )
