"""Repository helpers for contracts and their source files.

Sync Session API: used directly by worker activities and through
``AsyncSession.run_sync`` by the HTTP routes.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence
from uuid import uuid4

from sqlalchemy.orm import Session

from app.db.models import Contract, ContractFile, ContractStatus
from app.schemas.domain import ContractAnalysis
from app.services.normalizer import parse_iso_date


def create_contract(
    db: Session,
    *,
    file_name: str,
    sector: str = "legal",
    requested_data_points: Sequence[str] = (),
    custom_query: Optional[str] = None,
    status: ContractStatus = ContractStatus.pending,
    contract_id: Optional[str] = None,
) -> Contract:
    contract = Contract(
        id=contract_id or str(uuid4()),
        file_name=file_name,
        sector=sector,
        requested_data_points=list(requested_data_points),
        custom_query=custom_query,
        status=status,
    )
    db.add(contract)
    db.flush()
    db.refresh(contract)
    return contract


def add_contract_file(
    db: Session,
    *,
    contract_id: str,
    filename: str,
    content_type: str,
    file_size: int,
    object_key: str,
    bucket: str = "contracts",
    position: int = 0,
) -> ContractFile:
    contract_file = ContractFile(
        id=str(uuid4()),
        contract_id=contract_id,
        position=position,
        filename=filename,
        content_type=content_type,
        file_size=file_size,
        bucket=bucket,
        object_key=object_key,
    )
    db.add(contract_file)
    db.flush()
    db.refresh(contract_file)
    return contract_file


def _analysis_dict(analysis: ContractAnalysis | dict[str, Any]) -> dict[str, Any]:
    if isinstance(analysis, ContractAnalysis):
        return analysis.to_api()
    return ContractAnalysis.model_validate(analysis).to_api()


def upsert_analysis(
    db: Session,
    contract_id: str,
    *,
    analysis: ContractAnalysis | dict[str, Any],
    file_name: Optional[str] = None,
    sector: Optional[str] = None,
    model_used: Optional[str] = None,
    provider: Optional[str] = None,
    page_count: Optional[int] = None,
    requested_data_points: Optional[Sequence[str]] = None,
    custom_query: Optional[str] = None,
    extracted_text: Optional[str] = None,
) -> Contract:
    """Insert or update the analysis stored under ``contract_id``.

    Raises:
        pydantic.ValidationError: ``analysis`` is not a valid ContractAnalysis.
        ValueError: A new contract is created without a file name.
    """
    data = _analysis_dict(analysis)
    contract = db.get(Contract, contract_id)
    if contract is None:
        if not file_name:
            raise ValueError("file_name is required for a new contract")
        contract = Contract(id=contract_id, file_name=file_name, requested_data_points=[])
        db.add(contract)

    contract.analysis = data
    contract.status = ContractStatus.completed
    contract.error_message = None
    contract.risk_score = data["riskScore"]
    contract.effective_date = parse_iso_date(data["effectiveDate"])
    contract.renewal_date = parse_iso_date(data["renewalDate"])
    if file_name:
        contract.file_name = file_name
    if sector:
        contract.sector = sector
    if model_used:
        contract.model_used = model_used
    if provider:
        contract.provider = provider
    if page_count is not None:
        contract.page_count = page_count
    if requested_data_points is not None:
        contract.requested_data_points = list(requested_data_points)
    if custom_query is not None:
        contract.custom_query = custom_query
    if extracted_text is not None:
        contract.extracted_text = extracted_text

    db.flush()
    db.refresh(contract)
    return contract


def mark_failed(db: Session, contract_id: str, error_message: str) -> Optional[Contract]:
    contract = db.get(Contract, contract_id)
    if contract is not None:
        contract.status = ContractStatus.failed
        contract.error_message = error_message
        db.flush()
    return contract


def get_contract(db: Session, contract_id: str) -> Optional[Contract]:
    return db.get(Contract, contract_id)


def delete_contract(db: Session, contract_id: str) -> bool:
    db.query(ContractFile).filter(ContractFile.contract_id == contract_id).delete()
    deleted = db.query(Contract).filter(Contract.id == contract_id).delete()
    return deleted > 0
