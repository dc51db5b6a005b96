"""Contract processing and stored-contract endpoints."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.errors import (
    AnalysisError,
    ExtractionError,
    FormatMismatchError,
    HeliosError,
    InsufficientTextError,
)
from app.db.models import Contract
from app.db.repository import add_contract_file, delete_contract, upsert_analysis
from app.db.session import get_db
from app.deps import get_pipeline, get_storage
from app.schemas.api import (
    ApiResponse,
    ContractDetail,
    ContractFileInfo,
    ContractList,
    ContractSummary,
    ProcessedContract,
    SaveContractRequest,
    TaskList,
)
from app.schemas.domain import ContractAnalysis, RawDocument
from app.services.pipeline import ContractPipeline
from app.services.task_suggestions import generate_tasks
from app.storage import StorageError, object_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["contracts"])


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(success=False, error=message).model_dump(exclude_none=True),
    )


def error_status(exc: HeliosError) -> int:
    """HTTP status for a pipeline error."""
    if isinstance(exc, FormatMismatchError):
        return 400
    if isinstance(exc, ExtractionError) and exc.retryable:
        return 502
    if isinstance(exc, (ExtractionError, InsufficientTextError)):
        return 422
    if isinstance(exc, AnalysisError):
        return 502
    return 500


def parse_data_points(raw: Optional[str]) -> list[str]:
    """Accept a JSON list of names or a comma-separated string."""
    if not raw or not raw.strip():
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw.split(",")
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ValueError("dataPoints must be a list of names")
    return [str(item).strip() for item in value if str(item).strip()]


async def read_uploads(uploads: list[UploadFile]) -> list[RawDocument]:
    """Read uploads into memory, enforcing count, extension and size limits.

    Raises:
        HTTPException: 400 for a bad count or extension, 413 for a large file.
    """
    if not uploads:
        raise HTTPException(status_code=400, detail="No files provided")
    if len(uploads) > settings.MAX_FILES:
        raise HTTPException(status_code=400, detail=f"At most {settings.MAX_FILES} files per request")

    max_bytes = settings.MAX_FILE_SIZE_MB * 1024 * 1024
    documents = []
    for upload in uploads:
        filename = upload.filename or "unnamed"
        document = RawDocument(b"", filename, upload.content_type or "application/octet-stream")
        if document.extension not in settings.ALLOWED_EXTENSIONS:
            raise HTTPException(
                status_code=400,
                detail=f"Unsupported file type '{filename}'. Allowed: {', '.join(settings.ALLOWED_EXTENSIONS)}",
            )
        content = await upload.read()
        if len(content) > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File '{filename}' exceeds {settings.MAX_FILE_SIZE_MB}MB limit",
            )
        documents.append(RawDocument(content, filename, document.content_type))
    return documents


def store_uploads(contract_id: str, documents: list[RawDocument]) -> list[tuple[RawDocument, str]]:
    """Store originals in object storage; failures are logged and skipped."""
    stored = []
    try:
        storage = get_storage()
        for position, document in enumerate(documents):
            key = object_key(contract_id, position, document.filename)
            storage.put_bytes(
                settings.S3_BUCKET_UPLOADS, key, document.data, content_type=document.content_type
            )
            stored.append((document, key))
    except StorageError as e:
        logger.warning("Could not store uploads for contract %s: %s", contract_id, e)
    return stored


@router.post("/process-contract", response_model=ApiResponse[ProcessedContract], response_model_exclude_none=True)
async def process_contract(
    files: Optional[list[UploadFile]] = File(None),
    file: Optional[UploadFile] = File(None),
    custom_query: Optional[str] = Form(None, alias="customQuery"),
    data_points: Optional[str] = Form(None, alias="dataPoints"),
    sector: Optional[str] = Form(None),
    preferred_model: Optional[str] = Form(None, alias="preferredModel"),
    locale: str = Form("en"),
    pipeline: ContractPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
):
    """Analyze one or more uploaded files as a single contract."""
    uploads = list(files or []) + ([file] if file is not None else [])
    try:
        documents = await read_uploads(uploads)
        points = parse_data_points(data_points)
    except HTTPException as e:
        return error_response(e.status_code, e.detail)
    except ValueError as e:
        return error_response(400, str(e))

    try:
        result = await pipeline.process(
            documents,
            custom_question=custom_query,
            data_points=points,
            preferred_model=preferred_model,
        )
    except HeliosError as e:
        logger.warning("Contract processing failed: %s", e)
        return error_response(error_status(e), str(e))

    contract_id = str(uuid4())
    sector = sector or settings.DEFAULT_SECTOR
    stored = store_uploads(contract_id, documents) if settings.STORE_UPLOADS else []

    def _persist(session):
        contract = upsert_analysis(
            session,
            contract_id,
            analysis=result.analysis,
            file_name=result.file_name,
            sector=sector,
            model_used=result.model_used,
            provider=result.provider,
            page_count=result.page_count,
            requested_data_points=points,
            custom_query=custom_query,
            extracted_text=result.text,
        )
        for position, (document, key) in enumerate(stored):
            add_contract_file(
                session,
                contract_id=contract_id,
                position=position,
                filename=document.filename,
                content_type=document.content_type,
                file_size=document.size,
                bucket=settings.S3_BUCKET_UPLOADS,
                object_key=key,
            )
        return contract.created_at

    persisted = True
    created_at = datetime.utcnow()
    try:
        created_at = await db.run_sync(_persist)
        await db.commit()
    except SQLAlchemyError:
        # The analysis is still returned; the client may save it later.
        logger.exception("Failed to persist contract %s", contract_id)
        await db.rollback()
        persisted = False

    data = ProcessedContract(
        **result.analysis.model_dump(),
        id=contract_id,
        file_name=result.file_name,
        page_count=result.page_count,
        provider=result.provider,
        model=result.model_used,
        requested_data_points=points,
        sector=sector,
        created_at=created_at,
        persisted=persisted,
        suggested_tasks=generate_tasks(result.analysis, locale),
    )
    return ApiResponse(data=data)


@router.post("/contracts", response_model=ApiResponse[ContractDetail], response_model_exclude_none=True)
async def save_contract(payload: SaveContractRequest, db: AsyncSession = Depends(get_db)):
    """Insert or update a processed contract by id."""
    contract_id = payload.id or str(uuid4())

    def _save(session):
        return upsert_analysis(
            session,
            contract_id,
            analysis=payload.analysis,
            file_name=payload.file_name,
            sector=payload.sector or settings.DEFAULT_SECTOR,
            model_used=payload.model,
            provider=payload.provider,
            page_count=payload.page_count,
            requested_data_points=payload.requested_data_points,
            custom_query=payload.custom_query,
            extracted_text=payload.extracted_text,
        ).id

    await db.run_sync(_save)
    await db.commit()
    contract = await _load_contract(db, contract_id)
    logger.info("Saved contract %s", contract_id)
    return ApiResponse(data=build_contract_detail(contract))


@router.get("/contracts", response_model=ApiResponse[ContractList])
async def list_contracts(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List stored contracts with pagination, newest first."""
    count_result = await db.execute(select(func.count(Contract.id)))
    total = count_result.scalar() or 0

    if total == 0:
        return ApiResponse(data=ContractList(items=[], total=0, page=page, page_size=page_size))

    offset = (page - 1) * page_size
    result = await db.execute(
        select(Contract).order_by(Contract.created_at.desc()).offset(offset).limit(page_size)
    )
    items = [build_contract_summary(contract) for contract in result.scalars().all()]
    return ApiResponse(data=ContractList(items=items, total=total, page=page, page_size=page_size))


@router.get("/contracts/{contract_id}", response_model=ApiResponse[ContractDetail], response_model_exclude_none=True)
async def get_contract(contract_id: str, db: AsyncSession = Depends(get_db)):
    """Get a stored contract with its analysis and source files."""
    contract = await _load_contract(db, contract_id)
    return ApiResponse(data=build_contract_detail(contract, presign=settings.STORE_UPLOADS))


@router.get("/contracts/{contract_id}/tasks", response_model=ApiResponse[TaskList])
async def get_contract_tasks(
    contract_id: str,
    locale: str = Query("en"),
    db: AsyncSession = Depends(get_db),
):
    """Regenerate suggested tasks for a stored contract."""
    contract = await _load_contract(db, contract_id)
    if not contract.analysis:
        raise HTTPException(status_code=409, detail="Contract has not been analyzed")

    analysis = _stored_analysis(contract)
    tasks = generate_tasks(analysis, locale)
    return ApiResponse(data=TaskList(contract_id=contract_id, locale=locale, tasks=tasks))


@router.delete("/contracts/{contract_id}", response_model=ApiResponse[dict])
async def remove_contract(contract_id: str, db: AsyncSession = Depends(get_db)):
    """Delete a contract, its file records and any stored uploads."""
    contract = await _load_contract(db, contract_id)
    keys = [(f.bucket, f.object_key) for f in contract.files]

    await db.run_sync(lambda session: delete_contract(session, contract_id))
    await db.commit()

    if keys:
        try:
            storage = get_storage()
            for bucket, key in keys:
                storage.delete(bucket, key)
        except StorageError as e:
            logger.warning("Could not delete uploads for contract %s: %s", contract_id, e)

    logger.info("Deleted contract %s", contract_id)
    return ApiResponse(data={"id": contract_id})


async def _load_contract(db: AsyncSession, contract_id: str) -> Contract:
    result = await db.execute(
        select(Contract)
        .where(Contract.id == contract_id)
        .options(selectinload(Contract.files))
        .execution_options(populate_existing=True)
    )
    contract = result.scalar_one_or_none()
    if contract is None:
        raise HTTPException(status_code=404, detail="Contract not found")
    return contract


def _stored_analysis(contract: Contract) -> ContractAnalysis:
    try:
        return ContractAnalysis.model_validate(contract.analysis)
    except ValidationError as e:
        logger.error("Invalid analysis data for contract %s: %s", contract.id, e)
        raise HTTPException(
            status_code=500,
            detail=f"Stored analysis data corrupted for contract {contract.id}",
        )


def build_contract_summary(contract: Contract) -> ContractSummary:
    return ContractSummary(
        id=contract.id,
        file_name=contract.file_name,
        sector=contract.sector,
        status=contract.status.value,
        risk_score=contract.risk_score,
        renewal_date=contract.renewal_date,
        model_used=contract.model_used,
        created_at=contract.created_at,
    )


def build_contract_detail(contract: Contract, *, presign: bool = False) -> ContractDetail:
    files = []
    for f in contract.files:
        url = None
        if presign:
            try:
                url = get_storage().presign_get(f.bucket, f.object_key)
            except StorageError as e:
                logger.warning("Could not presign %s/%s: %s", f.bucket, f.object_key, e)
        files.append(
            ContractFileInfo(
                filename=f.filename, content_type=f.content_type, file_size=f.file_size, url=url
            )
        )

    return ContractDetail(
        **build_contract_summary(contract).model_dump(),
        error_message=contract.error_message,
        page_count=contract.page_count,
        provider=contract.provider,
        requested_data_points=list(contract.requested_data_points or []),
        custom_query=contract.custom_query,
        analysis=_stored_analysis(contract) if contract.analysis else None,
        files=files,
        updated_at=contract.updated_at,
    )
