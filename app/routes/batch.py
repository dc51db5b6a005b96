"""Batch upload endpoint: store files and hand them to the Temporal worker."""

import logging
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import FormatMismatchError
from app.db.models import Contract, ContractFile, ContractStatus
from app.db.repository import mark_failed
from app.db.session import get_db
from app.deps import get_storage
from app.routes.contracts import error_response, parse_data_points, read_uploads
from app.schemas.api import ApiResponse, BatchAccepted
from app.schemas.domain import RawDocument
from app.services.file_type import verify_signature
from app.storage import StorageError, UploadStore, object_key
from worker.workflows import BatchAnalysisWorkflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["batch"])


def remove_objects(storage: UploadStore, keys: list[str]) -> None:
    """Delete stored uploads after a failed submission; errors are logged."""
    for key in keys:
        try:
            storage.delete(settings.S3_BUCKET_UPLOADS, key)
        except StorageError as e:
            logger.warning("Could not remove orphaned upload %s: %s", key, e)


@router.post("/batch", response_model=ApiResponse[BatchAccepted], status_code=202)
async def submit_batch(
    request: Request,
    files: Optional[list[UploadFile]] = File(None),
    custom_query: Optional[str] = Form(None, alias="customQuery"),
    data_points: Optional[str] = Form(None, alias="dataPoints"),
    sector: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
):
    """Queue each uploaded file as its own contract for sequential analysis.

    Nothing is left behind when a submission fails: uploads stored before a
    storage or database error are removed, and contracts whose workflow
    could not be started are marked failed.
    """
    try:
        documents = await read_uploads(list(files or []))
        points = parse_data_points(data_points)
        for document in documents:
            verify_signature(document)
    except HTTPException as e:
        return error_response(e.status_code, e.detail)
    except (ValueError, FormatMismatchError) as e:
        return error_response(400, str(e))

    temporal = getattr(request.app.state, "temporal", None)
    if temporal is None:
        return error_response(503, "Batch analysis service unavailable")

    batch_id = str(uuid4())
    storage = get_storage()
    stored: list[tuple[str, str, RawDocument]] = []

    try:
        for document in documents:
            contract_id = str(uuid4())
            key = object_key(contract_id, 0, document.filename)
            storage.put_bytes(
                settings.S3_BUCKET_UPLOADS,
                key,
                document.data,
                content_type=document.content_type,
            )
            stored.append((contract_id, key, document))
    except StorageError as e:
        logger.error("Batch %s upload failed after %d file(s): %s", batch_id, len(stored), e)
        remove_objects(storage, [key for _, key, _ in stored])
        return error_response(502, f"Could not store uploads: {e}")

    for contract_id, key, document in stored:
        db.add(
            Contract(
                id=contract_id,
                file_name=document.filename,
                sector=sector or settings.DEFAULT_SECTOR,
                status=ContractStatus.pending,
                requested_data_points=points,
                custom_query=custom_query,
            )
        )
        db.add(
            ContractFile(
                contract_id=contract_id,
                position=0,
                filename=document.filename,
                content_type=document.content_type,
                file_size=document.size,
                bucket=settings.S3_BUCKET_UPLOADS,
                object_key=key,
            )
        )
    contract_ids = [contract_id for contract_id, _, _ in stored]

    try:
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Failed to save batch %s", batch_id)
        await db.rollback()
        remove_objects(storage, [key for _, key, _ in stored])
        return error_response(500, "Could not save batch contracts")

    workflow_id = f"batch-{batch_id}"
    try:
        await temporal.start_workflow(
            BatchAnalysisWorkflow.run,
            args=[batch_id, contract_ids, settings.BATCH_ITEM_DELAY_S],
            id=workflow_id,
            task_queue=settings.WORKER_TASK_QUEUE,
        )
    except Exception as e:
        logger.exception("Failed to start batch workflow %s", workflow_id)
        message = f"Batch workflow could not be started: {e}"

        def _fail_all(session):
            for contract_id in contract_ids:
                mark_failed(session, contract_id, message)

        await db.run_sync(_fail_all)
        await db.commit()
        return error_response(503, message)

    logger.info("Started batch workflow %s for %d contract(s)", workflow_id, len(contract_ids))

    return ApiResponse(
        data=BatchAccepted(batch_id=batch_id, workflow_id=workflow_id, contract_ids=contract_ids)
    )
