"""FastAPI application: routers plus the clients kept on ``app.state``."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from temporalio.client import Client as TemporalClient

from app.core.config import Settings, settings
from app.core.logging import setup_logging
from app.db import create_tables
from app.db.session import async_engine
from app.routes import batch_router, contracts_router, health_router
from app.storage import MinioStorage
from app.storage.factory import build_minio_client, storage_configured

logger = logging.getLogger(__name__)


async def connect_temporal(config: Settings) -> TemporalClient | None:
    """Temporal client for batch workflows, or None when the server is unreachable."""
    try:
        client = await TemporalClient.connect(config.TEMPORAL_ADDRESS, namespace=config.TEMPORAL_NAMESPACE)
    except Exception as e:
        logger.warning("Temporal unavailable at %s, batch analysis disabled: %s", config.TEMPORAL_ADDRESS, e)
        return None
    logger.info("Connected to Temporal at %s", config.TEMPORAL_ADDRESS)
    return client


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    await create_tables()

    # no network call here; readiness reports whether the bucket is reachable
    app.state.storage = MinioStorage(build_minio_client(settings)) if storage_configured(settings) else None
    app.state.temporal = await connect_temporal(settings)

    yield

    await async_engine.dispose()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

for router in (health_router, contracts_router, batch_router):
    app.include_router(router)
