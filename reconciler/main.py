import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import Response

from reconciler.config import settings
from reconciler.db import close_pool, get_pool, init_schema
from reconciler.metrics import get_metrics_bytes, get_metrics_content_type
from reconciler.routes import admin

logging.basicConfig(
    level=settings.log_level,
    format=settings.log_format,
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    pool = await get_pool()
    await init_schema(pool)
    logger.info("Schema ready. Serving order reconciliation.")
    yield
    await close_pool()


app = FastAPI(title="Order Reconciler", lifespan=lifespan)
app.include_router(admin.router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint: orders reconciled, state transitions, address repairs."""
    return Response(
        content=get_metrics_bytes(),
        media_type=get_metrics_content_type(),
    )
