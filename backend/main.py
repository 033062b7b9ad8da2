"""Burnview FastAPI application."""

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import media
from config import settings
from grants.redis_store import RedisRecordStore
from grants.store import RecordStore, SqlRecordStore
from models.base import build_engine
from workers.sweeper import start_sweeper, stop_sweeper

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Burnview API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(media.router)


def build_record_store() -> RecordStore:
    """Open the configured record store backend."""
    options = {
        "ttl_seconds": settings.grant_ttl_seconds,
        "timeout_seconds": settings.store_timeout_seconds,
    }
    if settings.record_store_backend == "redis":
        return RedisRecordStore.from_url(settings.redis_url, **options)
    return SqlRecordStore(build_engine(settings.database_url), **options)


@app.on_event("startup")
async def startup():
    """Open the record store, create tables and start the expiry sweeper."""
    store = build_record_store()
    logger.info(f"Opening {store.backend} record store...")
    if isinstance(store, SqlRecordStore):
        try:
            await store.create_schema()
        except Exception:
            await store.close()
            raise
    app.state.record_store = store
    # Built on first upload, see api.deps.get_object_store.
    app.state.object_store = None

    app.state.sweeper = None
    if store.needs_sweep:
        app.state.sweeper = start_sweeper(store, settings.sweep_interval_seconds)
    logger.info("Record store ready.")


@app.on_event("shutdown")
async def shutdown():
    """Stop the sweeper and close the record store."""
    sweeper = getattr(app.state, "sweeper", None)
    if sweeper is not None:
        await stop_sweeper(sweeper)
    store = getattr(app.state, "record_store", None)
    if store is not None:
        await store.close()
        logger.info("Record store closed.")


@app.get("/api/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "5000")))
