"""
FastAPI Application — entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from busverifier.config import settings
from busverifier.database import async_session, close_db, init_db
from busverifier.lookup.factory import build_lookup
from busverifier.routes import router
from busverifier.services.jobs import JobSupervisor
from busverifier.store import RecordStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hook."""
    logger.info("🚀 Starting Business Verifier API v%s", VERSION)
    await init_db()
    logger.info("✅ Database ready")

    store = RecordStore(async_session)
    lookup = build_lookup(settings)
    app.state.store = store
    app.state.lookup = lookup
    app.state.supervisor = JobSupervisor(store, lookup, settings)

    yield

    # Shutdown
    await app.state.supervisor.shutdown()
    await lookup.close()
    await close_db()
    logger.info("👋 Shutdown complete")


app = FastAPI(
    title="Business Verifier API",
    description="Business record verification and prospecting jobs.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "Business Verifier API",
        "version": VERSION,
        "docs": "/docs",
    }
