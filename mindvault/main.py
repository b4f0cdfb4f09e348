# mindvault api
# fastapi app over the capture -> analysis -> store pipeline

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mindvault import __version__
from mindvault.config import settings
from mindvault.services.db import db
from mindvault.routers import entries, profile, insights, data

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """startup: connect to mongodb when it backs the store. shutdown: close it."""
    logger.info(f"Starting MindVault with {settings.STORAGE_BACKEND} storage...")
    if settings.STORAGE_BACKEND == "mongo":
        await db.connect()
    logger.info("MindVault ready")
    yield
    logger.info("Shutting down MindVault...")
    await db.close()


app = FastAPI(
    title="MindVault API",
    description="Voice journal backend: transcription, psychometric annotation, core memory and history insights",
    version=__version__,
    lifespan=lifespan,
)

# cors, allow frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL, "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# register routers
app.include_router(entries.router)
app.include_router(profile.router)
app.include_router(insights.router)
app.include_router(data.router)


@app.get("/health")
async def health_check():
    """basic health check endpoint"""
    return {"status": "ok", "service": "mindvault-api", "storage": settings.STORAGE_BACKEND}
