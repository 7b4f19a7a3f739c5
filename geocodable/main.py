"""
geocodable - Location resolution API
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from geocodable.database import init_db
from geocodable.routers import location

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("geocodable ready")
    yield


app = FastAPI(
    title="geocodable API",
    description="Resolve coordinates for records from local data first, the geocoding API second",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(location.router, prefix="/api/location", tags=["Location"])


@app.get("/health")
async def health():
    return {"status": "healthy"}
