# gtin_pool/main.py
# GTIN Pool API - pool import, assignment and project identifiers
from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gtin_pool.settings import settings
from gtin_pool.database import init_db, close_db, check_db_health
from gtin_pool.errors import GtinPoolError
from gtin_pool.routers.pool import router as pool_router
from gtin_pool.routers.identifiers import router as identifiers_router

# ---------------------------------------------------------
# Logging setup
# ---------------------------------------------------------
from gtin_pool.logging_setup import setup_logging
setup_logging(settings)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# Lifespan: Database init/cleanup
# ---------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    await init_db()
    logger.info("Database engine initialised")
    yield
    await close_db()
    logger.info("Database engine disposed")

# ---------------------------------------------------------
# FastAPI app + CORS
# ---------------------------------------------------------
app = FastAPI(
    title="GTIN Pool API",
    version="1.0.0",
    description="GTIN/EAN/UPC pool import, assignment and project identifiers",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GtinPoolError)
async def gtin_pool_error_handler(request: Request, exc: GtinPoolError):
    # state-machine and validation outcomes go back to the caller verbatim
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


app.include_router(pool_router)
app.include_router(identifiers_router)


@app.get("/health")
async def health():
    return await check_db_health()
