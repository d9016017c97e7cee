"""
backend/app/main.py

Purpose:
    FastAPI application bootstrap: database lifecycle, middleware and router
    wiring, error handlers and the health check. Settlement passes are
    triggered from outside (HTTP or tools/settle_bets.py); nothing is
    scheduled in-process.

Dependencies:
    - app.database
    - app.routers.settlement
"""

import logging
from contextlib import asynccontextmanager

from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from app.config import settings
import app.database as _db
from app.database import connect_db, close_db
from app.middleware.logging import StructuredLoggingMiddleware, setup_logging
from app.workers._state import get_synced_at

logger = logging.getLogger("betledger")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await connect_db()
    logger.info("Settlement engine ready (db=%s)", settings.MONGO_DB)

    yield

    from app.providers.odds_api import odds_provider
    from app.providers.sportsdata import sportsdata_provider

    await odds_provider.aclose()
    await sportsdata_provider.aclose()
    await close_db()


app = FastAPI(
    title="betledger",
    description="Automated settlement of tracked sports bets",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Settlement-Key"],
)

# Structured logging
app.add_middleware(StructuredLoggingMiddleware)

# Routers
from app.routers.settlement import router as settlement_router

app.include_router(settlement_router)


@app.exception_handler(InvalidId)
async def invalid_object_id_handler(request: Request, exc: InvalidId):
    return JSONResponse(status_code=400, content={"detail": "Invalid ID."})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(part) for part in loc[1:]) if len(loc) > 1 else str(loc[-1]) if loc else "unknown"
        errors.append({"field": field, "message": err.get("msg", "Invalid value.")})
    return JSONResponse(status_code=422, content={"detail": "Validation error.", "errors": errors})


@app.exception_handler(ServerSelectionTimeoutError)
async def db_timeout_handler(request: Request, exc: ServerSelectionTimeoutError):
    logger.error("Database timeout: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(ConnectionFailure)
async def db_connection_handler(request: Request, exc: ConnectionFailure):
    logger.error("Database connection failure: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/health")
async def health():
    """Health check -- DB connection, provider circuits and the last settlement pass."""
    from app.providers.odds_api import odds_provider
    from app.providers.sportsdata import sportsdata_provider

    last_pass = None
    try:
        result = await _db.db.command("ping")
        db_ok = result.get("ok") == 1.0
        if db_ok:
            synced_at = await get_synced_at("settlement_runner")
            last_pass = synced_at.isoformat() if synced_at else None
    except Exception:
        db_ok = False

    return {
        "status": "healthy" if db_ok else "degraded",
        "db": "connected" if db_ok else "disconnected",
        "last_settlement_pass": last_pass,
        "providers": {
            "theoddsapi": {"circuit_open": odds_provider.circuit_open},
            "sportsdataio": {"circuit_open": sportsdata_provider.circuit_open},
        },
    }
