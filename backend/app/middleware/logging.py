import hashlib
import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.config import settings

logger = logging.getLogger("betledger.http")

# Their request logs carry full URLs, and provider URLs carry API keys
_NOISY_LOGGERS = ("httpx", "httpcore")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """One JSON log line per request, tagged with a short request id."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        start = time.perf_counter()

        response: Response = await call_next(request)

        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            "client_ip_hash": hashlib.sha256(
                (request.client.host or "").encode()
            ).hexdigest()[:12] if request.client else None,
            "has_settlement_key": "x-settlement-key" in request.headers,
        }

        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(level, json.dumps(log_data))

        response.headers["X-Request-ID"] = request_id
        return response


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
