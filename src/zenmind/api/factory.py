"""FastAPI application factory with role-based route mounting.

public: health, Meta webhook, Pluggy routes
worker: everything in public plus task handlers and internal endpoints
"""

import os
from typing import Literal

from fastapi import FastAPI, Request, Response

from zenmind.config import check_settings
from zenmind.observability.correlation import CORRELATION_ID_HEADER, correlation_scope
from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import safe_log_context

from .routers import public, worker

AppRole = Literal["public", "worker"]

logger = get_logger(__name__)


def create_app(role: AppRole | None = None) -> FastAPI:
    """Create FastAPI app with routes based on APP_ROLE.

    Args:
        role: Explicit role override. If None, reads from APP_ROLE env var.
              Defaults to "public" if env var is not set.

    Raises:
        ValueError: If the role is not public or worker.
    """
    if role is None:
        role = os.environ.get("APP_ROLE", "public")  # type: ignore[assignment]
    if role not in ("public", "worker"):
        raise ValueError(f"Unknown APP_ROLE: {role}")

    app = FastAPI(
        title="ZenMind",
        docs_url=None,
        redoc_url=None,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        with correlation_scope(request.headers.get(CORRELATION_ID_HEADER)) as cid:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response

    app.include_router(public.router)
    if role == "worker":
        app.include_router(worker.router)

    settings_ok = check_settings()
    logger.info(
        "app created",
        extra={"extra_fields": safe_log_context(role=role, settings_ok=settings_ok)},
    )
    return app
