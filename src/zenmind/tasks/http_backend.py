"""HTTP backend for tasks - sends tasks to the worker via HTTP POST.

Used where the public service and the worker run as separate services.
Requests authenticate with a Google-signed OIDC ID token, or with the
shared internal secret when TASKS_OIDC_AUDIENCE is the local dev audience.
"""

import os

import requests
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.id_token import fetch_id_token

from zenmind.api.task_auth import LOCAL_DEV_AUDIENCE
from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_WORKER_BASE_URL = "http://worker:8000"


def _worker_base_url() -> str:
    return os.environ.get("WORKER_BASE_URL", DEFAULT_WORKER_BASE_URL).rstrip("/")


def _http_timeout() -> int:
    return int(os.environ.get("TASKS_HTTP_TIMEOUT", "30"))


def _fetch_oidc_token(audience: str) -> str | None:
    """Fetch a Google ID token for audience (metadata server or ADC).

    Returns:
        Signed ID token string, or None if fetching fails.
    """
    try:
        return fetch_id_token(GoogleRequest(), audience)
    except Exception as e:
        logger.error(
            "failed to fetch OIDC ID token",
            extra={
                "extra_fields": safe_log_context(
                    audience=audience, error_type=type(e).__name__
                )
            },
        )
        return None


def _auth_headers(task_id: str) -> dict[str, str] | None:
    if os.environ.get("TASKS_OIDC_AUDIENCE", "") == LOCAL_DEV_AUDIENCE:
        secret = os.environ.get("INTERNAL_TASK_SECRET", "")
        return {"X-Internal-Task-Secret": secret} if secret else {}

    audience = os.environ.get("TASKS_OIDC_AUDIENCE") or _worker_base_url()
    token = _fetch_oidc_token(audience)
    if not token:
        logger.error(
            "task enqueue aborted: OIDC token unavailable",
            extra={"extra_fields": safe_log_context(task_id=task_id)},
        )
        return None
    return {"Authorization": f"Bearer {token}"}


def enqueue_http(
    task_id: str,
    url_path: str,
    payload: dict,
    correlation_id: str | None = None,
) -> bool:
    """POST a task to the worker.

    Returns:
        True if the worker answered 2xx, False otherwise.
    """
    auth = _auth_headers(task_id)
    if auth is None:
        return False

    url = f"{_worker_base_url()}{url_path}"
    headers = {
        "Content-Type": "application/json",
        "X-Correlation-ID": correlation_id or "",
        "X-Task-Id": task_id,
        **auth,
    }

    try:
        response = requests.post(
            url, json=payload, headers=headers, timeout=_http_timeout()
        )
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(
            "task enqueue failed",
            extra={
                "extra_fields": safe_log_context(
                    task_id=task_id, url_path=url_path, error_type=type(e).__name__
                )
            },
        )
        return False

    logger.info(
        "task enqueued",
        extra={"extra_fields": safe_log_context(task_id=task_id, url_path=url_path)},
    )
    return True
