"""Tasks client with idempotent enqueue.

Backends, selected via the TASKS_BACKEND env var:
- inline (default): records the task without delivering it (dev/tests)
- http: POSTs the task to the worker service
"""

import os


def _default_backend() -> str:
    return os.environ.get("TASKS_BACKEND", "inline")


class TasksClient:
    """Enqueue worker tasks, at most once per task_id per client instance.

    Task payloads carry ids only: never phone numbers or message text.
    """

    def __init__(self, backend: str | None = None) -> None:
        self._backend = backend or _default_backend()
        self._seen_ids: set[str] = set()
        self._enqueued: list[dict] = []

    @property
    def backend(self) -> str:
        return self._backend

    def enqueue_http(
        self,
        task_id: str,
        url_path: str,
        payload: dict,
        correlation_id: str | None = None,
    ) -> bool:
        """Enqueue a task for the worker endpoint at url_path.

        Args:
            task_id: Unique identifier for idempotency.
            url_path: Worker endpoint path (e.g. "/tasks/whatsapp/handle-message").
            payload: Task data (must not contain PII).
            correlation_id: Optional correlation ID for tracing.

        Returns:
            True if the task was accepted; False for a repeated task_id or a
            failed HTTP delivery.

        Raises:
            ValueError: If TASKS_BACKEND is unknown.
        """
        if task_id in self._seen_ids:
            return False

        if self._backend == "inline":
            self._seen_ids.add(task_id)
            self._enqueued.append({
                "task_id": task_id,
                "url_path": url_path,
                "payload": payload,
                "correlation_id": correlation_id,
            })
            return True

        if self._backend == "http":
            from zenmind.tasks.http_backend import enqueue_http

            delivered = enqueue_http(task_id, url_path, payload, correlation_id)
            if delivered:
                self._seen_ids.add(task_id)
            return delivered

        raise ValueError(f"Unknown TASKS_BACKEND: {self._backend}")

    def was_enqueued(self, task_id: str) -> bool:
        return task_id in self._seen_ids

    def get_enqueued_tasks(self) -> list[dict]:
        """Tasks recorded by the inline backend (useful for testing)."""
        return list(self._enqueued)

    def clear(self) -> None:
        self._seen_ids.clear()
        self._enqueued.clear()
