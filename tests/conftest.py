"""Shared pytest fixtures for ZenMind tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_route_singletons():
    """Reset lazily built route collaborators between tests.

    Routes cache their orchestrator, messaging service and Pluggy client in
    module globals. A collaborator injected by one test must not leak into
    the next.
    """
    from zenmind.api.routes import (
        conversations,
        pluggy,
        tasks_whatsapp,
        webhooks_whatsapp_meta,
    )

    def _reset():
        tasks_whatsapp._set_orchestrator(None)
        pluggy._set_client(None)
        conversations._messaging_service = None
        webhooks_whatsapp_meta._messaging_service = None
        webhooks_whatsapp_meta._tasks_client.clear()

    _reset()
    yield
    _reset()
