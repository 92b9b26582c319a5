"""Public-facing routes (APP_ROLE=public)."""

from fastapi import APIRouter

from zenmind.api.routes import pluggy, webhooks_whatsapp_meta

router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


router.include_router(webhooks_whatsapp_meta.router)
router.include_router(pluggy.router)
