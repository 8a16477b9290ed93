"""Health check endpoint."""

from fastapi import APIRouter, Depends

from backend.deps import get_settings
from bloxfolio.config import Settings

router = APIRouter()


@router.get("/health")
async def health(settings: Settings = Depends(get_settings)):
    """Health check. Reports which integrations are configured, never the keys."""
    return {
        "status": "ok",
        "model": settings.openrouter_model,
        "llmConfigured": bool(settings.openrouter_api_key),
        "paymentsConfigured": bool(settings.stripe_secret_key),
    }
