"""FastAPI API endpoints under /api, plus the public page router.

Endpoint groups: health, auth, streams, portfolios (generate, revise, save,
list, publish), bargain, payments (checkout, status, Stripe webhook).
Published portfolios are served outside /api at /p/{slug}.
"""

from fastapi import APIRouter

from .auth import router as auth_router
from .bargain import router as bargain_router
from .payments import router as payments_router
from .portfolios import router as portfolios_router
from .public import router as public_router
from .settings import router as settings_router
from .streams import router as streams_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(auth_router)
router.include_router(streams_router)
router.include_router(portfolios_router)
router.include_router(bargain_router)
router.include_router(payments_router)

__all__ = ["router", "public_router"]
