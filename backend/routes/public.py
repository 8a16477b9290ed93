"""Published portfolio pages, served outside /api."""

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, PlainTextResponse

from backend.deps import get_storage
from bloxfolio.portfolios import get_public_portfolio
from bloxfolio.render import PAGE_HEADERS, render_portfolio_page
from bloxfolio.storage import Storage

router = APIRouter()


@router.get("/p/{slug}")
async def public_page(slug: str, storage: Storage = Depends(get_storage)):
    """Render a published portfolio as a standalone HTML page."""
    portfolio = get_public_portfolio(storage, slug)
    if portfolio is None:
        return PlainTextResponse("Not found", status_code=404)
    return HTMLResponse(render_portfolio_page(portfolio), headers=PAGE_HEADERS)
