"""Portfolio generation, revision, save, list, and publish endpoints."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException

from backend.deps import get_current_user, get_llm, get_storage
from bloxfolio import portfolios
from bloxfolio.extraction import ExtractionError
from bloxfolio.generation import generate_portfolio, revise_portfolio
from bloxfolio.llm import ChatLLM, LLMError
from bloxfolio.models import User
from bloxfolio.storage import Storage

from .models import GenerateBody, PublishBody, ReviseBody, SaveBody

router = APIRouter()


def _check_stream(storage: Storage, user: User, stream_id: str | None) -> None:
    if stream_id is None:
        return
    record = storage.get_stream(stream_id)
    if not record or record.user_id != user.id:
        raise HTTPException(404, "Stream not found")


async def _run(coro):
    # shielded so a client disconnect does not abandon a half-written stream
    try:
        generated = await asyncio.shield(coro)
    except ExtractionError as e:
        raise HTTPException(502, str(e))
    except LLMError as e:
        raise HTTPException(502, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    return generated.to_wire()


@router.post("/portfolios/generate")
async def generate(
    body: GenerateBody,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    llm: ChatLLM = Depends(get_llm),
):
    """Generate portfolio copy from a brief, relaying progress to streamId."""
    _check_stream(storage, user, body.stream_id)
    return await _run(
        generate_portfolio(llm, storage, body.brief, stream_id=body.stream_id)
    )


@router.post("/portfolios/revise")
async def revise(
    body: ReviseBody,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    llm: ChatLLM = Depends(get_llm),
):
    """Rewrite existing copy according to the user's request."""
    _check_stream(storage, user, body.stream_id)
    return await _run(revise_portfolio(
        llm, storage, body.brief, body.current, body.user_request,
        stream_id=body.stream_id,
    ))


@router.post("/portfolios", status_code=201)
async def save(
    body: SaveBody,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Save a brief together with its generated copy."""
    try:
        portfolio = portfolios.save_portfolio(storage, user, body.brief, body.generated)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"id": portfolio.id}


@router.get("/portfolios")
async def list_portfolios(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """The user's most recent portfolios, newest first."""
    return portfolios.list_portfolios(storage, user)


@router.post("/portfolios/{portfolio_id}/publish")
async def publish(
    portfolio_id: str,
    body: PublishBody,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Publish a saved portfolio at /p/{slug}."""
    try:
        return portfolios.publish_portfolio(storage, user, portfolio_id, body.slug)
    except portfolios.SlugTakenError as e:
        raise HTTPException(409, str(e))
    except LookupError as e:
        raise HTTPException(404, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
