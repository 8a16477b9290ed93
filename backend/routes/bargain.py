"""Price negotiation endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from backend.deps import get_current_user, get_optional_llm, get_storage
from bloxfolio import bargain
from bloxfolio.llm import ChatLLM
from bloxfolio.models import User
from bloxfolio.storage import Storage

from .models import BargainMessageBody

router = APIRouter()


@router.get("/bargain")
async def get_session(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """The user's current bargain session, or null."""
    session = storage.find_bargain_session(user.id)
    return session.to_wire() if session else None


@router.post("/bargain", status_code=201)
async def start_session(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Start a fresh session, discarding any earlier one."""
    return bargain.start_session(storage, user.id).to_wire()


@router.post("/bargain/messages")
async def send_message(
    body: BargainMessageBody,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    llm: ChatLLM | None = Depends(get_optional_llm),
):
    """Send one message to the merchant and return the updated session."""
    try:
        session = await bargain.send_message(
            storage, llm, user.id, body.session_id, body.message
        )
    except PermissionError as e:
        raise HTTPException(403, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    return session.to_wire()
