"""Stream accumulators that clients poll while a generation runs."""

from fastapi import APIRouter, Depends, HTTPException

from backend.deps import get_current_user, get_storage
from bloxfolio.models import User
from bloxfolio.storage import Storage

from .models import CreateStream

router = APIRouter()


@router.post("/streams", status_code=201)
async def create_stream(
    body: CreateStream,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Open an empty stream record to pass to generate or revise."""
    record = storage.create_stream(user.id, body.purpose)
    return {"streamId": record.id}


@router.get("/streams/{stream_id}")
async def get_stream(
    stream_id: str,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Current accumulated text and state of a stream."""
    record = storage.get_stream(stream_id)
    if not record or record.user_id != user.id:
        raise HTTPException(404, "Stream not found")
    return record.to_wire()
