"""Sign-up, login, logout, and current-user endpoints."""

from fastapi import APIRouter, Depends, Header, HTTPException

from backend.deps import bearer_token, get_current_user, get_storage
from bloxfolio import auth
from bloxfolio.models import User
from bloxfolio.storage import Storage

from .models import Credentials

router = APIRouter()


@router.post("/auth/signup", status_code=201)
async def signup(body: Credentials, storage: Storage = Depends(get_storage)):
    """Create an account and return a session token."""
    try:
        token, user = auth.sign_up(storage, body.username, body.password)
    except auth.UsernameTakenError as e:
        raise HTTPException(409, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"token": token, "user": user.public()}


@router.post("/auth/login")
async def login(body: Credentials, storage: Storage = Depends(get_storage)):
    """Exchange username and password for a session token."""
    try:
        token, user = auth.log_in(storage, body.username, body.password)
    except auth.AuthError as e:
        raise HTTPException(401, str(e))
    return {"token": token, "user": user.public()}


@router.get("/auth/me")
async def me(user: User = Depends(get_current_user)):
    return user.public()


@router.post("/auth/logout")
async def logout(authorization: str = Header(""), storage: Storage = Depends(get_storage)):
    return {"ok": auth.log_out(storage, bearer_token(authorization))}
