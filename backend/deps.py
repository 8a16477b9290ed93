"""Shared FastAPI dependencies: settings, storage, LLM client, current user.

create_app() puts a Settings and a Storage on app.state; everything here
reads them back from the request so tests can build isolated apps.
"""

from fastapi import Header, HTTPException, Request

from bloxfolio.auth import AuthError, require_user
from bloxfolio.config import Settings, check_api_key
from bloxfolio.llm import ChatLLM
from bloxfolio.models import User
from bloxfolio.storage import Storage


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def _make_llm(request: Request, api_key: str) -> ChatLLM:
    settings = get_settings(request)
    return ChatLLM(
        settings.completions_url,
        api_key,
        settings.openrouter_model,
        transport=getattr(request.app.state, "llm_transport", None),
    )


def get_llm(request: Request) -> ChatLLM:
    """LLM client for generation. The key is checked before any call is made."""
    try:
        api_key = check_api_key(get_settings(request).openrouter_api_key)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _make_llm(request, api_key)


def get_optional_llm(request: Request) -> ChatLLM | None:
    """LLM client, or None when no usable key is configured."""
    try:
        api_key = check_api_key(get_settings(request).openrouter_api_key)
    except ValueError:
        return None
    return _make_llm(request, api_key)


def bearer_token(authorization: str = Header("")) -> str:
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def get_current_user(request: Request, authorization: str = Header("")) -> User:
    try:
        return require_user(get_storage(request), bearer_token(authorization))
    except AuthError as e:
        raise HTTPException(401, str(e))
