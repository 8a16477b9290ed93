"""Username/password accounts with opaque bearer tokens.

Passwords are hashed with PBKDF2-HMAC-SHA256 and a per-user random salt.
Tokens are random hex strings handed to the client once; only their SHA-256
is stored, so a leaked data directory does not leak live sessions.
"""

import hashlib
import hmac
import logging
import re
import secrets
from datetime import datetime, timedelta, timezone

from bloxfolio.models import AuthSession, User
from bloxfolio.storage import Storage, new_id

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(days=30)
MIN_USERNAME_LENGTH = 3
MAX_USERNAME_LENGTH = 32
MIN_PASSWORD_LENGTH = 8
PBKDF2_ITERATIONS = 120_000

_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")


class AuthError(Exception):
    """Raised when a request carries no valid session token."""


class UsernameTakenError(ValueError):
    pass


def _check_credentials(username: str, password: str) -> None:
    if not MIN_USERNAME_LENGTH <= len(username) <= MAX_USERNAME_LENGTH:
        raise ValueError(
            f"Username must be {MIN_USERNAME_LENGTH}-{MAX_USERNAME_LENGTH} characters."
        )
    if not _USERNAME_RE.match(username):
        raise ValueError("Username can only contain letters, numbers, and underscores.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        )


def hash_password(password: str, salt_hex: str) -> str:
    derived = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), bytes.fromhex(salt_hex), PBKDF2_ITERATIONS
    )
    return derived.hex()


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _create_session(storage: Storage, user: User) -> str:
    token = secrets.token_hex(32)
    now = datetime.now(timezone.utc)
    storage.create_auth_session(AuthSession(
        id=new_id(),
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=now.isoformat(),
        expires_at=(now + SESSION_TTL).isoformat(),
    ))
    return token


def sign_up(storage: Storage, username: str, password: str) -> tuple[str, User]:
    """Create an account and log it in. Returns (token, user)."""
    username = username.strip()
    _check_credentials(username, password)
    if storage.find_user_by_username(username.lower()) is not None:
        raise UsernameTakenError("Username already exists.")

    salt = secrets.token_hex(16)
    user = storage.create_user(User(
        id=new_id(),
        username=username,
        username_lower=username.lower(),
        password_hash=hash_password(password, salt),
        password_salt=salt,
        created_at=datetime.now(timezone.utc).isoformat(),
    ))
    logger.info("user %s signed up", user.id)
    return _create_session(storage, user), user


def log_in(storage: Storage, username: str, password: str) -> tuple[str, User]:
    user = storage.find_user_by_username(username.strip().lower())
    if user is None:
        raise AuthError("Invalid username or password.")
    computed = hash_password(password, user.password_salt)
    if not hmac.compare_digest(computed, user.password_hash):
        raise AuthError("Invalid username or password.")
    return _create_session(storage, user), user


def current_user(storage: Storage, token: str) -> User | None:
    token = token.strip()
    if not token:
        return None
    session = storage.find_auth_session(hash_token(token))
    if session is None:
        return None
    if datetime.fromisoformat(session.expires_at) <= datetime.now(timezone.utc):
        return None
    return storage.get_user(session.user_id)


def require_user(storage: Storage, token: str) -> User:
    user = current_user(storage, token)
    if user is None:
        raise AuthError("Unauthorized")
    return user


def log_out(storage: Storage, token: str) -> bool:
    token = token.strip()
    if not token:
        return False
    session = storage.find_auth_session(hash_token(token))
    if session is None:
        return False
    return storage.delete_auth_session(session.id)
