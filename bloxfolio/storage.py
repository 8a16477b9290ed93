"""JSON file storage.

All state is stored in flat JSON files under a configurable base directory.
There is no database or ORM. Each collection is one file holding a mapping
of record id to record, read and written through plain helper methods.

Directory layout:

    {base}/
      users.json             ← User records
      sessions.json          ← AuthSession records (token hashes only)
      portfolios.json        ← saved Portfolio records
      streams.json           ← StreamRecord accumulators
      bargain_sessions.json  ← BargainSession records
      payments.json          ← Payment records

A Storage instance is passed explicitly to every function that needs the
document store; nothing reaches for it globally.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from bloxfolio.models import (
    AuthSession,
    BargainSession,
    Payment,
    Portfolio,
    StreamPurpose,
    StreamRecord,
    User,
)

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._base.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _path(self, collection: str) -> Path:
        return self._base / f"{collection}.json"

    def _load(self, collection: str) -> dict[str, Any]:
        path = self._path(collection)
        if not path.exists():
            return {}
        return json.loads(path.read_text())

    def _dump(self, collection: str, records: dict[str, Any]) -> None:
        self._path(collection).write_text(json.dumps(records, indent=2))

    def _put(self, collection: str, record_id: str, data: dict) -> None:
        records = self._load(collection)
        records[record_id] = data
        self._dump(collection, records)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> User:
        self._put("users", user.id, user.model_dump())
        return user

    def get_user(self, user_id: str) -> User | None:
        data = self._load("users").get(user_id)
        return User.model_validate(data) if data else None

    def find_user_by_username(self, username_lower: str) -> User | None:
        for data in self._load("users").values():
            if data["username_lower"] == username_lower:
                return User.model_validate(data)
        return None

    # ------------------------------------------------------------------
    # Auth sessions
    # ------------------------------------------------------------------

    def create_auth_session(self, session: AuthSession) -> AuthSession:
        self._put("sessions", session.id, session.model_dump())
        return session

    def find_auth_session(self, token_hash: str) -> AuthSession | None:
        for data in self._load("sessions").values():
            if data["token_hash"] == token_hash:
                return AuthSession.model_validate(data)
        return None

    def delete_auth_session(self, session_id: str) -> bool:
        records = self._load("sessions")
        if records.pop(session_id, None) is None:
            return False
        self._dump("sessions", records)
        return True

    # ------------------------------------------------------------------
    # Portfolios
    # ------------------------------------------------------------------

    def insert_portfolio(self, portfolio: Portfolio) -> Portfolio:
        self._put("portfolios", portfolio.id, portfolio.model_dump())
        return portfolio

    def get_portfolio(self, portfolio_id: str) -> Portfolio | None:
        data = self._load("portfolios").get(portfolio_id)
        return Portfolio.model_validate(data) if data else None

    def list_portfolios(self, user_id: str, limit: int = 24) -> list[Portfolio]:
        """Newest first."""
        docs = [
            Portfolio.model_validate(d)
            for d in self._load("portfolios").values()
            if d["user_id"] == user_id
        ]
        docs.sort(key=lambda p: p.created_at, reverse=True)
        return docs[:limit]

    def find_portfolio_by_slug(self, slug: str) -> Portfolio | None:
        for data in self._load("portfolios").values():
            if data.get("public_slug") == slug:
                return Portfolio.model_validate(data)
        return None

    def update_portfolio(self, portfolio_id: str, fields: dict[str, Any]) -> Portfolio | None:
        records = self._load("portfolios")
        data = records.get(portfolio_id)
        if data is None:
            return None
        data.update(fields)
        portfolio = Portfolio.model_validate(data)
        records[portfolio_id] = portfolio.model_dump()
        self._dump("portfolios", records)
        return portfolio

    # ------------------------------------------------------------------
    # Streams
    # ------------------------------------------------------------------

    def create_stream(self, user_id: str, purpose: StreamPurpose) -> StreamRecord:
        record = StreamRecord(id=new_id(), user_id=user_id, purpose=purpose, updated_at=utc_now())
        self._put("streams", record.id, record.model_dump())
        return record

    def get_stream(self, stream_id: str) -> StreamRecord | None:
        data = self._load("streams").get(stream_id)
        return StreamRecord.model_validate(data) if data else None

    def append_stream(
        self, stream_id: str, chunk: str, *, done: bool = False, error: bool = False
    ) -> StreamRecord | None:
        """Append a chunk and optionally move the stream to a terminal state.

        Unknown ids are ignored. Once a stream is completed or errored it
        accepts no further text; the record is returned unchanged.
        """
        records = self._load("streams")
        data = records.get(stream_id)
        if data is None:
            return None
        record = StreamRecord.model_validate(data)
        if record.is_terminal:
            logger.warning(
                "append to %s stream %s rejected (chunk_len=%d)",
                record.state, stream_id, len(chunk),
            )
            return record

        record.text += chunk
        if error:
            record.state = "error"
        elif done:
            record.state = "completed"
        record.updated_at = utc_now()
        records[stream_id] = record.model_dump()
        self._dump("streams", records)
        return record

    # ------------------------------------------------------------------
    # Bargain sessions
    # ------------------------------------------------------------------

    def replace_bargain_session(self, session: BargainSession) -> BargainSession:
        """Store a new session, discarding every earlier one for that user."""
        records = {
            sid: d for sid, d in self._load("bargain_sessions").items()
            if d["user_id"] != session.user_id
        }
        records[session.id] = session.model_dump()
        self._dump("bargain_sessions", records)
        return session

    def get_bargain_session(self, session_id: str) -> BargainSession | None:
        data = self._load("bargain_sessions").get(session_id)
        return BargainSession.model_validate(data) if data else None

    def find_bargain_session(self, user_id: str) -> BargainSession | None:
        for data in self._load("bargain_sessions").values():
            if data["user_id"] == user_id:
                return BargainSession.model_validate(data)
        return None

    def save_bargain_session(self, session: BargainSession) -> None:
        self._put("bargain_sessions", session.id, session.model_dump())

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def record_payment(self, payment: Payment) -> bool:
        """Insert unless a payment for the same checkout session exists."""
        records = self._load("payments")
        for data in records.values():
            if data["checkout_session_id"] == payment.checkout_session_id:
                return False
        records[payment.id] = payment.model_dump()
        self._dump("payments", records)
        return True

    def get_payment_by_checkout(self, checkout_session_id: str) -> Payment | None:
        for data in self._load("payments").values():
            if data["checkout_session_id"] == checkout_session_id:
                return Payment.model_validate(data)
        return None

    def has_completed_payment(self, user_id: str) -> bool:
        return any(
            d["user_id"] == user_id and d["status"] == "completed"
            for d in self._load("payments").values()
        )
