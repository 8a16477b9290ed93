"""Core domain models.

Storage, the LLM pipeline, and the HTTP layer all exchange these types.
Pydantic validates at every data boundary. Wire names are camelCase (the
shape the model is asked to produce and the frontend expects); Python
attributes are snake_case.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

StreamState = Literal["streaming", "completed", "error"]
StreamPurpose = Literal["generate", "revise"]
PaymentStatus = Literal["pending", "completed"]


class WireModel(BaseModel):
    """Base for models serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Generated copy
# ---------------------------------------------------------------------------

class Project(WireModel):
    name: str
    summary: str
    stack: list[str]
    impact: str
    image_url: str | None = None
    game_url: str | None = None


class SectionBlock(WireModel):
    title: str
    body: str


class Theme(WireModel):
    bg: str
    bg_surface: str
    ink: str
    accent: str
    font_body: str
    font_display: str
    radius: str


class GeneratedPortfolio(WireModel):
    """The copy pack the model produces for one developer."""

    headline: str
    elevator_pitch: str
    about: str
    skills: list[str]
    highlighted_projects: list[Project]
    section_blocks: list[SectionBlock]
    theme: Theme
    cta: str


class BuilderInput(WireModel):
    """The brief a user submits before generation."""

    roblox_username: str
    primary_role: str
    signature_style: str
    notable_projects: str
    skill_focus: str
    target_audience: str
    custom_prompt: str | None = None


class Portfolio(WireModel):
    """A saved portfolio: the brief plus the generated copy."""

    id: str
    user_id: str
    roblox_username: str
    primary_role: str
    signature_style: str
    notable_projects: str
    skill_focus: str
    target_audience: str
    custom_prompt: str | None = None
    headline: str
    elevator_pitch: str
    about: str
    skills: list[str]
    highlighted_projects: list[Project]
    section_blocks: list[SectionBlock]
    theme: Theme | None = None
    cta: str
    public_slug: str | None = None
    published_at: str | None = None
    created_at: str


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------

class StreamRecord(WireModel):
    """Accumulated text of one in-flight or finished generation."""

    id: str
    user_id: str
    purpose: StreamPurpose
    text: str = ""
    state: StreamState = "streaming"
    updated_at: str

    @property
    def is_terminal(self) -> bool:
        return self.state != "streaming"


# ---------------------------------------------------------------------------
# Negotiation
# ---------------------------------------------------------------------------

class BargainMessage(BaseModel):
    role: Literal["assistant", "user"]
    text: str


class BargainSession(WireModel):
    id: str
    user_id: str
    mood: int
    messages: list[BargainMessage] = Field(default_factory=list)
    message_count: int = 0
    discount_unlocked: bool = False
    created_at: str


# ---------------------------------------------------------------------------
# Accounts and payments
# ---------------------------------------------------------------------------

class User(WireModel):
    id: str
    username: str
    username_lower: str
    password_hash: str
    password_salt: str
    created_at: str

    def public(self) -> dict:
        return {"id": self.id, "username": self.username, "createdAt": self.created_at}


class AuthSession(WireModel):
    id: str
    user_id: str
    token_hash: str
    created_at: str
    expires_at: str


class Payment(WireModel):
    id: str
    user_id: str
    checkout_session_id: str
    amount: int  # cents
    status: PaymentStatus = "completed"
    created_at: str
