"""Pydantic request models for API endpoints (camelCase on the wire)."""

from pydantic import BaseModel

from bloxfolio.models import BuilderInput, GeneratedPortfolio, StreamPurpose, WireModel


class Credentials(BaseModel):
    username: str
    password: str


class CreateStream(BaseModel):
    purpose: StreamPurpose


class GenerateBody(WireModel):
    brief: BuilderInput
    stream_id: str | None = None


class ReviseBody(WireModel):
    brief: BuilderInput
    current: GeneratedPortfolio
    user_request: str
    stream_id: str | None = None


class SaveBody(WireModel):
    brief: BuilderInput
    generated: GeneratedPortfolio


class PublishBody(BaseModel):
    slug: str


class BargainMessageBody(WireModel):
    session_id: str
    message: str


class CheckoutBody(WireModel):
    amount: int
    return_url: str
