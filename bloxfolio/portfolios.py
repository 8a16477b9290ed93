"""Saving, listing, and publishing portfolios."""

import logging
import re
from typing import Any

from bloxfolio.models import BuilderInput, GeneratedPortfolio, Portfolio, User
from bloxfolio.storage import Storage, new_id, utc_now

logger = logging.getLogger(__name__)

MAX_SHORT_TEXT = 500
MAX_LONG_TEXT = 5000
MAX_SKILLS = 50
MAX_PROJECTS = 20
MAX_SECTIONS = 20
LIST_LIMIT = 24

SLUG_RE = re.compile(r"^[a-z0-9-]{3,40}$")


class SlugTakenError(ValueError):
    """The requested public slug belongs to another portfolio."""


def check_brief(brief: BuilderInput) -> None:
    if len(brief.roblox_username) > MAX_SHORT_TEXT:
        raise ValueError("Roblox username is too long.")
    if len(brief.primary_role) > MAX_SHORT_TEXT:
        raise ValueError("Primary role is too long.")
    for text in (brief.signature_style, brief.notable_projects, brief.skill_focus,
                 brief.target_audience, brief.custom_prompt or ""):
        if len(text) > MAX_LONG_TEXT:
            raise ValueError("Brief field is too long.")


def check_field_lengths(brief: BuilderInput, generated: GeneratedPortfolio) -> None:
    """Reject oversized input before anything is stored."""
    check_brief(brief)
    if len(generated.headline) > MAX_SHORT_TEXT:
        raise ValueError("Headline is too long.")
    if len(generated.elevator_pitch) > MAX_LONG_TEXT:
        raise ValueError("Elevator pitch is too long.")
    if len(generated.about) > MAX_LONG_TEXT:
        raise ValueError("About section is too long.")
    if len(generated.cta) > MAX_SHORT_TEXT:
        raise ValueError("Call to action is too long.")
    if len(generated.skills) > MAX_SKILLS:
        raise ValueError("Too many skills.")
    if len(generated.highlighted_projects) > MAX_PROJECTS:
        raise ValueError("Too many projects.")
    if len(generated.section_blocks) > MAX_SECTIONS:
        raise ValueError("Too many sections.")


def save_portfolio(
    storage: Storage, user: User, brief: BuilderInput, generated: GeneratedPortfolio
) -> Portfolio:
    check_field_lengths(brief, generated)
    portfolio = Portfolio(
        id=new_id(),
        user_id=user.id,
        **brief.model_dump(exclude={"custom_prompt"}),
        custom_prompt=brief.custom_prompt or None,
        **generated.model_dump(),
        created_at=utc_now(),
    )
    logger.info("saved portfolio %s for user %s", portfolio.id, user.id)
    return storage.insert_portfolio(portfolio)


def list_portfolios(storage: Storage, user: User) -> list[dict[str, Any]]:
    """Summaries of the user's most recent portfolios, newest first."""
    return [
        {
            "id": p.id,
            "robloxUsername": p.roblox_username,
            "primaryRole": p.primary_role,
            "headline": p.headline,
            "publicSlug": p.public_slug,
            "createdAt": p.created_at,
        }
        for p in storage.list_portfolios(user.id, limit=LIST_LIMIT)
    ]


def normalize_slug(slug: str) -> str:
    return slug.strip().lower()


def publish_portfolio(
    storage: Storage, user: User, portfolio_id: str, slug: str
) -> dict[str, str]:
    """Give a portfolio a public slug. Returns {"slug", "publishedAt"}.

    Raises ValueError on a malformed slug, LookupError if the portfolio is
    missing or not the user's, SlugTakenError if another portfolio holds it.
    """
    slug = normalize_slug(slug)
    if not SLUG_RE.match(slug):
        raise ValueError("Slug must be 3-40 chars: lowercase letters, numbers, hyphens.")

    portfolio = storage.get_portfolio(portfolio_id)
    if portfolio is None or portfolio.user_id != user.id:
        raise LookupError("Portfolio not found.")

    existing = storage.find_portfolio_by_slug(slug)
    if existing is not None and existing.id != portfolio_id:
        raise SlugTakenError("That subdomain is already taken.")

    published_at = utc_now()
    storage.update_portfolio(portfolio_id, {"public_slug": slug, "published_at": published_at})
    logger.info("published portfolio %s at /p/%s", portfolio_id, slug)
    return {"slug": slug, "publishedAt": published_at}


def get_public_portfolio(storage: Storage, slug: str) -> Portfolio | None:
    slug = normalize_slug(slug)
    if not slug:
        return None
    return storage.find_portfolio_by_slug(slug)
