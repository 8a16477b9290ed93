"""Fill a recovered JSON object out to a complete GeneratedPortfolio.

The object comes straight from model output, so nothing about its shape can
be trusted: fields may be missing, blank, or of the wrong type. Each field is
defaulted independently and normalize_portfolio() never raises.
"""

from typing import Any

from bloxfolio.models import GeneratedPortfolio, Project, SectionBlock, Theme

DEFAULT_HEADLINE = "Roblox Developer Portfolio"
DEFAULT_ELEVATOR_PITCH = "I design and ship Roblox experiences that scale engagement."
DEFAULT_ABOUT = (
    "Roblox-focused developer with a bias for gameplay systems and measurable growth."
)
DEFAULT_CTA = "Open to partnerships with Roblox studios shipping ambitious experiences."
DEFAULT_SKILLS = ["LuaU", "Game Systems", "Live Ops"]
DEFAULT_STACK = ["LuaU", "Roblox Studio"]

DEFAULT_PROJECT_NAME = "Roblox Project"
DEFAULT_PROJECT_SUMMARY = "Project summary pending."
DEFAULT_PROJECT_IMPACT = "Impact details pending."
DEFAULT_SECTION_TITLE = "Section"
DEFAULT_SECTION_BODY = "Section details pending."

DEFAULT_PROJECT = {
    "name": "Project Showcase",
    "summary": "A standout Roblox build with strong retention metrics.",
    "stack": list(DEFAULT_STACK),
    "impact": "Demonstrates delivery and design depth.",
}
DEFAULT_SECTION = {
    "title": "Build Philosophy",
    "body": "I combine solid architecture with player-first iteration loops.",
}

# wire key → default
DEFAULT_THEME = {
    "bg": "#050505",
    "bgSurface": "#0a0a0c",
    "ink": "#f4f4f5",
    "accent": "#ccff00",
    "fontBody": "Outfit",
    "fontDisplay": "Syne",
    "radius": "0px",
}


def _text(value: Any, default: str) -> str:
    if isinstance(value, str):
        return value.strip() or default
    return default


def _optional_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    return None


def _string_list(value: Any, default: list[str]) -> list[str]:
    if isinstance(value, list):
        items = [v.strip() for v in value if isinstance(v, str) and v.strip()]
        if items:
            return items
    return list(default)


def _objects(value: Any) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _project(item: dict) -> Project:
    return Project(
        name=_text(item.get("name"), DEFAULT_PROJECT_NAME),
        summary=_text(item.get("summary"), DEFAULT_PROJECT_SUMMARY),
        stack=_string_list(item.get("stack"), DEFAULT_STACK),
        impact=_text(item.get("impact"), DEFAULT_PROJECT_IMPACT),
        image_url=_optional_text(item.get("imageUrl")),
        game_url=_optional_text(item.get("gameUrl")),
    )


def _section(item: dict) -> SectionBlock:
    return SectionBlock(
        title=_text(item.get("title"), DEFAULT_SECTION_TITLE),
        body=_text(item.get("body"), DEFAULT_SECTION_BODY),
    )


def _theme(value: Any) -> Theme:
    source = value if isinstance(value, dict) else {}
    return Theme.model_validate(
        {key: _text(source.get(key), default) for key, default in DEFAULT_THEME.items()}
    )


def normalize_portfolio(raw: Any) -> GeneratedPortfolio:
    """Map an untrusted object onto GeneratedPortfolio, defaulting per field."""
    data = raw if isinstance(raw, dict) else {}

    projects = [_project(item) for item in _objects(data.get("highlightedProjects"))]
    sections = [_section(item) for item in _objects(data.get("sectionBlocks"))]

    return GeneratedPortfolio(
        headline=_text(data.get("headline"), DEFAULT_HEADLINE),
        elevator_pitch=_text(data.get("elevatorPitch"), DEFAULT_ELEVATOR_PITCH),
        about=_text(data.get("about"), DEFAULT_ABOUT),
        skills=_string_list(data.get("skills"), DEFAULT_SKILLS),
        highlighted_projects=projects or [Project.model_validate(DEFAULT_PROJECT)],
        section_blocks=sections or [SectionBlock.model_validate(DEFAULT_SECTION)],
        theme=_theme(data.get("theme")),
        cta=_text(data.get("cta"), DEFAULT_CTA),
    )
