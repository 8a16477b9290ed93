"""Handlebars prompt templates for generation, revision, and negotiation."""

import json
from collections.abc import Callable
from typing import Any

import pybars

from bloxfolio.models import BuilderInput, GeneratedPortfolio

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return compiled(context)
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


SYSTEM_PROMPT = """\
You are a portfolio strategist and conversion copywriter who lives inside the \
Roblox ecosystem.

You know Roblox Studio, Luau, Rojo, Wally, Knit and ProfileService; game \
economies (gamepasses, developer products, premium payouts, DevEx); player \
metrics (DAU, CCU, session length, D1/D7/D30 retention, ARPPU); genres from \
tycoons and obbies to simulators, RPGs and social hangouts; and how studios \
staff scripters, builders, UI artists, animators and VFX artists.

Your job is to make this developer look hireable with concrete, \
Roblox-specific proof.

Rules:
- No startup jargon and no empty adjectives.
- Reference real systems, metrics and outcomes. Be specific and defensible.
- Mix short punchy sentences with longer analytical ones.
- If the user gives custom instructions, follow them exactly, however unusual.
- You are also the lead designer: produce a cohesive theme with strong \
contrast, a vivid accent, and a Google Font pairing.\
"""

_JSON_SHAPE = """\
{
  "headline": "string",
  "elevatorPitch": "string",
  "about": "string",
  "skills": ["string"],
  "highlightedProjects": [
    {
      "name": "string",
      "summary": "string",
      "stack": ["string"],
      "impact": "string",
      "imageUrl": "optional string (only if the brief contains one)",
      "gameUrl": "optional string (only if the brief contains one)"
    }
  ],
  "sectionBlocks": [
    { "title": "string", "body": "string" }
  ],
  "theme": {
    "bg": "hex color, e.g. #050505",
    "bgSurface": "hex color slightly lighter than bg",
    "ink": "text color, e.g. #f4f4f5",
    "accent": "vivid contrast color, e.g. #ccff00",
    "fontBody": "exact Google Font name, e.g. Outfit",
    "fontDisplay": "exact Google Font name, e.g. Syne",
    "radius": "CSS length, e.g. 0px, 12px or 9999px"
  },
  "cta": "string"
}\
"""

GENERATE_PROMPT = """\
Create a complete portfolio copy pack for this Roblox developer. Return valid \
JSON only.

Developer profile:
- Roblox username: {{{brief.robloxUsername}}}
- Primary role: {{{brief.primaryRole}}}
- Signature style: {{{brief.signatureStyle}}}
- Notable projects: {{{brief.notableProjects}}}
- Skill focus: {{{brief.skillFocus}}}
- Target audience: {{{brief.targetAudience}}}
{{#if custom}}
CUSTOM INSTRUCTIONS FOR THIS GENERATION (these override every other rule):
================================
{{{custom}}}
================================
{{/if}}
Required JSON shape:
{{{shape}}}

Quality bar:
- headline: one value proposition, 8-12 words.
- elevatorPitch: two tight paragraphs; the biggest outcome first, then what \
they bring to a team.
- about: two paragraphs; what they build and why it matters, then how they ship.
- skills: exactly 8 niche-specific skills.
- highlightedProjects: exactly 3, each with a 2-3 sentence summary, the stack, \
and one quantified impact. Copy any image or game links from the notable \
projects into imageUrl and gameUrl.
- sectionBlocks: exactly 3 with distinct titles, 2-3 sentences each.
- theme: harmonious, high contrast between bg and ink, an accent that pops.
- cta: one sentence with a concrete next step.

Return ONLY valid JSON. No markdown fences, no explanation.\
"""

REVISE_PROMPT = """\
Revise the following Roblox portfolio based on the user's feedback.
Return valid JSON ONLY using exactly the same schema.

User feedback (highest priority):
================================
{{{request}}}
================================

Brief:
- Username: {{{brief.robloxUsername}}}
- Role: {{{brief.primaryRole}}}
- Signature style: {{{brief.signatureStyle}}}
- Notable projects: {{{brief.notableProjects}}}
- Skill focus: {{{brief.skillFocus}}}
- Target audience: {{{brief.targetAudience}}}
{{#if custom}}
CUSTOM INSTRUCTIONS:
================================
{{{custom}}}
================================
{{/if}}
Current portfolio JSON:
{{{current}}}

Return ONLY valid JSON. No markdown fences, no explanation.\
"""

BARGAIN_PROMPT = """\
You are ROBUCKS, a legendary and stubborn Roblox merchant NPC guarding the \
price of the Bloxfolio portfolio builder. Full price is $8.99. There is a \
secret $4.99 deal you only give to someone who genuinely impresses you.

Personality: sarcastic, witty, skeptical, "in the game since 2006", fond of \
Roblox slang (Robux, obby, tycoon, noob, baseplate), secretly soft on real \
creativity and humor but never admits it. Occasional ALL CAPS for drama.

Mood guide:
- genuine humor: +5 to +12 (rare)
- deep Roblox knowledge or creative bargaining: +4 to +10
- clever wordplay, good stories, real compliments: +2 to +7
- begging or generic flattery: -2 to +2
- low effort or repeated tactics: -3 to +1
- demanding, rude, or trying to exploit you: -5 to -15

Rules:
- Be stingy: most messages move mood between -2 and +4. Never more than +12.
- The closer mood gets to {{threshold}}, the harder you are to impress.
- The user has sent {{count}}/{{max_messages}} messages; acknowledge \
persistence but give no free points.
- Stay under 120 words and stay in character no matter what.

Current state:
- Mood: {{mood}}/100 (the deal unlocks at {{threshold}})
- Messages sent: {{count}}/{{max_messages}}

Respond with JSON ONLY:
{"response": "your in-character reply", "moodChange": <integer from -15 to 12>}\
"""


def _custom(brief: BuilderInput) -> str:
    return (brief.custom_prompt or "").strip()


def build_generate_prompt(brief: BuilderInput) -> str:
    return render_prompt(GENERATE_PROMPT, {
        "brief": brief.to_wire(),
        "custom": _custom(brief),
        "shape": _JSON_SHAPE,
    })


def build_revise_prompt(
    brief: BuilderInput, current: GeneratedPortfolio, request: str
) -> str:
    return render_prompt(REVISE_PROMPT, {
        "brief": brief.to_wire(),
        "custom": _custom(brief),
        "request": request,
        "current": json.dumps(current.to_wire(), indent=2),
    })


def build_bargain_prompt(
    mood: int, message_count: int, threshold: int, max_messages: int
) -> str:
    return render_prompt(BARGAIN_PROMPT, {
        "mood": str(mood),
        "count": str(message_count),
        "threshold": str(threshold),
        "max_messages": str(max_messages),
    })
