"""Price negotiation with the ROBUCKS merchant persona.

Each user has at most one BargainSession. The session carries a mood score
(0-100, starting at 20). Every user message is sent to the model together
with a system prompt stating the current mood and message count, and the
model answers with {"response": ..., "moodChange": n}. The change is rounded
and clamped to [-15, 12] before being applied; mood itself is clamped to
[0, 100]. Reaching 80 unlocks the discount for good.

Limits are checked before any model call: 400 characters per message and 50
messages per session. Provider failures and unreadable replies never surface
as errors mid-conversation; the merchant answers with a canned line and the
mood does not move.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from bloxfolio.llm import LLM, LLMError
from bloxfolio.models import BargainMessage, BargainSession
from bloxfolio.prompts import build_bargain_prompt
from bloxfolio.storage import Storage, new_id, utc_now

logger = logging.getLogger(__name__)

START_MOOD = 20
MOOD_THRESHOLD = 80
MIN_MOOD = 0
MAX_MOOD = 100
MIN_MOOD_CHANGE = -15
MAX_MOOD_CHANGE = 12
MAX_MESSAGES = 50
MAX_MESSAGE_LENGTH = 400
HISTORY_WINDOW = 10

INTRO_TEXT = """\
Well well WELL... another developer comes crawling to ROBUCKS looking for a deal.

The price is $8.99. FIRM. Carved into the baseplate itself.

...BUT. If someone REALLY impresses me, I MIGHT consider $4.99. Don't get your \
hopes up, kid. I've been running this shop since classic terrain and I've \
heard every trick in the book.

My mood meter starts at 20. You need to get it to 80. Good luck with THAT."""

NOT_CONFIGURED_REPLY = (
    "Hmm... my brain feels foggy. The shopkeeper seems distracted. "
    "(AI service not configured - set OPENROUTER_API_KEY)"
)
PROVIDER_ERROR_REPLY = "*ROBUCKS glitches out for a moment* ...Sorry kid, my circuits are fried. Try again."
SILENT_REPLY = "*ROBUCKS stares at you silently*"
CONFUSED_REPLY = "*ROBUCKS scratches his head*"

_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class BargainError(ValueError):
    """A message was refused before reaching the merchant."""


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def start_session(storage: Storage, user_id: str) -> BargainSession:
    """Open a fresh session, discarding any earlier one for the user."""
    session = BargainSession(
        id=new_id(),
        user_id=user_id,
        mood=START_MOOD,
        messages=[BargainMessage(role="assistant", text=INTRO_TEXT)],
        created_at=utc_now(),
    )
    logger.info("bargain session %s started for user %s", session.id, user_id)
    return storage.replace_bargain_session(session)


def apply_mood_change(session: BargainSession, change: float) -> BargainSession:
    """Apply one clamped mood change. The discount latches once unlocked."""
    delta = _clamp(math.floor(change + 0.5), MIN_MOOD_CHANGE, MAX_MOOD_CHANGE)
    session.mood = int(_clamp(session.mood + delta, MIN_MOOD, MAX_MOOD))
    if session.mood >= MOOD_THRESHOLD:
        session.discount_unlocked = True
    return session


def parse_bargain_reply(content: str) -> tuple[str, float]:
    """Pull (response, moodChange) out of the merchant's reply.

    Only the span from the first "{" to the last "}" is tried. Anything that
    does not parse falls back to the raw text with no mood change.
    """
    match = _OBJECT_RE.search(content)
    if match is None:
        return content.strip() or SILENT_REPLY, 0

    try:
        parsed: Any = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.warning("unparsable bargain reply (len=%d)", len(content))
        return content.strip() or CONFUSED_REPLY, 0
    if not isinstance(parsed, dict):
        return content.strip() or CONFUSED_REPLY, 0

    response = parsed.get("response")
    change = parsed.get("moodChange")
    if not isinstance(change, (int, float)) or isinstance(change, bool) or not math.isfinite(change):
        change = 0
    return (response if isinstance(response, str) and response else "..."), change


def _check_message(session: BargainSession | None, user_id: str, message: str) -> str:
    text = message.strip()
    if not text:
        raise BargainError("Message cannot be empty.")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise BargainError(f"Message too long. Keep it under {MAX_MESSAGE_LENGTH} characters.")
    if session is None:
        raise BargainError("No bargain session found.")
    if session.user_id != user_id:
        raise PermissionError("Unauthorized")
    if session.message_count >= MAX_MESSAGES:
        raise BargainError("You've hit the message limit. Start a new session to try again.")
    if session.discount_unlocked:
        raise BargainError("Discount already unlocked! Go claim your deal.")
    return text


async def _ask_merchant(
    llm: LLM | None, session: BargainSession, text: str
) -> tuple[str, float]:
    """Ask the model for a reply to text, given the session state before it."""
    if llm is None:
        return NOT_CONFIGURED_REPLY, 0

    messages = [{
        "role": "system",
        "content": build_bargain_prompt(
            session.mood, session.message_count, MOOD_THRESHOLD, MAX_MESSAGES
        ),
    }]
    messages.extend(
        {"role": m.role, "content": m.text} for m in session.messages[-HISTORY_WINDOW:]
    )
    messages.append({"role": "user", "content": text})

    try:
        content = await llm.complete(messages, temperature=0.9, max_tokens=512)
    except LLMError as e:
        logger.error("bargain reply failed for session %s: %s", session.id, e)
        return PROVIDER_ERROR_REPLY, 0
    return parse_bargain_reply(content)


async def send_message(
    storage: Storage,
    llm: LLM | None,
    user_id: str,
    session_id: str,
    message: str,
) -> BargainSession:
    """Record one user message, get the merchant's answer, and update mood.

    Validation failures raise before the model is called. The prompt uses the
    mood and count as they were before this message.
    """
    session = storage.get_bargain_session(session_id)
    text = _check_message(session, user_id, message)

    before = session.model_copy(deep=True)
    session.messages.append(BargainMessage(role="user", text=text))
    session.message_count += 1
    storage.save_bargain_session(session)

    reply, change = await _ask_merchant(llm, before, text)

    # reload so a concurrent restart is not resurrected
    current = storage.get_bargain_session(session_id)
    if current is None:
        logger.warning("bargain session %s vanished mid-reply", session_id)
        return session
    current.messages.append(BargainMessage(role="assistant", text=reply))
    apply_mood_change(current, change)
    storage.save_bargain_session(current)
    logger.debug(
        "bargain session %s mood=%d unlocked=%s", session_id, current.mood, current.discount_unlocked
    )
    return current
