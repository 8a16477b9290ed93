"""Generation orchestrator: one model call per generate/revise request.

Flow:
  1. Validate the brief (before anything leaves the process).
  2. Render the system and user prompts.
  3. Stream the completion through a StreamRelay so a polling client can
     watch the text arrive.
  4. Recover the JSON object from the full text and normalize it.

Provider errors mark the stream as errored and propagate to the caller;
nothing is retried. The work runs to completion even if the requesting
client goes away.
"""

from __future__ import annotations

import logging

from bloxfolio.extraction import parse_model_json
from bloxfolio.llm import LLM, LLMError, UpstreamError
from bloxfolio.models import BuilderInput, GeneratedPortfolio
from bloxfolio.normalizer import normalize_portfolio
from bloxfolio.portfolios import check_brief
from bloxfolio.prompts import SYSTEM_PROMPT, build_generate_prompt, build_revise_prompt
from bloxfolio.streaming import StreamRelay, StreamStore

logger = logging.getLogger(__name__)


async def _run_completion(
    llm: LLM,
    store: StreamStore | None,
    stream_id: str | None,
    user_prompt: str,
) -> GeneratedPortfolio:
    relay = StreamRelay(store, stream_id)
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]
    try:
        text = await relay.consume(llm.stream_lines(messages))
    except UpstreamError as e:
        relay.fail(e.status_code)
        raise
    except LLMError as e:
        logger.error("generation stream %s failed: %s", stream_id, e)
        relay.fail("connection")
        raise

    logger.debug("generation stream %s finished len=%d", stream_id, len(text))
    return normalize_portfolio(parse_model_json(text))


async def generate_portfolio(
    llm: LLM,
    store: StreamStore | None,
    brief: BuilderInput,
    *,
    stream_id: str | None = None,
) -> GeneratedPortfolio:
    """Generate a fresh copy pack from the brief."""
    check_brief(brief)
    return await _run_completion(llm, store, stream_id, build_generate_prompt(brief))


async def revise_portfolio(
    llm: LLM,
    store: StreamStore | None,
    brief: BuilderInput,
    current: GeneratedPortfolio,
    user_request: str,
    *,
    stream_id: str | None = None,
) -> GeneratedPortfolio:
    """Rewrite an existing copy pack according to the user's feedback."""
    check_brief(brief)
    request = user_request.strip()
    if not request:
        raise ValueError("Revision request cannot be empty.")
    return await _run_completion(
        llm, store, stream_id, build_revise_prompt(brief, current, request)
    )
