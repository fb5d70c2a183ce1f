"""
Recover the JSON object from a free-form LLM reply.

Replies may be bare JSON, wrapped in a ```json fence, or surrounded by
prose. Candidates are tried in order: fenced blocks, the greedy {...} span,
then the whole reply. The first one that parses to a JSON object wins.
Nothing is repaired or partially recovered.
"""

import json
import logging
import re
from typing import Any

from ..errors import ParseError

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)```")
BRACE_PATTERN = re.compile(r"\{[\s\S]*\}")

SNIPPET_CHARS = 200


def _candidates(reply: str) -> list[str]:
    candidates = [m.group(1).strip() for m in FENCE_PATTERN.finditer(reply)]
    brace = BRACE_PATTERN.search(reply)
    if brace:
        candidates.append(brace.group(0))
    candidates.append(reply.strip())
    return [c for c in candidates if c]


def parse_llm_response(reply: str) -> dict[str, Any]:
    """
    Parse the extraction record out of a model reply.

    Args:
        reply: Raw reply text

    Returns:
        The parsed JSON object (untyped)

    Raises:
        ParseError: If no candidate parses to a JSON object
    """
    if not reply or not reply.strip():
        raise ParseError(response_snippet="")

    for candidate in _candidates(reply):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
        logger.debug(f"Skipping JSON candidate of type {type(parsed).__name__}")

    logger.error(f"Could not parse JSON object from reply: {reply[:SNIPPET_CHARS]}")
    raise ParseError(response_snippet=reply[:SNIPPET_CHARS])
