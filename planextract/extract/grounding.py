"""
Grounding checks for LLM extractions.

Every entity the model returns must be traceable to the source text through
its identifying field, or it is dropped. This is the hallucination filter;
the validator runs the same presence test again for reporting.

Matching policy:
- empty or missing identifying field: not grounded
- 5 characters or fewer: exact, case-sensitive substring
- longer: case-insensitive regex where whitespace runs are flexible and
  punctuation is optional
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Identifying field per list section
ENTITY_KEY_FIELDS = {
    "goals": "description",
    "bmps": "name",
    "implementation": "activity",
    "monitoring": "metric",
    "outreach": "activity",
    "geographicAreas": "name",
}

SHORT_TEXT_MAX_CHARS = 5
FLEXIBLE_PUNCTUATION = ".,;:!?"

_SEPARATOR_SPLIT = re.compile(r"([\s" + re.escape(FLEXIBLE_PUNCTUATION) + r"]+)")
_OPTIONAL_SEPARATOR = r"[" + re.escape(FLEXIBLE_PUNCTUATION) + r"\s]*"


@dataclass
class RemovedEntity:
    """An entity dropped because its identifying field is not in the source."""
    category: str
    key_field: str
    value: Optional[str]
    reason: str  # "missing_key" | "not_in_source" | "not_an_object"

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "field": self.key_field,
            "value": self.value,
            "reason": self.reason,
        }


@dataclass
class PresenceResult:
    """Presence tally for one list section."""
    total_checks: int = 0
    passed_checks: int = 0
    issues: list[str] = field(default_factory=list)


def build_flexible_pattern(text: str) -> str:
    """
    Regex that tolerates spacing and punctuation differences.

    "Reduce nitrogen, runoff" matches "reduce  nitrogen runoff" and
    "Reduce nitrogen; runoff". All other characters are literal.
    """
    parts = []
    for piece in _SEPARATOR_SPLIT.split(text.strip()):
        if not piece:
            continue
        if _SEPARATOR_SPLIT.fullmatch(piece):
            if any(c in FLEXIBLE_PUNCTUATION for c in piece):
                parts.append(_OPTIONAL_SEPARATOR)
            else:
                parts.append(r"\s+")
        else:
            parts.append(re.escape(piece))
    return "".join(parts)


def is_text_present(value: Any, source_text: str) -> bool:
    """Whether a string is traceable to the source text."""
    if not isinstance(value, str):
        return False
    value = value.strip()
    if not value:
        return False
    if len(value) <= SHORT_TEXT_MAX_CHARS:
        return value in source_text
    return re.search(build_flexible_pattern(value), source_text, re.IGNORECASE) is not None


def _key_value(entity: Any, key_field: str) -> Optional[str]:
    if not isinstance(entity, dict):
        return None
    value = entity.get(key_field)
    return value.strip() if isinstance(value, str) else None


def filter_ungrounded_entities(
    record: Any,
    source_text: str,
    key_fields: Optional[dict[str, str]] = None,
) -> tuple[Any, list[RemovedEntity]]:
    """
    Drop every list entity whose identifying field is not in the source.

    Sections that are missing or not lists are left as they are. The input
    record is not modified. Applying the filter twice gives the same result
    as applying it once.

    Args:
        record: Parsed LLM record
        source_text: Original document text
        key_fields: Section -> identifying field (defaults to ENTITY_KEY_FIELDS)

    Returns:
        (filtered_record, removed_entities)
    """
    if not isinstance(record, dict):
        return record, []

    key_fields = key_fields or ENTITY_KEY_FIELDS
    filtered = dict(record)
    removed: list[RemovedEntity] = []

    for category, key_field in key_fields.items():
        entities = record.get(category)
        if not isinstance(entities, list):
            continue

        kept = []
        for entity in entities:
            if not isinstance(entity, dict):
                removed.append(RemovedEntity(category, key_field, None, "not_an_object"))
                continue
            value = _key_value(entity, key_field)
            if not value:
                removed.append(RemovedEntity(category, key_field, None, "missing_key"))
                continue
            if not is_text_present(value, source_text):
                removed.append(RemovedEntity(category, key_field, value, "not_in_source"))
                continue
            kept.append(entity)

        filtered[category] = kept

    for item in removed:
        logger.warning(
            f"[Grounding] Dropped {item.category} entity ({item.reason}): {item.value!r}"
        )

    return filtered, removed


def validate_entity_presence(
    entities: list,
    key_field: str,
    source_text: str,
) -> PresenceResult:
    """
    Count how many entities carry a key value found in the source.

    Entities without a value for the key are not counted.
    """
    result = PresenceResult()
    for index, entity in enumerate(entities):
        value = _key_value(entity, key_field)
        if not value:
            continue
        result.total_checks += 1
        if is_text_present(value, source_text):
            result.passed_checks += 1
        elif len(value) <= SHORT_TEXT_MAX_CHARS:
            result.issues.append(f"Short entity at index {index} not found: \"{value}\"")
        else:
            result.issues.append(f"Entity at index {index} not found: \"{value[:30]}...\"")
    return result
