"""
Post-extraction validation rules.

Runs deterministic checks over a filtered extraction record and tallies
them for the confidence score:

1. Root structure (the record is a JSON object)
2. Required sections present (summary, goals, bmps by default)
3. Per-section entity presence (same test as the hallucination filter;
   already-filtered records should pass every one)
4. Summary consistency: declared values are non-negative numbers, and
   totalGoals/totalBMPs agree with the list lengths

No rule raises or modifies the record. Failures become issue strings and
lower the confidence score.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..parse.models import DocumentType
from .grounding import ENTITY_KEY_FIELDS, validate_entity_presence
from .schemas import coerce_number

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS = ["summary", "goals", "bmps"]
MAX_ISSUES_PER_SECTION = 3

# Summary key -> list section it counts
SUMMARY_COUNT_FIELDS = {
    "totalGoals": "goals",
    "totalBMPs": "bmps",
}
SUMMARY_VALUE_FIELDS = ["totalGoals", "totalBMPs", "completionRate"]


@dataclass
class SectionValidation:
    """Check tally for one section."""
    total_checks: int = 0
    passed_checks: int = 0
    issues: list[str] = field(default_factory=list)

    def record(self, passed: bool, issue: Optional[str] = None):
        self.total_checks += 1
        if passed:
            self.passed_checks += 1
        elif issue:
            self.issues.append(issue)

    def to_dict(self) -> dict:
        return {
            "totalChecks": self.total_checks,
            "passedChecks": self.passed_checks,
            "issues": self.issues,
        }


@dataclass
class ValidationResult:
    """Outcome of all validation checks for one extraction."""
    total_checks: int = 0
    passed_checks: int = 0
    section_validation: dict[str, SectionValidation] = field(default_factory=dict)
    issues: list[str] = field(default_factory=list)

    def record(self, passed: bool, issue: Optional[str] = None):
        self.total_checks += 1
        if passed:
            self.passed_checks += 1
        elif issue:
            self.issues.append(issue)

    @property
    def failed_checks(self) -> int:
        return self.total_checks - self.passed_checks

    def to_dict(self) -> dict:
        return {
            "totalChecks": self.total_checks,
            "passedChecks": self.passed_checks,
            "sectionValidation": {
                name: section.to_dict() for name, section in self.section_validation.items()
            },
            "issues": self.issues,
        }


# =============================================================================
# INDIVIDUAL RULES
# =============================================================================


def check_root_structure(record: Any, result: ValidationResult) -> bool:
    is_object = isinstance(record, dict)
    result.record(is_object, "Invalid data structure: root must be an object")
    return is_object


def check_required_sections(
    record: dict,
    result: ValidationResult,
    required_sections: list[str],
):
    missing = [name for name in required_sections if record.get(name) is None]
    result.record(
        not missing,
        f"Missing required sections: {', '.join(missing)}",
    )


def check_entity_presence(
    record: dict,
    source_text: str,
    key_fields: dict[str, str],
) -> dict[str, SectionValidation]:
    """Presence tally for every list section in the record."""
    sections = {}
    for category, key_field in key_fields.items():
        entities = record.get(category)
        if not isinstance(entities, list):
            continue
        presence = validate_entity_presence(entities, key_field, source_text)
        sections[category] = SectionValidation(
            total_checks=presence.total_checks,
            passed_checks=presence.passed_checks,
            issues=presence.issues,
        )
    return sections


def _is_non_negative_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


def check_summary(record: dict) -> Optional[SectionValidation]:
    """
    Summary consistency checks.

    Returns None when the record has no summary (the required-section
    rule already reports that).
    """
    summary = record.get("summary")
    if summary is None:
        return None

    section = SectionValidation()
    if not isinstance(summary, dict):
        section.record(False, "Summary must be an object")
        return section

    # Declared values are non-negative numbers
    declared = {k: summary[k] for k in SUMMARY_VALUE_FIELDS if summary.get(k) is not None}
    if declared:
        invalid = [k for k, v in declared.items() if not _is_non_negative_number(v)]
        if "completionRate" in declared and _is_non_negative_number(declared["completionRate"]):
            if declared["completionRate"] > 100:
                invalid.append("completionRate")
        section.record(
            not invalid,
            f"Invalid summary values (expected non-negative numbers): {', '.join(invalid)}",
        )

    # Declared counts agree with list lengths
    mismatches = []
    compared = 0
    for count_key, list_key in SUMMARY_COUNT_FIELDS.items():
        declared_count = coerce_number(summary.get(count_key))
        if declared_count is None:
            continue
        compared += 1
        entities = record.get(list_key)
        actual = len(entities) if isinstance(entities, list) else 0
        if actual != declared_count:
            mismatches.append(f"{list_key} has {actual} entries but {count_key} is {declared_count:g}")
    if compared:
        section.record(
            not mismatches,
            f"Array lengths do not match summary counts: {'; '.join(mismatches)}",
        )

    return section


# =============================================================================
# ENTRY POINT
# =============================================================================


def validate_extracted_data(
    record: Any,
    source_text: str,
    document_type: Optional[DocumentType] = None,
    required_sections: Optional[list[str]] = None,
    max_issues_per_section: int = MAX_ISSUES_PER_SECTION,
    key_fields: Optional[dict[str, str]] = None,
) -> ValidationResult:
    """
    Validate an extraction record against its source text.

    Args:
        record: Filtered extraction record
        source_text: Original document text
        document_type: Resolved document type (logged; all types share the rules)
        required_sections: Top-level keys that must be present
        max_issues_per_section: Section issues copied into the top-level list
        key_fields: Section -> identifying field

    Returns:
        ValidationResult with overall and per-section tallies
    """
    result = ValidationResult()
    required_sections = REQUIRED_SECTIONS if required_sections is None else required_sections
    key_fields = key_fields or ENTITY_KEY_FIELDS

    if not check_root_structure(record, result):
        logger.warning("[Validation] Record is not an object, skipping section checks")
        return result

    check_required_sections(record, result, required_sections)

    result.section_validation = check_entity_presence(record, source_text, key_fields)
    summary_section = check_summary(record)
    if summary_section is not None:
        result.section_validation["summary"] = summary_section

    for section in result.section_validation.values():
        result.total_checks += section.total_checks
        result.passed_checks += section.passed_checks
        result.issues.extend(section.issues[:max_issues_per_section])

    doc_label = document_type.value if document_type else "unknown"
    logger.info(
        f"[Validation] {doc_label}: {result.passed_checks}/{result.total_checks} checks passed, "
        f"{len(result.issues)} issues"
    )
    return result
