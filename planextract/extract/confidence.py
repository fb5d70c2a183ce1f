"""
Confidence scoring for extraction results.

Confidence is the share of validation checks that passed, as an integer
percentage. Below the low-confidence threshold the caller gets a warning
alongside the data; the pipeline never fails on confidence alone.
"""

import math

from .validation_rules import ValidationResult

LOW_CONFIDENCE_THRESHOLD = 75


def calculate_confidence(validation: ValidationResult) -> int:
    """
    round(100 * passed / total), rounding halves up.

    Returns 0 when no checks ran.
    """
    if validation.total_checks <= 0:
        return 0
    ratio = validation.passed_checks / validation.total_checks
    score = math.floor(ratio * 100 + 0.5)
    return max(0, min(100, score))


def is_low_confidence(confidence: int, threshold: int = LOW_CONFIDENCE_THRESHOLD) -> bool:
    return confidence < threshold


def confidence_warning(confidence: int, threshold: int = LOW_CONFIDENCE_THRESHOLD):
    """Warning text for low-confidence results, or None."""
    if not is_low_confidence(confidence, threshold):
        return None
    return f"Low confidence extraction (below {threshold}%)"
