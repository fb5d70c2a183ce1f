"""
Accuracy evaluation against curated ground truth.

Provides:
- JSON ground truth loading
- Plan id derivation from document file names
- Levenshtein string similarity with an exact-match rule for short strings
- Per-category found/missed/false-positive accounting

Tracked categories and their identifying fields are fixed so that results
stay comparable across runs.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from rapidfuzz.distance import Levenshtein

logger = logging.getLogger(__name__)

# Tracked category -> identifying field (order is the report order)
CATEGORY_FIELDS = {
    "goals": "description",
    "bmps": "name",
    "monitoring": "metric",
}

MATCH_THRESHOLD = 0.7
SHORT_STRING_CHARS = 5

PLAN_ID_STOPWORDS = r"watershed|plan|management|final|draft|report"


# =============================================================================
# Ground Truth Data Structures
# =============================================================================


@dataclass
class GroundTruth:
    """Verified entities for one plan."""

    plan_id: str
    name: Optional[str] = None
    source: Optional[str] = None
    verified_by: Optional[str] = None
    notes: Optional[str] = None
    categories: dict[str, list[dict]] = field(default_factory=dict)

    def total(self, category: str) -> int:
        return len(self.categories.get(category) or [])

    def to_dict(self) -> dict:
        return {
            "plan_id": self.plan_id,
            "name": self.name,
            "source": self.source,
            "verified_by": self.verified_by,
            "notes": self.notes,
            **self.categories,
        }


def load_ground_truth(path: Union[str, Path]) -> GroundTruth:
    """
    Load ground truth from JSON file.

    Expected format: {"plan_id": ..., "goals": [...], "bmps": [...],
    "monitoring": [...]}. plan_id defaults to the file stem.
    """
    path = Path(path)

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    categories = {}
    for category in CATEGORY_FIELDS:
        entities = data.get(category)
        if isinstance(entities, list):
            categories[category] = [e for e in entities if isinstance(e, dict)]

    return GroundTruth(
        plan_id=data.get("plan_id") or path.stem,
        name=data.get("name"),
        source=data.get("source"),
        verified_by=data.get("verified_by"),
        notes=data.get("notes"),
        categories=categories,
    )


def load_all_ground_truth(ground_truth_dir: Union[str, Path]) -> dict[str, GroundTruth]:
    """
    Load all ground truth files from a directory.

    Returns:
        Dict mapping plan_id -> GroundTruth
    """
    ground_truth_dir = Path(ground_truth_dir)
    result = {}

    if not ground_truth_dir.exists():
        logger.warning(f"Ground truth directory not found: {ground_truth_dir}")
        return result

    for gt_file in sorted(ground_truth_dir.glob("*.json")):
        try:
            gt = load_ground_truth(gt_file)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Error loading {gt_file}: {e}")
            continue
        result[gt.plan_id] = gt
        counts = ", ".join(f"{c}={gt.total(c)}" for c in CATEGORY_FIELDS)
        logger.info(f"Loaded ground truth for {gt.plan_id} ({counts})")

    return result


def plan_id_from_filename(filename: str) -> str:
    """
    Standard plan id from a document file name.

    "Deer Creek Watershed Plan.pdf" -> "deer-creek"
    """
    name = re.sub(r"\.(pdf|txt)$", "", Path(filename).name, flags=re.IGNORECASE)
    name = re.sub(r"[\s_]+", "-", name.lower())
    name = re.sub(rf"-?(?:{PLAN_ID_STOPWORDS})(?=-|$)", "-", name)
    name = re.sub(r"-{2,}", "-", name).strip("-")

    parts = name.split("-")
    if len(parts) >= 2:
        return f"{parts[0]}-{parts[1]}"
    return name


# =============================================================================
# Similarity
# =============================================================================


def string_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Case-insensitive similarity in [0, 1].

    Both empty -> 1.0, one empty -> 0.0. Strings shorter than 5 characters
    must match exactly; longer ones use 1 - levenshtein / max(len).
    """
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0

    a = str(a).lower()
    b = str(b).lower()

    if len(a) < SHORT_STRING_CHARS or len(b) < SHORT_STRING_CHARS:
        return 1.0 if a == b else 0.0

    return Levenshtein.normalized_similarity(a, b)


# =============================================================================
# Accuracy Results
# =============================================================================


@dataclass
class CategoryAccuracy:
    """Found/missed/false-positive tally for one category."""

    category: str
    key_field: str
    total: int = 0
    found: int = 0
    matches: list[dict] = field(default_factory=list)
    misses: list[dict] = field(default_factory=list)
    false_positives: list[str] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        """Percentage of ground truth entities found (0 when none expected)."""
        return (self.found / self.total) * 100 if self.total > 0 else 0.0

    def to_dict(self) -> dict:
        return {
            "found": self.found,
            "total": self.total,
            "accuracy": self.accuracy,
            "matches": self.matches,
            "misses": self.misses,
            "falsePositives": self.false_positives,
        }


@dataclass
class AccuracyResult:
    """Accuracy of one extraction against its ground truth."""

    categories: dict[str, CategoryAccuracy] = field(default_factory=dict)

    @property
    def overall(self) -> float:
        """Unweighted mean over categories that have ground truth entities."""
        scored = [c.accuracy for c in self.categories.values() if c.total > 0]
        return sum(scored) / len(scored) if scored else 0.0

    @property
    def false_positives(self) -> int:
        return sum(len(c.false_positives) for c in self.categories.values())

    def category_accuracy(self, category: str) -> float:
        result = self.categories.get(category)
        return result.accuracy if result else 0.0

    def to_dict(self) -> dict:
        result = {"overall": self.overall}
        for category in self.categories:
            result[category] = self.categories[category].accuracy
        result["falsePositives"] = self.false_positives
        result["details"] = {name: c.to_dict() for name, c in self.categories.items()}
        return result


def _entities(extracted: Any, category: str) -> list[dict]:
    if hasattr(extracted, "to_dict"):
        extracted = extracted.to_dict()
    if not isinstance(extracted, dict):
        return []
    entities = extracted.get(category)
    if not isinstance(entities, list):
        return []
    return [e for e in entities if isinstance(e, dict)]


def measure_accuracy(
    extracted: Any,
    ground_truth: GroundTruth,
    threshold: float = MATCH_THRESHOLD,
) -> AccuracyResult:
    """
    Compare extracted entities with ground truth.

    A ground truth entity is found if any extracted entity's identifying field
    is at least `threshold` similar. Every extracted entity that matches no
    ground truth entity is a false positive. Categories the ground truth does
    not list are skipped entirely.

    Args:
        extracted: Report dict (or ExtractedReport)
        ground_truth: Verified entities for the plan
        threshold: Minimum similarity for a match

    Returns:
        AccuracyResult
    """
    result = AccuracyResult()

    for category, key_field in CATEGORY_FIELDS.items():
        expected = ground_truth.categories.get(category)
        tally = CategoryAccuracy(
            category=category,
            key_field=key_field,
            total=len(expected or []),
        )
        result.categories[category] = tally
        if expected is None:
            continue

        found_entities = _entities(extracted, category)

        for truth in expected:
            truth_value = truth.get(key_field)
            match = next(
                (e for e in found_entities
                 if string_similarity(e.get(key_field), truth_value) >= threshold),
                None,
            )
            if match is not None:
                tally.found += 1
                tally.matches.append({"groundTruth": truth, "extracted": match})
            else:
                tally.misses.append({"groundTruth": truth, "reason": "Not found in extracted data"})

        for entity in found_entities:
            value = entity.get(key_field)
            if not any(string_similarity(value, t.get(key_field)) >= threshold for t in expected):
                tally.false_positives.append(str(value) if value is not None else "")
                logger.debug(f"False positive {category}: {value!r}")

    return result


# =============================================================================
# Ground Truth Drafts
# =============================================================================

# Category -> (id prefix or None, fields copied from extracted entities)
DRAFT_FIELDS = {
    "goals": ("G", ["description", "status"]),
    "bmps": ("BMP", ["name", "category"]),
    "monitoring": (None, ["metric", "frequency"]),
}


def draft_ground_truth(
    plan_id: str,
    extracted: Any,
    existing: Optional[GroundTruth] = None,
    name: Optional[str] = None,
    source: Optional[str] = None,
) -> GroundTruth:
    """
    Draft ground truth from an extraction, for manual curation.

    Entities already in `existing` come first and are kept as they are.
    Extracted entities are appended unless their identifying field matches an
    existing one case-insensitively. Goals and BMPs are renumbered G1.., BMP1..
    The draft is never marked verified.
    """
    categories: dict[str, list[dict]] = {}

    for category, key_field in CATEGORY_FIELDS.items():
        prefix, fields = DRAFT_FIELDS[category]
        entities = [dict(e) for e in (existing.categories.get(category, []) if existing else [])]
        seen = {str(e.get(key_field) or "").strip().lower() for e in entities}

        for entity in _entities(extracted, category):
            key = str(entity.get(key_field) or "").strip()
            if not key or key.lower() in seen:
                continue
            seen.add(key.lower())
            entities.append({f: entity.get(f) for f in fields})

        if prefix:
            entities = [{"id": f"{prefix}{i}", **{k: v for k, v in e.items() if k != "id"}}
                        for i, e in enumerate(entities, 1)]
        categories[category] = entities

    counts = ", ".join(f"{c}={len(e)}" for c, e in categories.items())
    logger.info(f"Drafted ground truth for {plan_id} ({counts})")

    return GroundTruth(
        plan_id=plan_id,
        name=name or (existing.name if existing else None),
        source=source or (existing.source if existing else None),
        verified_by=None,
        notes="Draft from automatic extraction; verify each entity against the source document",
        categories=categories,
    )


def save_ground_truth(ground_truth: GroundTruth, ground_truth_dir: Union[str, Path]) -> Path:
    """Write `<plan_id>.json` in the format load_ground_truth reads."""
    ground_truth_dir = Path(ground_truth_dir)
    ground_truth_dir.mkdir(parents=True, exist_ok=True)

    path = ground_truth_dir / f"{ground_truth.plan_id}.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump(ground_truth.to_dict(), f, indent=2)

    logger.info(f"Saved ground truth to {path}")
    return path
