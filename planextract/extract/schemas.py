"""
Pydantic schemas for extracted planning reports.

The LLM reply is an untyped dict until it has been filtered and validated.
Only then is it coerced into ExtractedReport, which fixes the shape:
every list section exists, numeric fields are numbers or None, and string
list fields are lists.

Identifying field per category (used by the hallucination filter and the
accuracy tester):

    goals            -> description
    bmps             -> name
    implementation   -> activity
    monitoring       -> metric
    outreach         -> activity
    geographicAreas  -> name
"""

import logging
import re
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")
NULL_STRINGS = {"", "none", "null", "n/a", "na", "not applicable", "unknown"}


# =============================================================================
# COERCION HELPERS
# =============================================================================


def coerce_number(v: Any) -> Optional[float]:
    """
    Numeric value from an LLM field.

    Numbers pass through; strings like "30%", "1,200 acres" or "$5,000"
    yield their first number; anything else becomes None.
    """
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return v
    if isinstance(v, str):
        match = NUMBER_PATTERN.search(v.replace(",", ""))
        if match:
            number = float(match.group(0))
            return int(number) if number.is_integer() else number
    return None


def coerce_string(v: Any) -> Optional[str]:
    if v is None:
        return None
    if isinstance(v, str):
        v = v.strip()
        return None if v.lower() in NULL_STRINGS else v
    if isinstance(v, bool):
        return str(v).lower()
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, list):
        parts = [coerce_string(item) for item in v]
        joined = ", ".join(p for p in parts if p)
        return joined or None
    return None


def coerce_string_list(v: Any) -> list[str]:
    if v is None:
        return []
    if not isinstance(v, list):
        v = [v]
    result = []
    for item in v:
        text = coerce_string(item)
        if text:
            result.append(text)
    return result


def clamp_percent(v: Any) -> Optional[float]:
    number = coerce_number(v)
    if number is None:
        return None
    return max(0, min(100, number))


class _Entity(BaseModel):
    """Shared config for list-section entities."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, v: Any) -> Optional[str]:
        return coerce_string(v)


# =============================================================================
# ENTITY SCHEMAS
# =============================================================================


class Summary(BaseModel):
    """Declared totals for the report."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    total_goals: int = Field(default=0, ge=0, alias="totalGoals")
    total_bmps: int = Field(default=0, ge=0, alias="totalBMPs")
    completion_rate: float = Field(default=0, ge=0, le=100, alias="completionRate")

    @field_validator("total_goals", "total_bmps", mode="before")
    @classmethod
    def normalize_count(cls, v: Any) -> int:
        number = coerce_number(v)
        if number is None or number < 0:
            return 0
        return int(number)

    @field_validator("completion_rate", mode="before")
    @classmethod
    def normalize_rate(cls, v: Any) -> float:
        rate = clamp_percent(v)
        return 0 if rate is None else rate


class Goal(_Entity):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    target_date: Optional[str] = Field(default=None, alias="targetDate")
    related_bmps: list[str] = Field(default_factory=list, alias="relatedBMPs")

    @field_validator("title", "description", "priority", "status", "target_date", mode="before")
    @classmethod
    def normalize_text(cls, v: Any) -> Optional[str]:
        return coerce_string(v)

    @field_validator("related_bmps", mode="before")
    @classmethod
    def normalize_list(cls, v: Any) -> list[str]:
        return coerce_string_list(v)


class BMP(_Entity):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    effectiveness: Optional[float] = None  # 0-100
    cost: Optional[str] = None
    timeframe: Optional[str] = None
    priority: Optional[str] = None

    @field_validator("name", "description", "category", "cost", "timeframe", "priority", mode="before")
    @classmethod
    def normalize_text(cls, v: Any) -> Optional[str]:
        return coerce_string(v)

    @field_validator("effectiveness", mode="before")
    @classmethod
    def normalize_effectiveness(cls, v: Any) -> Optional[float]:
        return clamp_percent(v)


class ImplementationActivity(_Entity):
    activity: Optional[str] = None
    status: Optional[str] = None
    progress: Optional[float] = None  # 0-100
    responsible: list[str] = Field(default_factory=list)
    timeline: Optional[str] = None
    costs: Optional[str] = None

    @field_validator("activity", "status", "timeline", "costs", mode="before")
    @classmethod
    def normalize_text(cls, v: Any) -> Optional[str]:
        return coerce_string(v)

    @field_validator("progress", mode="before")
    @classmethod
    def normalize_progress(cls, v: Any) -> Optional[float]:
        return clamp_percent(v)

    @field_validator("responsible", mode="before")
    @classmethod
    def normalize_list(cls, v: Any) -> list[str]:
        return coerce_string_list(v)


class MonitoringMetric(_Entity):
    metric: Optional[str] = None
    value: Optional[float] = None
    unit: Optional[str] = None
    frequency: Optional[str] = None
    baseline: Optional[str] = None
    target: Optional[str] = None
    responsible: list[str] = Field(default_factory=list)

    @field_validator("metric", "unit", "frequency", "baseline", "target", mode="before")
    @classmethod
    def normalize_text(cls, v: Any) -> Optional[str]:
        return coerce_string(v)

    @field_validator("value", mode="before")
    @classmethod
    def normalize_value(cls, v: Any) -> Optional[float]:
        return coerce_number(v)

    @field_validator("responsible", mode="before")
    @classmethod
    def normalize_list(cls, v: Any) -> list[str]:
        return coerce_string_list(v)


class OutreachActivity(_Entity):
    activity: Optional[str] = None
    reach: Optional[float] = None
    audience: list[str] = Field(default_factory=list)
    type: Optional[str] = None
    timeline: Optional[str] = None
    responsible: list[str] = Field(default_factory=list)

    @field_validator("activity", "type", "timeline", mode="before")
    @classmethod
    def normalize_text(cls, v: Any) -> Optional[str]:
        return coerce_string(v)

    @field_validator("reach", mode="before")
    @classmethod
    def normalize_reach(cls, v: Any) -> Optional[float]:
        return coerce_number(v)

    @field_validator("audience", "responsible", mode="before")
    @classmethod
    def normalize_list(cls, v: Any) -> list[str]:
        return coerce_string_list(v)


class GeographicArea(_Entity):
    name: Optional[str] = None
    size: Optional[float] = None
    unit: Optional[str] = None
    priority: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name", "unit", "priority", "description", mode="before")
    @classmethod
    def normalize_text(cls, v: Any) -> Optional[str]:
        return coerce_string(v)

    @field_validator("size", mode="before")
    @classmethod
    def normalize_size(cls, v: Any) -> Optional[float]:
        return coerce_number(v)


# =============================================================================
# REPORT
# =============================================================================


def _entity_list(v: Any) -> list:
    """Keep only dict items; anything that is not a list becomes []."""
    if not isinstance(v, list):
        return []
    return [item for item in v if isinstance(item, dict)]


class ExtractedReport(BaseModel):
    """The fixed-shape report returned for every document type."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    summary: Summary = Field(default_factory=Summary)
    goals: list[Goal] = Field(default_factory=list)
    bmps: list[BMP] = Field(default_factory=list)
    implementation: list[ImplementationActivity] = Field(default_factory=list)
    monitoring: list[MonitoringMetric] = Field(default_factory=list)
    outreach: list[OutreachActivity] = Field(default_factory=list)
    geographic_areas: list[GeographicArea] = Field(default_factory=list, alias="geographicAreas")

    @field_validator("summary", mode="before")
    @classmethod
    def normalize_summary(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else {}

    @field_validator(
        "goals", "bmps", "implementation", "monitoring", "outreach", "geographic_areas",
        mode="before",
    )
    @classmethod
    def normalize_entities(cls, v: Any) -> list:
        return _entity_list(v)

    @classmethod
    def from_record(cls, record: Any) -> "ExtractedReport":
        """
        Coerce a filtered, validated LLM record into the report shape.

        Missing summary counts fall back to the list lengths.
        """
        if not isinstance(record, dict):
            logger.warning(f"Cannot coerce {type(record).__name__} into a report, using empty report")
            return cls()

        report = cls.model_validate(record)
        summary = record.get("summary") if isinstance(record.get("summary"), dict) else {}
        if coerce_number(summary.get("totalGoals")) is None:
            report.summary.total_goals = len(report.goals)
        if coerce_number(summary.get("totalBMPs")) is None:
            report.summary.total_bmps = len(report.bmps)
        return report

    def to_dict(self) -> dict:
        """JSON-shaped dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
