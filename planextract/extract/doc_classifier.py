"""
Document Type Classification Module.

Assigns each planning document one type from a closed set so the
preprocessor can pick the right section rules:

- watershed_plan: watershed / basin / water quality management plans
- environmental_assessment: EAs and impact statements
- agricultural_report: crop, livestock and farm management reports
- conservation_plan: habitat and species conservation plans
- regulatory_document: permits, regulations, compliance documents
- climate_study: climate change, emissions and temperature studies
- general_environmental: fallback when nothing else matches

Classification is a keyword heuristic over an ordered rule list. The first
rule that matches wins, so earlier rules take priority on ties.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from ..parse.models import DocumentType

logger = logging.getLogger(__name__)


# =============================================================================
# CLASSIFICATION RULES (ordered, first match wins)
# =============================================================================

DOCUMENT_TYPE_RULES: list[tuple[DocumentType, str]] = [
    (
        DocumentType.WATERSHED_PLAN,
        r"watersheds?|water quality|hydrologic|watershed management plan|basin plan",
    ),
    (
        DocumentType.ENVIRONMENTAL_ASSESSMENT,
        r"environmental assessment|impact statements?|environmental effects|mitigation measures",
    ),
    (
        DocumentType.AGRICULTURAL_REPORT,
        r"crop production|agricultural|yields?|farm management|livestock|irrigation",
    ),
    (
        DocumentType.CONSERVATION_PLAN,
        r"conservation|habitats?|species|wildlife|protected areas?|biodiversity|preservation",
    ),
    (
        DocumentType.REGULATORY_DOCUMENT,
        r"compliance|regulations?|permits?|standards?|requirements?|laws?|act|statutes?",
    ),
    (
        DocumentType.CLIMATE_STUDY,
        r"climate change|global warming|greenhouse gas(?:es)?|emissions?|carbon|temperatures?|precipitation patterns?",
    ),
]

DEFAULT_DOCUMENT_TYPE = DocumentType.GENERAL_ENVIRONMENTAL

_COMPILED_RULES = [
    (doc_type, re.compile(rf"\b(?:{pattern})\b", re.IGNORECASE))
    for doc_type, pattern in DOCUMENT_TYPE_RULES
]


@dataclass
class DocumentClassification:
    """Result of document type classification."""
    document_type: DocumentType
    matched_keyword: Optional[str] = None
    method: str = "heuristic"  # "heuristic" or "forced"
    # Keyword hits per type; informational only, never used for the decision
    keyword_hits: dict[str, int] = field(default_factory=dict)

    @property
    def is_general(self) -> bool:
        return self.document_type == DocumentType.GENERAL_ENVIRONMENTAL

    def to_dict(self) -> dict:
        return {
            "documentType": self.document_type.value,
            "matchedKeyword": self.matched_keyword,
            "method": self.method,
            "keywordHits": self.keyword_hits,
        }


def identify_document_type(text: str) -> DocumentType:
    """Return the type of the first rule whose pattern matches the text."""
    for doc_type, pattern in _COMPILED_RULES:
        if pattern.search(text):
            return doc_type
    return DEFAULT_DOCUMENT_TYPE


def classify_document(text: str) -> DocumentClassification:
    """
    Classify a document and record the evidence behind the decision.

    Args:
        text: Raw document text

    Returns:
        DocumentClassification with the winning type, the keyword that
        triggered it and per-type keyword hit counts
    """
    keyword_hits = {
        doc_type.value: len(pattern.findall(text))
        for doc_type, pattern in _COMPILED_RULES
    }

    for doc_type, pattern in _COMPILED_RULES:
        match = pattern.search(text)
        if match:
            logger.debug(f"Classified as {doc_type.value} on keyword '{match.group(0)}'")
            return DocumentClassification(
                document_type=doc_type,
                matched_keyword=match.group(0),
                keyword_hits=keyword_hits,
            )

    logger.debug("No classification rule matched, using general_environmental")
    return DocumentClassification(
        document_type=DEFAULT_DOCUMENT_TYPE,
        keyword_hits=keyword_hits,
    )


def resolve_document_type(value: Union[str, DocumentType]) -> DocumentType:
    """
    Parse a caller-supplied type.

    Accepts enum values ("watershed_plan") and the short aliases used by
    older callers ("watershed", "general").

    Raises:
        ValueError: If the value is not a known type
    """
    if isinstance(value, DocumentType):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Document type must be a string, got {type(value).__name__}")

    normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return DocumentType(normalized)
    except ValueError:
        pass

    for doc_type in DocumentType:
        if doc_type.value.split("_")[0] == normalized:
            return doc_type

    valid = ", ".join(t.value for t in DocumentType)
    raise ValueError(f"Unknown document type '{value}'. Valid types: {valid}")
