"""
LLM extraction package for planning documents.

This package classifies documents, prompts an LLM for a fixed-shape report,
and verifies the reply against the source text before scoring it.
"""

from .doc_classifier import (
    DOCUMENT_TYPE_RULES,
    DocumentClassification,
    classify_document,
    identify_document_type,
    resolve_document_type,
)

from .schemas import (
    Summary,
    Goal,
    BMP,
    ImplementationActivity,
    MonitoringMetric,
    OutreachActivity,
    GeographicArea,
    ExtractedReport,
)

from .prompts import (
    SYSTEM_PROMPT,
    MAX_PROMPT_CHARS,
    build_extraction_prompt,
)

from .llm_provider import (
    CompletionClient,
    LLMCompletionClient,
    LLMProvider,
    RateLimitConfig,
    detect_provider,
    get_provider_info,
)

from .response_parser import parse_llm_response

from .grounding import (
    ENTITY_KEY_FIELDS,
    RemovedEntity,
    build_flexible_pattern,
    is_text_present,
    filter_ungrounded_entities,
    validate_entity_presence,
)

from .validation_rules import (
    SectionValidation,
    ValidationResult,
    validate_extracted_data,
)

from .confidence import (
    LOW_CONFIDENCE_THRESHOLD,
    calculate_confidence,
    is_low_confidence,
)

from .extractor import (
    DocumentExtractor,
    ExtractionResult,
    classify_and_extract,
)
