"""
Document extraction orchestrator.

Runs one document through the full chain:

    classify -> preprocess -> build prompt -> complete -> parse
      -> filter hallucinations -> validate -> score -> coerce

The completion call is the only external, blocking step. Every other stage
is a pure function of its inputs, so extractors hold no per-document state
and independent documents can run in parallel.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Union

from ..errors import InputError, UpstreamError
from ..parse.chunker import ChunkingConfig, TextChunker
from ..parse.models import DocumentMetadata, DocumentType
from ..parse.preprocessor import preprocess_document
from .confidence import LOW_CONFIDENCE_THRESHOLD, calculate_confidence, confidence_warning
from .doc_classifier import DocumentClassification, classify_document, resolve_document_type
from .grounding import ENTITY_KEY_FIELDS, RemovedEntity, filter_ungrounded_entities
from .llm_provider import CompletionClient
from .prompts import MAX_PROMPT_CHARS, build_extraction_prompt
from .response_parser import parse_llm_response
from .schemas import ExtractedReport
from .validation_rules import MAX_ISSUES_PER_SECTION, REQUIRED_SECTIONS, ValidationResult, validate_extracted_data

if TYPE_CHECKING:
    from ..experiment.config import PipelineConfig

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Everything returned for one extracted document."""
    data: ExtractedReport
    document_type: DocumentType
    metadata: DocumentMetadata
    validation: ValidationResult
    confidence: int
    classification: Optional[DocumentClassification] = None
    warnings: list[str] = field(default_factory=list)
    removed_entities: list[RemovedEntity] = field(default_factory=list)
    raw_text: Optional[str] = None
    prompt_tokens: Optional[int] = None
    low_confidence_threshold: int = LOW_CONFIDENCE_THRESHOLD

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence < self.low_confidence_threshold

    def to_dict(self) -> dict:
        result = {
            "data": self.data.to_dict(),
            "documentType": self.document_type.value,
            "metadata": self.metadata.to_dict(),
            "validation": self.validation.to_dict(),
            "confidence": self.confidence,
            "warnings": self.warnings,
            "removedEntities": [r.to_dict() for r in self.removed_entities],
            "promptTokens": self.prompt_tokens,
        }
        if self.raw_text is not None:
            result["rawText"] = self.raw_text
        return result

    def to_response(self) -> dict:
        """Envelope for HTTP callers: success flag plus an optional warning."""
        response = {
            "success": True,
            "confidence": self.confidence,
            "data": self.data.to_dict(),
            "validation": self.validation.to_dict(),
            "documentType": self.document_type.value,
            "metadata": self.metadata.to_dict(),
        }
        warning = confidence_warning(self.confidence, self.low_confidence_threshold)
        if warning:
            response["warning"] = warning
        if self.raw_text is not None:
            response["rawText"] = self.raw_text
        return response


class DocumentExtractor:
    """
    High-level document extraction orchestrator.

    Wraps a CompletionClient with the classification, filtering and
    validation stages.
    """

    def __init__(
        self,
        client: CompletionClient,
        max_prompt_chars: int = MAX_PROMPT_CHARS,
        required_sections: Optional[list[str]] = None,
        max_issues_per_section: int = MAX_ISSUES_PER_SECTION,
        low_confidence_threshold: int = LOW_CONFIDENCE_THRESHOLD,
        key_fields: Optional[dict[str, str]] = None,
    ):
        """
        Initialize document extractor.

        Args:
            client: Anything with complete(prompt) -> str
            max_prompt_chars: Character budget for document text in the prompt
            required_sections: Top-level keys the validator requires
            max_issues_per_section: Section issues surfaced at the top level
            low_confidence_threshold: Scores below this add a warning
            key_fields: Section -> identifying field
        """
        self.client = client
        self.max_prompt_chars = max_prompt_chars
        self.required_sections = list(REQUIRED_SECTIONS if required_sections is None else required_sections)
        self.max_issues_per_section = max_issues_per_section
        self.low_confidence_threshold = low_confidence_threshold
        self.key_fields = dict(key_fields or ENTITY_KEY_FIELDS)
        self.chunker = TextChunker(ChunkingConfig(max_chars=max_prompt_chars))

    @classmethod
    def from_config(cls, config: "PipelineConfig", client: CompletionClient) -> "DocumentExtractor":
        """Build an extractor from the extraction/validation config sections."""
        return cls(
            client=client,
            max_prompt_chars=config.extraction.max_prompt_chars,
            required_sections=config.validation.required_sections,
            max_issues_per_section=config.validation.max_issues_per_section,
            low_confidence_threshold=config.validation.low_confidence_threshold,
        )

    def _complete(self, prompt: str) -> str:
        try:
            return self.client.complete(prompt)
        except UpstreamError:
            raise
        except Exception as e:
            provider = getattr(getattr(self.client, "provider", None), "value", None)
            raise UpstreamError(str(e), provider=provider) from e

    def classify_and_extract(
        self,
        text: str,
        forced_type: Optional[Union[str, DocumentType]] = None,
        include_raw_text: bool = False,
    ) -> ExtractionResult:
        """
        Extract a verified report from document text.

        Args:
            text: Raw document text
            forced_type: Document type to use instead of the detected one
            include_raw_text: Attach the input text to the result

        Returns:
            ExtractionResult

        Raises:
            InputError: Empty or whitespace-only text (no LLM call is made)
            UpstreamError: The completion client failed
            ParseError: No JSON object in the reply
        """
        if not isinstance(text, str) or not text.strip():
            raise InputError("No text provided for extraction")

        # Step 1: classify (informational when a type is forced)
        classification = classify_document(text)
        if forced_type is not None:
            try:
                document_type = resolve_document_type(forced_type)
            except ValueError as e:
                raise InputError(str(e)) from e
            logger.info(
                f"Using forced type {document_type.value} "
                f"(detected {classification.document_type.value})"
            )
        else:
            document_type = classification.document_type
            logger.info(f"Detected document type: {document_type.value}")

        # Step 2: preprocess and build the prompt
        preprocessed = preprocess_document(text, document_type)
        metadata = preprocessed.metadata
        if forced_type is not None:
            metadata.detected_type = classification.document_type
        prompt = build_extraction_prompt(preprocessed.full_text, document_type, self.max_prompt_chars)
        prompt_tokens = self.chunker.count_tokens(prompt)
        logger.info(f"Prompt: {len(prompt):,} chars, ~{prompt_tokens:,} tokens")

        # Step 3: the one external call
        reply = self._complete(prompt)

        # Step 4: parse, filter, validate, score
        record = parse_llm_response(reply)
        filtered, removed = filter_ungrounded_entities(record, text, self.key_fields)
        validation = validate_extracted_data(
            filtered,
            text,
            document_type,
            required_sections=self.required_sections,
            max_issues_per_section=self.max_issues_per_section,
            key_fields=self.key_fields,
        )
        confidence = calculate_confidence(validation)

        warnings = []
        low_confidence = confidence_warning(confidence, self.low_confidence_threshold)
        if low_confidence:
            logger.warning(f"{low_confidence}: {confidence}%")
            warnings.append(low_confidence)
        if removed:
            warnings.append(f"Removed {len(removed)} extracted entities not found in the source text")

        result = ExtractionResult(
            data=ExtractedReport.from_record(filtered),
            document_type=document_type,
            metadata=metadata,
            validation=validation,
            confidence=confidence,
            classification=classification,
            warnings=warnings,
            removed_entities=removed,
            raw_text=text if include_raw_text else None,
            prompt_tokens=prompt_tokens,
            low_confidence_threshold=self.low_confidence_threshold,
        )

        logger.info(
            f"Extracted {len(result.data.goals)} goals, {len(result.data.bmps)} BMPs "
            f"(confidence {confidence}%)"
        )
        return result


def classify_and_extract(
    text: str,
    client: CompletionClient,
    forced_type: Optional[Union[str, DocumentType]] = None,
    include_raw_text: bool = False,
    config: Optional["PipelineConfig"] = None,
) -> ExtractionResult:
    """
    Convenience function to extract one document.

    Args:
        text: Raw document text
        client: Completion client
        forced_type: Optional document type override
        include_raw_text: Attach the input text to the result
        config: Optional pipeline config

    Returns:
        ExtractionResult
    """
    if config is not None:
        extractor = DocumentExtractor.from_config(config, client)
    else:
        extractor = DocumentExtractor(client)
    return extractor.classify_and_extract(text, forced_type, include_raw_text)
