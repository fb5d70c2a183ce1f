"""
Document parsing package.

Cleans raw planning-document text, finds named sections and chunks
oversized text for LLM submission.
"""

from .models import (
    DocumentType,
    DocumentMetadata,
    PreprocessedDocument,
)

from .preprocessor import (
    COMMON_SECTIONS,
    TYPE_SECTIONS,
    clean_text,
    extract_section,
    extract_sections,
    extract_document_metadata,
    preprocess_document,
)

from .chunker import (
    ChunkingConfig,
    TextChunker,
    chunk_text,
    count_tokens,
)

__all__ = [
    "DocumentType",
    "DocumentMetadata",
    "PreprocessedDocument",
    "COMMON_SECTIONS",
    "TYPE_SECTIONS",
    "clean_text",
    "extract_section",
    "extract_sections",
    "extract_document_metadata",
    "preprocess_document",
    "ChunkingConfig",
    "TextChunker",
    "chunk_text",
    "count_tokens",
]
