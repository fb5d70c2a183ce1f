"""
Pydantic models for document preprocessing.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class DocumentType(str, Enum):
    """Closed set of planning document types."""
    WATERSHED_PLAN = "watershed_plan"
    ENVIRONMENTAL_ASSESSMENT = "environmental_assessment"
    AGRICULTURAL_REPORT = "agricultural_report"
    CONSERVATION_PLAN = "conservation_plan"
    REGULATORY_DOCUMENT = "regulatory_document"
    CLIMATE_STUDY = "climate_study"
    GENERAL_ENVIRONMENTAL = "general_environmental"

    @property
    def label(self) -> str:
        """Human readable name, e.g. 'Watershed Plan'."""
        return self.value.replace("_", " ").title()


class DocumentMetadata(BaseModel):
    """Best-effort metadata pulled from the document text."""
    title: Optional[str] = None
    date: Optional[str] = None
    author: Optional[str] = None
    document_type: Optional[DocumentType] = None
    detected_type: Optional[DocumentType] = None  # Set when the caller forced a type

    def to_dict(self) -> dict:
        """camelCase dict, omitting unknown values."""
        result = {
            "title": self.title,
            "date": self.date,
            "author": self.author,
            "documentType": self.document_type.value if self.document_type else None,
        }
        if self.detected_type is not None:
            result["detectedType"] = self.detected_type.value
        return {k: v for k, v in result.items() if v is not None}


class PreprocessedDocument(BaseModel):
    """Cleaned document text with its section map."""
    full_text: str
    sections: dict[str, str] = Field(default_factory=dict)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    document_type: Optional[DocumentType] = None

    @property
    def found_sections(self) -> list[str]:
        """Names of sections that matched something."""
        return [name for name, text in self.sections.items() if text]

    def to_dict(self) -> dict:
        return {
            "fullText": self.full_text,
            "sections": self.sections,
            "metadata": self.metadata.to_dict(),
        }
