"""
Extraction prompts for planning documents.

One prompt covers every document type: the target JSON schema is the same
for all of them, and a short type-specific hint tells the model where the
report sections usually live in that kind of document.
"""

from typing import Optional

from ..parse.chunker import ChunkingConfig, TextChunker
from ..parse.models import DocumentType

MAX_PROMPT_CHARS = 8000
TRUNCATION_MARKER = "...(truncated)"


# =============================================================================
# SYSTEM PROMPT
# =============================================================================

SYSTEM_PROMPT = """You are a specialized data extraction AI that focuses on agricultural and environmental planning documents. You extract data with extreme precision, following exactly the format requested.

Key principles:
1. FIDELITY: Only extract what is clearly stated in the text. Never invent values.
2. VERBATIM NAMES: Copy goal descriptions, practice names, activities and metrics exactly as written.
3. FORMAT: Respond with a single JSON object and nothing else."""


# =============================================================================
# TARGET SCHEMA
# =============================================================================

EXTRACTION_SCHEMA = """{
  "summary": {
    "totalGoals": number,
    "totalBMPs": number,
    "completionRate": number (estimate as percentage between 0-100)
  },
  "goals": [
    {
      "id": string,
      "title": string,
      "description": string (the goal statement, verbatim),
      "priority": string,
      "status": string,
      "targetDate": string,
      "relatedBMPs": [string]
    }
  ],
  "bmps": [
    {
      "id": string,
      "name": string (the practice name, verbatim),
      "description": string,
      "category": string,
      "effectiveness": number (rate from 0-100),
      "cost": string,
      "timeframe": string,
      "priority": string
    }
  ],
  "implementation": [
    {
      "id": string,
      "activity": string (the activity, verbatim),
      "status": string,
      "progress": number (percentage from 0-100),
      "responsible": [string],
      "timeline": string,
      "costs": string
    }
  ],
  "monitoring": [
    {
      "id": string,
      "metric": string (what is measured, verbatim),
      "value": number,
      "unit": string,
      "frequency": string,
      "baseline": string,
      "target": string,
      "responsible": [string]
    }
  ],
  "outreach": [
    {
      "id": string,
      "activity": string (the outreach activity, verbatim),
      "reach": number,
      "audience": [string],
      "type": string,
      "timeline": string,
      "responsible": [string]
    }
  ],
  "geographicAreas": [
    {
      "id": string,
      "name": string (the area name, verbatim),
      "size": number,
      "unit": string,
      "priority": string,
      "description": string
    }
  ]
}"""


FIDELITY_RULES = """Please extract and structure the data into JSON format according to these guidelines:
1. If information for a field is not available, use null.
2. If an entire section is not present in the document, include an empty array for that section.
3. Don't invent or assume information - only extract what's clearly stated in the text.
4. Use array format even if only one item is found.
5. Copy identifying text (goal descriptions, practice names, activities, metrics, area names) exactly as it appears.

Respond ONLY with the JSON object, without explanation or additional text."""


# Where each document type tends to keep the report sections
TYPE_GUIDANCE = {
    DocumentType.WATERSHED_PLAN: (
        "Watershed plans usually state goals as load reductions or water quality targets, "
        "list best management practices (BMPs) with costs and schedules, and name "
        "priority subwatersheds or targeted areas."
    ),
    DocumentType.ENVIRONMENTAL_ASSESSMENT: (
        "Environmental assessments describe mitigation measures (treat them as BMPs), "
        "impacts and alternatives, and monitoring commitments."
    ),
    DocumentType.AGRICULTURAL_REPORT: (
        "Agricultural reports describe conservation practices on farmland (treat them as BMPs), "
        "yield or soil objectives, and field or county areas."
    ),
    DocumentType.CONSERVATION_PLAN: (
        "Conservation plans state species or habitat objectives, conservation actions "
        "(treat them as BMPs), and habitat areas."
    ),
    DocumentType.REGULATORY_DOCUMENT: (
        "Regulatory documents state requirements and deadlines; treat required practices as BMPs "
        "and compliance monitoring as monitoring."
    ),
    DocumentType.CLIMATE_STUDY: (
        "Climate studies describe adaptation and mitigation strategies (treat them as BMPs), "
        "observed metrics and projections."
    ),
    DocumentType.GENERAL_ENVIRONMENTAL: "",
}


def truncate_text(text: str, max_chars: int = MAX_PROMPT_CHARS) -> tuple[str, bool]:
    """
    Cut text to the character budget at a paragraph or sentence boundary.

    Returns:
        (text, was_truncated)
    """
    chunker = TextChunker(ChunkingConfig(max_chars=max_chars))
    return chunker.truncate(text)


def build_extraction_prompt(
    full_text: str,
    document_type: DocumentType,
    max_chars: int = MAX_PROMPT_CHARS,
    guidance: Optional[str] = None,
) -> str:
    """
    Build the single extraction instruction for a document.

    Args:
        full_text: Preprocessed document text
        document_type: Resolved document type
        max_chars: Character budget for the embedded text
        guidance: Override for the type-specific hint

    Returns:
        Prompt containing the (possibly truncated) text, schema and rules
    """
    text, truncated = truncate_text(full_text, max_chars)
    if truncated:
        text = f"{text}\n{TRUNCATION_MARKER}"

    hint = guidance if guidance is not None else TYPE_GUIDANCE.get(document_type, "")
    hint_block = f"\n{hint}\n" if hint else ""

    return f"""I need you to extract structured data from the following {document_type.label.lower()} document.
{hint_block}
Here's the text:
---
{text}
---

{FIDELITY_RULES}

Extract data into this format:
{EXTRACTION_SCHEMA}"""
