"""
Text preprocessing for planning documents.

Cleans PDF-extracted text and splits it into named sections:

1. Strip boilerplate (page markers, agency headers, repeated running headers)
2. Normalize whitespace while keeping line structure
3. For each configured section, locate a heading-like line containing one of
   the section keywords and capture text until the next heading-like line
4. Fall back to a keyword-adjacent span of a few sentences when no heading
   matches (noisy PDFs often lose their headings)

Section rules are explicit ordered tables so the lookup order is auditable.
"""

import logging
import re
from collections import Counter
from typing import Optional

from .models import DocumentMetadata, DocumentType, PreprocessedDocument

logger = logging.getLogger(__name__)


# =============================================================================
# BOILERPLATE PATTERNS
# =============================================================================

BOILERPLATE_PATTERNS = [
    r"Page\s+\d+\s+of\s+\d+",
    r"Draft\s+Version",
    r"\bConfidential\b",
    r"MDEQ\s+-\s+[A-Za-z\s]+?Plan",
]

# A line holding nothing but a page number ("12", "- 12 -", "Page 12")
PAGE_NUMBER_LINE = re.compile(r"^\s*(?:Page\s+)?[-–]?\s*\d{1,4}\s*[-–]?\s*$", re.IGNORECASE)

# Short lines repeated this many times are treated as running headers/footers
REPEATED_LINE_THRESHOLD = 3
REPEATED_LINE_MAX_CHARS = 80


# =============================================================================
# SECTION RULES
# =============================================================================
# (section name, keyword alternation). Order matters only for readability;
# each section is searched independently.

COMMON_SECTIONS: list[tuple[str, str]] = [
    ("executiveSummary", r"executive summary|summary|abstract|overview"),
    ("introduction", r"introduction|background|context|purpose|scope"),
    ("methodology", r"methodology|methods|approach|procedure|data collection"),
    ("conclusion", r"conclusion|summary|findings|recommendations"),
    ("references", r"references|bibliography|sources|citations|literature cited"),
]

TYPE_SECTIONS: dict[DocumentType, list[tuple[str, str]]] = {
    DocumentType.WATERSHED_PLAN: [
        ("goals", r"goals|objectives|priorities"),
        ("bmps", r"best management practices|bmps|management measures"),
        ("implementation", r"implementation|action items|schedule"),
        ("monitoring", r"monitoring|metrics|evaluation|assessment"),
        ("outreach", r"outreach|education|community engagement|public participation"),
        ("stakeholders", r"stakeholders|partners|agencies|organizations"),
        ("geographicAreas", r"geographic areas|watersheds|targeted areas|priority zones"),
    ],
    DocumentType.ENVIRONMENTAL_ASSESSMENT: [
        ("impacts", r"impacts|effects|consequences|implications"),
        ("alternatives", r"alternatives|options|scenarios"),
        ("mitigation", r"mitigation|measures|remediation|prevention"),
        ("publicComments", r"public comments|feedback|consultation|stakeholder"),
        ("compliance", r"compliance|regulations|standards|requirements"),
    ],
    DocumentType.AGRICULTURAL_REPORT: [
        ("cropData", r"crop|yield|production|harvest|planting"),
        ("soilConditions", r"soil|fertility|quality|composition|health"),
        ("waterUsage", r"water usage|irrigation|precipitation|drought"),
        ("economics", r"economics|cost|profit|market|price|financial"),
        ("recommendations", r"recommendations|best practices|guidance|advice"),
    ],
    DocumentType.CONSERVATION_PLAN: [
        ("speciesData", r"species|flora|fauna|wildlife|biodiversity"),
        ("threats", r"threats|risks|challenges|pressures|stressors"),
        ("conservationActions", r"conservation actions|strategies|measures|activities"),
        ("habitatAreas", r"habitat|area|zone|region|location|site"),
        ("monitoring", r"monitoring|tracking|measuring|indicators"),
    ],
    DocumentType.REGULATORY_DOCUMENT: [
        ("requirements", r"requirements|mandates|obligations|provisions"),
        ("compliance", r"compliance|adherence|conformance|observation"),
        ("penalties", r"penalties|fines|sanctions|enforcement"),
        ("deadlines", r"deadlines|dates|timeframes|schedule"),
        ("exemptions", r"exemptions|exceptions|exclusions|waivers"),
    ],
    DocumentType.CLIMATE_STUDY: [
        ("observations", r"observations|measurements|records|data|trends"),
        ("projections", r"projections|forecasts|predictions|models|scenarios"),
        ("impacts", r"impacts|effects|consequences|implications"),
        ("adaptation", r"adaptation|resilience|adjustment|coping"),
        ("mitigation", r"mitigation|reduction|prevention|abatement"),
    ],
    DocumentType.GENERAL_ENVIRONMENTAL: [
        ("keyFindings", r"key findings|main results|outcomes|discoveries"),
        ("dataPoints", r"data|statistics|numbers|figures|metrics"),
        ("locations", r"locations|sites|areas|regions|places"),
        ("timeline", r"timeline|schedule|timing|dates|periods"),
        ("stakeholders", r"stakeholders|participants|parties|groups"),
    ],
}

MAX_HEADING_CHARS = 100

# Sentences kept after the one containing the keyword
FALLBACK_FOLLOWING_SENTENCES = 5

HEADING_PREFIX = re.compile(r"^(?:SECTION|Chapter|APPENDIX)\b", re.IGNORECASE)
NUMBERED_HEADING = re.compile(r"^(?:\d+(?:\.\d+)*|[IVX]+)\.?\s+[A-Z]")

MONTHS = (
    r"January|February|March|April|May|June|July|August|"
    r"September|October|November|December"
)


def get_section_rules(document_type: DocumentType) -> list[tuple[str, str]]:
    """Common sections followed by the type-specific ones."""
    return COMMON_SECTIONS + TYPE_SECTIONS.get(
        document_type, TYPE_SECTIONS[DocumentType.GENERAL_ENVIRONMENTAL]
    )


# =============================================================================
# CLEANING
# =============================================================================


def strip_boilerplate(text: str) -> str:
    """Remove page markers, agency headers and repeated running headers."""
    for pattern in BOILERPLATE_PATTERNS:
        text = re.sub(pattern, "", text, flags=re.IGNORECASE)

    lines = text.splitlines()
    counts = Counter(
        line.strip() for line in lines
        if line.strip() and len(line.strip()) <= REPEATED_LINE_MAX_CHARS
    )
    repeated = {line for line, n in counts.items() if n >= REPEATED_LINE_THRESHOLD}
    if repeated:
        logger.debug(f"Dropping {len(repeated)} repeated header/footer lines")

    kept = []
    for line in lines:
        stripped = line.strip()
        if stripped in repeated or PAGE_NUMBER_LINE.match(line):
            continue
        kept.append(line)
    return "\n".join(kept)


def normalize_whitespace(text: str) -> str:
    """Collapse horizontal whitespace and blank-line runs, keeping line breaks."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[^\S\n]+", " ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def clean_text(text: str) -> str:
    return normalize_whitespace(strip_boilerplate(text))


# =============================================================================
# SECTION EXTRACTION
# =============================================================================


def is_heading_line(line: str) -> bool:
    """
    Heuristic heading test.

    A heading is a short line that is upper-case, numbered ("2.1 Goals"),
    ends with a colon, or starts with SECTION/Chapter/APPENDIX.
    """
    stripped = line.strip()
    if not stripped or len(stripped) > MAX_HEADING_CHARS:
        return False
    if stripped.endswith(":"):
        return True
    if HEADING_PREFIX.match(stripped):
        return True
    if NUMBERED_HEADING.match(stripped) and not stripped.endswith("."):
        return True
    letters = [c for c in stripped if c.isalpha()]
    return len(letters) >= 3 and stripped == stripped.upper()


def extract_section(text: str, keywords: str) -> str:
    """
    Extract the body of the first section whose heading mentions a keyword.

    Args:
        text: Cleaned document text
        keywords: Regex alternation of section keywords

    Returns:
        Section text, or "" when nothing matches
    """
    keyword_re = re.compile(rf"\b(?:{keywords})", re.IGNORECASE)
    lines = text.split("\n")

    for i, line in enumerate(lines):
        if not is_heading_line(line) or not keyword_re.search(line):
            continue
        body = []
        for following in lines[i + 1:]:
            if is_heading_line(following):
                break
            body.append(following)
        content = "\n".join(body).strip()
        if content:
            return content

    return keyword_span(text, keyword_re)


def keyword_span(text: str, keyword_re: re.Pattern) -> str:
    """
    The sentence holding the first keyword match plus up to five following sentences.

    Sentence bounds are found with plain scans for '.', so the cost stays
    linear on text without periods (tables, number lists).
    """
    match = keyword_re.search(text)
    if not match:
        return ""

    start = text.rfind(".", 0, match.start()) + 1
    end = text.find(".", match.end())
    if end == -1:
        return text[start:].strip()

    for _ in range(FALLBACK_FOLLOWING_SENTENCES):
        next_end = text.find(".", end + 1)
        if next_end == -1:
            next_end = len(text)
        if not text[end + 1:next_end].strip():
            break
        end = next_end

    return text[start:end].strip()


def extract_sections(text: str, document_type: DocumentType) -> dict[str, str]:
    """Run every section rule for the document type; missing sections map to ""."""
    sections: dict[str, str] = {}
    for name, keywords in get_section_rules(document_type):
        sections[name] = extract_section(text, keywords)
    return sections


# =============================================================================
# METADATA
# =============================================================================


def extract_document_metadata(
    text: str,
    document_type: Optional[DocumentType] = None,
) -> DocumentMetadata:
    """Best-effort title, date and author from raw text."""
    title = None
    title_match = re.search(r"^\s*title:\s*(.+)$", text, re.IGNORECASE | re.MULTILINE)
    if title_match:
        title = title_match.group(1).strip()
    else:
        for line in text.splitlines():
            if line.strip():
                title = line.strip()[:200]
                break

    date = None
    date_patterns = [
        r"(?:date|dated):\s*([A-Za-z]+\s+\d{1,2},?\s+\d{4}|\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})",
        rf"\b((?:{MONTHS})\s+(?:\d{{1,2}},?\s+)?\d{{4}})\b",
        r"\b(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})\b",
    ]
    for pattern in date_patterns:
        date_match = re.search(pattern, text, re.IGNORECASE)
        if date_match:
            date = date_match.group(1).strip()
            break

    author = None
    author_match = re.search(
        r"(?:prepared by|author|prepared for|submitted by):\s*([\w\s\-,.&]+?)\s*(?:\n|$)",
        text,
        re.IGNORECASE,
    )
    if author_match:
        author = author_match.group(1).strip() or None

    return DocumentMetadata(title=title, date=date, author=author, document_type=document_type)


def preprocess_document(
    text: str,
    document_type: DocumentType = DocumentType.GENERAL_ENVIRONMENTAL,
) -> PreprocessedDocument:
    """
    Clean text and split it into the sections configured for its type.

    Args:
        text: Raw document text (may carry PDF noise)
        document_type: Resolved document type

    Returns:
        PreprocessedDocument with full_text, sections and metadata
    """
    full_text = clean_text(text)
    sections = extract_sections(full_text, document_type)
    metadata = extract_document_metadata(text, document_type)

    found = [name for name, content in sections.items() if content]
    logger.info(
        f"Preprocessed {len(text)} chars -> {len(full_text)} chars, "
        f"{len(found)}/{len(sections)} sections found"
    )

    return PreprocessedDocument(
        full_text=full_text,
        sections=sections,
        metadata=metadata,
        document_type=document_type,
    )
