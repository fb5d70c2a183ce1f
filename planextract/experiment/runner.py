"""
Accuracy suite runner.

Runs every corpus document through the extraction pipeline, scores it
against its ground truth, and aggregates a pass/fail verdict. Documents are
processed sequentially and independently; one document failing is recorded
and the suite moves on.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, Union

from ..errors import ExtractionError
from ..extract.extractor import DocumentExtractor
from ..extract.llm_provider import CompletionClient, LLMCompletionClient, RateLimitConfig
from ..parse.pdf_text import extract_text_from_pdf
from .config import AccuracyConfig, PipelineConfig
from .evaluator import (
    CATEGORY_FIELDS,
    AccuracyResult,
    GroundTruth,
    measure_accuracy,
    plan_id_from_filename,
)

logger = logging.getLogger(__name__)

CORPUS_EXTENSIONS = (".pdf", ".txt")


@dataclass
class CorpusDocument:
    """One document of the accuracy corpus, paired with its ground truth."""

    file_name: str
    plan_id: str
    text: str
    ground_truth: Optional[GroundTruth] = None
    path: Optional[str] = None
    load_error: Optional[str] = None


@dataclass
class FileResult:
    """Outcome of one corpus document."""

    file_name: str
    plan_id: str
    text_length: int = 0
    confidence: Optional[int] = None
    accuracy: Optional[AccuracyResult] = None
    extracted_data: Optional[dict] = None
    validation: Optional[dict] = None
    error: Optional[str] = None
    processing_time: str = ""
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        if self.error is not None:
            return {"fileName": self.file_name, "planId": self.plan_id, "error": self.error}
        return {
            "fileName": self.file_name,
            "planId": self.plan_id,
            "processingTime": self.processing_time,
            "durationSeconds": self.duration_seconds,
            "extractorConfidence": self.confidence,
            "textLength": self.text_length,
            "accuracy": self.accuracy.to_dict() if self.accuracy else None,
            "extractedData": self.extracted_data,
            "validationDetails": self.validation,
        }


@dataclass
class AggregateAccuracy:
    """Batch-level accuracy and verdict."""

    total_files: int = 0
    files_processed: int = 0
    files_succeeded: int = 0  # Processed files at or above the required accuracy
    average_accuracy: float = 0.0
    category_accuracy: dict[str, float] = field(default_factory=dict)
    zero_false_positives: bool = True
    min_required_accuracy: float = 75.0

    @property
    def passed(self) -> bool:
        return self.average_accuracy >= self.min_required_accuracy

    def to_dict(self) -> dict:
        return {
            "totalFiles": self.total_files,
            "filesProcessed": self.files_processed,
            "filesSucceeded": self.files_succeeded,
            "averageAccuracy": self.average_accuracy,
            "goalAccuracy": self.category_accuracy.get("goals", 0.0),
            "bmpAccuracy": self.category_accuracy.get("bmps", 0.0),
            "monitoringAccuracy": self.category_accuracy.get("monitoring", 0.0),
            "zeroFalsePositives": self.zero_false_positives,
            "minRequiredAccuracy": self.min_required_accuracy,
            "passed": self.passed,
        }


@dataclass
class AccuracySuiteResult:
    """Complete accuracy suite run."""

    overall: AggregateAccuracy
    per_file: list[FileResult] = field(default_factory=list)
    test_date: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return {
            "testDate": self.test_date,
            "overall": self.overall.to_dict(),
            "files": [f.to_dict() for f in self.per_file],
        }


# =============================================================================
# Corpus Loading
# =============================================================================


def load_corpus(
    data_dir: Union[str, Path],
    ground_truth: Optional[dict[str, GroundTruth]] = None,
    plans: Optional[list[str]] = None,
    pdf_reader: Callable[[Path], str] = extract_text_from_pdf,
) -> list[CorpusDocument]:
    """
    Read every .pdf/.txt document in a directory.

    Args:
        data_dir: Directory of plan documents
        ground_truth: plan_id -> GroundTruth to pair with documents
        plans: Only keep files whose name contains one of these strings
        pdf_reader: PDF text extractor

    Returns:
        Corpus documents sorted by file name. Unreadable files carry a
        load_error instead of text.
    """
    data_dir = Path(data_dir)
    if not data_dir.exists():
        raise FileNotFoundError(f"Data directory not found: {data_dir}")

    ground_truth = ground_truth or {}
    corpus = []

    for path in sorted(data_dir.iterdir()):
        if path.suffix.lower() not in CORPUS_EXTENSIONS:
            continue
        if plans and not any(p.lower() in path.name.lower() for p in plans):
            continue

        plan_id = plan_id_from_filename(path.name)
        doc = CorpusDocument(
            file_name=path.name,
            plan_id=plan_id,
            text="",
            ground_truth=ground_truth.get(plan_id),
            path=str(path),
        )
        try:
            if path.suffix.lower() == ".pdf":
                doc.text = pdf_reader(path)
            else:
                doc.text = path.read_text(encoding="utf-8")
        except Exception as e:
            logger.error(f"Could not read {path.name}: {e}")
            doc.load_error = f"Text extraction failed: {e}"

        if doc.ground_truth is None:
            logger.warning(f"No ground truth data found for '{plan_id}'. Accuracy will not be measured.")
        corpus.append(doc)

    logger.info(f"Loaded {len(corpus)} corpus documents from {data_dir}")
    return corpus


# =============================================================================
# Suite Execution
# =============================================================================


def run_document(
    doc: CorpusDocument,
    extractor: DocumentExtractor,
    forced_type: Optional[str] = None,
    match_threshold: float = 0.7,
) -> FileResult:
    """Extract and score a single corpus document."""
    result = FileResult(
        file_name=doc.file_name,
        plan_id=doc.plan_id,
        text_length=len(doc.text),
        processing_time=datetime.now().isoformat(),
    )
    if doc.load_error:
        result.error = doc.load_error
        return result

    start = time.time()
    try:
        extraction = extractor.classify_and_extract(doc.text, forced_type=forced_type)
    except ExtractionError as e:
        logger.error(f"Error processing {doc.file_name}: {e}")
        result.error = f"{type(e).__name__}: {e}"
        result.duration_seconds = time.time() - start
        return result

    result.duration_seconds = time.time() - start
    result.confidence = extraction.confidence
    result.extracted_data = extraction.data.to_dict()
    result.validation = extraction.validation.to_dict()

    if doc.ground_truth is not None:
        result.accuracy = measure_accuracy(result.extracted_data, doc.ground_truth, match_threshold)
        logger.info(
            f"{doc.plan_id}: overall {result.accuracy.overall:.1f}%, "
            f"false positives {result.accuracy.false_positives}"
        )
    return result


def aggregate_results(
    per_file: list[FileResult],
    min_required_accuracy: float = 75.0,
) -> AggregateAccuracy:
    """
    Batch aggregate over per-file results.

    The average covers files with an accuracy measurement; each category
    mean covers files whose ground truth lists that category.
    """
    overall = AggregateAccuracy(
        total_files=len(per_file),
        min_required_accuracy=min_required_accuracy,
    )
    processed = [r for r in per_file if r.succeeded]
    overall.files_processed = len(processed)

    scored = [r.accuracy for r in processed if r.accuracy is not None]
    overall.files_succeeded = sum(1 for a in scored if a.overall >= min_required_accuracy)
    overall.zero_false_positives = all(a.false_positives == 0 for a in scored)

    if scored:
        overall.average_accuracy = sum(a.overall for a in scored) / len(scored)

    for category in CATEGORY_FIELDS:
        values = [
            a.categories[category].accuracy
            for a in scored
            if category in a.categories and a.categories[category].total > 0
        ]
        overall.category_accuracy[category] = sum(values) / len(values) if values else 0.0

    return overall


def run_accuracy_suite(
    corpus: list[CorpusDocument],
    extractor: DocumentExtractor,
    config: Optional[AccuracyConfig] = None,
) -> AccuracySuiteResult:
    """
    Run the accuracy suite over a corpus.

    Args:
        corpus: Documents paired with ground truth
        extractor: Configured DocumentExtractor
        config: Accuracy settings (threshold, forced type, target)

    Returns:
        AccuracySuiteResult with per-file results and the aggregate verdict
    """
    config = config or AccuracyConfig()
    per_file = []

    for i, doc in enumerate(corpus, 1):
        logger.info(f"[{i}/{len(corpus)}] Testing file: {doc.file_name}")
        per_file.append(
            run_document(doc, extractor, config.forced_type, config.match_threshold)
        )

    overall = aggregate_results(per_file, config.min_required_accuracy)
    logger.info(
        f"Accuracy suite: {overall.average_accuracy:.1f}% average over "
        f"{overall.files_processed}/{overall.total_files} files "
        f"({'PASSED' if overall.passed else 'FAILED'})"
    )
    return AccuracySuiteResult(overall=overall, per_file=per_file)


# =============================================================================
# Persistence
# =============================================================================


def save_results(suite: AccuracySuiteResult, results_dir: Union[str, Path]) -> Path:
    """
    Write <planId>-result.json per processed file and a timestamped summary.

    Returns:
        Path to the summary file
    """
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)

    for file_result in suite.per_file:
        if not file_result.succeeded:
            continue
        result_path = results_dir / f"{file_result.plan_id}-result.json"
        with open(result_path, "w", encoding="utf-8") as f:
            json.dump(file_result.to_dict(), f, indent=2)
        logger.debug(f"Saved {result_path}")

    timestamp = suite.test_date.replace(":", "-")
    summary_path = results_dir / f"summary-{timestamp}.json"
    with open(summary_path, "w", encoding="utf-8") as f:
        json.dump(suite.to_dict(), f, indent=2)

    logger.info(f"Saved accuracy results to {summary_path}")
    return summary_path


def load_results(path: Union[str, Path]) -> dict[str, Any]:
    """Load a saved summary JSON."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def latest_summary(results_dir: Union[str, Path]) -> Optional[Path]:
    """Most recent summary-*.json in a results directory."""
    summaries = sorted(Path(results_dir).glob("summary-*.json"))
    return summaries[-1] if summaries else None


# =============================================================================
# Wiring
# =============================================================================


def create_completion_client(config: PipelineConfig) -> CompletionClient:
    """Completion client from the extraction config section."""
    extraction = config.extraction
    return LLMCompletionClient(
        model=extraction.model,
        provider=extraction.provider,
        temperature=extraction.temperature,
        max_tokens=extraction.max_tokens,
        timeout=extraction.timeout_seconds,
        rate_limit=RateLimitConfig(
            requests_per_minute=extraction.requests_per_minute,
            delay_between_calls=extraction.delay_between_calls,
            max_retries=extraction.max_retries,
        ),
    )


def build_extractor(
    config: PipelineConfig,
    client: Optional[CompletionClient] = None,
) -> DocumentExtractor:
    """DocumentExtractor from config, creating the LLM client if none is given."""
    return DocumentExtractor.from_config(config, client or create_completion_client(config))
