"""
Accuracy testing framework for plan extraction.

This module scores the extraction pipeline against curated ground truth:
- Config loading with base + override merging
- Corpus loading and sequential suite execution
- Levenshtein-based entity matching per category
- JSON results and Markdown reports

Usage:
    python -m planextract.experiment accuracy --config configs/base.yaml
    python -m planextract.experiment report
"""

from .config import PipelineConfig, load_config, deep_merge
from .evaluator import (
    GroundTruth,
    AccuracyResult,
    load_ground_truth,
    load_all_ground_truth,
    measure_accuracy,
    string_similarity,
)
from .runner import (
    AccuracySuiteResult,
    CorpusDocument,
    load_corpus,
    run_accuracy_suite,
    save_results,
)
from .reporter import generate_markdown_report, save_report

__all__ = [
    "PipelineConfig",
    "load_config",
    "deep_merge",
    "GroundTruth",
    "AccuracyResult",
    "load_ground_truth",
    "load_all_ground_truth",
    "measure_accuracy",
    "string_similarity",
    "AccuracySuiteResult",
    "CorpusDocument",
    "load_corpus",
    "run_accuracy_suite",
    "save_results",
    "generate_markdown_report",
    "save_report",
]
