"""
Markdown and console reports for accuracy suite results.

Both work from the summary dict written by save_results, so a report can be
regenerated from any saved run.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from .evaluator import CATEGORY_FIELDS

logger = logging.getLogger(__name__)

CATEGORY_LABELS = {
    "goals": "Goals",
    "bmps": "BMPs",
    "monitoring": "Monitoring",
}


def _as_summary(results: Any) -> dict:
    if hasattr(results, "to_dict"):
        return results.to_dict()
    return results


def _file_accuracy(file_result: dict) -> float:
    accuracy = file_result.get("accuracy") or {}
    return accuracy.get("overall") or 0.0


def generate_markdown_report(results: Any, generated_at: Optional[datetime] = None) -> str:
    """
    Render a suite summary as Markdown.

    Args:
        results: AccuracySuiteResult or its saved summary dict
        generated_at: Timestamp for the header (defaults to now)

    Returns:
        Markdown text
    """
    summary = _as_summary(results)
    overall = summary.get("overall", {})
    target = overall.get("minRequiredAccuracy", 75.0)
    generated_at = generated_at or datetime.now()

    lines = [
        "# Watershed Plan Extraction Accuracy Report",
        "",
        f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "## Summary",
        "",
        f"- **Files Processed**: {overall.get('filesProcessed', 0)}/{overall.get('totalFiles', 0)}",
        f"- **Files Meeting Accuracy Threshold (>={target:g}%)**: {overall.get('filesSucceeded', 0)}",
        f"- **Average Accuracy**: {overall.get('averageAccuracy', 0.0):.1f}%",
        f"- **Goal Accuracy**: {overall.get('goalAccuracy', 0.0):.1f}%",
        f"- **BMP Accuracy**: {overall.get('bmpAccuracy', 0.0):.1f}%",
        f"- **Monitoring Accuracy**: {overall.get('monitoringAccuracy', 0.0):.1f}%",
        f"- **Zero False Positives**: {'yes' if overall.get('zeroFalsePositives') else 'no'}",
        "",
    ]

    passed = overall.get("averageAccuracy", 0.0) >= target
    lines.append(f"**Overall Test Result**: {'PASSED' if passed else 'FAILED'}")
    lines.append("")

    lines.append("## Individual File Results")
    lines.append("")

    for index, file_result in enumerate(summary.get("files", []), 1):
        lines.append(f"### {index}. {file_result.get('fileName')}")
        lines.append("")

        if file_result.get("error"):
            lines.append(f"**Error**: {file_result['error']}")
            lines.append("")
            continue

        accuracy = file_result.get("accuracy")
        file_accuracy = _file_accuracy(file_result)
        mark = "PASS" if file_accuracy >= target else "FAIL"
        lines.append(f"**Accuracy**: {file_accuracy:.1f}% ({mark})")
        lines.append("")
        lines.append(f"- **Extractor Confidence**: {file_result.get('extractorConfidence')}%")
        lines.append(f"- **Text Length**: {file_result.get('textLength', 0):,} characters")
        lines.append("")

        if not accuracy:
            lines.append("No ground truth available for this file.")
            lines.append("")
            continue

        details = accuracy.get("details", {})
        lines.append("#### Accuracy Breakdown")
        lines.append("")
        lines.append("| Category | Accuracy | Found | Total |")
        lines.append("|----------|----------|-------|-------|")
        for category in CATEGORY_FIELDS:
            detail = details.get(category)
            if not detail or not detail.get("total"):
                continue
            lines.append(
                f"| {CATEGORY_LABELS[category]} | {detail['accuracy']:.1f}% "
                f"| {detail['found']} | {detail['total']} |"
            )
        lines.append("")
        lines.append(f"**False Positives**: {accuracy.get('falsePositives', 0)}")
        lines.append("")

        for category, key_field in CATEGORY_FIELDS.items():
            misses = (details.get(category) or {}).get("misses") or []
            if not misses:
                continue
            lines.append(f"#### Missed {CATEGORY_LABELS[category]}")
            lines.append("")
            for miss in misses:
                lines.append(f'- "{miss["groundTruth"].get(key_field)}"')
            lines.append("")

        for category in CATEGORY_FIELDS:
            false_positives = (details.get(category) or {}).get("falsePositives") or []
            if not false_positives:
                continue
            lines.append(f"#### Unmatched {CATEGORY_LABELS[category]}")
            lines.append("")
            for value in false_positives:
                lines.append(f'- "{value}"')
            lines.append("")

    return "\n".join(lines)


def save_report(results: Any, summary_path: Union[str, Path]) -> Path:
    """
    Write the Markdown report next to its summary JSON.

    summary-<timestamp>.json -> summary-<timestamp>.md
    """
    report_path = Path(summary_path).with_suffix(".md")
    report_path.parent.mkdir(parents=True, exist_ok=True)

    with open(report_path, "w", encoding="utf-8") as f:
        f.write(generate_markdown_report(results))

    logger.info(f"Report saved to: {report_path}")
    return report_path


def format_summary(results: Any) -> str:
    """Console summary block for a suite run."""
    summary = _as_summary(results)
    overall = summary.get("overall", {})
    sep = "=" * 60

    lines = [
        sep,
        " ACCURACY TEST SUMMARY",
        sep,
        f"Files processed:      {overall.get('filesProcessed', 0)}/{overall.get('totalFiles', 0)}",
        f"Files >= threshold:   {overall.get('filesSucceeded', 0)}",
        f"Average accuracy:     {overall.get('averageAccuracy', 0.0):.1f}%",
        f"  Goals:              {overall.get('goalAccuracy', 0.0):.1f}%",
        f"  BMPs:               {overall.get('bmpAccuracy', 0.0):.1f}%",
        f"  Monitoring:         {overall.get('monitoringAccuracy', 0.0):.1f}%",
        f"Zero false positives: {overall.get('zeroFalsePositives')}",
        "",
    ]

    for file_result in summary.get("files", []):
        name = str(file_result.get("fileName"))[:35]
        if file_result.get("error"):
            lines.append(f"  {name:<35} ERROR: {file_result['error']}")
        elif file_result.get("accuracy"):
            lines.append(f"  {name:<35} {_file_accuracy(file_result):5.1f}%")
        else:
            lines.append(f"  {name:<35} (no ground truth)")

    lines.append("")
    lines.append(f"OVERALL TEST RESULT: {'PASSED' if overall.get('passed') else 'FAILED'}")
    lines.append(sep)
    return "\n".join(lines)
