"""
CLI interface for plan extraction and accuracy testing.

Usage:
    python -m planextract.experiment extract --file data/plans/deer-creek-watershed-plan.pdf
    python -m planextract.experiment extract --file plan.txt --type watershed_plan --output result.json
    python -m planextract.experiment accuracy --config configs/base.yaml
    python -m planextract.experiment accuracy --config configs/experiments/gpt-4o-mini.yaml --plans deer-creek
    python -m planextract.experiment accuracy --pdf-only
    python -m planextract.experiment report --results data/results/summary-2026-01-09T10-00-00.json
    python -m planextract.experiment ground-truth --file data/plans/deer-creek-watershed-plan.pdf
    python -m planextract.experiment types
    python -m planextract.experiment providers
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..errors import ConfigurationError, ExtractionError

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def read_document(path: Path) -> str:
    """Text of a .pdf or plain-text document."""
    if path.suffix.lower() == ".pdf":
        from ..parse.pdf_text import extract_text_from_pdf
        return extract_text_from_pdf(path)
    return path.read_text(encoding="utf-8")


def cmd_extract(args):
    """Extract structured data from a single document."""
    from .config import load_config
    from .runner import build_extractor

    config = load_config(args.config) if args.config else load_config()
    path = Path(args.file)
    if not path.exists():
        print(f"Error: File not found: {path}")
        sys.exit(1)

    text = read_document(path)

    print(f"\n{'='*60}")
    print(f"EXTRACTING")
    print(f"{'='*60}")
    print(f"File: {path.name}")
    print(f"Text length: {len(text):,} characters")
    print(f"Model: {config.extraction.model}")
    print(f"Forced type: {args.type or 'auto-detect'}")
    print()

    extractor = build_extractor(config)
    result = extractor.classify_and_extract(
        text,
        forced_type=args.type,
        include_raw_text=args.raw_text,
    )
    response = result.to_response()

    print(f"Document type: {result.document_type.value}")
    print(f"Confidence: {result.confidence}%")
    for warning in result.warnings:
        print(f"Warning: {warning}")
    if result.removed_entities:
        print(f"Removed entities: {len(result.removed_entities)}")

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(response, f, indent=2)
        print(f"\nSaved result to {output_path}")
    else:
        print()
        print(json.dumps(response, indent=2))

    return result


def cmd_accuracy(args):
    """Run the accuracy suite over the plan corpus."""
    from .config import load_config, validate_config
    from .evaluator import load_all_ground_truth
    from .reporter import format_summary, save_report
    from .runner import build_extractor, load_corpus, run_accuracy_suite, save_results

    config = load_config(args.config) if args.config else load_config()
    for warning in validate_config(config):
        logger.warning(f"Config warning: {warning}")

    accuracy = config.accuracy
    if args.plans:
        accuracy.plans = args.plans
    if args.type:
        accuracy.forced_type = args.type

    print(f"\n{'='*60}")
    print(f"RUNNING ACCURACY TESTS")
    print(f"{'='*60}")
    print(f"Config: {args.config or 'defaults'}")
    print(f"Name: {config.experiment.name or 'base'}")
    print(f"Config hash: {config.config_hash()}")
    print(f"Model: {config.extraction.model}")
    print(f"Data dir: {accuracy.data_dir}")
    print(f"Plans: {accuracy.plans or 'all'}")
    print(f"Forced type: {accuracy.forced_type or 'auto-detect'}")
    print()

    ground_truth = load_all_ground_truth(accuracy.ground_truth_dir)
    corpus = load_corpus(accuracy.data_dir, ground_truth, plans=accuracy.plans)
    if not corpus:
        print(f"Error: No .pdf or .txt documents found in {accuracy.data_dir}")
        sys.exit(1)

    if args.pdf_only:
        print("PDF text extraction only (no LLM calls)")
        for doc in corpus:
            status = doc.load_error or f"{len(doc.text):,} characters"
            print(f"  {doc.file_name[:40]:<40} {status}")
        return None

    extractor = build_extractor(config)
    suite = run_accuracy_suite(corpus, extractor, accuracy)

    print()
    print(format_summary(suite))

    if not args.no_save:
        summary_path = save_results(suite, args.output_dir or accuracy.results_dir)
        print(f"\nResults: {summary_path}")
        if args.report:
            report_path = save_report(suite, summary_path)
            print(f"Report: {report_path}")

    if not suite.overall.passed:
        sys.exit(2)
    return suite


def cmd_ground_truth(args):
    """Draft a ground truth file from one document for manual curation."""
    from .config import load_config
    from .evaluator import draft_ground_truth, load_ground_truth, plan_id_from_filename, save_ground_truth
    from .runner import build_extractor

    config = load_config(args.config) if args.config else load_config()
    path = Path(args.file)
    if not path.exists():
        print(f"Error: File not found: {path}")
        sys.exit(1)

    plan_id = plan_id_from_filename(path.name)
    output_dir = Path(args.output_dir or config.accuracy.ground_truth_dir)
    existing_path = output_dir / f"{plan_id}.json"
    existing = load_ground_truth(existing_path) if existing_path.exists() else None

    print(f"\n{'='*60}")
    print(f"DRAFTING GROUND TRUTH")
    print(f"{'='*60}")
    print(f"File: {path.name}")
    print(f"Plan id: {plan_id}")
    print(f"Existing ground truth: {existing_path if existing else 'none'}")
    print()

    text = read_document(path)
    extractor = build_extractor(config)
    result = extractor.classify_and_extract(text, forced_type=args.type or config.accuracy.forced_type)

    draft = draft_ground_truth(
        plan_id,
        result.data,
        existing=existing,
        name=result.metadata.title,
        source=path.name,
    )
    saved = save_ground_truth(draft, output_dir)

    for category in draft.categories:
        print(f"{category:<12} {draft.total(category)}")
    print(f"\nSaved draft to {saved}")
    print("Review every entity and set verified_by before using it for accuracy runs.")
    return draft


def cmd_report(args):
    """Generate a Markdown report from saved accuracy results."""
    from .config import load_config
    from .reporter import save_report
    from .runner import latest_summary, load_results

    if args.results:
        results_path = Path(args.results)
    else:
        config = load_config(args.config) if args.config else load_config()
        results_path = latest_summary(config.accuracy.results_dir)
        if results_path is None:
            print("Error: No test result files found. Run accuracy tests first.")
            sys.exit(1)

    if not results_path.exists():
        print(f"Error: Results file not found: {results_path}")
        sys.exit(1)

    print(f"Generating report from: {results_path}")
    report_path = save_report(load_results(results_path), results_path)
    print(f"Report saved to: {report_path}")


def cmd_types(args):
    """List document types and the sections extracted for each."""
    from ..parse.models import DocumentType
    from ..parse.preprocessor import get_section_rules

    print(f"\n{'='*60}")
    print(f"DOCUMENT TYPES")
    print(f"{'='*60}")
    for document_type in DocumentType:
        sections = [name for name, _ in get_section_rules(document_type)]
        print(f"{document_type.value:<26} {document_type.label}")
        print(f"  sections: {', '.join(sections)}")


def cmd_providers(args):
    """List LLM providers, their models and whether an API key is set."""
    from ..extract.llm_provider import get_provider_info

    info = get_provider_info()

    print(f"\n{'='*60}")
    print(f"LLM PROVIDERS")
    print(f"{'='*60}")
    for name, provider in info["providers"].items():
        status = "configured" if provider["configured"] else "not configured"
        print(f"{name:<10} {status:<16} ({provider['env_var']})")
        for model in provider["models"]:
            print(f"  - {model}")

    print(f"\nAliases:")
    for alias, model in info["aliases"].items():
        print(f"  {alias:<20} -> {model}")
    print(f"\nDefault model: {info['default_model']}")


def main(argv=None):
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Planning document extraction and accuracy testing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Extract command
    extract_parser = subparsers.add_parser("extract", help="Extract data from one document")
    extract_parser.add_argument(
        "--file",
        required=True,
        help="Path to a .pdf or .txt document",
    )
    extract_parser.add_argument(
        "--config",
        help="Path to config file (base.yaml or experiment override)",
    )
    extract_parser.add_argument(
        "--type",
        help="Force a document type instead of auto-detecting (see 'types')",
    )
    extract_parser.add_argument(
        "--raw-text",
        action="store_true",
        help="Include the source text in the output",
    )
    extract_parser.add_argument(
        "--output",
        help="Path to save the JSON result (default: print)",
    )

    # Accuracy command
    accuracy_parser = subparsers.add_parser("accuracy", help="Run the accuracy suite")
    accuracy_parser.add_argument(
        "--config",
        help="Path to config file (base.yaml or experiment override)",
    )
    accuracy_parser.add_argument(
        "--plans",
        nargs="+",
        help="Only test plans whose file name contains one of these strings",
    )
    accuracy_parser.add_argument(
        "--type",
        help="Force a document type for every plan (default: from config)",
    )
    accuracy_parser.add_argument(
        "--pdf-only",
        action="store_true",
        help="Only check text extraction, no LLM calls",
    )
    accuracy_parser.add_argument(
        "--output-dir",
        help="Directory for result files (default: from config)",
    )
    accuracy_parser.add_argument(
        "--no-save",
        action="store_true",
        help="Do not write result files",
    )
    accuracy_parser.add_argument(
        "--report",
        action="store_true",
        help="Also write a Markdown report next to the summary",
    )

    # Report command
    report_parser = subparsers.add_parser("report", help="Generate a Markdown report")
    report_parser.add_argument(
        "--results",
        help="Path to a summary JSON (default: most recent in results dir)",
    )
    report_parser.add_argument(
        "--config",
        help="Config file used to locate the results dir",
    )

    # Ground truth command
    ground_truth_parser = subparsers.add_parser(
        "ground-truth", help="Draft a ground truth file from one document"
    )
    ground_truth_parser.add_argument(
        "--file",
        required=True,
        help="Path to a .pdf or .txt document",
    )
    ground_truth_parser.add_argument(
        "--output-dir",
        help="Directory for ground truth files (default: from config)",
    )
    ground_truth_parser.add_argument(
        "--config",
        help="Path to config file (base.yaml or experiment override)",
    )
    ground_truth_parser.add_argument(
        "--type",
        help="Force a document type (default: from config)",
    )

    # Info commands
    subparsers.add_parser("types", help="List document types")
    subparsers.add_parser("providers", help="List LLM providers and models")

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    commands = {
        "extract": cmd_extract,
        "accuracy": cmd_accuracy,
        "report": cmd_report,
        "ground-truth": cmd_ground_truth,
        "types": cmd_types,
        "providers": cmd_providers,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    try:
        command(args)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except ExtractionError as e:
        logger.error(f"Extraction failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
