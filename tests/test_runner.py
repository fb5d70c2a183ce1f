"""
Tests for the accuracy suite runner and reports.

Extraction runs against a stubbed completion client; PDF decoding is
replaced where a corpus needs it.
"""

import json

import pytest

from planextract.experiment.config import AccuracyConfig, PipelineConfig
from planextract.experiment.evaluator import GroundTruth
from planextract.experiment.reporter import format_summary, generate_markdown_report, save_report
from planextract.experiment.runner import (
    AccuracySuiteResult,
    CorpusDocument,
    aggregate_results,
    build_extractor,
    latest_summary,
    load_corpus,
    load_results,
    run_accuracy_suite,
    save_results,
)
from planextract.extract.extractor import DocumentExtractor

from conftest import StubCompletionClient


@pytest.fixture
def deer_creek_truth():
    return GroundTruth(
        plan_id="deer-creek",
        categories={
            "goals": [
                {"description": "Reduce sediment loading by 50%"},
                {"description": "Improve water quality to support aquatic life"},
                {"description": "Implement BMPs across 75% of agricultural lands"},
            ],
            "bmps": [
                {"name": "No-till farming"},
                {"name": "Streambank stabilization"},
                {"name": "Buffer strips"},
            ],
            "monitoring": [
                {"metric": "Sediment load"},
                {"metric": "Nutrient concentrations"},
                {"metric": "Benthic macroinvertebrate assessment"},
            ],
        },
    )


@pytest.fixture
def corpus(watershed_text, deer_creek_truth):
    return [
        CorpusDocument(
            file_name="deer-creek-watershed-plan.txt",
            plan_id="deer-creek",
            text=watershed_text,
            ground_truth=deer_creek_truth,
        ),
        CorpusDocument(
            file_name="unlabelled-plan.txt",
            plan_id="unlabelled",
            text=watershed_text,
        ),
    ]


class TestRunAccuracySuite:
    """Tests for run_accuracy_suite."""

    def test_scores_grounded_extraction(self, corpus, grounded_client):
        """Test per-file and aggregate accuracy for the sample plan."""
        suite = run_accuracy_suite(corpus, DocumentExtractor(grounded_client))
        deer_creek = suite.per_file[0]

        # goals 2/3, bmps 3/3, monitoring 2/3
        assert deer_creek.accuracy.overall == pytest.approx((200 / 3 + 100 + 200 / 3) / 3)
        assert deer_creek.accuracy.false_positives == 0
        assert deer_creek.confidence == 100

        overall = suite.overall
        assert overall.total_files == 2
        assert overall.files_processed == 2
        assert overall.files_succeeded == 1
        assert overall.average_accuracy == pytest.approx(deer_creek.accuracy.overall)
        assert overall.category_accuracy["bmps"] == 100.0
        assert overall.zero_false_positives is True
        assert overall.passed is True

    def test_file_without_ground_truth_not_scored(self, corpus, grounded_client):
        suite = run_accuracy_suite(corpus, DocumentExtractor(grounded_client))
        assert suite.per_file[1].accuracy is None
        assert suite.per_file[1].succeeded is True

    def test_failure_recorded_and_run_continues(self, corpus):
        """Test one failing document does not stop the suite."""
        client = StubCompletionClient(reply="no json here")
        suite = run_accuracy_suite(corpus, DocumentExtractor(client))

        assert [r.succeeded for r in suite.per_file] == [False, False]
        assert suite.per_file[0].error.startswith("ParseError")
        assert suite.overall.files_processed == 0
        assert suite.overall.average_accuracy == 0.0
        assert suite.overall.passed is False
        assert client.calls == 2

    def test_load_error_skips_extraction(self, deer_creek_truth):
        client = StubCompletionClient(reply="{}")
        doc = CorpusDocument(
            file_name="broken.pdf",
            plan_id="broken",
            text="",
            load_error="Text extraction failed: bad xref",
        )
        suite = run_accuracy_suite([doc], DocumentExtractor(client))

        assert suite.per_file[0].error == "Text extraction failed: bad xref"
        assert client.calls == 0

    def test_forced_type_from_config(self, corpus, grounded_client):
        config = AccuracyConfig(forced_type="conservation_plan")
        run_accuracy_suite(corpus[:1], DocumentExtractor(grounded_client), config)
        assert "following conservation plan document" in grounded_client.prompts[0]

    def test_min_required_accuracy(self, corpus, grounded_client):
        config = AccuracyConfig(min_required_accuracy=90.0)
        suite = run_accuracy_suite(corpus, DocumentExtractor(grounded_client), config)

        assert suite.overall.files_succeeded == 0
        assert suite.overall.passed is False

    def test_to_dict(self, corpus, grounded_client):
        d = run_accuracy_suite(corpus, DocumentExtractor(grounded_client)).to_dict()

        assert set(d) == {"testDate", "overall", "files"}
        assert d["overall"]["bmpAccuracy"] == 100.0
        assert d["files"][0]["planId"] == "deer-creek"
        assert d["files"][0]["accuracy"]["details"]["goals"]["found"] == 2


class TestAggregateResults:

    def test_category_mean_over_tracking_files(self, corpus, grounded_client):
        """Test files whose ground truth lacks a category do not lower its mean."""
        extractor = DocumentExtractor(grounded_client)
        bmps_only = GroundTruth(plan_id="bmps-only", categories={"bmps": [{"name": "Buffer strips"}]})
        corpus[1].ground_truth = bmps_only

        suite = run_accuracy_suite(corpus, extractor)
        overall = suite.overall

        assert overall.category_accuracy["goals"] == pytest.approx(200 / 3)
        # Buffer strips matched; the other two extracted BMPs are false positives
        assert overall.category_accuracy["bmps"] == 100.0
        assert overall.zero_false_positives is False

    def test_empty(self):
        overall = aggregate_results([])
        assert overall.total_files == 0
        assert overall.passed is False


class TestCorpusLoading:
    """Tests for load_corpus."""

    def test_loads_text_and_pdf(self, tmp_path, deer_creek_truth):
        (tmp_path / "deer-creek-watershed-plan.pdf").write_bytes(b"%PDF-1.4")
        (tmp_path / "harris-bayou-plan.txt").write_text("Harris Bayou text", encoding="utf-8")
        (tmp_path / "notes.docx").write_text("ignored")

        corpus = load_corpus(
            tmp_path,
            {"deer-creek": deer_creek_truth},
            pdf_reader=lambda path: f"text of {path.name}",
        )

        assert [d.plan_id for d in corpus] == ["deer-creek", "harris-bayou"]
        assert corpus[0].text == "text of deer-creek-watershed-plan.pdf"
        assert corpus[0].ground_truth is deer_creek_truth
        assert corpus[1].text == "Harris Bayou text"
        assert corpus[1].ground_truth is None

    def test_plan_filter(self, tmp_path):
        (tmp_path / "deer-creek.txt").write_text("a")
        (tmp_path / "harris-bayou.txt").write_text("b")

        corpus = load_corpus(tmp_path, plans=["harris"])
        assert [d.file_name for d in corpus] == ["harris-bayou.txt"]

    def test_unreadable_pdf_recorded(self, tmp_path):
        (tmp_path / "broken.pdf").write_bytes(b"")

        def failing_reader(path):
            raise ValueError("bad xref")

        corpus = load_corpus(tmp_path, pdf_reader=failing_reader)
        assert corpus[0].load_error == "Text extraction failed: bad xref"

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_corpus(tmp_path / "missing")


class TestPersistence:
    """Tests for result files and reports."""

    def test_save_results(self, tmp_path, corpus, grounded_client):
        suite = run_accuracy_suite(corpus, DocumentExtractor(grounded_client))
        summary_path = save_results(suite, tmp_path)

        assert summary_path.name.startswith("summary-")
        assert (tmp_path / "deer-creek-result.json").exists()
        assert (tmp_path / "unlabelled-result.json").exists()

        saved = load_results(summary_path)
        assert saved["overall"]["filesProcessed"] == 2
        assert latest_summary(tmp_path) == summary_path

    def test_failed_files_only_in_summary(self, tmp_path, corpus):
        client = StubCompletionClient(reply="not json")
        suite = run_accuracy_suite(corpus, DocumentExtractor(client))
        save_results(suite, tmp_path)

        assert not (tmp_path / "deer-creek-result.json").exists()

    def test_latest_summary_empty(self, tmp_path):
        assert latest_summary(tmp_path) is None

    def test_markdown_report(self, tmp_path, corpus, grounded_client):
        """Test the report covers summary, per-file table and misses."""
        suite = run_accuracy_suite(corpus, DocumentExtractor(grounded_client))
        summary_path = save_results(suite, tmp_path)

        report = generate_markdown_report(load_results(summary_path))

        assert report.startswith("# Watershed Plan Extraction Accuracy Report")
        assert "**Overall Test Result**: PASSED" in report
        assert "| BMPs | 100.0% | 3 | 3 |" in report
        assert "#### Missed Goals" in report
        assert '- "Implement BMPs across 75% of agricultural lands"' in report
        assert "No ground truth available for this file." in report

        report_path = save_report(suite, summary_path)
        assert report_path.suffix == ".md"
        assert report_path.read_text(encoding="utf-8").startswith("# Watershed Plan")

    def test_report_shows_errors(self, corpus):
        client = StubCompletionClient(reply="not json")
        report = generate_markdown_report(run_accuracy_suite(corpus, DocumentExtractor(client)))

        assert "**Error**: ParseError" in report
        assert "**Overall Test Result**: FAILED" in report

    def test_console_summary(self, corpus, grounded_client):
        text = format_summary(run_accuracy_suite(corpus, DocumentExtractor(grounded_client)))
        assert "OVERALL TEST RESULT: PASSED" in text
        assert "(no ground truth)" in text


class TestBuildExtractor:

    def test_uses_config(self, grounded_client):
        config = PipelineConfig()
        config.validation.required_sections = ["goals"]
        config.extraction.max_prompt_chars = 500

        extractor = build_extractor(config, grounded_client)

        assert extractor.client is grounded_client
        assert extractor.required_sections == ["goals"]
        assert extractor.max_prompt_chars == 500

    def test_result_round_trips_through_json(self, corpus, grounded_client):
        suite = run_accuracy_suite(corpus, DocumentExtractor(grounded_client))
        assert isinstance(suite, AccuracySuiteResult)
        json.dumps(suite.to_dict())
