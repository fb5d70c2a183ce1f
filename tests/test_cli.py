"""Tests for the command line interface."""

import json

import pytest

from planextract.experiment import runner
from planextract.experiment.__main__ import main
from planextract.experiment.evaluator import load_ground_truth
from planextract.extract.extractor import DocumentExtractor


class TestInfoCommands:

    def test_types(self, capsys):
        main(["types"])
        out = capsys.readouterr().out

        assert "DOCUMENT TYPES" in out
        assert "watershed_plan" in out
        assert "Climate Study" in out

    def test_providers(self, capsys, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        main(["providers"])
        out = capsys.readouterr().out

        assert "LLM PROVIDERS" in out
        assert "Default model:" in out

    def test_no_command(self):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1


class TestExtractCommand:

    def test_extract_to_file(self, tmp_path, monkeypatch, grounded_client, watershed_text, capsys):
        """Test extract writes the response envelope with a stubbed client."""
        document = tmp_path / "deer-creek.txt"
        document.write_text(watershed_text, encoding="utf-8")
        output = tmp_path / "out" / "result.json"
        monkeypatch.setattr(
            runner, "build_extractor", lambda config, client=None: DocumentExtractor(grounded_client)
        )

        main(["extract", "--file", str(document), "--output", str(output)])

        response = json.loads(output.read_text(encoding="utf-8"))
        assert response["success"] is True
        assert response["documentType"] == "watershed_plan"
        assert "Confidence: 100%" in capsys.readouterr().out

    def test_missing_file(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["extract", "--file", str(tmp_path / "missing.pdf")])
        assert exc_info.value.code == 1

    def test_extraction_error_exits(self, tmp_path, monkeypatch, stub_client):
        document = tmp_path / "plan.txt"
        document.write_text("Goal: reduce runoff.", encoding="utf-8")
        monkeypatch.setattr(
            runner, "build_extractor",
            lambda config, client=None: DocumentExtractor(stub_client(reply="no json")),
        )

        with pytest.raises(SystemExit) as exc_info:
            main(["extract", "--file", str(document)])
        assert exc_info.value.code == 1


class TestReportCommand:

    def test_report_from_results(self, tmp_path, capsys):
        summary = {
            "testDate": "2026-01-09T10:00:00",
            "overall": {"totalFiles": 1, "filesProcessed": 1, "averageAccuracy": 80.0, "passed": True},
            "files": [{"fileName": "deer-creek.pdf", "planId": "deer-creek", "error": "ParseError: x"}],
        }
        results = tmp_path / "summary-2026-01-09T10-00-00.json"
        results.write_text(json.dumps(summary), encoding="utf-8")

        main(["report", "--results", str(results)])

        report = (tmp_path / "summary-2026-01-09T10-00-00.md").read_text(encoding="utf-8")
        assert "**Error**: ParseError: x" in report
        assert "Report saved to:" in capsys.readouterr().out

    def test_missing_results(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["report", "--results", str(tmp_path / "nope.json")])


class TestGroundTruthCommand:

    def test_writes_draft(self, tmp_path, monkeypatch, grounded_client, watershed_text, capsys):
        """Test ground-truth writes a loadable, unverified draft."""
        document = tmp_path / "deer-creek.txt"
        document.write_text(watershed_text, encoding="utf-8")
        monkeypatch.setattr(
            runner, "build_extractor", lambda config, client=None: DocumentExtractor(grounded_client)
        )

        main(["ground-truth", "--file", str(document), "--output-dir", str(tmp_path / "gt")])

        truth = load_ground_truth(tmp_path / "gt" / "deer-creek.json")
        assert truth.plan_id == "deer-creek"
        assert truth.name == "Deer Creek Watershed Implementation Plan"
        assert truth.source == "deer-creek.txt"
        assert truth.verified_by is None
        assert (truth.total("goals"), truth.total("bmps"), truth.total("monitoring")) == (2, 3, 2)
        assert "Saved draft to" in capsys.readouterr().out

    def test_keeps_existing_entities(self, tmp_path, monkeypatch, grounded_client, watershed_text):
        document = tmp_path / "deer-creek.txt"
        document.write_text(watershed_text, encoding="utf-8")
        gt_dir = tmp_path / "gt"
        gt_dir.mkdir()
        existing = {"plan_id": "deer-creek", "bmps": [{"id": "BMP1", "name": "Cover crops"}]}
        (gt_dir / "deer-creek.json").write_text(json.dumps(existing), encoding="utf-8")
        monkeypatch.setattr(
            runner, "build_extractor", lambda config, client=None: DocumentExtractor(grounded_client)
        )

        main(["ground-truth", "--file", str(document), "--output-dir", str(gt_dir)])

        truth = load_ground_truth(gt_dir / "deer-creek.json")
        assert [b["name"] for b in truth.categories["bmps"]][:2] == ["Cover crops", "No-till farming"]
        assert truth.total("bmps") == 4

    def test_missing_file(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["ground-truth", "--file", str(tmp_path / "missing.pdf"), "--output-dir", str(tmp_path)])
        assert exc_info.value.code == 1
