"""
End-to-end tests for DocumentExtractor with a stubbed completion client.

Tests cover:
1. Input rejection before any LLM call
2. Upstream and parse failures
3. Hallucination filtering and summary mismatch scenarios
4. Forced types, metadata and the response envelope
5. Determinism across repeated calls
"""

import json
import logging

import pytest

from planextract.errors import InputError, ParseError, UpstreamError
from planextract.experiment.config import PipelineConfig
from planextract.extract.extractor import DocumentExtractor, ExtractionResult, classify_and_extract
from planextract.parse.models import DocumentType

from conftest import StubCompletionClient

NITROGEN_SOURCE = "Goal: Reduce nitrogen runoff by 30%. BMP: Cover crops installed on 200 acres."


def reply_for(record: dict) -> str:
    return json.dumps(record)


class TestInputHandling:
    """Tests for input rejection."""

    @pytest.mark.parametrize("text", ["", "   \n\t  "])
    def test_empty_text_makes_no_call(self, text):
        """Test empty input raises InputError before the client is used."""
        client = StubCompletionClient(reply="{}")
        extractor = DocumentExtractor(client)

        with pytest.raises(InputError, match="No text provided"):
            extractor.classify_and_extract(text)
        assert client.calls == 0

    def test_non_string_text(self):
        client = StubCompletionClient(reply="{}")
        with pytest.raises(InputError):
            DocumentExtractor(client).classify_and_extract(None)
        assert client.calls == 0

    def test_invalid_forced_type(self, watershed_text):
        client = StubCompletionClient(reply="{}")
        with pytest.raises(InputError, match="Unknown document type"):
            DocumentExtractor(client).classify_and_extract(watershed_text, forced_type="memo")
        assert client.calls == 0


class TestFailures:
    """Tests for upstream and parse failures."""

    def test_client_exception_becomes_upstream_error(self, watershed_text):
        client = StubCompletionClient(error=ConnectionError("connection reset"))
        with pytest.raises(UpstreamError, match="connection reset"):
            DocumentExtractor(client).classify_and_extract(watershed_text)

    def test_upstream_error_passes_through(self, watershed_text):
        error = UpstreamError("429 Too Many Requests", provider="groq")
        client = StubCompletionClient(error=error)

        with pytest.raises(UpstreamError) as exc_info:
            DocumentExtractor(client).classify_and_extract(watershed_text)
        assert exc_info.value is error

    def test_unparseable_reply(self, watershed_text):
        client = StubCompletionClient(reply="Sorry, I cannot help with that document.")
        with pytest.raises(ParseError):
            DocumentExtractor(client).classify_and_extract(watershed_text)


class TestExtraction:
    """Tests for successful extraction runs."""

    def test_grounded_reply(self, grounded_client, watershed_text):
        """Test a fully grounded reply gives full confidence and no warnings."""
        result = DocumentExtractor(grounded_client).classify_and_extract(watershed_text)

        assert isinstance(result, ExtractionResult)
        assert result.document_type == DocumentType.WATERSHED_PLAN
        assert result.confidence == 100
        assert result.warnings == []
        assert result.removed_entities == []
        assert len(result.data.goals) == 2
        assert grounded_client.calls == 1

    def test_prompt_contains_document(self, grounded_client, watershed_text):
        DocumentExtractor(grounded_client).classify_and_extract(watershed_text)
        prompt = grounded_client.prompts[0]

        assert "following watershed plan document" in prompt
        assert "Streambank stabilization along 3 miles of channel." in prompt

    def test_fabricated_goal_removed(self):
        """Test only goals traceable to the source survive."""
        reply = reply_for({
            "summary": {"totalGoals": 2, "totalBMPs": 1, "completionRate": 0},
            "goals": [
                {"description": "Reduce nitrogen runoff by 30%"},
                {"description": "Eliminate all pollution by 2025"},
            ],
            "bmps": [{"name": "Cover crops"}],
        })
        client = StubCompletionClient(reply=reply)

        result = DocumentExtractor(client).classify_and_extract(NITROGEN_SOURCE)

        assert len(result.data.goals) == 1
        assert result.data.goals[0].description == "Reduce nitrogen runoff by 30%"
        assert [r.value for r in result.removed_entities] == ["Eliminate all pollution by 2025"]
        assert "Removed 1 extracted entities not found in the source text" in result.warnings

    def test_summary_mismatch_still_returns_data(self, grounded_record, watershed_text):
        """Test a count mismatch lowers confidence but the request succeeds."""
        grounded_record["summary"]["totalGoals"] = 3
        client = StubCompletionClient(reply=reply_for(grounded_record))

        result = DocumentExtractor(client).classify_and_extract(watershed_text)
        response = result.to_response()

        assert result.confidence < 100
        assert any("totalGoals is 3" in issue for issue in result.validation.issues)
        assert response["success"] is True
        assert len(response["data"]["goals"]) == 2

    def test_low_confidence_warning(self, watershed_text):
        """Test a mostly ungrounded reply warns but still returns data."""
        reply = reply_for({
            "summary": {"totalGoals": 5, "totalBMPs": 4},
            "goals": [{"description": "Reduce sediment loading by 50%"}],
            "bmps": [],
        })
        client = StubCompletionClient(reply=reply)

        result = DocumentExtractor(client).classify_and_extract(watershed_text)

        # root, required, 1 goal, summary values, summary counts (fail)
        assert result.confidence == 80
        assert result.is_low_confidence is False

        extractor = DocumentExtractor(client, low_confidence_threshold=90)
        result = extractor.classify_and_extract(watershed_text)
        assert "Low confidence extraction (below 90%)" in result.warnings

    def test_configured_threshold_reaches_response(self, watershed_text):
        """Test the extractor threshold also drives is_low_confidence and the envelope warning."""
        reply = reply_for({
            "summary": {"totalGoals": 5, "totalBMPs": 4},
            "goals": [{"description": "Reduce sediment loading by 50%"}],
            "bmps": [],
        })
        extractor = DocumentExtractor(StubCompletionClient(reply=reply), low_confidence_threshold=90)

        result = extractor.classify_and_extract(watershed_text)
        response = result.to_response()

        assert result.confidence == 80
        assert result.is_low_confidence is True
        assert response["warning"] == "Low confidence extraction (below 90%)"

    def test_response_warning_below_75(self):
        reply = reply_for({"goals": [{"description": "Invented entirely for this test"}]})
        client = StubCompletionClient(reply=reply)

        result = DocumentExtractor(client).classify_and_extract(NITROGEN_SOURCE)
        response = result.to_response()

        assert result.confidence == 50
        assert response["warning"] == "Low confidence extraction (below 75%)"
        assert response["data"]["goals"] == []


class TestDocumentTypes:
    """Tests for classification and forced types."""

    def test_forced_type_records_detected(self, grounded_client, watershed_text):
        result = DocumentExtractor(grounded_client).classify_and_extract(
            watershed_text, forced_type="climate_study"
        )

        assert result.document_type == DocumentType.CLIMATE_STUDY
        assert result.metadata.detected_type == DocumentType.WATERSHED_PLAN
        assert result.to_dict()["metadata"]["detectedType"] == "watershed_plan"
        assert "following climate study document" in grounded_client.prompts[0]

    def test_detected_type_has_no_detected_field(self, grounded_client, watershed_text):
        result = DocumentExtractor(grounded_client).classify_and_extract(watershed_text)
        assert "detectedType" not in result.to_dict()["metadata"]

    def test_deterministic(self, grounded_client, watershed_text):
        """Test repeated calls give the same type, prompt and result."""
        extractor = DocumentExtractor(grounded_client)
        first = extractor.classify_and_extract(watershed_text)
        second = extractor.classify_and_extract(watershed_text)

        assert first.document_type == second.document_type
        assert grounded_client.prompts[0] == grounded_client.prompts[1]
        assert first.to_dict() == second.to_dict()


class TestResultSerialization:

    def test_prompt_token_estimate_logged(self, grounded_client, watershed_text, caplog):
        """Test the prompt token estimate is logged and kept on the result."""
        with caplog.at_level(logging.INFO, logger="planextract.extract.extractor"):
            result = DocumentExtractor(grounded_client).classify_and_extract(watershed_text)

        assert result.prompt_tokens == len(grounded_client.prompts[0].split())
        assert f"~{result.prompt_tokens:,} tokens" in caplog.text
        assert result.to_dict()["promptTokens"] == result.prompt_tokens

    def test_raw_text_optional(self, grounded_client, watershed_text):
        extractor = DocumentExtractor(grounded_client)

        without = extractor.classify_and_extract(watershed_text).to_response()
        with_raw = extractor.classify_and_extract(watershed_text, include_raw_text=True).to_response()

        assert "rawText" not in without
        assert with_raw["rawText"] == watershed_text

    def test_to_dict_keys(self, grounded_client, watershed_text):
        d = DocumentExtractor(grounded_client).classify_and_extract(watershed_text).to_dict()
        assert set(d) == {
            "data", "documentType", "metadata", "validation", "confidence", "warnings", "removedEntities",
            "promptTokens",
        }
        assert d["documentType"] == "watershed_plan"


class TestModuleFunction:

    def test_classify_and_extract_with_config(self, grounded_client, watershed_text):
        """Test the convenience function honours the config prompt budget."""
        config = PipelineConfig()
        config.extraction.max_prompt_chars = 40

        result = classify_and_extract(watershed_text, grounded_client, config=config)

        assert "...(truncated)" in grounded_client.prompts[0]
        assert result.document_type == DocumentType.WATERSHED_PLAN
