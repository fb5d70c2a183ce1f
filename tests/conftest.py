"""Shared test fixtures."""

import json

import pytest
import tiktoken


class StubCompletionClient:
    """Completion client that records prompts and returns canned replies."""

    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply

    @property
    def calls(self) -> int:
        return len(self.prompts)


WATERSHED_PLAN_TEXT = """Deer Creek Watershed Implementation Plan
Prepared by: Mississippi Department of Environmental Quality
July 2018

GOALS AND OBJECTIVES
Goal 1: Reduce sediment loading by 50% by 2025.
Goal 2: Improve water quality to support aquatic life.

BEST MANAGEMENT PRACTICES
No-till farming on 1,200 acres of cropland.
Streambank stabilization along 3 miles of channel.
Buffer strips adjacent to tributaries.

MONITORING
Sediment load measured monthly at two stations.
Nutrient concentrations sampled quarterly.
"""


@pytest.fixture
def watershed_text():
    return WATERSHED_PLAN_TEXT


@pytest.fixture
def grounded_record():
    """Reply record whose entities all appear in WATERSHED_PLAN_TEXT."""
    return {
        "summary": {"totalGoals": 2, "totalBMPs": 3, "completionRate": 0},
        "goals": [
            {"id": "G1", "description": "Reduce sediment loading by 50%"},
            {"id": "G2", "description": "Improve water quality to support aquatic life"},
        ],
        "bmps": [
            {"id": "B1", "name": "No-till farming"},
            {"id": "B2", "name": "Streambank stabilization"},
            {"id": "B3", "name": "Buffer strips"},
        ],
        "implementation": [],
        "monitoring": [
            {"id": "M1", "metric": "Sediment load", "frequency": "monthly"},
            {"id": "M2", "metric": "Nutrient concentrations", "frequency": "quarterly"},
        ],
        "outreach": [],
        "geographicAreas": [],
    }


@pytest.fixture
def stub_client():
    return StubCompletionClient


@pytest.fixture
def grounded_client(grounded_record):
    return StubCompletionClient(reply=json.dumps(grounded_record))


class WhitespaceEncoding:
    """Offline stand-in for a tiktoken encoding: one token per word."""

    def encode(self, text):
        return text.split()


@pytest.fixture(autouse=True)
def offline_tokenizer(monkeypatch):
    """Keep tiktoken from downloading BPE files during tests."""
    monkeypatch.setattr(tiktoken, "encoding_for_model", lambda model: WhitespaceEncoding())
    monkeypatch.setattr(tiktoken, "get_encoding", lambda name: WhitespaceEncoding())
