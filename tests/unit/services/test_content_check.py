"""Unit tests for the model-backed website content check."""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from reentry_map.errors import CollaboratorUnavailable
from reentry_map.models import CandidateFields
from reentry_map.services.content_check import ChatModelContentVerifier, detect_conflicts


class FakeChatModel:
    def __init__(self, content="", usage=None, error=None):
        self.content = content
        self.usage = usage
        self.error = error
        self.calls = []

    def invoke(self, messages):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return SimpleNamespace(content=self.content, usage_metadata=self.usage)


class FakeFetcher:
    def __init__(self, text="Oak St Shelter offers emergency beds in Oakland."):
        self.text = text
        self.urls = []

    def fetch_text(self, url, timeout_seconds):
        self.urls.append((url, timeout_seconds))
        return self.text


def _candidate(**overrides) -> CandidateFields:
    values = {
        "name": "Oak St Shelter",
        "address": "123 Oak St",
        "phone": "(510) 555-0199",
        "email": "intake@oakshelter.org",
        "website": "https://oakshelter.org",
        "primary_category": "housing",
        "description": "Emergency beds",
    }
    values.update(overrides)
    return CandidateFields(**values)


def _verifier(model, fetcher=None, **kwargs) -> ChatModelContentVerifier:
    return ChatModelContentVerifier(
        chat_model=model,
        fetcher=fetcher or FakeFetcher(),
        model_name="ollama:llama3.1",
        timeout_seconds=3.0,
        **kwargs,
    )


def _answer(**payload) -> str:
    body = {"pass": True, "confidence": 0.9, "evidence": "Name and services match", "found": {}}
    body.update(payload)
    return json.dumps(body)


def test_matching_page_passes_and_reports_usage():
    model = FakeChatModel(_answer(), usage={"input_tokens": 2000, "output_tokens": 100})
    fetcher = FakeFetcher()

    outcome = _verifier(
        model,
        fetcher,
        input_cost_per_million_usd=1.0,
        output_cost_per_million_usd=4.0,
    ).verify(_candidate())

    assert outcome.passed
    assert outcome.confidence == 0.9
    assert outcome.evidence == "Name and services match"
    assert outcome.input_tokens == 2000
    assert outcome.output_tokens == 100
    assert outcome.cost_usd == pytest.approx(0.0024)
    assert fetcher.urls == [("https://oakshelter.org", 3.0)]
    system, human = model.calls[0]
    assert "JSON" in system.content
    assert "Oak St Shelter" in human.content
    assert "emergency beds in Oakland" in human.content


def test_page_text_is_truncated_before_prompting():
    model = FakeChatModel(_answer())

    _verifier(model, FakeFetcher("x" * 50), max_page_chars=10).verify(_candidate())

    human = model.calls[0][1]
    assert "x" * 10 in human.content
    assert "x" * 11 not in human.content


def test_fenced_json_is_accepted_and_found_values_are_kept():
    fenced = "```json\n" + _answer(found={"phone": "(415) 222-3333", "email": None}) + "\n```"

    outcome = _verifier(FakeChatModel(fenced)).verify(_candidate())

    assert outcome.found == {"phone": "(415) 222-3333"}
    assert outcome.input_tokens == 0
    assert outcome.cost_usd == 0.0


def test_out_of_range_confidence_is_clamped():
    outcome = _verifier(FakeChatModel(_answer(**{"pass": False, "confidence": 7}))).verify(_candidate())

    assert not outcome.passed
    assert outcome.confidence == 1.0


def test_model_errors_mean_the_collaborator_is_unavailable():
    model = FakeChatModel(error=ConnectionError("connection refused"))

    with pytest.raises(CollaboratorUnavailable, match="connection refused"):
        _verifier(model).verify(_candidate())


def test_unparseable_answers_mean_the_collaborator_is_unavailable():
    with pytest.raises(CollaboratorUnavailable):
        _verifier(FakeChatModel("I think it matches.")).verify(_candidate())
    with pytest.raises(CollaboratorUnavailable):
        _verifier(FakeChatModel("[1, 2]")).verify(_candidate())


def test_no_readable_page_skips_the_model():
    model = FakeChatModel(_answer())

    assert _verifier(model, FakeFetcher(None)).verify(_candidate()) is None
    assert _verifier(model).verify(_candidate(website=None)) is None
    assert model.calls == []


def test_conflicts_flag_only_disagreeing_fields():
    found = {
        "name": "Oak Street Shelter",
        "phone": "(415) 222-3333",
        "address": "123 Oak Street",
        "email": "INTAKE@oakshelter.org",
    }

    conflicts = detect_conflicts(_candidate(), found, source="https://oakshelter.org")

    assert [conflict.field for conflict in conflicts] == ["phone"]
    phone = conflicts[0]
    assert phone.submitted == "(510) 555-0199"
    assert phone.found == "(415) 222-3333"
    assert phone.confidence > 0.7
    assert phone.source == "https://oakshelter.org"


def test_conflicts_skip_fields_missing_on_either_side():
    conflicts = detect_conflicts(
        _candidate(email=None),
        {"email": "someone@else.org", "address": None},
        source="https://oakshelter.org",
    )

    assert conflicts == []
