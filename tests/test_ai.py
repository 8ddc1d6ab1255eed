"""Tests for the interpretation and pattern-analysis gateways."""

import asyncio
import json
from types import SimpleNamespace

import pytest

from conftest import FakePatternGateway, make_record
from runecast.ai import (
    OpenAIInterpretationGateway,
    OpenAIPatternGateway,
    analyze_patterns,
    build_interpretation_prompt,
    parse_interpretation,
)
from runecast.catalog import get_spread
from runecast.errors import InsufficientHistoryError, InterpretationError
from runecast.models import Orientation, SelectedRune

SELECTIONS = [
    SelectedRune(rune_name="Fehu", orientation=Orientation.UPRIGHT),
    SelectedRune(rune_name="Algiz", orientation=Orientation.REVERSED),
]


class FakeCompletions:
    def __init__(self, content=None, exc=None):
        self.content = content
        self.exc = exc
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.exc is not None:
            raise self.exc
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def reply(**overrides):
    body = {
        "individual_runes": [
            {"rune_name": "Algiz", "orientation": "Reversed", "summary": "Guard your flank."},
            {"rune_name": "Fehu", "orientation": "upright", "summary": "Resources arrive."},
        ],
        "summary": "A reading about protecting what you earn.",
        "questions": ["What needs protecting?", "Where is abundance flowing?"],
    }
    body.update(overrides)
    return json.dumps(body)


class TestParseInterpretation:
    def test_valid_reply(self):
        result = parse_interpretation(reply(), SELECTIONS)
        assert result.degraded is False
        assert result.summary.startswith("A reading")
        by_name = {e.rune_name: e for e in result.individual_runes}
        assert by_name["Algiz"].orientation is Orientation.REVERSED
        assert by_name["Fehu"].summary == "Resources arrive."

    def test_orientation_comes_from_request(self):
        raw = reply(individual_runes=[
            {"rune_name": "fehu", "orientation": "reversed", "summary": "x"},
            {"rune_name": "Algiz", "orientation": "upright", "summary": "y"},
        ])
        result = parse_interpretation(raw, SELECTIONS)
        by_name = {e.rune_name: e.orientation for e in result.individual_runes}
        assert by_name == {"Fehu": Orientation.UPRIGHT, "Algiz": Orientation.REVERSED}

    def test_unrequested_and_duplicate_runes_are_dropped(self):
        raw = reply(individual_runes=[
            {"rune_name": "Fehu", "summary": "first"},
            {"rune_name": "Fehu", "summary": "second"},
            {"rune_name": "Othala", "summary": "not drawn"},
        ])
        result = parse_interpretation(raw, SELECTIONS)
        assert [(e.rune_name, e.summary) for e in result.individual_runes] == [("Fehu", "first")]

    @pytest.mark.parametrize("raw", [None, "", "   ", "not json", json.dumps({"summary": "no runes"})])
    def test_malformed_reply_raises(self, raw):
        with pytest.raises(InterpretationError):
            parse_interpretation(raw, SELECTIONS)

    def test_empty_questions_raise(self):
        with pytest.raises(InterpretationError):
            parse_interpretation(reply(questions=[]), SELECTIONS)


class TestOpenAIGateway:
    def test_interpret_sends_json_request(self):
        completions = FakeCompletions(content=reply())
        gateway = OpenAIInterpretationGateway(model="test-model", client=fake_client(completions))

        result = asyncio.run(gateway.interpret(SELECTIONS, get_spread("Three Norns")))

        assert len(result.individual_runes) == 2
        assert completions.kwargs["model"] == "test-model"
        assert completions.kwargs["response_format"] == {"type": "json_object"}
        prompt = completions.kwargs["messages"][-1]["content"]
        assert "Fehu (upright) - Past" in prompt
        assert "Algiz (reversed) - Present" in prompt

    def test_request_failure_becomes_interpretation_error(self):
        completions = FakeCompletions(exc=RuntimeError("quota exceeded"))
        gateway = OpenAIInterpretationGateway(client=fake_client(completions))
        with pytest.raises(InterpretationError):
            asyncio.run(gateway.interpret(SELECTIONS, get_spread("Three Norns")))

    def test_missing_api_key(self):
        gateway = OpenAIInterpretationGateway(api_key="")
        with pytest.raises(InterpretationError):
            asyncio.run(gateway.interpret(SELECTIONS, get_spread("Three Norns")))

    def test_pattern_gateway_parses_reply(self):
        body = json.dumps({
            "frequent_runes": [{"rune_name": "Fehu", "count": 4, "interpretation": "Abundance keeps returning."}],
            "recurring_themes": ["resources"],
            "overall_summary": "Money is on your mind.",
        })
        gateway = OpenAIPatternGateway(client=fake_client(FakeCompletions(content=body)))
        records = [make_record(i) for i in range(5)]
        analysis = asyncio.run(gateway.analyze(records))
        assert analysis.frequent_runes[0].count == 4
        assert analysis.degraded is False

    def test_prompt_lists_positions(self):
        prompt = build_interpretation_prompt(SELECTIONS, get_spread("Three Norns"))
        assert '"Three Norns"' in prompt
        assert "1. Fehu (upright) - Past" in prompt


class TestAnalyzePatterns:
    def test_refuses_below_minimum(self):
        gateway = FakePatternGateway()
        records = [make_record(i) for i in range(4)]
        with pytest.raises(InsufficientHistoryError):
            asyncio.run(analyze_patterns(records, gateway, minimum=5))
        assert gateway.calls == 0

    def test_calls_gateway_at_minimum(self):
        gateway = FakePatternGateway()
        records = [make_record(i) for i in range(5)]
        analysis = asyncio.run(analyze_patterns(records, gateway, minimum=5))
        assert gateway.calls == 1
        assert analysis.overall_summary == "5 readings reviewed."

    def test_failure_degrades_to_local_counts(self):
        records = [make_record(i) for i in range(5)]
        records.append(make_record(99, runes=[("Fehu", "reversed")]))
        analysis = asyncio.run(analyze_patterns(records, FakePatternGateway(fail=True), minimum=5))
        assert analysis.degraded is True
        assert analysis.frequent_runes[0].rune_name == "Fehu"
        assert analysis.frequent_runes[0].count == 6
        assert analysis.recurring_themes
