import asyncio
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import pytest

from runecast.catalog import get_catalog
from runecast.errors import InterpretationError
from runecast.models import (
    IndividualRuneInterpretation,
    Interpretation,
    Orientation,
    PatternAnalysis,
    ReadingRecord,
    SelectedRune,
    Spread,
)
from runecast.storage import HistoryStore, JsonStore


class FakeGateway:
    """Interpretation gateway double.

    `gate`, when given, holds every call until the event is set.
    """

    def __init__(self, fail: bool = False, reverse: bool = False, gate: Optional[asyncio.Event] = None):
        self.fail = fail
        self.reverse = reverse
        self.gate = gate
        self.calls: List[tuple] = []

    async def interpret(self, selections: Sequence[SelectedRune], spread: Spread) -> Interpretation:
        self.calls.append((list(selections), spread))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise InterpretationError("service unavailable")
        entries = [
            IndividualRuneInterpretation(
                rune_name=s.rune_name,
                orientation=s.orientation,
                summary=f"{s.rune_name} speaks of change",
            )
            for s in selections
        ]
        if self.reverse:
            entries.reverse()
        return Interpretation(
            individual_runes=entries,
            summary="The runes point toward patience.",
            questions=["Where are you holding on too tightly?"],
        )


class FakePatternGateway:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0

    async def analyze(self, records):
        self.calls += 1
        if self.fail:
            raise InterpretationError("analysis unavailable")
        return PatternAnalysis(
            recurring_themes=["new beginnings"],
            overall_summary=f"{len(records)} readings reviewed.",
        )


def make_record(
    record_id: int,
    created_at: Optional[datetime] = None,
    runes: Sequence[tuple] = (("Fehu", "upright"), ("Isa", "upright"), ("Algiz", "reversed")),
) -> ReadingRecord:
    selections = [SelectedRune(rune_name=n, orientation=Orientation(o)) for n, o in runes]
    return ReadingRecord(
        id=record_id,
        created_at=created_at or datetime(2026, 1, 1, tzinfo=timezone.utc),
        spread=get_catalog().spread("Three Norns"),
        runes=selections,
        interpretation=Interpretation(
            individual_runes=[
                IndividualRuneInterpretation(rune_name=s.rune_name, orientation=s.orientation, summary=f"About {s.rune_name}.")
                for s in selections
            ],
            summary="A reading about beginnings.",
            questions=["What are you ready to start?"],
        ),
    )


@pytest.fixture
def history(tmp_path) -> HistoryStore:
    return HistoryStore(JsonStore(tmp_path), default_retention_days=90)
