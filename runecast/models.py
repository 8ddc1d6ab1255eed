import threading
import time
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Orientation(str, Enum):
    UPRIGHT = "upright"
    REVERSED = "reversed"


class AcquisitionMode(str, Enum):
    PHYSICAL = "physical"
    VIRTUAL = "virtual"


class SessionPhase(str, Enum):
    UNSET = "unset"
    MODE_CHOSEN = "mode_chosen"
    COLLECTING = "collecting"
    COMPLETING = "completing"
    INTERPRETED = "interpreted"
    FAILED = "failed"


class Rune(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    symbol: str = ""
    keywords: List[str] = Field(default_factory=list)
    meaning: str
    reversed_keywords: List[str] = Field(default_factory=list)
    reversed_meaning: str

    @property
    def is_reversible(self) -> bool:
        return self.meaning != self.reversed_meaning


class Spread(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    rune_count: int = Field(..., ge=0)
    positions: List[str] = Field(default_factory=list)

    def position_label(self, index: int) -> str:
        if index < len(self.positions):
            return self.positions[index]
        return f"Position {index + 1}"


class SelectedRune(BaseModel):
    model_config = ConfigDict(frozen=True)

    rune_name: str
    orientation: Orientation


class IndividualRuneInterpretation(BaseModel):
    rune_name: str
    orientation: Orientation
    summary: str = ""


class Interpretation(BaseModel):
    individual_runes: List[IndividualRuneInterpretation] = Field(default_factory=list)
    summary: str
    questions: List[str] = Field(default_factory=list)
    # True for the stand-in produced after a gateway failure
    degraded: bool = False


class ReadingRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    created_at: datetime
    spread: Spread
    runes: List[SelectedRune]
    interpretation: Interpretation


class FrequentRune(BaseModel):
    rune_name: str
    count: int
    interpretation: str = ""


class PatternAnalysis(BaseModel):
    frequent_runes: List[FrequentRune] = Field(default_factory=list)
    recurring_themes: List[str] = Field(default_factory=list)
    overall_summary: str
    degraded: bool = False


class SessionSnapshot(BaseModel):
    """Read-only view of a ReadingSession for routes and the view router."""

    generation: int
    phase: SessionPhase
    mode: Optional[AcquisitionMode] = None
    spread: Optional[Spread] = None
    selections: List[SelectedRune] = Field(default_factory=list)
    pending_rune: Optional[Rune] = None
    pool: List[Rune] = Field(default_factory=list)
    remaining: int = 0
    result: Optional[Interpretation] = None


_id_lock = threading.Lock()
_last_id = 0


def next_record_id() -> int:
    """Millisecond timestamp, bumped so ids stay strictly increasing."""
    global _last_id
    with _id_lock:
        candidate = int(time.time() * 1000)
        if candidate <= _last_id:
            candidate = _last_id + 1
        _last_id = candidate
        return candidate


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
