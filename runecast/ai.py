from __future__ import annotations

import json
import logging
from typing import List, Optional, Protocol, Sequence

from openai import AsyncOpenAI
from pydantic import BaseModel, Field, ValidationError

from . import config
from .errors import InsufficientHistoryError, InterpretationError
from .models import (
    FrequentRune,
    IndividualRuneInterpretation,
    Interpretation,
    PatternAnalysis,
    ReadingRecord,
    SelectedRune,
    Spread,
)
from .reading import degraded_analysis

log = logging.getLogger("runecast.ai")

PERSONA = (
    "You are Runecast, an expert in Norse mythology and the Elder Futhark runes. "
    "Your voice is wise and accessible, using plain English while weaving in relevant "
    "Norse context (like mentioning gods or concepts associated with the runes) to add "
    "authenticity. Avoid overly academic or archaic language."
)


class InterpretationGateway(Protocol):
    async def interpret(self, selections: Sequence[SelectedRune], spread: Spread) -> Interpretation:
        ...


class PatternGateway(Protocol):
    async def analyze(self, records: Sequence[ReadingRecord]) -> PatternAnalysis:
        ...


# -------------------------------------------------------------------
# PROMPTS
# -------------------------------------------------------------------

def build_interpretation_prompt(selections: Sequence[SelectedRune], spread: Spread) -> str:
    lines = []
    for i, s in enumerate(selections):
        label = spread.position_label(i)
        lines.append(f"{i + 1}. {s.rune_name} ({s.orientation.value}) - {label}")

    return f"""A user has performed a rune reading.
The chosen spread is: "{spread.name}" ({spread.rune_count} runes).
The runes pulled are:
{chr(10).join(lines)}

Based on this information, perform the following tasks:
1. For each rune pulled, provide a brief, contextual summary of its meaning in this specific reading, considering its position and orientation.
2. Provide a holistic, professional-level interpretation of what the runes mean as a whole, synthesizing their individual messages into a single, coherent narrative.
3. Generate 3-5 thoughtful, open-ended reflective questions to help the user connect this reading to their life.

Respond with a JSON object with exactly these keys:
- "individual_runes": array of {{"rune_name": string, "orientation": "upright" | "reversed", "summary": string}}, one per rune pulled
- "summary": string
- "questions": array of strings"""


def build_analysis_prompt(records: Sequence[ReadingRecord]) -> str:
    history = [
        {
            "date": r.created_at.isoformat(),
            "spread": r.spread.name,
            "runes": [f"{s.rune_name} ({s.orientation.value})" for s in r.runes],
        }
        for r in records
    ]
    return f"""You will be given a history of a user's past rune readings. Your task is to analyze this history for patterns and recurring themes, paying attention to the orientation (upright/reversed) of the runes.

Here is the reading history as a JSON object:
{json.dumps(history, indent=2, ensure_ascii=False)}

Analyze the data and provide:
1. Frequent Runes: a list of runes that appear most often (you can combine upright and reversed for counting, but mention the orientation's significance), with a brief interpretation of what their repeated appearance might signify.
2. Recurring Themes: any overarching themes or messages that emerge from the readings as a whole (e.g., transformation, conflict, new beginnings, repeated reversed runes suggesting blockages).
3. Overall Summary: a concluding summary of the patterns you've observed and what insights they might offer the user.

Respond with a JSON object with exactly these keys:
- "frequent_runes": array of {{"rune_name": string, "count": integer, "interpretation": string}}
- "recurring_themes": array of strings
- "overall_summary": string"""


# -------------------------------------------------------------------
# RESPONSE PAYLOADS
# -------------------------------------------------------------------

class _RunePayload(BaseModel):
    rune_name: str
    orientation: str = ""
    summary: str


class _InterpretationPayload(BaseModel):
    individual_runes: List[_RunePayload]
    summary: str = Field(..., min_length=1)
    questions: List[str] = Field(..., min_length=1)


class _AnalysisPayload(BaseModel):
    frequent_runes: List[FrequentRune] = Field(default_factory=list)
    recurring_themes: List[str] = Field(default_factory=list)
    overall_summary: str = Field(..., min_length=1)


def parse_interpretation(raw: Optional[str], selections: Sequence[SelectedRune]) -> Interpretation:
    """Validate a JSON reply against the requested runes.

    Orientation always comes from the request, never from the reply. Entries
    for runes that were not drawn are dropped.
    """
    if not raw or not raw.strip():
        raise InterpretationError("Empty response from interpretation service")
    try:
        payload = _InterpretationPayload.model_validate_json(raw.strip())
    except ValidationError as e:
        raise InterpretationError(f"Malformed interpretation response: {e}") from e

    requested = {s.rune_name.casefold(): s for s in selections}
    individual: List[IndividualRuneInterpretation] = []
    seen = set()
    for entry in payload.individual_runes:
        key = entry.rune_name.strip().casefold()
        selected = requested.get(key)
        if selected is None or key in seen:
            continue
        seen.add(key)
        individual.append(
            IndividualRuneInterpretation(
                rune_name=selected.rune_name,
                orientation=selected.orientation,
                summary=entry.summary,
            )
        )

    missing = [s.rune_name for k, s in requested.items() if k not in seen]
    if missing:
        log.warning("interpretation is missing runes: %s", ", ".join(missing))

    return Interpretation(
        individual_runes=individual,
        summary=payload.summary,
        questions=payload.questions,
    )


def parse_analysis(raw: Optional[str]) -> PatternAnalysis:
    if not raw or not raw.strip():
        raise InterpretationError("Empty response from analysis service")
    try:
        payload = _AnalysisPayload.model_validate_json(raw.strip())
    except ValidationError as e:
        raise InterpretationError(f"Malformed analysis response: {e}") from e
    return PatternAnalysis(
        frequent_runes=payload.frequent_runes,
        recurring_themes=payload.recurring_themes,
        overall_summary=payload.overall_summary,
    )


# -------------------------------------------------------------------
# OPENAI GATEWAYS
# -------------------------------------------------------------------

class _OpenAIJsonClient:
    def __init__(self, model: str, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        self.model = model
        self.api_key = config.OPENAI_API_KEY if api_key is None else api_key
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.api_key or not self.api_key.strip():
                raise InterpretationError("OpenAI API key not configured")
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def _complete_json(self, prompt: str) -> Optional[str]:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": PERSONA},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0.7,
            )
        except Exception as e:
            raise InterpretationError(f"OpenAI request failed: {e}") from e

        if not response.choices:
            raise InterpretationError("OpenAI returned no choices")
        return response.choices[0].message.content


class OpenAIInterpretationGateway(_OpenAIJsonClient):
    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        super().__init__(model or config.RUNECAST_MODEL, api_key, client)

    async def interpret(self, selections: Sequence[SelectedRune], spread: Spread) -> Interpretation:
        raw = await self._complete_json(build_interpretation_prompt(selections, spread))
        return parse_interpretation(raw, selections)


class OpenAIPatternGateway(_OpenAIJsonClient):
    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        super().__init__(model or config.RUNECAST_ANALYSIS_MODEL, api_key, client)

    async def analyze(self, records: Sequence[ReadingRecord]) -> PatternAnalysis:
        raw = await self._complete_json(build_analysis_prompt(records))
        return parse_analysis(raw)


# -------------------------------------------------------------------
# PATTERN ANALYSIS
# -------------------------------------------------------------------

async def analyze_patterns(
    records: Sequence[ReadingRecord],
    gateway: PatternGateway,
    minimum: Optional[int] = None,
) -> PatternAnalysis:
    """Run pattern analysis over saved readings.

    Refuses (without calling the service) when history is shorter than
    `minimum`. A service failure degrades to local rune counts.
    """
    need = config.MIN_READINGS_FOR_ANALYSIS if minimum is None else minimum
    if len(records) < need:
        raise InsufficientHistoryError(len(records), need)

    try:
        return await gateway.analyze(records)
    except Exception as e:
        log.warning("pattern analysis failed, using local counts: %s", e)
        return degraded_analysis(records)
