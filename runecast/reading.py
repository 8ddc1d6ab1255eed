from collections import Counter
from typing import Dict, List, Sequence, Tuple

from .models import (
    FrequentRune,
    IndividualRuneInterpretation,
    Interpretation,
    PatternAnalysis,
    ReadingRecord,
    SelectedRune,
)

FALLBACK_SUMMARY = (
    "An error occurred while interpreting the runes. Please check your API key and "
    "network connection, then try again."
)
FALLBACK_RUNE_SUMMARY = "Could not retrieve interpretation."
FALLBACK_QUESTION = "How can you approach this situation with a fresh perspective?"

FALLBACK_ANALYSIS_THEME = "Could not analyze patterns due to an error."
FALLBACK_ANALYSIS_SUMMARY = (
    "There was an issue connecting to the analysis service. Please check your API key "
    "and try again."
)


def degraded_interpretation(selections: Sequence[SelectedRune]) -> Interpretation:
    """Stand-in shown when the interpretation service fails.

    Keeps one entry per drawn rune so the result still renders rune by rune.
    """
    return Interpretation(
        summary=FALLBACK_SUMMARY,
        questions=[FALLBACK_QUESTION],
        individual_runes=[
            IndividualRuneInterpretation(
                rune_name=s.rune_name,
                orientation=s.orientation,
                summary=FALLBACK_RUNE_SUMMARY,
            )
            for s in selections
        ],
        degraded=True,
    )


def reconcile(
    selections: Sequence[SelectedRune],
    interpretation: Interpretation,
) -> List[Tuple[SelectedRune, str]]:
    """Pair each drawn rune with its summary, matched by name.

    The service may answer in any order, so position in `individual_runes`
    means nothing. A rune with no matching entry gets an empty summary.
    """
    by_name: Dict[str, str] = {}
    for entry in interpretation.individual_runes:
        by_name.setdefault(entry.rune_name.strip().casefold(), entry.summary)
    return [(s, by_name.get(s.rune_name.casefold(), "")) for s in selections]


def rune_counts(records: Sequence[ReadingRecord]) -> Counter:
    counts: Counter = Counter()
    for record in records:
        counts.update(r.rune_name for r in record.runes)
    return counts


def degraded_analysis(records: Sequence[ReadingRecord], top: int = 5) -> PatternAnalysis:
    """Local stand-in for a failed pattern analysis: raw counts, no prose."""
    frequent = [
        FrequentRune(rune_name=name, count=count)
        for name, count in rune_counts(records).most_common(top)
    ]
    return PatternAnalysis(
        frequent_runes=frequent,
        recurring_themes=[FALLBACK_ANALYSIS_THEME],
        overall_summary=FALLBACK_ANALYSIS_SUMMARY,
        degraded=True,
    )
