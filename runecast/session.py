"""Reading-session state machine.

A ReadingSession walks one reading through

    unset -> mode_chosen -> collecting -> completing -> interpreted | failed

with one method per user event. `reset()` returns to unset from anywhere.

Completion is not a user event: whenever the spread is full, no orientation
prompt is open and the phase is still `collecting`, the session flips to
`completing` and only then schedules the interpretation call. The call is
tagged with the session generation; any reset (discard, commit, start over)
bumps the generation, so a late reply for an abandoned reading is dropped.

All state lives on one event loop. The interpretation call is the only
await point; the session can be inspected while it is in flight.
"""

import asyncio
import logging
import random
from typing import List, Optional, Sequence, Set, Tuple, Union

from .ai import InterpretationGateway
from .catalog import Catalog, get_catalog
from .errors import CatalogError, InterpretationError, InvalidTransition
from .models import (
    AcquisitionMode,
    Interpretation,
    Orientation,
    ReadingRecord,
    Rune,
    SelectedRune,
    SessionPhase,
    SessionSnapshot,
    Spread,
    next_record_id,
    utcnow,
)
from .reading import degraded_interpretation
from .storage import HistoryStore
from .utils.rng import resolve_orientation, shuffled, sorted_by_name

log = logging.getLogger("runecast.session")

_AFTER_FULL = (SessionPhase.COMPLETING, SessionPhase.INTERPRETED, SessionPhase.FAILED)


class ReadingSession:
    def __init__(
        self,
        gateway: InterpretationGateway,
        catalog: Optional[Catalog] = None,
        rng: Optional[random.Random] = None,
    ):
        self.gateway = gateway
        self.catalog = catalog or get_catalog()
        self.rng = rng
        self.generation = 0
        self._completion: Optional[asyncio.Task] = None
        self._deferred: Optional[Tuple[int, Tuple[SelectedRune, ...], Spread]] = None
        self._tasks: Set[asyncio.Task] = set()
        self._clear()

    def _clear(self) -> None:
        self.phase = SessionPhase.UNSET
        self.mode: Optional[AcquisitionMode] = None
        self.spread: Optional[Spread] = None
        self.selections: List[SelectedRune] = []
        self.pending_rune: Optional[Rune] = None
        self.pool: List[Rune] = []
        self.result: Optional[Interpretation] = None
        self._saving = False

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    @property
    def remaining(self) -> int:
        if self.spread is None:
            return 0
        return self.spread.rune_count - len(self.selections)

    @property
    def is_full(self) -> bool:
        return self.spread is not None and len(self.selections) >= self.spread.rune_count

    @property
    def completion(self) -> Optional[asyncio.Task]:
        """The in-flight interpretation task for the current generation."""
        return self._completion

    def is_selected(self, rune_name: str) -> bool:
        key = rune_name.casefold()
        return any(s.rune_name.casefold() == key for s in self.selections)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            generation=self.generation,
            phase=self.phase,
            mode=self.mode,
            spread=self.spread,
            selections=list(self.selections),
            pending_rune=self.pending_rune,
            pool=list(self.pool),
            remaining=self.remaining,
            result=self.result,
        )

    def _require(self, event: str, *phases: SessionPhase) -> None:
        if self.phase not in phases:
            raise InvalidTransition(event, self.phase.value)

    # ------------------------------------------------------------------
    # events
    # ------------------------------------------------------------------

    def reset(self) -> None:
        # An in-flight interpretation is not cancelled; its reply is dropped
        # by the generation check in _complete.
        self.generation += 1
        self._completion = None
        self._deferred = None
        self._clear()
        log.debug("session reset (generation %d)", self.generation)

    def choose_mode(self, mode: Union[AcquisitionMode, str]) -> None:
        mode = AcquisitionMode(mode)
        self._require("choose a reading mode", SessionPhase.UNSET)
        self.mode = mode
        self.phase = SessionPhase.MODE_CHOSEN
        log.debug("mode chosen: %s", mode.value)

    def back_to_mode_selection(self) -> None:
        self._require("change reading mode", SessionPhase.MODE_CHOSEN)
        self.mode = None
        self.phase = SessionPhase.UNSET

    def choose_spread(self, spread: Union[Spread, str]) -> None:
        if isinstance(spread, str):
            spread = self.catalog.spread(spread)
        self._require("choose a spread", SessionPhase.MODE_CHOSEN)
        if spread.rune_count > len(self.catalog.runes):
            raise CatalogError(
                f"Spread {spread.name} needs {spread.rune_count} runes, catalog has {len(self.catalog.runes)}"
            )

        self.spread = spread
        self.selections = []
        self.pending_rune = None
        self.result = None
        if self.mode is AcquisitionMode.VIRTUAL:
            self.pool = shuffled(self.catalog.runes, self.rng)
        else:
            self.pool = sorted_by_name(self.catalog.runes)
        self.phase = SessionPhase.COLLECTING
        log.debug("spread chosen: %s (%d runes)", spread.name, spread.rune_count)

        self._maybe_complete()

    def pick_rune(self, rune: Union[Rune, str]) -> bool:
        """Pick a rune from the pool. Returns False when the pick is ignored.

        Double clicks, clicks on a full spread, and clicks while an orientation
        prompt is open are ignored rather than treated as errors.
        """
        name = rune.name if isinstance(rune, Rune) else rune
        if self.phase in _AFTER_FULL:
            log.debug("ignoring pick of %s: spread already full", name)
            return False
        self._require("pick a rune", SessionPhase.COLLECTING)

        picked = self.catalog.rune(name)
        if self.pending_rune is not None:
            log.debug("ignoring pick of %s: %s awaits orientation", picked.name, self.pending_rune.name)
            return False
        if self.is_selected(picked.name) or self.is_full:
            log.debug("ignoring pick of %s", picked.name)
            return False

        if self.mode is AcquisitionMode.VIRTUAL:
            self._append(picked, resolve_orientation(picked, self.rng))
        elif picked.is_reversible:
            self.pending_rune = picked
        else:
            self._append(picked, Orientation.UPRIGHT)

        self._maybe_complete()
        return True

    def confirm_orientation(self, orientation: Union[Orientation, str]) -> None:
        orientation = Orientation(orientation)
        if self.pending_rune is None:
            raise InvalidTransition("confirm an orientation", self.phase.value)
        rune = self.pending_rune
        self.pending_rune = None
        self._append(rune, orientation)
        self._maybe_complete()

    def cancel_orientation(self) -> None:
        if self.pending_rune is None:
            raise InvalidTransition("cancel an orientation", self.phase.value)
        log.debug("orientation for %s cancelled", self.pending_rune.name)
        self.pending_rune = None

    def retry(self) -> None:
        self._require("retry the interpretation", SessionPhase.FAILED)
        self.result = None
        self.phase = SessionPhase.COLLECTING
        self._maybe_complete()

    def begin_commit(self) -> ReadingRecord:
        """Build the record for the interpreted reading and hold the session.

        A second save is refused until `end_commit` releases it, so the
        store write can run off the event loop without a double save.
        """
        self._require("save the reading", SessionPhase.INTERPRETED)
        if self._saving:
            raise InvalidTransition("save the reading", "saving")
        self._saving = True
        return ReadingRecord(
            id=next_record_id(),
            created_at=utcnow(),
            spread=self.spread,
            runes=list(self.selections),
            interpretation=self.result,
        )

    def end_commit(self, generation: int, saved: bool) -> None:
        if generation != self.generation:
            return
        if saved:
            self.reset()
        else:
            self._saving = False

    def commit(self, store: HistoryStore) -> ReadingRecord:
        """Save the interpreted reading and start over.

        If the store fails, the error propagates and the session stays
        interpreted so the save can be retried.
        """
        generation = self.generation
        record = self.begin_commit()
        try:
            store.append(record)
        except Exception:
            self.end_commit(generation, saved=False)
            raise
        self.end_commit(generation, saved=True)
        return record

    def discard(self) -> None:
        self._require(
            "discard the reading",
            SessionPhase.COMPLETING,
            SessionPhase.INTERPRETED,
            SessionPhase.FAILED,
        )
        self.reset()

    # ------------------------------------------------------------------
    # completion
    # ------------------------------------------------------------------

    def _append(self, rune: Rune, orientation: Orientation) -> None:
        self.selections.append(SelectedRune(rune_name=rune.name, orientation=orientation))
        log.debug("selected %s (%s), %d remaining", rune.name, orientation.value, self.remaining)

    def _maybe_complete(self) -> None:
        if self.phase is not SessionPhase.COLLECTING or self.spread is None:
            return
        if self.pending_rune is not None or len(self.selections) != self.spread.rune_count:
            return

        self.phase = SessionPhase.COMPLETING
        args = (self.generation, tuple(self.selections), self.spread)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet: the call runs on the next wait_for_completion().
            self._deferred = args
            return

        task = loop.create_task(self._complete(*args))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._completion = task

    async def _complete(self, generation: int, selections: Sequence[SelectedRune], spread: Spread) -> None:
        try:
            result = await self.gateway.interpret(list(selections), spread)
            if not isinstance(result, Interpretation):
                raise InterpretationError(f"Unexpected interpretation type: {type(result).__name__}")
        except Exception as e:
            if generation != self.generation:
                log.debug("dropping stale interpretation failure for generation %d", generation)
                return
            log.warning("interpretation failed for %s: %s", spread.name, e)
            self.result = degraded_interpretation(selections)
            self.phase = SessionPhase.FAILED
            return

        if generation != self.generation:
            log.debug("dropping stale interpretation for generation %d", generation)
            return
        self.result = result
        self.phase = SessionPhase.FAILED if result.degraded else SessionPhase.INTERPRETED

    async def wait_for_completion(self) -> None:
        """Wait until the in-flight interpretation (if any) has landed."""
        if self._deferred is not None:
            args = self._deferred
            self._deferred = None
            await self._complete(*args)
        task = self._completion
        if task is not None:
            await task
