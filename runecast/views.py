"""What to show for a navigation tab, given the current session and history.

A pure projection: no I/O and no session mutation.
"""

from enum import Enum

from .models import SessionPhase, SessionSnapshot


class Tab(str, Enum):
    HOME = "home"
    HISTORY = "history"
    ANALYSIS = "analysis"
    SETTINGS = "settings"
    ABOUT = "about"


class View(str, Enum):
    SELECT_MODE = "select_mode"
    SELECT_SPREAD = "select_spread"
    SELECT_RUNES = "select_runes"
    CHOOSE_ORIENTATION = "choose_orientation"
    LOADING = "loading"
    RESULT = "result"
    HISTORY = "history"
    HISTORY_EMPTY = "history_empty"
    ANALYSIS = "analysis"
    ANALYSIS_LOCKED = "analysis_locked"
    SETTINGS = "settings"
    ABOUT = "about"


def home_view(snapshot: SessionSnapshot) -> View:
    phase = snapshot.phase
    if phase is SessionPhase.COMPLETING:
        return View.LOADING
    if phase in (SessionPhase.INTERPRETED, SessionPhase.FAILED):
        return View.RESULT
    if phase is SessionPhase.COLLECTING:
        if snapshot.pending_rune is not None:
            return View.CHOOSE_ORIENTATION
        return View.SELECT_RUNES
    if phase is SessionPhase.MODE_CHOSEN:
        return View.SELECT_SPREAD
    return View.SELECT_MODE


def resolve_view(tab: Tab, snapshot: SessionSnapshot, history_size: int, min_for_analysis: int) -> View:
    tab = Tab(tab)
    if tab is Tab.HISTORY:
        return View.HISTORY if history_size > 0 else View.HISTORY_EMPTY
    if tab is Tab.ANALYSIS:
        return View.ANALYSIS if history_size >= min_for_analysis else View.ANALYSIS_LOCKED
    if tab is Tab.SETTINGS:
        return View.SETTINGS
    if tab is Tab.ABOUT:
        return View.ABOUT
    return home_view(snapshot)
