"""Elder Futhark rune catalog loader + helpers.

- Loads rune and spread definitions from runecast/data/elder_futhark.json
- Provides: get_catalog(), get_runes(), get_rune(name), get_spreads(), get_spread(name)

The catalog is read once and cached; nothing mutates it at runtime.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .errors import CatalogError, UnknownRuneError, UnknownSpreadError
from .models import Rune, Spread


DATA_PATH = Path(__file__).resolve().parent / "data" / "elder_futhark.json"


class Catalog:
    def __init__(self, runes: List[Rune], spreads: List[Spread], name: str = ""):
        self.name = name
        self.runes = tuple(runes)
        self.spreads = tuple(spreads)
        self._runes_by_key = {r.name.casefold(): r for r in self.runes}
        self._spreads_by_key = {s.name.casefold(): s for s in self.spreads}

    def rune(self, name: str) -> Rune:
        r = self._runes_by_key.get((name or "").strip().casefold())
        if r is None:
            raise UnknownRuneError(f"Unknown rune: {name}")
        return r

    def spread(self, name: str) -> Spread:
        s = self._spreads_by_key.get((name or "").strip().casefold())
        if s is None:
            raise UnknownSpreadError(f"Unknown spread: {name}")
        return s

    def validate(self) -> None:
        names = [r.name.casefold() for r in self.runes]
        if len(names) != len(set(names)):
            raise CatalogError("Duplicate rune names detected.")
        spread_names = [s.name.casefold() for s in self.spreads]
        if len(spread_names) != len(set(spread_names)):
            raise CatalogError("Duplicate spread names detected.")
        for s in self.spreads:
            if s.rune_count > len(self.runes):
                raise CatalogError(f"Spread {s.name} needs {s.rune_count} runes, catalog has {len(self.runes)}")
            if s.positions and len(s.positions) != s.rune_count:
                raise CatalogError(f"Spread {s.name} has {len(s.positions)} position labels for {s.rune_count} runes")


def _load_json(path: Path = DATA_PATH) -> Dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise CatalogError(f"Rune catalog not found at: {path}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CatalogError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data.get("runes"), list) or not data["runes"]:
        raise CatalogError("Rune catalog must contain a non-empty 'runes' list.")
    if not isinstance(data.get("spreads"), list):
        raise CatalogError("Rune catalog must contain a 'spreads' list.")
    return data


def load_catalog(path: Path = DATA_PATH) -> Catalog:
    data = _load_json(path)
    try:
        runes = [Rune.model_validate(r) for r in data["runes"]]
        spreads = [Spread.model_validate(s) for s in data["spreads"]]
    except ValidationError as e:
        raise CatalogError(f"Invalid catalog entry in {path}: {e}") from e
    catalog = Catalog(runes, spreads, name=data.get("name", ""))
    catalog.validate()
    return catalog


_CATALOG_CACHE: Optional[Catalog] = None


def get_catalog() -> Catalog:
    global _CATALOG_CACHE
    if _CATALOG_CACHE is None:
        _CATALOG_CACHE = load_catalog()
    return _CATALOG_CACHE


def get_runes() -> List[Rune]:
    return list(get_catalog().runes)


def get_rune(name: str) -> Rune:
    return get_catalog().rune(name)


def get_spreads() -> List[Spread]:
    return list(get_catalog().spreads)


def get_spread(name: str) -> Spread:
    return get_catalog().spread(name)
