"""FastAPI routes for the rune catalog.

Endpoints:
- GET /catalog/meta
- GET /catalog/runes
- GET /catalog/runes/{name}
- GET /catalog/spreads
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from ..catalog import get_catalog
from ..errors import UnknownRuneError

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/meta")
def meta() -> Dict[str, Any]:
    c = get_catalog()
    return {
        "name": c.name,
        "rune_count": len(c.runes),
        "reversible_count": sum(1 for r in c.runes if r.is_reversible),
        "spread_count": len(c.spreads),
    }


@router.get("/runes")
def runes() -> Dict[str, Any]:
    return {
        "runes": [
            {**r.model_dump(), "is_reversible": r.is_reversible}
            for r in get_catalog().runes
        ]
    }


@router.get("/runes/{name}")
def rune(name: str) -> Dict[str, Any]:
    try:
        r = get_catalog().rune(name)
    except UnknownRuneError:
        raise HTTPException(status_code=404, detail=f"Unknown rune: {name}")
    return {"rune": {**r.model_dump(), "is_reversible": r.is_reversible}}


@router.get("/spreads")
def spreads() -> Dict[str, Any]:
    return {"spreads": [s.model_dump() for s in get_catalog().spreads]}
