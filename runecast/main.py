import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .ai import InterpretationGateway, OpenAIInterpretationGateway, OpenAIPatternGateway, PatternGateway
from .catalog import get_catalog
from .routes.catalog_routes import router as catalog_router
from .routes.history_routes import router as history_router
from .routes.session_routes import router as session_router
from .session import ReadingSession
from .storage import HistoryStore, JsonStore
from .utils.rng import seeded_random
from .views import Tab, resolve_view

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
log = logging.getLogger("runecast")


def create_app(
    gateway: Optional[InterpretationGateway] = None,
    pattern_gateway: Optional[PatternGateway] = None,
    history: Optional[HistoryStore] = None,
) -> FastAPI:
    app = FastAPI(title="Runecast", version="0.1.0")

    app.include_router(catalog_router)
    app.include_router(session_router)
    app.include_router(history_router)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    catalog = get_catalog()
    rng = seeded_random(config.SEED) if config.SEED else None
    app.state.session = ReadingSession(gateway or OpenAIInterpretationGateway(), catalog=catalog, rng=rng)
    app.state.pattern_gateway = pattern_gateway or OpenAIPatternGateway()
    app.state.history = history or HistoryStore(
        JsonStore(config.DATA_DIR), default_retention_days=config.RETENTION_DAYS
    )

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/debug/env")
    def debug_env():
        """Debug endpoint to check environment variables"""
        return {
            "openai_api_key_set": bool(config.OPENAI_API_KEY),
            "model": config.RUNECAST_MODEL,
            "analysis_model": config.RUNECAST_ANALYSIS_MODEL,
            "data_dir": str(config.DATA_DIR),
        }

    @app.get("/view")
    async def view(tab: str = "home") -> Dict[str, Any]:
        try:
            t = Tab(tab)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown tab: {tab}")
        snapshot = app.state.session.snapshot()
        history_size = len(await run_in_threadpool(app.state.history.list))
        return {
            "tab": t.value,
            "view": resolve_view(t, snapshot, history_size, config.MIN_READINGS_FOR_ANALYSIS).value,
            "history_size": history_size,
            "session": snapshot.model_dump(mode="json"),
        }

    log.info("runecast ready: %d runes, %d spreads", len(catalog.runes), len(catalog.spreads))
    return app


app = create_app()
