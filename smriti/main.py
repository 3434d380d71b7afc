"""FastAPI application entrypoint."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smriti.config import Settings, settings
from smriti.database import DraftStore
from smriti.routers import drafts
from smriti.services.autosave import AutosaveManager

# ── Logging setup ────────────────────────────────────────────────────
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger(__name__)


def create_app(app_settings: Settings | None = None, store: DraftStore | None = None) -> FastAPI:
    cfg = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        draft_store = store or DraftStore(cfg.database_url, echo=(cfg.env == "development"))
        await draft_store.open()
        app.state.store = draft_store
        app.state.autosave = AutosaveManager(
            draft_store, delay=cfg.autosave_delay, snapshot_limit=cfg.snapshot_limit
        )
        logger.info(
            "Autosave ready (delay %d ms, %d snapshots per draft)",
            cfg.autosave_delay_ms,
            cfg.snapshot_limit,
        )

        yield

        # Shutdown — best-effort flush of every open draft before the store goes away
        await app.state.autosave.close_all()
        await draft_store.close()

    app = FastAPI(
        title="Smriti",
        description="Local draft autosave with snapshot history",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],  # Vite dev
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(drafts.router, prefix="/api/drafts", tags=["drafts"])

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "smriti", "store": app.state.store.is_open}

    return app


app = create_app()
