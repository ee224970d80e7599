# clayminds/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clayminds.config.settings import Settings, settings as default_settings
from clayminds.db.database import build_engine, build_session_factory, init_local_db
from clayminds.routers import cloud, diary, diet, evidences, summary
from clayminds.services.app_state import AppState
from clayminds.services.config_store import ConfigStore
from clayminds.services.database_service import DatabaseService
from clayminds.services.diary_backup import DiaryBackupRecovery
from clayminds.services.local_storage import LocalStorage
from clayminds.services.remote_store import RemoteStoreClient
from clayminds.services.tombstones import EvidenceTombstones
from clayminds_ai.core.diet_parser import DietParser
from clayminds_ai.core.insight_service import InsightService
from clayminds_ai.utils.openai_client import OpenAIClient

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger(__name__)


def build_app_state(
    cfg: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    ai_client: Optional[OpenAIClient] = None,
) -> AppState:
    """Wires every component exactly once; the result is shared through app.state."""
    engine = build_engine(cfg.local_db_url)
    init_local_db(engine)
    storage = LocalStorage(build_session_factory(engine))

    config_store = ConfigStore(storage, master_url=cfg.supabase_url, master_key=cfg.supabase_key)
    remote = RemoteStoreClient(config_store, timeout=cfg.http_timeout, transport=transport)
    backup = DiaryBackupRecovery(remote, strategy=cfg.diary_backup_strategy, bucket=cfg.diary_backup_bucket)
    db = DatabaseService(config_store, remote, backup)

    if ai_client is None and cfg.openai_api_key:
        ai_client = OpenAIClient(api_key=cfg.openai_api_key, model=cfg.openai_model)
    if ai_client is None:
        logger.info("OPENAI_API_KEY not set: diary insights and AI diet parsing are disabled")

    return AppState(
        db=db,
        tombstones=EvidenceTombstones(storage),
        insight_generator=InsightService(ai_client) if ai_client else None,
        diet_parser=DietParser(ai_client),
    )


def create_app(
    cfg: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    ai_client: Optional[OpenAIClient] = None,
) -> FastAPI:
    cfg = cfg or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        state = build_app_state(cfg, transport=transport, ai_client=ai_client)
        app.state.app_state = state
        await state.init_app()
        logger.info(f"Cloud sync {'enabled' if state.is_cloud_enabled else 'disabled'}")
        yield
        await state.wait_for_enrichments()

    app = FastAPI(title="ClayMinds", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(diary.router)
    app.include_router(diet.router)
    app.include_router(evidences.router)
    app.include_router(cloud.router)
    app.include_router(summary.router)
    return app


app = create_app()
