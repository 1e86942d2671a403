"""
Application context: every collaborator the pipeline needs, built once at
startup and disposed at shutdown. Routers reach it through app.state.context.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from pediaquiz.config import Settings
from pediaquiz.database.database import Base, make_engine, make_session_factory
from pediaquiz.generation.gpt_client import GptClient
from pediaquiz.ingestion.ocr_backend import PdfOcrBackend, VisionTranscriber
from pediaquiz.ingestion.storage import LocalObjectStorage

log = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    storage: LocalObjectStorage
    ai: GptClient
    ocr_backend: PdfOcrBackend

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        ai: Optional[GptClient] = None,
        ocr_backend: Optional[PdfOcrBackend] = None,
    ) -> "AppContext":
        engine = make_engine(settings.database_url)
        storage = LocalObjectStorage(settings.storage_root)
        if ai is None:
            ai = GptClient(
                api_key=settings.openai_api_key,
                model=settings.gpt_model,
                base_url=settings.ai_base_url,
            )
        if ocr_backend is None:
            vision = None
            if settings.ocr_vision_fallback:
                vision = VisionTranscriber(ai.client, model=settings.vision_model)
            ocr_backend = PdfOcrBackend(storage, vision=vision)
        return cls(
            settings=settings,
            engine=engine,
            session_factory=make_session_factory(engine),
            storage=storage,
            ai=ai,
            ocr_backend=ocr_backend,
        )

    def create_tables(self) -> None:
        # models must be imported so their tables are registered on Base
        from pediaquiz.database import models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    def close(self) -> None:
        self.engine.dispose()
        log.info("Application context closed")


def get_context(request: Request) -> AppContext:
    """FastAPI dependency: the context built by the application lifespan."""
    return request.app.state.context
