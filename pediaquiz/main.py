"""
PediaQuiz API: Main Application
FastAPI application for the PediaQuiz question bank.
Manages topics/chapters, MCQs and flashcards, learner attempts, and the
AI content pipeline (upload → OCR → classify → generate → review → publish).
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from pediaquiz import __version__
from pediaquiz.auth.security import hash_password
from pediaquiz.config import Settings, load_settings
from pediaquiz.context import AppContext
from pediaquiz.database.models import User
from pediaquiz.errors import PipelineError
from pediaquiz.routers import auth, content, jobs, student, uploads

logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(levelname)s  %(message)s")
log = logging.getLogger(__name__)


def _seed_admin(db: Session, settings: Settings) -> None:
    """Create the configured admin account if it does not exist yet."""
    if not settings.admin_email or not settings.admin_password:
        return
    if db.query(User).filter(User.email == settings.admin_email).first():
        return
    db.add(User(
        email=settings.admin_email,
        hashed_password=hash_password(settings.admin_password),
        full_name="Admin",
        is_admin=True,
        is_active=True,
    ))
    db.commit()
    log.info(f"✓ Admin account created: {settings.admin_email}")


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.message, "code": exc.code})


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the application. The context (engine, storage, AI client) is
    created in the lifespan unless one is passed in.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup: build context, create tables, seed admin. Shutdown: dispose."""
        ctx = context or AppContext.from_settings(settings or load_settings())
        ctx.create_tables()
        with ctx.session_factory() as db:
            _seed_admin(db, ctx.settings)
        app.state.context = ctx
        yield
        if context is None:
            ctx.close()

    app = FastAPI(
        title="PediaQuiz API",
        description="Question bank, learner attempts and AI-assisted content generation",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PipelineError, pipeline_error_handler)

    # ─── Routers ───────────────────────────────────────────────────────────────
    app.include_router(auth.router)       # /auth/*
    app.include_router(uploads.router)    # /uploads, /events/object-finalized
    app.include_router(jobs.router)       # /jobs/*
    app.include_router(content.router)    # /content/*
    app.include_router(student.router)    # /student/*

    @app.get("/")
    def root():
        return {
            "name": "PediaQuiz API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "auth": "/auth",
                "uploads": "/uploads",
                "jobs": "/jobs",
                "content": "/content",
                "student": "/student",
            },
        }

    @app.get("/health")
    def health_check():
        return {"status": "healthy", "service": "pediaquiz-api"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
