from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
from logging.handlers import RotatingFileHandler

from meeting_summarizer.config import Settings, get_settings
from meeting_summarizer.errors import AppError, app_error_handler, unhandled_error_handler
from meeting_summarizer.models.base import init_db
from meeting_summarizer.services.pipeline import MeetingPipeline
from meeting_summarizer.api.health import router as health_router
from meeting_summarizer.api.meetings import router as meetings_router
from meeting_summarizer.api.transcribe import router as transcribe_router


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
RULE = "=" * 70

logger = logging.getLogger("meeting_summarizer")


def configure_logging(settings: Settings) -> None:
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    formatter = logging.Formatter(fmt=LOG_FORMAT)
    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler) for h in root.handlers):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)
    if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
        try:
            log_file = settings.logs_dir / "backend.log"
            handler = RotatingFileHandler(str(log_file), maxBytes=5_000_000, backupCount=2)
        except OSError as exc:
            logger.warning("File logging disabled: %s", exc)
        else:
            handler.setFormatter(formatter)
            root.addHandler(handler)


def _log_banner(settings: Settings) -> None:
    logger.info(RULE)
    logger.info("%s backend - running", settings.app_name)
    logger.info(RULE)
    logger.info("Server: http://%s:%s", settings.host, settings.port)
    logger.info("Endpoint: POST /api/transcribe")
    logger.info("Health: GET /api/health")
    logger.info("Models: Whisper %s, LLM %s", settings.whisper_model_id, settings.llm_model)
    logger.info("Requirements: chat backend at %s, %s on PATH", settings.llm_api_url, settings.ffmpeg_binary)
    logger.info("Meeting storage: %s", "enabled" if settings.persist_meetings else "disabled")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Meeting Summarizer Backend", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def _startup() -> None:
        settings.ensure_dirs()
        configure_logging(settings)
        if settings.persist_meetings:
            init_db()
        # Prompt overrides are read once, here
        app.state.pipeline = MeetingPipeline.from_settings(settings)
        _log_banner(settings)

    app.include_router(transcribe_router, prefix="/api")
    app.include_router(meetings_router, prefix="/api")
    app.include_router(health_router, prefix="/api")

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    return app


app = create_app()


def run() -> None:
    import argparse
    import uvicorn

    settings = get_settings()
    parser = argparse.ArgumentParser(description="Meeting Summarizer Backend Server")
    parser.add_argument("--host", default=settings.host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (dev only)")

    args = parser.parse_args()

    uvicorn.run(
        "meeting_summarizer.main:app" if args.reload else app,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    run()
