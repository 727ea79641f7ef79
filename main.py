from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from agents.instruction_synthesizer import InstructionSynthesizer
from api.routes_candidates import router as candidates_router
from api.routes_interview import router as interview_router
from api.routes_sessions import router as sessions_router
from api.routes_templates import router as templates_router
from api.routes_voice import router as voice_router
from api.routes_webhook import router as webhook_router
from config import get_settings
from services.lifecycle import SessionLifecycle
from services.session_store import SessionStore
from services.token_resolver import TokenResolver
from services.voice_service import VoiceAgentService


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s %(name)s :: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)

    session_store = SessionStore(settings.database_path)
    lifecycle = SessionLifecycle(session_store, max_retries=settings.store_max_retries)
    token_resolver = TokenResolver(session_store, lifecycle)

    voice_service = VoiceAgentService(
        api_key=settings.deepgram_api_key,
        synthesizer=InstructionSynthesizer(),
        think_model=settings.voice_think_model,
        think_provider=settings.voice_think_provider,
        api_base=settings.deepgram_api_base,
        timeout_seconds=settings.http_timeout_seconds,
        max_retries=settings.http_max_retries,
        backoff_seconds=settings.http_retry_backoff_seconds,
    )

    app.state.settings = settings
    app.state.session_store = session_store
    app.state.lifecycle = lifecycle
    app.state.token_resolver = token_resolver
    app.state.voice_service = voice_service

    logging.getLogger(__name__).info("Interview API ready (store: %s)", settings.database_path)
    yield


app = FastAPI(title="AIR Interview API", version="0.1.0", lifespan=lifespan)

app.include_router(interview_router, prefix="/api")
app.include_router(voice_router, prefix="/api")
app.include_router(templates_router, prefix="/api")
app.include_router(candidates_router, prefix="/api")
app.include_router(sessions_router, prefix="/api")
app.include_router(webhook_router, prefix="/api")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
