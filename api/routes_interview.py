from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, ValidationError

from api.deps import (
    get_lifecycle,
    get_session_store,
    get_token_resolver,
    get_voice_service,
    http_error,
)
from models.actions import (
    SESSION_ACTIONS,
    CompleteAction,
    SessionAction,
    StartAction,
    session_action_adapter,
)
from models.session import InterviewSession, SessionContext
from services.errors import InterviewError, InvalidAction, InvalidTransition
from services.lifecycle import SessionLifecycle
from services.session_store import SessionStore
from services.token_resolver import TokenResolver
from services.voice_service import VoiceAgentService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/interview", tags=["interview"])


class VoiceConfigRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    candidate_first_name: str | None = None
    candidate_last_name: str | None = None
    candidate_email: str | None = None


def parse_session_action(payload: Any) -> SessionAction:
    """Turn a raw request body into one of the action variants.

    Unknown action names are ``InvalidAction``; a known action with a bad
    body is a 422 naming the missing or malformed fields.
    """
    if not isinstance(payload, dict):
        raise InvalidAction("Request body must be a JSON object")
    action = payload.get("action")
    if action not in SESSION_ACTIONS:
        raise InvalidAction(f"Invalid action '{action}'. Expected one of: {', '.join(SESSION_ACTIONS)}")
    try:
        return session_action_adapter.validate_python(payload)
    except ValidationError as err:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "error": "invalid_payload",
                "message": f"Invalid body for action '{action}'",
                "fields": [".".join(str(loc) for loc in e["loc"]) for e in err.errors()],
            },
        ) from err


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _session_view(context: SessionContext) -> dict[str, Any]:
    session = context.session
    template = context.template
    return {
        "id": session.id,
        "status": session.status,
        "template": {
            "name": template.name,
            "job_title": template.job_title,
            "company_name": template.company_name,
            "job_description": template.job_description,
            "competencies": template.competencies,
            "config": template.config.model_dump(mode="json"),
        },
        "candidate": (
            {
                "first_name": context.candidate.first_name,
                "last_name": context.candidate.last_name,
                "email": context.candidate.email,
            }
            if context.candidate
            else None
        ),
        "expires_at": _iso(session.expires_at),
        "started_at": _iso(session.started_at),
        "completed_at": _iso(session.completed_at),
        "full_transcript": session.full_transcript,
    }


def _action_result(action: SessionAction, session: InterviewSession) -> dict[str, Any]:
    if isinstance(action, StartAction):
        return {"status": session.status, "started_at": _iso(session.started_at)}
    if isinstance(action, CompleteAction):
        return {"status": session.status, "completed_at": _iso(session.completed_at)}
    return {
        "conversation_history": [
            turn.model_dump(mode="json", exclude_none=True) for turn in session.conversation_history
        ],
        "metrics": session.metrics,
    }


@router.get("/{token}")
def get_interview(
    token: str,
    resolver: TokenResolver = Depends(get_token_resolver),
) -> dict[str, Any]:
    try:
        context = resolver.resolve(token)
    except InterviewError as err:
        raise http_error(err) from err
    return _session_view(context)


@router.post("/{token}")
def update_interview(
    token: str,
    payload: Any = Body(...),
    resolver: TokenResolver = Depends(get_token_resolver),
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
) -> dict[str, Any]:
    try:
        action = parse_session_action(payload)
        context = resolver.resolve(token)
        session = lifecycle.apply(context.session, action)
    except InterviewError as err:
        if not isinstance(err, InvalidAction):
            logger.info("Interview action rejected: %s", err.error_code)
        raise http_error(err) from err
    return _action_result(action, session)


@router.post("/{token}/voice")
def get_voice_config(
    token: str,
    payload: VoiceConfigRequest,
    resolver: TokenResolver = Depends(get_token_resolver),
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
    store: SessionStore = Depends(get_session_store),
    voice: VoiceAgentService = Depends(get_voice_service),
) -> dict[str, Any]:
    try:
        context = resolver.resolve(token)
        session = lifecycle.ensure_mutable(context.session)
        voice.require_configured()

        first_name = (payload.candidate_first_name or "").strip()
        last_name = (payload.candidate_last_name or "").strip()
        email = (payload.candidate_email or "").strip()
        candidate = context.candidate
        if first_name and email:
            existing = store.find_candidate_by_email(context.template.organization_id, email)
            if existing is not None:
                candidate = store.update_candidate_name(existing.id, first_name, last_name)
                session = lifecycle.link_candidate(session, candidate.id)

        if first_name:
            candidate_name = f"{first_name} {last_name}".strip()
        else:
            candidate_name = candidate.full_name if candidate else ""

        voice_payload = voice.build_voice_config(context.template, candidate_name)
        if session.status == "invited":
            try:
                lifecycle.start(session)
            except InvalidTransition as err:
                # Started from another tab in the meantime.
                if err.current_status != "in_progress":
                    raise
    except InterviewError as err:
        raise http_error(err) from err

    return voice_payload.model_dump(mode="json")
