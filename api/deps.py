from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException, Request

from config import Settings
from services.errors import InterviewError, Unauthorized
from services.lifecycle import SessionLifecycle
from services.session_store import SessionStore
from services.token_resolver import TokenResolver
from services.voice_service import VoiceAgentService


@dataclass(frozen=True)
class StaffIdentity:
    user_id: str
    org_id: str


def http_error(err: InterviewError) -> HTTPException:
    return HTTPException(status_code=err.status_code, detail=err.to_detail())


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_lifecycle(request: Request) -> SessionLifecycle:
    return request.app.state.lifecycle


def get_token_resolver(request: Request) -> TokenResolver:
    return request.app.state.token_resolver


def get_voice_service(request: Request) -> VoiceAgentService:
    return request.app.state.voice_service


def get_staff_identity(
    x_user_id: str | None = Header(default=None),
    x_org_id: str | None = Header(default=None),
) -> StaffIdentity:
    """Identity forwarded by the auth gateway. Both ids are mandatory."""
    user_id = (x_user_id or "").strip()
    org_id = (x_org_id or "").strip()
    if not user_id or not org_id:
        raise http_error(Unauthorized("Unauthorized"))
    return StaffIdentity(user_id=user_id, org_id=org_id)
