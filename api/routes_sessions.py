from __future__ import annotations

import io
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any

import qrcode
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field

from api.deps import StaffIdentity, get_session_store, get_settings, get_staff_identity, http_error
from config import Settings
from models.session import InterviewSession, SessionStatus
from services.errors import InterviewError
from services.session_store import SessionStore


router = APIRouter(prefix="/sessions", tags=["sessions"])


class SessionCreateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    template_id: str = Field(min_length=1)
    candidate_id: str | None = None
    candidate_email: str | None = None
    candidate_first_name: str | None = None
    candidate_last_name: str | None = None
    candidate_phone: str | None = None
    expires_in_days: int | None = Field(default=None, ge=1, le=365)


def interview_link(settings: Settings, token: str) -> str:
    return f"{settings.app_base_url.rstrip('/')}/interview/{token}"


def _session_view(session: InterviewSession, settings: Settings) -> dict[str, Any]:
    payload = session.model_dump(mode="json")
    payload["interview_link"] = interview_link(settings, session.token)
    return payload


def _resolve_candidate_id(
    payload: SessionCreateRequest,
    org_id: str,
    store: SessionStore,
) -> str | None:
    if payload.candidate_id:
        candidate = store.get_candidate(payload.candidate_id)
        if candidate.organization_id != org_id:
            raise HTTPException(status_code=404, detail="Candidate not found")
        return candidate.id

    email = (payload.candidate_email or "").strip()
    if not email:
        return None

    existing = store.find_candidate_by_email(org_id, email)
    if existing is not None:
        return existing.id

    first_name = (payload.candidate_first_name or "").strip()
    last_name = (payload.candidate_last_name or "").strip()
    if not first_name or not last_name:
        raise HTTPException(
            status_code=400,
            detail="candidate_first_name and candidate_last_name required for new candidates",
        )
    try:
        candidate = store.create_candidate(
            organization_id=org_id,
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=payload.candidate_phone,
        )
    except sqlite3.IntegrityError:
        # Created concurrently by another request.
        existing = store.find_candidate_by_email(org_id, email)
        if existing is None:
            raise
        return existing.id
    return candidate.id


@router.get("")
def list_sessions(
    template_id: str | None = None,
    status_filter: SessionStatus | None = Query(default=None, alias="status"),
    identity: StaffIdentity = Depends(get_staff_identity),
    store: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
) -> list[dict[str, Any]]:
    try:
        sessions = store.list_sessions(
            identity.org_id, template_id=template_id, status=status_filter
        )
    except InterviewError as err:
        raise http_error(err) from err
    return [_session_view(s, settings) for s in sessions]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_session(
    payload: SessionCreateRequest,
    identity: StaffIdentity = Depends(get_staff_identity),
    store: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    try:
        template = store.get_template(payload.template_id, organization_id=identity.org_id)
        candidate_id = _resolve_candidate_id(payload, identity.org_id, store)
        expires_in_days = payload.expires_in_days or settings.session_expiry_days
        session = store.create_session(
            template_id=template.id,
            candidate_id=candidate_id,
            expires_at=datetime.now(timezone.utc) + timedelta(days=expires_in_days),
        )
    except InterviewError as err:
        raise http_error(err) from err
    return _session_view(session, settings)


@router.get("/{session_id}")
def get_session(
    session_id: str,
    identity: StaffIdentity = Depends(get_staff_identity),
    store: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    try:
        session = store.get_session_by_id(session_id, identity.org_id)
    except InterviewError as err:
        raise http_error(err) from err
    return _session_view(session, settings)


@router.get("/{session_id}/qrcode", status_code=status.HTTP_200_OK)
def get_qrcode(
    session_id: str,
    identity: StaffIdentity = Depends(get_staff_identity),
    store: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
) -> Response:
    try:
        session = store.get_session_by_id(session_id, identity.org_id)
    except InterviewError as err:
        raise http_error(err) from err

    qr = qrcode.QRCode(border=2, box_size=8)
    qr.add_data(interview_link(settings, session.token))
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return Response(content=buf.getvalue(), media_type="image/png")
