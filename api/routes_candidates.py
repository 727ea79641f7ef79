from __future__ import annotations

import sqlite3
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from api.deps import StaffIdentity, get_session_store, get_staff_identity, http_error
from models.candidate import Candidate
from services.errors import InterviewError
from services.session_store import SessionStore


router = APIRouter(prefix="/candidates", tags=["candidates"])


class CandidateCreateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    phone: str | None = None


class CandidateUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = Field(default=None, min_length=1)
    email: str | None = Field(default=None, min_length=3)
    phone: str | None = None


def _candidate_view(candidate: Candidate) -> dict[str, Any]:
    payload = candidate.model_dump(mode="json")
    payload["full_name"] = candidate.full_name
    return payload


@router.get("")
def list_candidates(
    search: str | None = None,
    identity: StaffIdentity = Depends(get_staff_identity),
    store: SessionStore = Depends(get_session_store),
) -> list[dict[str, Any]]:
    try:
        candidates = store.list_candidates(identity.org_id, search=(search or "").strip() or None)
    except InterviewError as err:
        raise http_error(err) from err
    return [_candidate_view(c) for c in candidates]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_candidate(
    payload: CandidateCreateRequest,
    identity: StaffIdentity = Depends(get_staff_identity),
    store: SessionStore = Depends(get_session_store),
) -> dict[str, Any]:
    try:
        candidate = store.create_candidate(
            organization_id=identity.org_id,
            first_name=payload.first_name.strip(),
            last_name=payload.last_name.strip(),
            email=payload.email.strip(),
            phone=payload.phone,
        )
    except sqlite3.IntegrityError as err:
        raise HTTPException(status_code=409, detail="Candidate with this email already exists") from err
    except InterviewError as err:
        raise http_error(err) from err
    return _candidate_view(candidate)


@router.get("/{candidate_id}")
def get_candidate(
    candidate_id: str,
    identity: StaffIdentity = Depends(get_staff_identity),
    store: SessionStore = Depends(get_session_store),
) -> dict[str, Any]:
    """Candidate record plus every session they were invited to, newest first."""
    try:
        candidate = store.get_candidate(candidate_id, organization_id=identity.org_id)
        sessions = store.list_sessions(identity.org_id, candidate_id=candidate.id)
    except InterviewError as err:
        raise http_error(err) from err
    payload = _candidate_view(candidate)
    payload["sessions"] = [
        {
            "id": s.id,
            "template_id": s.template_id,
            "status": s.status,
            "invited_at": s.invited_at.isoformat(),
            "completed_at": s.completed_at.isoformat() if s.completed_at else None,
        }
        for s in sessions
    ]
    return payload


@router.patch("/{candidate_id}")
def update_candidate(
    candidate_id: str,
    payload: CandidateUpdateRequest,
    identity: StaffIdentity = Depends(get_staff_identity),
    store: SessionStore = Depends(get_session_store),
) -> dict[str, Any]:
    patch: dict[str, Any] = {}
    for field in ("first_name", "last_name", "email"):
        value = getattr(payload, field)
        if value is not None:
            patch[field] = value.strip()
    if "phone" in payload.model_fields_set:
        patch["phone"] = payload.phone

    try:
        candidate = store.update_candidate(candidate_id, patch, organization_id=identity.org_id)
    except sqlite3.IntegrityError as err:
        raise HTTPException(
            status_code=409, detail="Another candidate with this email already exists"
        ) from err
    except InterviewError as err:
        raise http_error(err) from err
    return _candidate_view(candidate)
