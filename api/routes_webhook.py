from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from api.deps import get_session_store, get_settings, http_error
from config import Settings
from services.errors import InterviewError
from services.session_store import SessionStore
from services.webhook_security import verify_svix_signature


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def handle_organization_event(payload: dict[str, Any], store: SessionStore) -> dict[str, Any]:
    event_type = str(payload.get("type") or "").strip()
    data = _as_dict(payload.get("data"))
    organization_id = str(data.get("id") or "").strip()
    name = str(data.get("name") or "").strip()

    if event_type in {"organization.created", "organization.updated"}:
        if not organization_id or not name:
            return {"status": "ignored", "reason": "missing_organization_fields", "event": event_type}
        store.upsert_organization(organization_id, name)
        logger.info("Organization %s synced from %s", organization_id, event_type)
        return {"status": "processed", "event": event_type, "organization_id": organization_id}

    if event_type == "organization.deleted":
        # Records are kept; deletion is an administrative operation.
        logger.info("Organization deletion requested: %s", organization_id or "<unknown>")
        return {"status": "ignored", "reason": "deletion_not_applied", "event": event_type}

    return {"status": "ignored", "reason": "unsupported_event", "event": event_type or None}


@router.post("/clerk", status_code=status.HTTP_200_OK)
async def clerk_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: SessionStore = Depends(get_session_store),
) -> dict:
    if not settings.clerk_webhook_secret:
        logger.error("CLERK_WEBHOOK_SECRET is not set")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    message_id = request.headers.get("svix-id")
    timestamp = request.headers.get("svix-timestamp")
    signature_header = request.headers.get("svix-signature")
    if not message_id or not timestamp or not signature_header:
        raise HTTPException(status_code=400, detail="Missing svix headers")

    raw_body = await request.body()
    if not verify_svix_signature(
        raw_body=raw_body,
        message_id=message_id,
        timestamp=timestamp,
        signature_header=signature_header,
        secret=settings.clerk_webhook_secret,
        tolerance_seconds=settings.webhook_tolerance_seconds,
    ):
        logger.warning("Rejected webhook %s: invalid signature", message_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as err:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from err

    try:
        return handle_organization_event(_as_dict(payload), store)
    except InterviewError as err:
        raise http_error(err) from err
