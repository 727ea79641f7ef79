from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from api.deps import StaffIdentity, get_session_store, get_settings, get_staff_identity, http_error
from config import Settings, TemplateDefaults
from models.template import InterviewTemplate, TemplateConfig, TemplateStatus
from services.errors import InterviewError
from services.session_store import SessionStore


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/templates", tags=["templates"])


class TemplateCreateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    job_title: str = Field(min_length=1)
    job_description: str = Field(min_length=1)
    company_name: str = Field(min_length=1)
    competencies: list[str] = Field(default_factory=list)
    must_ask_questions: list[str] = Field(default_factory=list)
    config: dict[str, Any] = Field(default_factory=dict)
    status: TemplateStatus = "draft"


class TemplateUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, min_length=1)
    job_title: str | None = Field(default=None, min_length=1)
    job_description: str | None = Field(default=None, min_length=1)
    company_name: str | None = Field(default=None, min_length=1)
    competencies: list[str] | None = None
    must_ask_questions: list[str] | None = None
    config: dict[str, Any] | None = None
    status: TemplateStatus | None = None


def merge_template_config(defaults: TemplateDefaults, overrides: dict[str, Any]) -> TemplateConfig:
    """Explicit request values win over the configured defaults."""
    merged = {
        "max_duration_minutes": defaults.max_duration_minutes,
        "depth_level": defaults.depth_level,
        "max_probes_per_competency": defaults.max_probes_per_competency,
        "ai_voice": defaults.ai_voice,
        "language": defaults.language,
    }
    merged.update({key: value for key, value in overrides.items() if value is not None})
    return TemplateConfig.model_validate(merged)


def _template_view(template: InterviewTemplate) -> dict[str, Any]:
    return template.model_dump(mode="json")


@router.get("")
def list_templates(
    identity: StaffIdentity = Depends(get_staff_identity),
    store: SessionStore = Depends(get_session_store),
) -> list[dict[str, Any]]:
    try:
        templates = store.list_templates_by_org(identity.org_id)
    except InterviewError as err:
        raise http_error(err) from err
    return [_template_view(t) for t in templates]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_template(
    payload: TemplateCreateRequest,
    identity: StaffIdentity = Depends(get_staff_identity),
    store: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    try:
        config = merge_template_config(settings.template_defaults, payload.config)
    except ValidationError as err:
        raise HTTPException(status_code=422, detail=f"Invalid template config: {err.errors()}") from err
    try:
        template = store.create_template(
            organization_id=identity.org_id,
            created_by=identity.user_id,
            name=payload.name.strip(),
            job_title=payload.job_title.strip(),
            company_name=payload.company_name.strip(),
            job_description=payload.job_description.strip(),
            competencies=[c.strip() for c in payload.competencies if c.strip()],
            must_ask_questions=[q.strip() for q in payload.must_ask_questions if q.strip()],
            config=config,
            status=payload.status,
        )
    except InterviewError as err:
        raise http_error(err) from err
    return _template_view(template)


@router.get("/{template_id}")
def get_template(
    template_id: str,
    identity: StaffIdentity = Depends(get_staff_identity),
    store: SessionStore = Depends(get_session_store),
) -> dict[str, Any]:
    try:
        template = store.get_template(template_id, organization_id=identity.org_id)
    except InterviewError as err:
        raise http_error(err) from err
    return _template_view(template)


@router.patch("/{template_id}")
def update_template(
    template_id: str,
    payload: TemplateUpdateRequest,
    identity: StaffIdentity = Depends(get_staff_identity),
    store: SessionStore = Depends(get_session_store),
) -> dict[str, Any]:
    """Edit a template or move it between statuses (e.g. ``draft`` -> ``active``).

    ``config`` is merged into the stored config; omitted fields are left alone.
    """
    try:
        existing = store.get_template(template_id, organization_id=identity.org_id)

        patch: dict[str, Any] = {}
        for field in ("name", "job_title", "job_description", "company_name"):
            value = getattr(payload, field)
            if value is not None:
                patch[field] = value.strip()
        if payload.competencies is not None:
            patch["competencies"] = [c.strip() for c in payload.competencies if c.strip()]
        if payload.must_ask_questions is not None:
            patch["must_ask_questions"] = [q.strip() for q in payload.must_ask_questions if q.strip()]
        if payload.status is not None:
            patch["status"] = payload.status
        if payload.config:
            try:
                patch["config"] = TemplateConfig.model_validate(
                    {
                        **existing.config.model_dump(),
                        **{key: value for key, value in payload.config.items() if value is not None},
                    }
                )
            except ValidationError as err:
                raise HTTPException(
                    status_code=422, detail=f"Invalid template config: {err.errors()}"
                ) from err

        template = store.update_template(template_id, identity.org_id, patch)
    except InterviewError as err:
        raise http_error(err) from err
    if payload.status is not None and payload.status != existing.status:
        logger.info("Template %s: %s -> %s", template_id, existing.status, payload.status)
    return _template_view(template)
