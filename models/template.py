from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


TemplateStatus = Literal["draft", "active", "paused", "completed", "archived"]


class TemplateConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    max_duration_minutes: float = Field(default=9, gt=0)
    # Unrecognized values are kept and resolved to "moderate" when the prompt is built.
    depth_level: str = "moderate"
    max_probes_per_competency: int = 2
    ai_voice: str = "aura-asteria-en"
    language: str = "en-US"


class InterviewTemplate(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    organization_id: str
    created_by: str
    name: str
    job_title: str
    company_name: str
    job_description: str
    competencies: list[str] = Field(default_factory=list)
    must_ask_questions: list[str] = Field(default_factory=list)
    config: TemplateConfig = Field(default_factory=TemplateConfig)
    status: TemplateStatus = "draft"
    created_at: datetime = Field(default_factory=utc_now)
