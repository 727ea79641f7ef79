from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PacingCheckpoint(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    trigger_minute: float
    label: str
    directive: str


class InstructionSet(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    prompt: str
    pacing_schedule: list[PacingCheckpoint] = Field(default_factory=list)


class VoiceAgentConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    voice: str
    think_model: str
    think_provider: str
    max_duration: int | float
    language: str
    greeting: str | None = None


class InterviewBrief(BaseModel):
    model_config = ConfigDict(extra="ignore")

    job_title: str
    company_name: str
    competencies: list[str] = Field(default_factory=list)


class VoiceAgentPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    api_key: str
    instructions: str
    config: VoiceAgentConfig
    interview: InterviewBrief
    pacing_schedule: list[PacingCheckpoint] = Field(default_factory=list)


class VoiceToken(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    expires_in: int | None = None
