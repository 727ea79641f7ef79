from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from models.candidate import Candidate
from models.template import InterviewTemplate


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


SessionStatus = Literal["invited", "in_progress", "completed", "expired"]
TurnRole = Literal["interviewer", "candidate"]

TERMINAL_STATUSES = frozenset({"completed", "expired"})


class ConversationTurn(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    role: TurnRole
    content: str = Field(min_length=1)
    # Diagnostic only; order in the history is the source of truth.
    timestamp: datetime | None = None


class InterviewSession(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    token: str
    template_id: str
    candidate_id: str | None = None
    status: SessionStatus = "invited"
    invited_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    conversation_history: list[ConversationTurn] = Field(default_factory=list)
    metrics: dict[str, Any] = Field(default_factory=dict)
    full_transcript: str | None = None
    version: int = 1

    def is_past_deadline(self, now: datetime) -> bool:
        return now > self.expires_at


class SessionContext(BaseModel):
    model_config = ConfigDict(extra="ignore")

    session: InterviewSession
    template: InterviewTemplate
    candidate: Candidate | None = None
