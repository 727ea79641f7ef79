from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Organization(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Candidate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    organization_id: str
    first_name: str
    last_name: str = ""
    email: str
    phone: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
