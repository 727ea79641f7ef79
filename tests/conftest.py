from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from config import Settings, TemplateDefaults
from models.template import InterviewTemplate, TemplateConfig
from services.lifecycle import SessionLifecycle
from services.session_store import SessionStore
from services.token_resolver import TokenResolver


class FakeClock:
    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = dict(
        app_base_url="https://air.example.com",
        database_path=tmp_path / "interviews.db",
        log_level="INFO",
        deepgram_api_key="dg-test-key",
        deepgram_api_base="https://api.deepgram.test/v1",
        voice_think_model="claude-3-5-sonnet",
        voice_think_provider="anthropic",
        template_defaults=TemplateDefaults(),
        session_expiry_days=7,
        store_max_retries=5,
        http_timeout_seconds=5.0,
        http_max_retries=3,
        http_retry_backoff_seconds=0.0,
        clerk_webhook_secret="",
        webhook_tolerance_seconds=300,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path) -> SessionStore:
    return SessionStore(tmp_path / "interviews.db")


@pytest.fixture
def lifecycle(store, clock) -> SessionLifecycle:
    return SessionLifecycle(store, max_retries=5, clock=clock)


@pytest.fixture
def resolver(store, lifecycle) -> TokenResolver:
    return TokenResolver(store, lifecycle)


@pytest.fixture
def template(store) -> InterviewTemplate:
    return store.create_template(
        organization_id="org_acme",
        created_by="user_recruiter",
        name="Backend hiring",
        job_title="Backend Engineer",
        company_name="Acme",
        job_description="Build and run our APIs.",
        competencies=["System design", "Communication"],
        must_ask_questions=["Why do you want to join Acme?"],
        config=TemplateConfig(max_duration_minutes=20, depth_level="deep"),
        status="active",
    )


@pytest.fixture
def invite(store, template, clock):
    def _invite(expires_in: timedelta = timedelta(days=7), candidate_id: str | None = None):
        return store.create_session(
            template_id=template.id,
            candidate_id=candidate_id,
            expires_at=clock.now + expires_in,
        )

    return _invite
