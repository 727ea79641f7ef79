from __future__ import annotations

import json

import httpx
import pytest

from agents.instruction_synthesizer import InstructionSynthesizer
from models.template import InterviewTemplate, TemplateConfig
from services.errors import VoiceServiceUnavailable
from services.voice_service import VoiceAgentService


def _template() -> InterviewTemplate:
    return InterviewTemplate(
        id="tpl_1",
        organization_id="org_acme",
        created_by="user_1",
        name="Support hiring",
        job_title="Support Lead",
        company_name="Acme",
        job_description="Lead the support desk.",
        competencies=["Empathy", "Escalation handling"],
        config=TemplateConfig(max_duration_minutes=12, ai_voice="aura-orion-en", language="en-GB"),
    )


def _service(api_key: str = "dg-key", handler=None) -> VoiceAgentService:
    transport = httpx.MockTransport(handler) if handler else None
    return VoiceAgentService(
        api_key=api_key,
        synthesizer=InstructionSynthesizer(),
        api_base="https://api.deepgram.test/v1/",
        max_retries=3,
        backoff_seconds=0.0,
        transport=transport,
    )


def test_unconfigured_service_refuses_to_build_config() -> None:
    service = _service(api_key="")

    assert service.is_configured is False
    with pytest.raises(VoiceServiceUnavailable):
        service.build_voice_config(_template(), "Grace Hopper")


def test_build_voice_config_carries_template_settings() -> None:
    payload = _service().build_voice_config(_template(), "Grace Hopper")

    assert payload.api_key == "dg-key"
    assert payload.config.voice == "aura-orion-en"
    assert payload.config.language == "en-GB"
    assert payload.config.max_duration == 12
    assert payload.config.think_provider == "anthropic"
    assert payload.config.greeting.startswith("Hi Grace, welcome!")
    assert payload.interview.competencies == ["Empathy", "Escalation handling"]
    assert "Support Lead position at Acme" in payload.instructions
    assert [c.trigger_minute for c in payload.pacing_schedule] == [6.0, 9.0, 10.0, 11.0, 11.5]


@pytest.mark.asyncio
async def test_grant_token_retries_transient_errors() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(503, json={"err_msg": "busy"})
        return httpx.Response(200, json={"access_token": "short-lived", "expires_in": 30})

    token = await _service(handler=handler).grant_token(ttl_seconds=30)

    assert token.access_token == "short-lived"
    assert token.expires_in == 30
    assert len(calls) == 2
    assert str(calls[0].url) == "https://api.deepgram.test/v1/auth/grant"
    assert calls[0].headers["Authorization"] == "Token dg-key"
    assert json.loads(calls[0].content) == {"ttl_seconds": 30}


@pytest.mark.asyncio
async def test_grant_token_does_not_retry_client_errors() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(401, json={"err_msg": "invalid credentials"})

    with pytest.raises(VoiceServiceUnavailable):
        await _service(handler=handler).grant_token()

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_grant_token_gives_up_after_max_retries() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(VoiceServiceUnavailable):
        await _service(handler=handler).grant_token()

    assert len(calls) == 3


def test_max_duration_keeps_whole_minutes_integral() -> None:
    service = _service()
    template = _template()
    fractional = template.model_copy(
        update={"config": template.config.model_copy(update={"max_duration_minutes": 7.5})}
    )

    whole = service.build_voice_config(template, "Grace").model_dump(mode="json")
    partial = service.build_voice_config(fractional, "Grace").model_dump(mode="json")

    assert whole["config"]["max_duration"] == 12
    assert isinstance(whole["config"]["max_duration"], int)
    assert partial["config"]["max_duration"] == 7.5
