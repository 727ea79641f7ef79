from __future__ import annotations

import asyncio
import logging

import httpx

from agents.instruction_synthesizer import InstructionSynthesizer
from models.template import InterviewTemplate
from models.voice import InterviewBrief, VoiceAgentConfig, VoiceAgentPayload, VoiceToken
from services.errors import VoiceServiceUnavailable


logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = {408, 409, 429, 500, 502, 503, 504}


def whole_minutes(value: float) -> int | float:
    return int(value) if float(value).is_integer() else value


class VoiceAgentService:
    """Prepares configuration for the Deepgram voice agent.

    The service never opens the audio session itself; it hands the browser the
    key (or a short-lived token), the instructions and the agent config.
    """

    def __init__(
        self,
        api_key: str,
        synthesizer: InstructionSynthesizer,
        think_model: str = "claude-3-5-sonnet",
        think_provider: str = "anthropic",
        api_base: str = "https://api.deepgram.com/v1",
        timeout_seconds: float = 20.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.8,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.synthesizer = synthesizer
        self.think_model = think_model
        self.think_provider = think_provider
        self.api_base = api_base.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.transport = transport

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Token {self.api_key}",
            "Content-Type": "application/json",
        }

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def require_configured(self) -> None:
        if not self.is_configured:
            raise VoiceServiceUnavailable("Voice service not configured")

    def build_voice_config(
        self,
        template: InterviewTemplate,
        candidate_name: str,
    ) -> VoiceAgentPayload:
        self.require_configured()
        instruction_set = self.synthesizer.synthesize(template, candidate_name)
        return VoiceAgentPayload(
            api_key=self.api_key,
            instructions=instruction_set.prompt,
            config=VoiceAgentConfig(
                voice=template.config.ai_voice,
                think_model=self.think_model,
                think_provider=self.think_provider,
                max_duration=whole_minutes(template.config.max_duration_minutes),
                language=template.config.language,
                greeting=self.synthesizer.build_greeting(template, candidate_name),
            ),
            interview=InterviewBrief(
                job_title=template.job_title,
                company_name=template.company_name,
                competencies=list(template.competencies),
            ),
            pacing_schedule=instruction_set.pacing_schedule,
        )

    async def grant_token(self, ttl_seconds: int = 30) -> VoiceToken:
        self.require_configured()

        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout_seconds, transport=self.transport
                ) as client:
                    response = await client.post(
                        f"{self.api_base}/auth/grant",
                        headers=self.headers,
                        json={"ttl_seconds": ttl_seconds},
                    )

                if response.status_code in TRANSIENT_STATUSES:
                    raise httpx.HTTPStatusError(
                        "Transient Deepgram error",
                        request=response.request,
                        response=response,
                    )

                response.raise_for_status()
                return VoiceToken.model_validate(response.json())
            except (httpx.RequestError, httpx.HTTPStatusError) as err:
                last_error = err
                if isinstance(err, httpx.HTTPStatusError) and (
                    err.response.status_code not in TRANSIENT_STATUSES
                ):
                    break
                if attempt >= self.max_retries:
                    break
                await asyncio.sleep(self.backoff_seconds * (2 ** (attempt - 1)))

        logger.warning("Deepgram token grant failed: %s", last_error)
        raise VoiceServiceUnavailable("Failed to grant voice token") from last_error
