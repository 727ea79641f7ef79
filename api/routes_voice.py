from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import get_voice_service, http_error
from services.errors import InterviewError
from services.voice_service import VoiceAgentService


router = APIRouter(prefix="/voice", tags=["voice"])


@router.post("/token")
async def grant_voice_token(
    voice: VoiceAgentService = Depends(get_voice_service),
) -> dict:
    try:
        token = await voice.grant_token()
    except InterviewError as err:
        raise http_error(err) from err
    return token.model_dump(mode="json")
