"""
Audio API endpoints

Handles:
- Text-to-speech generation for interviewer lines
- Available narration voices
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from mockloop.config.settings import get_settings
from mockloop.core.audio import EDGE_VOICES, synthesize
from mockloop.core.errors import SpeechChannelError
from mockloop.core.tag_parser import clean_for_speech

router = APIRouter()


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class TTSRequest(BaseModel):
    """Request for text-to-speech."""
    text: str
    voice: str | None = None


class TTSResponse(BaseModel):
    """Response with generated audio."""
    audio_base64: str
    format: str
    duration_seconds: float
    sample_rate: int


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.post("/tts", response_model=TTSResponse)
async def text_to_speech(request: TTSRequest) -> TTSResponse:
    """
    Convert text to speech.

    Markdown, code and directive tags are stripped before synthesis.
    Returns base64-encoded mp3 data.
    """
    spoken = clean_for_speech(request.text)
    if not spoken:
        raise HTTPException(status_code=400, detail="Nothing to speak")

    try:
        result = await synthesize(spoken, request.voice or get_settings().tts_voice)
    except SpeechChannelError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return TTSResponse(
        audio_base64=result["audio_data"],
        format=result["format"],
        duration_seconds=result["duration_seconds"],
        sample_rate=result["sample_rate"],
    )


@router.get("/voices")
async def list_voices() -> dict[str, str]:
    """Voice aliases accepted by /tts."""
    return dict(EDGE_VOICES)
