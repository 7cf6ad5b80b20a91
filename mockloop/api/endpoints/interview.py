"""
Interview API endpoints

Handles interview session lifecycle:
- Starting sessions (text or voice)
- Submitting answers and code
- Ending interviews and reading results
- Real-time voice sessions over WebSocket
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from mockloop.api.dependencies import get_registry
from mockloop.core.audio import EdgeTTSNarrator, TranscriptCapture
from mockloop.core.session_controller import SessionController
from mockloop.core.sessions import SessionHandle
from mockloop.core.speech import SpeechCoordinator
from mockloop.models.interview import (
    CompanyTarget,
    Difficulty,
    InterviewConfig,
    InterviewType,
    SessionStep,
    Turn,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class StartRequest(BaseModel):
    """Request model for starting an interview."""
    candidate_id: str = "anonymous"
    interview_type: InterviewType = InterviewType.DSA
    custom_role: str = ""
    difficulty: Difficulty = Difficulty.INTERMEDIATE
    company_target: CompanyTarget = CompanyTarget.PRODUCT
    duration_minutes: int = 30
    tech_stack: str = "javascript"
    narration_enabled: bool = True
    voice: bool = False  # Voice sessions start when the WebSocket sends "start"


class StartResponse(BaseModel):
    """Response after starting an interview."""
    session_id: str
    step: str
    question_number: int
    is_coding_question: bool
    turns: list[dict[str, Any]]


class AnswerRequest(BaseModel):
    """Request model for a typed answer."""
    text: str


class CodeRequest(BaseModel):
    """Request model for a code submission."""
    code: str
    language: str | None = None


class SubmissionResponse(BaseModel):
    """Response after an answer or code submission."""
    accepted: bool
    score: int | None = None
    feedback: str | None = None
    step: str
    question_number: int
    turns: list[dict[str, Any]]
    completed: bool = False


class SessionStatusResponse(BaseModel):
    """Response for session status."""
    session_id: str
    step: str
    question_number: int
    follow_up_count: int
    time_remaining: int
    time_used: int
    overall_score: int
    is_coding_question: bool
    completed: bool


# ============================================================================
# HELPERS
# ============================================================================

def _get_handle(session_id: str) -> SessionHandle:
    handle = get_registry().get(session_id)
    if not handle:
        raise HTTPException(status_code=404, detail="Session not found")
    return handle


def _turns_since(controller: SessionController, index: int) -> list[dict[str, Any]]:
    return [turn.model_dump(mode="json") for turn in controller.state.conversation[index:]]


def _result_payload(controller: SessionController) -> dict[str, Any] | None:
    if controller.result is None:
        return None
    return controller.result.model_dump(mode="json")


# ============================================================================
# REST ENDPOINTS
# ============================================================================

@router.post("/start", response_model=StartResponse)
async def start_interview(request: StartRequest) -> StartResponse:
    """
    Create an interview session.

    Text sessions run their opening before responding, so the response
    carries the introduction and the first question. Voice sessions are
    only created; the WebSocket "start" message begins them.
    """
    config = InterviewConfig(**request.model_dump(exclude={"voice"}))
    registry = get_registry()

    if request.voice:
        handle = registry.create_session(config)
    else:
        # No speech backend over plain HTTP
        config = config.model_copy(update={"narration_enabled": False})
        handle = await registry.start_session(config)
        try:
            await handle.start_task
        except Exception as e:
            logger.error(f"Session {handle.session_id} failed to start: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    controller = handle.controller
    return StartResponse(
        session_id=handle.session_id,
        step=controller.state.step.value,
        question_number=controller.state.question_number,
        is_coding_question=controller.state.is_coding_question,
        turns=_turns_since(controller, 0),
    )


async def _submit(controller: SessionController, submit) -> SubmissionResponse:
    before = len(controller.state.conversation)

    try:
        evaluation = await submit()
    except Exception as e:
        logger.error(f"Session {controller.session_id} submission failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return SubmissionResponse(
        accepted=len(controller.state.conversation) > before,
        score=evaluation.score if evaluation else None,
        feedback=evaluation.feedback if evaluation else None,
        step=controller.state.step.value,
        question_number=controller.state.question_number,
        turns=_turns_since(controller, before),
        completed=controller.ended,
    )


@router.post("/{session_id}/answer", response_model=SubmissionResponse)
async def submit_answer(session_id: str, request: AnswerRequest) -> SubmissionResponse:
    """
    Submit a typed answer to the current question.

    The answer is evaluated and the interviewer's next turns are returned.
    Submissions after the session ended, or while another is being
    evaluated, are not accepted.
    """
    controller = _get_handle(session_id).controller
    return await _submit(controller, lambda: controller.submit_answer(request.text))


@router.post("/{session_id}/code", response_model=SubmissionResponse)
async def submit_code(session_id: str, request: CodeRequest) -> SubmissionResponse:
    """Submit code for the current problem."""
    controller = _get_handle(session_id).controller
    return await _submit(
        controller,
        lambda: controller.submit_code(request.code, request.language),
    )


@router.post("/{session_id}/end")
async def end_interview(session_id: str) -> dict[str, Any]:
    """
    End the interview.

    Safe to call more than once; the same result is returned.
    """
    handle = _get_handle(session_id)

    try:
        result = await get_registry().end_session(handle)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

    return result.model_dump(mode="json")


@router.get("/{session_id}/status", response_model=SessionStatusResponse)
async def get_session_status(session_id: str) -> SessionStatusResponse:
    """Get the current status of an interview session."""
    controller = _get_handle(session_id).controller
    state = controller.state

    return SessionStatusResponse(
        session_id=state.session_id,
        step=state.step.value,
        question_number=state.question_number,
        follow_up_count=state.follow_up_count,
        time_remaining=state.time_remaining,
        time_used=state.time_used,
        overall_score=state.overall_score,
        is_coding_question=state.is_coding_question,
        completed=controller.ended,
    )


@router.get("/{session_id}/result")
async def get_result(session_id: str) -> dict[str, Any]:
    """Get the final result of a completed interview."""
    controller = _get_handle(session_id).controller
    result = _result_payload(controller)

    if result is None:
        raise HTTPException(status_code=409, detail="Interview still in progress")
    return result


# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws/{session_id}")
async def websocket_interview(websocket: WebSocket, session_id: str):
    """
    WebSocket endpoint for real-time interview interaction.

    Client sends:
    - start: Begin a voice session
    - answer: Typed answer {"text"}
    - code: Code submission {"code", "language"}
    - listen_start / listen_stop: Voice answer boundaries
    - transcript_partial / transcript_final: Browser recognition results {"text"}
    - end: End the interview
    - ping

    Server sends:
    - turn: New conversation turn
    - state_change: Session step updated
    - banner: Non-fatal problem to show the candidate
    - narration: Synthesized audio for an interviewer line
    - narration_stop: Stop playing narration now
    - complete: Final result
    - pong
    """
    await websocket.accept()

    registry = get_registry()
    handle = registry.get(session_id)

    if not handle:
        await websocket.close(code=4004, reason="Session not found")
        return

    controller = handle.controller
    capture = TranscriptCapture()

    async def send(message: dict[str, Any]) -> None:
        await websocket.send_json(message)

    async def on_turn(_sid: str, turn: Turn) -> None:
        await send({"type": "turn", "data": turn.model_dump(mode="json")})

    async def on_state_change(_sid: str, old: SessionStep, new: SessionStep) -> None:
        await send({"type": "state_change", "data": {"from": old.value, "to": new.value}})
        if new == SessionStep.COMPLETE:
            await send({"type": "complete", "data": _result_payload(controller)})

    async def on_banner(_sid: str, message: str) -> None:
        await send({"type": "banner", "message": message})

    async def on_narration(payload: dict[str, Any]) -> None:
        await send({"type": "narration", "data": payload})

    async def on_narration_stop() -> None:
        await send({"type": "narration_stop"})

    controller.on_turn(on_turn)
    controller.on_state_change(on_state_change)
    controller.on_banner(on_banner)

    speech = SpeechCoordinator(
        narration=EdgeTTSNarrator(on_narration, on_narration_stop),
        capture=capture,
    )

    try:
        while True:
            data = await websocket.receive_json()
            message_type = data.get("type")

            if message_type == "start":
                registry.launch(handle, speech)

            elif message_type == "answer":
                controller.spawn(controller.submit_answer(data.get("text", "")))

            elif message_type == "code":
                controller.spawn(controller.submit_code(data.get("code", ""), data.get("language")))

            elif message_type == "listen_start":
                await controller.start_listening()

            elif message_type == "transcript_partial":
                capture.push_partial(data.get("text", ""))

            elif message_type == "transcript_final":
                capture.push_final(data.get("text", ""))

            elif message_type == "listen_stop":
                controller.spawn(controller.stop_listening())

            elif message_type == "end":
                await registry.end_session(handle)
                break

            elif message_type == "ping":
                await send({"type": "pong"})

    except WebSocketDisconnect:
        logger.info(f"Client disconnected from session {session_id}")
        if not controller.ended:
            await registry.end_session(handle)
