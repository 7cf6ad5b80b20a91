import asyncio
import json

import pytest

from mockloop.api import dependencies
from mockloop.config.settings import get_settings
from mockloop.core import tracing
from mockloop.core.ai_reasoning import AIReasoningLayer
from mockloop.core.errors import ProviderExhaustedError
from mockloop.core.question_bank import FallbackQuestionBank
from mockloop.core.result_finalizer import ResultFinalizer, WeakAreaIndex
from mockloop.core.session_controller import SessionController
from mockloop.models.interview import InterviewConfig


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, tmp_path):
    """Fast, offline settings for every test."""
    env = {
        "LANGFUSE_ENABLED": "false",
        "OPENROUTER_API_KEYS": "",
        "GROQ_API_KEYS": "",
        "GEMINI_API_KEYS": "",
        "PERSISTENCE_URL": "",
        "WEAK_AREAS_PATH": str(tmp_path / "weak_areas.json"),
        "FIRST_QUESTION_DELAY_SECONDS": "0",
        "FOLLOW_UP_DELAY_SECONDS": "0",
        "NARRATION_CHUNK_PAUSE_SECONDS": "0",
        # Tests drive the countdown through tick()
        "TICK_INTERVAL_SECONDS": "3600",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)

    get_settings.cache_clear()
    monkeypatch.setattr(tracing, "_langfuse", None)
    monkeypatch.setattr(tracing, "_initialized", False)
    monkeypatch.setattr(dependencies, "_router", None)
    monkeypatch.setattr(dependencies, "_registry", None)

    yield get_settings()

    get_settings.cache_clear()


class ScriptedRouter:
    """
    Stands in for ProviderRouter.

    Responses are consumed in order. An exception is raised, a coroutine
    function is awaited, anything else is returned as text. An empty script
    behaves like exhausted providers.
    """

    def __init__(self, responses=()):
        self.responses = list(responses)
        self.prompts: list[str] = []
        self.langfuse = None
        self.resets = 0

    async def request(self, prompt, chain=None, **kwargs):
        self.prompts.append(prompt)
        if not self.responses:
            raise ProviderExhaustedError("script exhausted")

        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return await item()
        return item

    def reset_epoch(self) -> int:
        self.resets += 1
        return self.resets


class RecordingSink:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.saved = []

    async def save(self, result) -> bool:
        self.saved.append(result)
        return self.ok


class RecordingNarration:
    """Narration backend that records what it was asked to say."""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.said: list[str] = []
        self.cancels = 0

    async def say(self, text: str) -> None:
        await asyncio.sleep(self.delay)
        self.said.append(text)

    def cancel(self) -> None:
        self.cancels += 1


def evaluation_json(score, follow_up=None, feedback="Okay.", strengths=(), improvements=(), **extra):
    payload = {
        "score": score,
        "feedback": feedback,
        "strengths": list(strengths),
        "improvements": list(improvements),
        "followUp": follow_up,
    }
    payload.update(extra)
    return json.dumps(payload)


@pytest.fixture
def make_controller(tmp_path):
    """Build a SessionController around a scripted router."""

    def factory(responses=(), config=None, speech=None, sink=None, question_bank=None):
        router = ScriptedRouter(responses)
        controller = SessionController(
            config=config or InterviewConfig(narration_enabled=False),
            ai_reasoning=AIReasoningLayer(router),
            speech=speech,
            question_bank=question_bank or FallbackQuestionBank(),
            finalizer=ResultFinalizer(WeakAreaIndex(tmp_path / "weak_areas.json")),
            result_sink=sink or RecordingSink(),
        )
        controller.router = router
        return controller

    return factory
