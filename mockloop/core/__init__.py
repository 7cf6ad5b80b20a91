"""
Core business logic modules for MockLoop

Contains:
- Provider Pool / Router: credential rotation across LLM providers
- Tag Parser: directive extraction from model output
- Speech Coordinator: epoch-guarded narration and capture
- Session Controller: state machine for one interview
- Result Finalizer: scoring, suggestions and the weak-area index
"""

from mockloop.core.provider_pool import ProviderPool
from mockloop.core.provider_router import ProviderRouter, build_chain
from mockloop.core.tag_parser import ResponseTagParser
from mockloop.core.speech import SpeechCoordinator
from mockloop.core.ai_reasoning import AIReasoningLayer
from mockloop.core.session_controller import SessionController
from mockloop.core.result_finalizer import ResultFinalizer, WeakAreaIndex
from mockloop.core.sessions import SessionHandle, SessionRegistry

__all__ = [
    "ProviderPool",
    "ProviderRouter",
    "build_chain",
    "ResponseTagParser",
    "SpeechCoordinator",
    "AIReasoningLayer",
    "SessionController",
    "ResultFinalizer",
    "WeakAreaIndex",
    "SessionHandle",
    "SessionRegistry",
]
