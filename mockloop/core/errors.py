"""
Error taxonomy for MockLoop.

Provider errors are absorbed by the router and the session controller and
turned into fallbacks. Nothing here is meant to terminate the process.
"""


class MockLoopError(Exception):
    """Base class for all engine errors."""
    pass


class ProviderTransientError(MockLoopError):
    """A single provider attempt failed (429, 5xx, timeout). Rotate and retry."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(ProviderTransientError):
    """Provider answered but the payload lacked a complete text field."""
    pass


class ProviderExhaustedError(MockLoopError):
    """Every credential of every provider in the chain has failed this epoch."""

    def __init__(self, message: str = "All providers exhausted", attempts: list | None = None):
        super().__init__(message)
        self.attempts = attempts or []


class SpeechChannelError(MockLoopError):
    """Narration or capture backend unavailable. Degrade to text-only."""
    pass


class DuplicateSubmissionRejected(MockLoopError):
    """A submission arrived while another evaluation was in flight."""
    pass


class SessionAlreadyEndedError(MockLoopError):
    """An action targeted a session that has already completed."""
    pass


class StateTransitionError(MockLoopError):
    """Raised when an invalid state transition is attempted."""
    pass


class NoQuestionSourceError(MockLoopError):
    """Neither a provider nor the fallback bank could supply a question."""
    pass
