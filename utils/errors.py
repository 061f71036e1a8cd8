"""Exceptions shared by the conversation pipeline."""


class SessionNotFoundError(KeyError):
    """Raised when a session id has no stored record."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id

    def __str__(self) -> str:
        return self.args[0]


class ModelInvocationError(RuntimeError):
    """The language model call itself failed (network, auth, quota, timeout)."""


class SynthesisError(RuntimeError):
    """Speech or lip-sync generation failed for a single reply segment."""
