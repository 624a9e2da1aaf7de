"""
Error taxonomy for the conversation core.

Recoverable errors (``RetrievalUnavailable``, ``InvalidToolArguments``,
``ToolExecutionFailed``, ``SessionBusy``) are handled inside the turn or by the caller retrying;
the others terminate the turn.
"""


class ConciergeError(RuntimeError):
    """Base class for every error raised by the conversation core."""


class RetrievalUnavailable(ConciergeError):
    """Raised when the vector index cannot be queried."""


class TransportError(ConciergeError):
    """Raised when the model provider call fails (network, auth, rate-limit, bad payload)."""


class InvalidToolArguments(ConciergeError):
    """Raised when a tool is unknown or its arguments are malformed or missing."""


class ToolExecutionFailed(ConciergeError):
    """Raised when a tool handler itself errors (e.g. the record store is unreachable)."""


class InvalidSequence(ConciergeError):
    """Raised when an append would break the message-ordering invariant of a context."""


class SessionBusy(ConciergeError):
    """Raised when a turn is started on a session that is already processing one."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' is already processing a turn.")


class UnexpectedToolLoop(ConciergeError):
    """Raised when the model asks for tools again on the second (tool-less) call."""
