"""
Error types shared by the alignment and matching modules
"""


class AlignmentError(Exception):
    """Base class for every error raised by TK4SeqAlign"""


class InvalidArgumentError(AlignmentError, ValueError):
    """A sequence, pattern or budget was rejected before any DP work"""


class AlignmentCancelled(AlignmentError):
    """The caller's cancel event was set while the DP was running"""


class InternalInvariantError(AlignmentError, RuntimeError):
    """Traceback walked off the matrix or produced inconsistent rows"""


def require_sequence(value, name: str) -> str:
    """Reject ``None`` and non-string sequences"""
    if value is None:
        raise InvalidArgumentError(f"{name} must not be None")
    if not isinstance(value, str):
        raise InvalidArgumentError(
            f"{name} must be a str, got {type(value).__name__}"
        )
    return value


def check_cancelled(cancel_event) -> None:
    """Raise AlignmentCancelled if ``cancel_event`` has been set"""
    if cancel_event is not None and cancel_event.is_set():
        raise AlignmentCancelled("alignment cancelled by caller")
