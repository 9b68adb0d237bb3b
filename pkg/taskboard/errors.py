"""
Error kinds raised by the taskboard core.

Every failed operation surfaces one of these to its caller. Nothing is
retried automatically; retry policy belongs to whoever called.
"""


class TaskboardError(Exception):
    """Base class for all taskboard failures."""
    kind = "error"


class ValidationError(TaskboardError):
    """Malformed input: empty required field, inverted dates, bad enum value."""
    kind = "validation"


class NotFoundError(TaskboardError):
    """An operation referenced an id that is not in the collection."""
    kind = "not_found"


class ConflictError(TaskboardError):
    """The operation clashes with current state (e.g. project still has tasks)."""
    kind = "conflict"


class TransientError(TaskboardError):
    """Simulated I/O failure on the remote round trip."""
    kind = "transient"


class DragRejected(ConflictError):
    """A drag call arrived while the board was in the wrong phase."""
    kind = "drag_rejected"


class ConfigError(TaskboardError):
    """Raised when configuration is invalid or incomplete."""
    kind = "config"
