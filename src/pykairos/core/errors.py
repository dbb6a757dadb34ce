"""
Error taxonomy for the runtime.

From Dave Cheney: "Errors are values"
Each failure mode gets its own type so callers can tell a bad registration
from a programming error from a dead selector.

Lifecycle of a failure:
- Registration rejected → ResourceRegistrationError to the caller of register()
- Task body raised → Done(exception), only surfaced to that task's owner
  (wrapped in ComputationFailure when a strict Executor aborts on it)
- never() descriptor reaches a blocking driver → ConfigurationFault
- poll()/run() after completion → PolledAfterCompletionError
- selector failure → ReactorError, fatal to every task sharing the Reactor
"""

__all__ = [
    "KairosError",
    "ResourceRegistrationError",
    "ComputationFailure",
    "ConfigurationFault",
    "PolledAfterCompletionError",
    "ReactorError",
]


class KairosError(Exception):
    """Base class for every error raised by the runtime."""

    pass


class ResourceRegistrationError(KairosError):
    """The multiplexer rejected a source registration."""

    pass


class ComputationFailure(KairosError):
    """
    A task finished with an error payload and the executor runs strict.

    The original exception is kept as `__cause__` and on `error`.

    Attributes:
        task_name: Name of the failed task
        error: Exception raised by the task body
    """

    def __init__(self, task_name: str, error: BaseException):
        super().__init__(f"Task {task_name!r} failed: {type(error).__name__}: {error}")
        self.task_name = task_name
        self.error = error


class ConfigurationFault(KairosError):
    """
    A blocking driver reached a descriptor that can never resume.

    This is a programming error (empty tokens, no deadline), not a runtime
    condition worth recovering from.
    """

    pass


class PolledAfterCompletionError(KairosError):
    """poll() or run() was called again on a task that already returned Done."""

    pass


class ReactorError(KairosError):
    """The selector failed while polling; the underlying OSError is the cause."""

    pass
