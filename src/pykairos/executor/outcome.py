"""
Poll outcomes: the result of a single Task.poll() step.

**Design Pattern**: State Machine using Union types

A poll either finishes the task (`Done`) or leaves it suspended with the
wake condition it is waiting on (`Again`). Suspension is a value, not an
exception and not a timeout: if your function can suspend, you must tell
the caller.

Example:
    ```python
    match task.poll():
        case Done(value):
            print(f"Task finished: {value}")
        case Again(descriptor):
            print(f"Task waiting on {descriptor}")
    ```
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from pykairos.core import SuspensionDescriptor

__all__ = [
    "Done",
    "Again",
    "PollOutcome",
    "is_done",
    "is_again",
]

R = TypeVar("R")


@dataclass(frozen=True)
class Done(Generic[R]):
    """
    Task finished (success or failure).

    The value is either the task's return value or the exception its body
    raised. A failure is still a normal completion from the scheduler's point
    of view: it is surfaced to whoever owns the task, never crashes the
    driver.

    Attributes:
        value: Return value (success) or raised exception (failure)
    """

    value: R

    def is_success(self) -> bool:
        return not isinstance(self.value, BaseException)

    def is_failure(self) -> bool:
        return isinstance(self.value, BaseException)

    def unwrap(self) -> R:
        """
        Return the value, re-raising it if it is a failure.

        Example:
            ```python
            outcome = task.poll()
            if is_done(outcome):
                result = outcome.unwrap()  # raises the task's exception
            ```
        """
        if isinstance(self.value, BaseException):
            raise self.value
        return self.value

    def __str__(self) -> str:
        if self.is_success():
            return f"Done(success={self.value!r})"
        return f"Done(error={type(self.value).__name__}: {self.value})"


@dataclass(frozen=True)
class Again:
    """
    Task is suspended until its descriptor is satisfied.

    Attributes:
        descriptor: Tokens and deadline the task is waiting on
    """

    descriptor: SuspensionDescriptor

    def __str__(self) -> str:
        return f"Again({self.descriptor})"


# PollOutcome is the sum type returned by Task.poll().
#
# Type narrowing:
#     if isinstance(outcome, Done):
#         outcome.value
#     else:
#         outcome.descriptor
PollOutcome = Done[R] | Again


def is_done(outcome: PollOutcome[R]) -> bool:
    return isinstance(outcome, Done)


def is_again(outcome: PollOutcome[R]) -> bool:
    return isinstance(outcome, Again)
