"""
Task - a resumable computation with a single-step poll() and a blocking run().

A task wraps a generator. Every `yield` inside the generator hands a
SuspensionDescriptor to whichever driver is polling the task; `return`
finishes it. The generator keeps its local state between resumes, so
"resume" re-enters exactly at the last suspension point.

State machine:

    Suspended(generator, descriptor) --poll, not ready--> unchanged
    Suspended(generator, descriptor) --poll, ready-----> Suspended(new descriptor)
    Suspended(generator, descriptor) --poll, ready-----> Completed(result)
    Completed                         --poll------------> PolledAfterCompletionError

A freshly built task has not yielded yet and is resumed on its first poll.

**Design Pattern**: Template Method
`run()` is the fixed driver skeleton (poll → compute timeout → poll_once →
apply readiness → poll ...), the generator supplies the steps.

Nested awaits:
A computation may drive another Task step by step with `await_task()`,
suspending itself on the inner task's wake condition. Arbitrarily deep waits
flatten into the single descriptor seen by the top-level driver:

    ```python
    @task
    def outer(reactor, names):
        answers = yield from await_task(resolve(reactor, names))
        return answers[0]
    ```
"""

import logging
from collections.abc import Generator
from typing import Any, Generic, TypeVar

from pykairos.core import (
    ConfigurationFault,
    PolledAfterCompletionError,
    SuspensionDescriptor,
    merge_all,
)
from pykairos.executor.outcome import Again, Done, PollOutcome
from pykairos.executor.reactor import Reactor

__all__ = ["Task", "immediate", "await_task", "join", "race"]

logger = logging.getLogger(__name__)

R = TypeVar("R")

Computation = Generator[SuspensionDescriptor, None, R]


class Task(Generic[R]):
    """
    A resumable unit of work exposing poll() and run().

    Usage:
        ```python
        def ticker(reactor):
            yield later(0.5)
            return "tick"

        with Reactor() as reactor:
            result = Task(reactor, ticker(reactor)).run()
        ```
    """

    def __init__(
        self,
        reactor: Reactor | None,
        computation: Computation[R] | None,
        name: str | None = None,
    ):
        """
        Wrap a generator as a task.

        Args:
            reactor: Reactor shared by this task and everything it awaits.
                     May be None only for tasks that never block (immediate).
            computation: Generator yielding SuspensionDescriptor values
            name: Label used in logs (defaults to the generator's name)

        Raises:
            TypeError: If computation is not a generator
        """
        if computation is not None and not isinstance(computation, Generator):
            raise TypeError(
                f"Task computation must be a generator, got {type(computation).__name__}"
            )

        self._reactor = reactor
        self._computation = computation
        self._descriptor: SuspensionDescriptor | None = None
        self._outcome: Done[R] | None = None
        self._replayable = False
        self._resumes = 0

        if name is None:
            name = getattr(computation, "__qualname__", None) or "task"
        self._name = name

    @classmethod
    def completed(cls, value: R, name: str = "immediate") -> "Task[R]":
        """Build an already-completed task (see `immediate`)."""
        task: Task[R] = cls(None, None, name=name)
        task._outcome = Done(value)
        task._replayable = True
        return task

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def name(self) -> str:
        return self._name

    @property
    def reactor(self) -> Reactor | None:
        return self._reactor

    @property
    def done(self) -> bool:
        return self._outcome is not None

    @property
    def descriptor(self) -> SuspensionDescriptor | None:
        """Latest yielded descriptor, None before the first suspension."""
        return self._descriptor

    @property
    def resumes(self) -> int:
        """How many times the computation has been resumed."""
        return self._resumes

    # =========================================================================
    # Single step
    # =========================================================================

    def poll(self) -> PollOutcome[R]:
        """
        Advance the task by at most one resume.

        Only locally stored information is checked, the multiplexer is never
        touched. The computation is resumed exactly once if it has not
        started yet, its deadline has elapsed, or any of its tokens is
        active. Otherwise the unchanged descriptor is returned, so calling
        poll() repeatedly without new readiness is a harmless no-op.

        Returns:
            Done(result) or Again(descriptor)

        Raises:
            PolledAfterCompletionError: If this task already returned Done
                (immediate tasks are exempt and return the same Done forever)
        """
        if self._outcome is not None:
            if self._replayable:
                return self._outcome
            raise PolledAfterCompletionError(f"Task {self._name!r} polled after completion")

        if self._descriptor is not None and not self._descriptor.is_ready():
            return Again(self._descriptor)

        return self._resume()

    def _resume(self) -> PollOutcome[R]:
        trigger = self._descriptor
        self._resumes += 1
        try:
            yielded = next(self._computation)
        except StopIteration as stop:
            return self._finish(stop.value)
        except Exception as e:
            logger.debug(f"Task {self._name!r} raised {type(e).__name__}: {e}")
            return self._finish(e)
        finally:
            # inner frames polled during this resume still saw the flags
            if trigger is not None:
                trigger.consume()

        if not isinstance(yielded, SuspensionDescriptor):
            self._computation.close()
            return self._finish(
                TypeError(
                    f"Task {self._name!r} yielded {type(yielded).__name__}, "
                    "expected SuspensionDescriptor"
                )
            )

        self._descriptor = yielded
        return Again(yielded)

    def _finish(self, value: Any) -> Done[R]:
        self._outcome = Done(value)
        self._descriptor = None
        self._computation = None
        return self._outcome

    # =========================================================================
    # Blocking driver
    # =========================================================================

    def run(self) -> R:
        """
        Drive this task to completion, blocking the calling thread.

        Loop: poll(); on Done return the value; on Again compute the timeout
        from the descriptor's deadline (minimal nonzero timeout if it already
        passed), block in the Reactor's poll_once(), apply the fired tokens
        to the descriptor's flags, and poll again.

        Returns:
            The task's result

        Raises:
            ConfigurationFault: If the task suspends on never() (empty tokens,
                no deadline) or only on tokens whose sources are gone, which
                would otherwise block forever
            PolledAfterCompletionError: If the task already completed
            ReactorError: If the selector fails
            Exception: Whatever the task body raised
        """
        while True:
            outcome = self.poll()
            if isinstance(outcome, Done):
                return outcome.unwrap()

            descriptor = outcome.descriptor
            if descriptor.is_never():
                self.cancel()
                raise ConfigurationFault(
                    f"Task {self._name!r} suspended with no tokens and no deadline; "
                    "it would never resume"
                )
            if self._reactor is None:
                raise ConfigurationFault(f"Task {self._name!r} suspended without a reactor")
            if not self._reactor.can_wake(descriptor):
                self.cancel()
                raise ConfigurationFault(
                    f"Task {self._name!r} waits on {descriptor} but none of its sources is open"
                )

            timeout = descriptor.timeout(self._reactor.config.min_timeout)
            self._reactor.poll_once(timeout)
            descriptor.activate(self._reactor.last_events)

    def cancel(self) -> None:
        """
        Drop the computation, releasing any sources it registered.

        Closing the generator runs its `finally` / `with` exits, which is
        where `Reactor.registered()` deregisters and closes sources. The task
        counts as completed afterwards.
        """
        if self._computation is not None:
            self._computation.close()
            self._computation = None
        if self._outcome is None:
            self._outcome = Done(None)
            self._descriptor = None
            logger.debug(f"Task {self._name!r} cancelled")

    def __repr__(self) -> str:
        state = "done" if self._outcome is not None else f"waiting on {self._descriptor}"
        return f"Task(name={self._name!r}, {state})"


# =============================================================================
# Helper Functions
# =============================================================================


def immediate(value: R) -> Task[R]:
    """
    An already-completed task.

    The fast path for computations that never touch the Reactor: every
    poll() returns Done(value), run() returns value.
    """
    return Task.completed(value)


def await_task(inner: Task[R]) -> Generator[SuspensionDescriptor, None, R]:
    """
    Drive another task from inside a computation.

    Polls `inner`; while it is suspended, yields its descriptor from the
    outer computation so the outer task sleeps on the inner task's wake
    condition. Returns the inner result (re-raising its failure).

    Example:
        ```python
        @task
        def lookup(reactor):
            records = yield from await_task(resolve(reactor, ["example.com"]))
            return records
        ```
    """
    while True:
        outcome = inner.poll()
        if isinstance(outcome, Done):
            return outcome.unwrap()
        yield outcome.descriptor


def join(*tasks: Task[Any]) -> Generator[SuspensionDescriptor, None, list[Any]]:
    """
    Await several tasks concurrently.

    Each resume polls every still-pending task once; the outer computation
    suspends on the merge of all pending descriptors. Results come back in
    argument order once every task is done. If any task failed, the first
    failure (in argument order) is raised.

    Example:
        ```python
        a, b = yield from join(fetch(reactor, "a"), fetch(reactor, "b"))
        ```
    """
    outcomes: list[Done[Any] | None] = [None] * len(tasks)
    while True:
        pending = []
        for index, inner in enumerate(tasks):
            if outcomes[index] is not None:
                continue
            outcome = inner.poll()
            if isinstance(outcome, Done):
                outcomes[index] = outcome
            else:
                pending.append(outcome.descriptor)

        if not pending:
            return [outcome.unwrap() for outcome in outcomes]
        yield merge_all(pending)


def race(
    inner: Task[R], condition: SuspensionDescriptor
) -> Generator[SuspensionDescriptor, None, PollOutcome[R]]:
    """
    Await a task while keeping a wake condition of your own.

    The outer computation suspends on the merge of the inner task's
    descriptor and `condition`. Returns Done(result) if the inner task
    finished, or Again(condition) if the outer condition became ready first;
    the inner task is left untouched and can be raced again.

    Example:
        ```python
        outcome = yield from race(child, later(1.0))
        if isinstance(outcome, Again):
            child.cancel()
        ```
    """
    while True:
        outcome = inner.poll()
        if isinstance(outcome, Done):
            return outcome
        if condition.is_ready():
            return Again(condition)
        yield outcome.descriptor.merge(condition)
