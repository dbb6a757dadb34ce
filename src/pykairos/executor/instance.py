"""
Executor - cooperative multi-task scheduler sharing one Reactor.

The Executor holds an insertion-ordered collection of live tasks. Each
scheduling pass (`activate()`) offers every task exactly one poll(); tasks
that finish are removed and reported, tasks that suspend are kept with their
latest descriptor. Between passes the Executor blocks in a single
`poll_once()` whose timeout is the earliest deadline across every kept
descriptor.

The collection is not keyed by Token: one task may wait on several tokens,
and each poll() re-validates its own readiness. A pass is O(n) in live
tasks.

**Design Patterns**:
- Template Method: run() is the fixed loop (activate → poll_once → mark)
- Builder: with_strict(), with_min_timeout() for configuration

Usage:
    ```python
    with Reactor() as reactor:
        executor = Executor(reactor)
        handle = executor.with_task(lambda r: resolve(r, ["example.com"]))
        executor.with_task(lambda r: heartbeat(r, 0.5))
        executor.run()
        print(handle.outcome)
    ```
"""

import logging
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from typing import Any

from uuid_extensions import uuid7

from pykairos.core import (
    ComputationFailure,
    ConfigurationFault,
    RuntimeConfig,
    SuspensionDescriptor,
    monotonic,
)
from pykairos.executor.outcome import Done
from pykairos.executor.reactor import Reactor
from pykairos.executor.task import Task

__all__ = ["Executor", "TaskHandle", "run_all"]

logger = logging.getLogger(__name__)

TaskFactory = Callable[[Reactor], Task[Any] | Generator[SuspensionDescriptor, None, Any]]


@dataclass
class TaskHandle:
    """
    Owner's view of a task added to an Executor.

    The outcome is only ever surfaced here: a failed task does not disturb
    its siblings unless the Executor runs strict.

    Attributes:
        task_id: uuid7 assigned when the task was added
        task: The scheduled task
        outcome: Done(result) once the task finished, None while live
    """

    task_id: str
    task: Task[Any]
    outcome: Done[Any] | None = field(default=None)

    @property
    def done(self) -> bool:
        return self.outcome is not None

    def result(self) -> Any:
        """
        The task's result, re-raising its failure.

        Raises:
            RuntimeError: If the task has not finished yet
        """
        if self.outcome is None:
            raise RuntimeError(f"Task {self.task.name!r} ({self.task_id}) has not finished")
        return self.outcome.unwrap()


class Executor:
    """
    Run many tasks concurrently on one Reactor.

    From Dave Cheney: "Design APIs for their default use case"
    Executor() with no arguments creates and owns its Reactor; pass one in
    to share it with other drivers.
    """

    def __init__(self, reactor: Reactor | None = None, config: RuntimeConfig | None = None):
        """
        Initialize the executor.

        Args:
            reactor: Shared reactor (a new one is created if omitted)
            config: Scheduling policy (defaults to the reactor's)
        """
        if reactor is None:
            reactor = Reactor(config=config)
        self._reactor = reactor
        self._config = config or reactor.config
        self._live: list[TaskHandle] = []
        self._finished: list[TaskHandle] = []
        self._deadline: float | None = None
        self._passes = 0

    # =========================================================================
    # Builder configuration
    # =========================================================================

    def with_strict(self, strict: bool = True) -> "Executor":
        """
        Treat a task's failure payload as fatal (builder pattern).

        In strict mode the first failed task aborts run() with
        ComputationFailure chained to the task's exception.

        Returns:
            self for method chaining
        """
        self._config = self._config.with_strict(strict)
        return self

    def with_min_timeout(self, seconds: float) -> "Executor":
        """
        Set the forward-progress timeout used for elapsed deadlines.

        Returns:
            self for method chaining
        """
        self._config = self._config.with_min_timeout(seconds)
        return self

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def reactor(self) -> Reactor:
        return self._reactor

    @property
    def config(self) -> RuntimeConfig:
        return self._config

    @property
    def passes(self) -> int:
        """Number of scheduling passes run so far."""
        return self._passes

    @property
    def finished(self) -> list[TaskHandle]:
        """Handles of finished tasks, in completion order."""
        return list(self._finished)

    def is_empty(self) -> bool:
        return not self._live

    def __len__(self) -> int:
        return len(self._live)

    # =========================================================================
    # Scheduling
    # =========================================================================

    def with_task(self, factory: TaskFactory) -> TaskHandle:
        """
        Build one task with the shared reactor and add it.

        Args:
            factory: Callable receiving the Reactor and returning a Task (or
                     a bare generator, which is wrapped in one)

        Returns:
            Handle through which the task's outcome is reported

        Example:
            ```python
            handle = executor.with_task(lambda r: resolve(r, ["example.com"]))
            ```
        """
        task = factory(self._reactor)
        if not isinstance(task, Task):
            task = Task(self._reactor, task)

        handle = TaskHandle(task_id=str(uuid7()), task=task)
        self._live.append(handle)
        logger.debug(f"Added task {task.name!r} ({handle.task_id})")
        return handle

    def activate(self) -> None:
        """
        One scheduling pass: poll every live task exactly once.

        Finished tasks are removed and reported to their handle. Suspended
        tasks are kept; the earliest deadline across them becomes the next
        poll timeout. A no-op on an empty executor.

        Raises:
            ComputationFailure: In strict mode, when a task finished with a
                failure payload
        """
        self._passes += 1
        kept: list[TaskHandle] = []
        deadline: float | None = None
        live, self._live = self._live, kept

        for index, handle in enumerate(live):
            try:
                outcome = handle.task.poll()
            except BaseException:
                kept.extend(live[index:])
                raise

            if isinstance(outcome, Done):
                self._report(handle, outcome, pending=live[index + 1 :])
                continue

            kept.append(handle)
            candidate = outcome.descriptor.deadline
            if candidate is not None and (deadline is None or candidate < deadline):
                deadline = candidate

        self._deadline = deadline
        logger.debug(f"Pass {self._passes}: {len(kept)} live task(s), next deadline={deadline}")

    def _report(self, handle: TaskHandle, outcome: Done[Any], pending: list[TaskHandle]) -> None:
        handle.outcome = outcome
        self._finished.append(handle)

        if outcome.is_success():
            logger.info(f"Task {handle.task.name!r} ({handle.task_id}) done: {outcome.value!r}")
            return

        error = outcome.value
        if self._config.strict:
            logger.error(
                f"Task {handle.task.name!r} ({handle.task_id}) failed, aborting run: "
                f"{type(error).__name__}: {error}"
            )
            self._live.extend(pending)
            raise ComputationFailure(handle.task.name, error) from error

        logger.warning(
            f"Task {handle.task.name!r} ({handle.task_id}) failed: {type(error).__name__}: {error}"
        )

    def next_timeout(self, now: float | None = None) -> float | None:
        """
        Poll timeout implied by the earliest pending deadline.

        Returns:
            Seconds to block (min_timeout if the deadline already passed),
            or None when no live task has a deadline
        """
        if self._deadline is None:
            return None
        return SuspensionDescriptor(deadline=self._deadline).timeout(
            self._config.min_timeout, now if now is not None else monotonic()
        )

    def run(self) -> list[TaskHandle]:
        """
        Drive every task to completion.

        Activation happens before the first poll, so tasks that can finish
        without any event do so without blocking.

        Returns:
            Handles of every task finished during this run

        Raises:
            ComputationFailure: Strict mode, a task failed
            ConfigurationFault: No remaining task has a deadline or an open
                registered source, so nothing could ever wake the executor
            ReactorError: The selector failed (fatal to all tasks)
        """
        start = len(self._finished)
        logger.debug(f"Executor starting with {len(self._live)} task(s)")

        while True:
            self.activate()
            if not self._live:
                break

            if not any(self._reactor.can_wake(handle.task.descriptor) for handle in self._live):
                names = [handle.task.name for handle in self._live]
                raise ConfigurationFault(
                    f"Executor stalled: no live task can ever wake {names}"
                )

            self._reactor.poll_once(self.next_timeout())
            fired = self._reactor.last_events
            for handle in self._live:
                if handle.task.descriptor is not None:
                    handle.task.descriptor.activate(fired)

        logger.debug(f"Executor finished after {self._passes} passes")
        return self._finished[start:]

    def __repr__(self) -> str:
        return f"Executor(live={len(self._live)}, finished={len(self._finished)})"


# =============================================================================
# Helper Functions
# =============================================================================


def run_all(reactor: Reactor, *factories: TaskFactory, strict: bool = False) -> list[TaskHandle]:
    """
    Convenience function for one-off concurrent execution.

    Returns:
        One handle per factory, in argument order, all finished

    Example:
        ```python
        with Reactor() as reactor:
            first, second = run_all(reactor, job_a, job_b)
            print(first.result(), second.result())
        ```
    """
    executor = Executor(reactor).with_strict(strict)
    handles = [executor.with_task(factory) for factory in factories]
    executor.run()
    return handles
