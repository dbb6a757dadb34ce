"""
Kairos: cooperative single-threaded scheduling for asynchronous I/O.

Design Pattern: Façade Pattern
This module provides a simplified interface to the runtime, hiding the
split between core types, the reactor, tasks and the executor.

Package "kairos" (Greek: the opportune moment) describes what it provides:
resuming each task exactly when what it waits for has become true.

Suspendable computations are generators. They yield a SuspensionDescriptor
describing what must happen before they resume (a source becoming ready,
a deadline passing, or either); the Reactor multiplexes OS readiness to
decide which tasks to resume.

Example:
    ```python
    import socket
    from pykairos import Reactor, Executor, again, later, task

    @task
    def wait_for_data(reactor, sock):
        with reactor.registered(sock) as token:
            while True:
                yield again(token, 2.0)
                try:
                    return sock.recv(512)
                except BlockingIOError:
                    continue

    @task
    def tick(reactor, seconds):
        yield later(seconds)
        return "tick"

    with Reactor() as reactor:
        print(tick(reactor, 0.5).run())

        executor = Executor(reactor)
        executor.with_task(lambda r: tick(r, 0.1))
        executor.with_task(lambda r: wait_for_data(r, sock))
        executor.run()
    ```
"""

# Core types
from pykairos.core import (
    ActiveFlag,
    ComputationFailure,
    ConfigurationFault,
    Interest,
    KairosError,
    PolledAfterCompletionError,
    ReactorError,
    ResourceRegistrationError,
    RuntimeConfig,
    SuspensionDescriptor,
    Token,
    TokenAllocator,
    again,
    any_of,
    later,
    merge_all,
    never,
)

# Decorators
from pykairos.decorators import is_task_factory, task

# Execution
# pykairos.Reactor, pykairos.Task, pykairos.Executor (no prefix needed)
from pykairos.executor import (
    Again,
    Done,
    Executor,
    PollOutcome,
    Reactor,
    Task,
    TaskHandle,
    await_task,
    immediate,
    is_again,
    is_done,
    join,
    race,
    run_all,
)

# Version
__version__ = "0.1.0"

__all__ = [
    # Core types
    "Token",
    "ActiveFlag",
    "TokenAllocator",
    "Interest",
    "SuspensionDescriptor",
    "never",
    "later",
    "again",
    "any_of",
    "merge_all",
    "RuntimeConfig",
    # Errors
    "KairosError",
    "ResourceRegistrationError",
    "ComputationFailure",
    "ConfigurationFault",
    "PolledAfterCompletionError",
    "ReactorError",
    # Decorators
    "task",
    "is_task_factory",
    # Execution
    "Reactor",
    "Task",
    "Done",
    "Again",
    "PollOutcome",
    "is_done",
    "is_again",
    "immediate",
    "await_task",
    "join",
    "race",
    "Executor",
    "TaskHandle",
    "run_all",
    # Metadata
    "__version__",
]
