"""
Executor module - runtime engine for suspendable tasks.

This module contains the execution components:
- reactor: Reactor wrapping the OS readiness multiplexer
- outcome: Done/Again poll outcome state machine
- task: Task (single-step poll, blocking run) and nested-await helpers
- instance: Executor running many tasks on one Reactor
"""

from pykairos.executor.instance import Executor, TaskHandle, run_all
from pykairos.executor.outcome import Again, Done, PollOutcome, is_again, is_done
from pykairos.executor.reactor import Reactor
from pykairos.executor.task import Task, await_task, immediate, join, race

__all__ = [
    # Reactor
    "Reactor",
    # Poll outcome state machine
    "Done",
    "Again",
    "PollOutcome",
    "is_done",
    "is_again",
    # Tasks
    "Task",
    "immediate",
    "await_task",
    "join",
    "race",
    # Executor
    "Executor",
    "TaskHandle",
    "run_all",
]
