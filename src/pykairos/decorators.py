"""
The @task decorator: turn a generator function into a Task factory.

A suspending function is written as an ordinary generator whose first
argument is the Reactor. Each `yield` hands a SuspensionDescriptor to the
driver; `return` produces the result. The decorator wraps every call in a
Task, so callers get something they can poll(), run(), await from another
task, or hand to an Executor.

Example:
    ```python
    @task
    def echo_once(reactor, sock):
        with reactor.registered(sock) as token:
            yield again(token, 1.0)
            return sock.recv(512)

    with Reactor() as reactor:
        data = echo_once(reactor, sock).run()
    ```
"""

import functools
import inspect
from collections.abc import Callable
from typing import Any, TypeVar

from pykairos.executor.reactor import Reactor
from pykairos.executor.task import Task

__all__ = ["task", "is_task_factory"]

F = TypeVar("F", bound=Callable[..., Any])


def task(func: F | None = None, *, name: str | None = None) -> F:
    """
    Mark a generator function as a suspending task.

    Args:
        func: Generator function taking the Reactor as first argument
        name: Task label for logs (defaults to the function's qualname)

    Returns:
        A factory with the same signature that returns a Task

    Raises:
        TypeError: If func is not a generator function, or the first call
            argument is not a Reactor

    Example:
        ```python
        @task
        def sleepy(reactor, seconds):
            yield later(seconds)
            return seconds

        @task(name="heartbeat")
        def beat(reactor):
            while True:
                yield later(1.0)
        ```
    """

    def decorator(f: F) -> F:
        if not inspect.isgeneratorfunction(f):
            raise TypeError(f"@task requires a generator function, got {f.__qualname__}")

        label = name or f.__qualname__

        @functools.wraps(f)
        def factory(reactor: Reactor, *args: Any, **kwargs: Any) -> Task[Any]:
            if not isinstance(reactor, Reactor):
                raise TypeError(
                    f"{label}() expects a Reactor as first argument, got {type(reactor).__name__}"
                )
            return Task(reactor, f(reactor, *args, **kwargs), name=label)

        factory._is_kairos_task = True  # type: ignore
        factory._task_name = label  # type: ignore
        return factory  # type: ignore

    if func is None:
        return decorator  # type: ignore
    return decorator(func)


def is_task_factory(obj: Any) -> bool:
    """True if obj was produced by @task."""
    return getattr(obj, "_is_kairos_task", False)
