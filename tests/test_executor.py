"""Tests for the multi-task Executor."""

import logging
import time

import pytest

from pykairos import (
    ComputationFailure,
    ConfigurationFault,
    Executor,
    Reactor,
    ReactorError,
    RuntimeConfig,
    Task,
    again,
    later,
    never,
    run_all,
    task,
)

# =============================================================================
# Test tasks
# =============================================================================


@task
def sleeper(reactor, seconds, value=None):
    yield later(seconds)
    return seconds if value is None else value


@task
def instant(reactor, value):
    return value
    yield  # pragma: no cover


@task
def idle(reactor):
    yield never()


@task
def boom(reactor):
    yield later(0.01)
    raise ValueError("Simulated error")


@task
def reader(reactor, sock):
    with reactor.registered(sock) as token:
        while True:
            yield again(token, 5.0)
            try:
                return sock.recv(64)
            except BlockingIOError:
                continue


@task
def orphaned(reactor, sock):
    token = reactor.register(sock)
    reactor.deregister(token)
    yield again(token)


@task
def delayed_writer(reactor, sock, delay, payload):
    yield later(delay)
    sock.send(payload)
    return len(payload)


class FailingSelector:
    def register(self, fileobj, events, data=None):
        return None

    def unregister(self, fileobj):
        return None

    def select(self, timeout=None):
        raise OSError(5, "Input/output error")

    def close(self):
        return None


# =============================================================================
# Ordering and lifecycle
# =============================================================================


def test_timers_complete_in_deadline_order(reactor):
    executor = Executor(reactor)
    for seconds in (0.15, 0.05, 0.10):
        executor.with_task(lambda r, s=seconds: sleeper(r, s))

    finished = executor.run()

    assert [handle.result() for handle in finished] == [0.05, 0.10, 0.15]
    assert executor.is_empty()


def test_activate_on_empty_is_noop(reactor):
    executor = Executor(reactor)

    executor.activate()

    assert executor.is_empty()
    assert len(executor) == 0
    assert executor.next_timeout() is None
    assert executor.run() == []
    assert reactor.polls == 0


def test_ready_tasks_finish_before_first_poll(reactor):
    executor = Executor(reactor)
    first = executor.with_task(lambda r: instant(r, "a"))
    second = executor.with_task(lambda r: instant(r, "b"))

    executor.run()

    assert first.result() == "a"
    assert second.result() == "b"
    assert reactor.polls == 0
    assert executor.passes == 1


def test_every_task_offered_one_poll_per_pass(reactor):
    executor = Executor(reactor)
    handles = [executor.with_task(lambda r: sleeper(r, 60)) for _ in range(3)]

    executor.activate()
    executor.activate()

    assert all(handle.task.resumes == 1 for handle in handles)
    assert len(executor) == 3
    for handle in handles:
        handle.task.cancel()


def test_next_timeout_tracks_earliest_deadline(reactor):
    executor = Executor(reactor)
    executor.with_task(lambda r: sleeper(r, 60))
    executor.with_task(lambda r: sleeper(r, 10))

    executor.activate()

    timeout = executor.next_timeout()
    assert 9.0 < timeout <= 10.0


def test_with_task_accepts_bare_generator(reactor):
    def plain(r):
        yield later(0.01)
        return "plain"

    executor = Executor(reactor)
    handle = executor.with_task(plain)

    executor.run()

    assert isinstance(handle.task, Task)
    assert handle.result() == "plain"


def test_handles_get_unique_ids(reactor):
    executor = Executor(reactor)
    ids = {executor.with_task(lambda r: instant(r, i)).task_id for i in range(10)}
    assert len(ids) == 10


def test_handle_result_before_completion_raises(reactor):
    executor = Executor(reactor)
    handle = executor.with_task(lambda r: sleeper(r, 60))

    with pytest.raises(RuntimeError, match="has not finished"):
        handle.result()
    handle.task.cancel()


def test_executor_creates_own_reactor():
    executor = Executor(config=RuntimeConfig(min_timeout=0.002))
    handle = executor.with_task(lambda r: sleeper(r, 0.01, "own"))

    executor.run()

    assert handle.result() == "own"
    assert executor.reactor.config.min_timeout == 0.002
    executor.reactor.close()


# =============================================================================
# Inert placeholders
# =============================================================================


def test_never_descriptor_is_legal_placeholder(reactor):
    executor = Executor(reactor)
    placeholder = executor.with_task(idle)
    executor.with_task(lambda r: sleeper(r, 60))

    executor.activate()
    executor.activate()

    assert len(executor) == 2
    assert not placeholder.done
    assert placeholder.task.descriptor.is_never()


def test_run_with_only_placeholders_left_is_configuration_fault(reactor):
    executor = Executor(reactor)
    executor.with_task(idle)
    timer = executor.with_task(lambda r: sleeper(r, 0.01, "timer"))

    with pytest.raises(ConfigurationFault):
        executor.run()

    assert timer.result() == "timer"
    assert len(executor) == 1


def test_run_with_only_orphaned_tokens_is_configuration_fault(reactor, socket_pair):
    executor = Executor(reactor)
    executor.with_task(lambda r: orphaned(r, socket_pair[0]))

    with pytest.raises(ConfigurationFault, match="can ever wake"):
        executor.run()

    assert reactor.polls == 0


# =============================================================================
# Failures
# =============================================================================


def test_failure_reported_only_to_owner(reactor):
    executor = Executor(reactor)
    failed = executor.with_task(boom)
    sibling = executor.with_task(lambda r: sleeper(r, 0.03, "ok"))

    executor.run()

    assert failed.outcome.is_failure()
    with pytest.raises(ValueError, match="Simulated error"):
        failed.result()
    assert sibling.result() == "ok"


def test_failure_is_logged(reactor, caplog):
    executor = Executor(reactor)
    executor.with_task(boom)

    with caplog.at_level(logging.WARNING, logger="pykairos.executor.instance"):
        executor.run()

    assert any("Simulated error" in record.getMessage() for record in caplog.records)


def test_strict_mode_aborts_on_failure(reactor):
    executor = Executor(reactor).with_strict()
    executor.with_task(boom)
    sibling = executor.with_task(lambda r: sleeper(r, 60))

    with pytest.raises(ComputationFailure) as exc_info:
        executor.run()

    assert isinstance(exc_info.value.__cause__, ValueError)
    assert exc_info.value.task_name == "boom"
    assert len(executor) == 1
    assert not sibling.done
    sibling.task.cancel()


def test_reactor_failure_is_fatal():
    executor = Executor(Reactor(selector=FailingSelector()))
    executor.with_task(lambda r: sleeper(r, 60))

    with pytest.raises(ReactorError):
        executor.run()


# =============================================================================
# Real I/O
# =============================================================================


def test_reader_and_writer_share_one_reactor(reactor, socket_pair):
    left, right = socket_pair
    executor = Executor(reactor)
    read = executor.with_task(lambda r: reader(r, left))
    write = executor.with_task(lambda r: delayed_writer(r, right, 0.05, b"payload"))

    started = time.monotonic()
    executor.run()

    assert read.result() == b"payload"
    assert write.result() == 7
    assert time.monotonic() - started < 2.0


def test_run_all_returns_handles_in_argument_order(reactor):
    slow, fast = run_all(
        reactor,
        lambda r: sleeper(r, 0.04, "slow"),
        lambda r: sleeper(r, 0.01, "fast"),
    )

    assert slow.result() == "slow"
    assert fast.result() == "fast"
