"""
Reactor - the shared wrapper around the OS readiness multiplexer.

The Reactor owns a `selectors.DefaultSelector` and the token allocator. It
registers pollable sources under fresh tokens and performs one blocking
poll per scheduling cycle. It holds no per-task state: which task waits on
which token lives in the tasks' own descriptors.

Readiness is LEVEL-triggered. A source that still has unread data is
reported again on every poll until its owner drains it; consumers must
never assume edge-triggered delivery.

Ownership:
Deregistration is tied to ownership of the source. `registered()` is a
context manager that unregisters AND closes the source on exit, so a task
that is dropped (its generator closed or garbage collected) releases its
sockets before the token id is forgotten. A source its owner closed
directly is dropped on the next register(). Token ids are never reused, so a
late event can never be confused with a newer registration.

From Dave Cheney: "Avoid package level state"
There is no global Reactor. Create one per context and pass it explicitly
into every task-creating call.

Example:
    ```python
    with Reactor() as reactor:
        token = reactor.register(sock, Interest.READABLE)
        fired = reactor.poll_once(1.0)
        if token in fired:
            data = sock.recv(512)
    ```
"""

import contextlib
import logging
import selectors
from collections.abc import Iterator
from typing import Any

from pykairos.core import (
    Interest,
    ReactorError,
    ResourceRegistrationError,
    RuntimeConfig,
    SuspensionDescriptor,
    Token,
    TokenAllocator,
)

__all__ = ["Reactor"]

logger = logging.getLogger(__name__)


def _event_count(mask: int) -> int:
    return bin(mask).count("1")


def _is_closed(source: Any) -> bool:
    fileno = getattr(source, "fileno", None)
    if fileno is None:
        return False
    try:
        return fileno() < 0
    except (ValueError, OSError):
        return True


class Reactor:
    """
    One selector plus one token allocator, shared by every task in a context.

    Nested awaits reuse the top-level Reactor rather than creating their own,
    so token ids stay unique and a single poll_once() can satisfy every
    pending wait at once.
    """

    def __init__(
        self,
        config: RuntimeConfig | None = None,
        selector: selectors.BaseSelector | None = None,
    ):
        """
        Create a reactor.

        Args:
            config: Scheduling policy (RuntimeConfig.DEFAULT if omitted)
            selector: Selector to use instead of DefaultSelector (for tests)
        """
        self._config = config or RuntimeConfig.DEFAULT
        self._selector = selector if selector is not None else selectors.DefaultSelector()
        self._allocator = TokenAllocator()
        self._sources: dict[Token, Any] = {}
        self._last_events: dict[Token, int] = {}
        self._closed = False
        self._polls = 0

    @classmethod
    def from_config(cls, config: RuntimeConfig) -> "Reactor":
        return cls(config=config)

    @property
    def config(self) -> RuntimeConfig:
        return self._config

    @property
    def allocator(self) -> TokenAllocator:
        return self._allocator

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def polls(self) -> int:
        """Number of completed poll_once() calls."""
        return self._polls

    @property
    def last_events(self) -> dict[Token, int]:
        """Event count per token from the most recent poll_once()."""
        return dict(self._last_events)

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, source: Any, interest: Interest = Interest.READABLE) -> Token:
        """
        Bind a pollable resource under a fresh Token.

        Args:
            source: Anything with a fileno() (socket, pipe, file descriptor)
            interest: Readiness to watch for

        Returns:
            The new Token. Its id has never been issued before.

        Raises:
            ResourceRegistrationError: If the selector rejects the source
                (bad descriptor, already registered, closed reactor)
        """
        if self._closed:
            raise ResourceRegistrationError("Cannot register on a closed reactor")

        self._purge_closed()

        token = self._allocator.allocate()
        try:
            self._selector.register(source, interest.events, token)
        except (ValueError, KeyError, OSError) as e:
            raise ResourceRegistrationError(
                f"Failed to register {source!r} for {interest}: {e}"
            ) from e

        self._sources[token] = source
        logger.debug(f"Registered {token} for {interest}")
        return token

    def deregister(self, token: Token, close: bool = True) -> None:
        """
        Stop watching a token's source, closing it first when asked.

        Idempotent: deregistering an unknown token is a no-op.

        Args:
            token: Token returned by register()
            close: Close the underlying source (ownership ends here)
        """
        source = self._sources.pop(token, None)
        if source is None:
            return

        with contextlib.suppress(KeyError, ValueError):
            self._selector.unregister(source)
        if close and hasattr(source, "close"):
            source.close()
        self._last_events.pop(token, None)
        logger.debug(f"Deregistered {token} (closed={close})")

    def _purge_closed(self) -> None:
        # a source closed by its owner leaves a stale key whose fd the OS may
        # hand to the next socket
        for token, source in list(self._sources.items()):
            if _is_closed(source):
                logger.debug(f"Dropping {token}: source closed by its owner")
                self.deregister(token, close=False)

    @contextlib.contextmanager
    def registered(self, source: Any, interest: Interest = Interest.READABLE) -> Iterator[Token]:
        """
        Register a source for the duration of a block, then release it.

        The source is unregistered and closed on exit, whether the block
        finished, raised, or the enclosing generator was closed. A source that
        fails to register is closed before the error propagates.

        Example:
            ```python
            @task
            def read_line(reactor, sock):
                with reactor.registered(sock) as token:
                    yield again(token)
                    return sock.recv(1024)
            ```
        """
        try:
            token = self.register(source, interest)
        except ResourceRegistrationError:
            if hasattr(source, "close"):
                source.close()
            raise
        try:
            yield token
        finally:
            self.deregister(token)

    def is_registered(self, token: Token) -> bool:
        return token in self._sources

    def can_wake(self, descriptor: SuspensionDescriptor) -> bool:
        """
        Whether anything could still make `descriptor` ready.

        False when it has no deadline, none of its flags is set, and none of
        its tokens names an open source registered here.
        """
        if descriptor.deadline is not None or descriptor.is_ready():
            return True
        return any(
            not _is_closed(self._sources[token])
            for token in descriptor.tokens
            if token in self._sources
        )

    def __len__(self) -> int:
        """Number of currently registered sources."""
        return len(self._sources)

    # =========================================================================
    # Polling
    # =========================================================================

    def poll_once(self, timeout: float | None = None) -> set[Token]:
        """
        Block until a registered source is ready or the timeout elapses.

        This is the only blocking call in the runtime. It returns immediately
        when something is already ready.

        Args:
            timeout: Seconds to wait, None to wait indefinitely

        Returns:
            Tokens whose sources reported readiness. Per-token event counts
            are available on `last_events`.

        Raises:
            ReactorError: If the reactor is closed or the selector fails.
                This is not recoverable for anything sharing the reactor.
        """
        if self._closed:
            raise ReactorError("Cannot poll a closed reactor")

        try:
            ready = self._selector.select(timeout)
        except OSError as e:
            logger.error(f"Selector poll failed: {e}")
            raise ReactorError(f"Selector poll failed: {e}") from e

        self._polls += 1
        self._last_events = {}
        for key, mask in ready:
            token = key.data
            self._last_events[token] = self._last_events.get(token, 0) + _event_count(
                mask & key.events
            )

        if self._last_events:
            logger.debug(f"Poll {self._polls} fired {len(self._last_events)} token(s)")
        return set(self._last_events)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Close every still-registered source, then the selector."""
        if self._closed:
            return
        for token in list(self._sources):
            self.deregister(token)
        self._selector.close()
        self._closed = True
        logger.debug(f"Reactor closed after {self._polls} polls")

    def __enter__(self) -> "Reactor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Reactor(registered={len(self._sources)}, "
            f"tokens_issued={self._allocator.issued}, closed={self._closed})"
        )
