"""
Suspension descriptors: the wake condition a task yields instead of blocking.

A descriptor is a set of tokens plus an optional absolute deadline. The task
should be resumed as soon as ANY of its tokens fires or the deadline passes.

**Design Pattern**: Value Object + Monoid
Descriptors are immutable and merge associatively and commutatively with
`never()` as the identity. That is what lets a nested await bubble the inner
task's wake condition up through any number of frames:

    outer = own_condition.merge(inner.descriptor)

Deadlines are stored as absolute `time.monotonic()` seconds, never relative,
so re-polling a task any number of times does not drift its deadline.

Example:
    ```python
    token = reactor.register(sock)
    yield again(token, 2.0)       # readable, or give up after 2 seconds
    yield later(0.5)              # pure timer
    yield any_of([a, b])          # whichever source fires first
    ```
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from pykairos.core.token import Token

__all__ = [
    "SuspensionDescriptor",
    "never",
    "later",
    "again",
    "any_of",
    "merge_all",
    "monotonic",
]


def monotonic() -> float:
    """Clock used for every deadline in the runtime."""
    return time.monotonic()


def _min_deadline(a: float | None, b: float | None) -> float | None:
    # None is +infinity
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


@dataclass(frozen=True)
class SuspensionDescriptor:
    """
    What must become true before a suspended task is resumed.

    Attributes:
        tokens: Sources the task is waiting on (any one fires → resume)
        deadline: Absolute monotonic time after which the task is resumed
                  regardless of readiness, None for no deadline

    An empty token set with no deadline never resumes. A blocking driver
    treats that as a ConfigurationFault; an Executor keeps it as an inert
    placeholder.
    """

    tokens: frozenset[Token] = field(default_factory=frozenset)
    deadline: float | None = None

    def merge(self, other: SuspensionDescriptor) -> SuspensionDescriptor:
        """
        Combine two wake conditions.

        Union of tokens, earliest of the deadlines (absent = +infinity).

        Example:
            ```python
            combined = again(sock_token).merge(later(5.0))
            ```
        """
        return SuspensionDescriptor(
            tokens=self.tokens | other.tokens,
            deadline=_min_deadline(self.deadline, other.deadline),
        )

    def is_never(self) -> bool:
        """True when nothing can ever wake a task holding this descriptor."""
        return not self.tokens and self.deadline is None

    def expired(self, now: float | None = None) -> bool:
        if self.deadline is None:
            return False
        if now is None:
            now = monotonic()
        return now >= self.deadline

    def is_ready(self, now: float | None = None) -> bool:
        """
        Check locally-stored readiness only.

        Never touches the multiplexer: ready when the deadline has elapsed or
        any referenced token's flag is set.
        """
        return self.expired(now) or any(token.active for token in self.tokens)

    def timeout(self, min_timeout: float, now: float | None = None) -> float | None:
        """
        Relative poll timeout for this descriptor.

        Args:
            min_timeout: Timeout to use when the deadline already passed.
                         Must be nonzero to avoid a busy spin.
            now: Current monotonic time (defaults to the clock)

        Returns:
            Seconds to block, or None to block until a token fires
        """
        if self.deadline is None:
            return None
        if now is None:
            now = monotonic()
        remaining = self.deadline - now
        if remaining <= 0:
            return min_timeout
        return remaining

    def activate(self, fired: Mapping[Token, int] | Iterable[Token]) -> None:
        """
        Apply one poll result to this descriptor's tokens.

        Resets every referenced flag, then marks exactly the fired ones. A
        mapping gives the number of events per token; a plain iterable counts
        one event each.
        """
        if not isinstance(fired, Mapping):
            fired = {token: 1 for token in fired}
        for token in self.tokens:
            token.flag.reset()
            events = fired.get(token, 0)
            if events:
                token.flag.mark(events)

    def consume(self) -> None:
        """Clear every referenced flag once the readiness has been acted on."""
        for token in self.tokens:
            token.flag.reset()

    def __str__(self) -> str:
        ids = sorted(token.id for token in self.tokens)
        if self.deadline is None:
            return f"SuspensionDescriptor(tokens={ids}, deadline=None)"
        return f"SuspensionDescriptor(tokens={ids}, deadline={self.deadline:.6f})"


# =============================================================================
# Builders
# =============================================================================


_NEVER = SuspensionDescriptor()


def never() -> SuspensionDescriptor:
    """Empty tokens, no deadline: the idle placeholder."""
    return _NEVER


def later(duration: float) -> SuspensionDescriptor:
    """Pure timer: resume once `duration` seconds have passed."""
    return SuspensionDescriptor(deadline=monotonic() + duration)


def again(token: Token, duration: float | None = None) -> SuspensionDescriptor:
    """
    Wait for one source, optionally bounded by a timeout.

    This is the common I/O-or-timeout case.
    """
    return any_of((token,), duration)


def any_of(tokens: Iterable[Token], duration: float | None = None) -> SuspensionDescriptor:
    """Wait for whichever of several sources fires first."""
    deadline = None if duration is None else monotonic() + duration
    return SuspensionDescriptor(tokens=frozenset(tokens), deadline=deadline)


def merge_all(descriptors: Iterable[SuspensionDescriptor]) -> SuspensionDescriptor:
    """Fold `merge` over any number of descriptors (empty input → never())."""
    result = _NEVER
    for descriptor in descriptors:
        result = result.merge(descriptor)
    return result
