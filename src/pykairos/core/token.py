"""
Tokens and readiness flags.

A Token names one registered pollable source. The Reactor writes readiness
into the token's ActiveFlag after each poll; the task that owns the token
reads it back when it is polled.

Design Pattern: Shared Flyweight
The ActiveFlag object is shared by reference between every descriptor that
names the token, so marking it once is visible to all of them (including the
frames of a nested await).

Token ids come from one counter shared by every allocator in the process,
so tokens issued by different Reactors never compare equal.
"""

import itertools
from dataclasses import dataclass, field

__all__ = ["ActiveFlag", "Token", "TokenAllocator"]


class ActiveFlag:
    """
    Readiness counter for one token.

    Reset to zero before the driver applies a poll result, incremented once
    per matching multiplexer event. Truthy while nonzero.
    """

    __slots__ = ("_count",)

    def __init__(self) -> None:
        self._count = 0

    def reset(self) -> None:
        self._count = 0

    def mark(self, events: int = 1) -> None:
        self._count += events

    @property
    def count(self) -> int:
        return self._count

    def __bool__(self) -> bool:
        return self._count > 0

    def __repr__(self) -> str:
        return f"ActiveFlag(count={self._count})"


@dataclass(frozen=True)
class Token:
    """
    Opaque identifier bound to one registered source.

    Equality and hashing use the id only, the flag is shared state riding
    along with it.

    Attributes:
        id: Process-unique integer, never reused
        flag: Readiness marker written by the driver after each poll
    """

    id: int
    flag: ActiveFlag = field(default_factory=ActiveFlag, compare=False, hash=False, repr=False)

    @property
    def active(self) -> bool:
        return bool(self.flag)

    def __str__(self) -> str:
        return f"Token({self.id})"


class TokenAllocator:
    """
    Monotonic token allocator.

    Ids are handed out in increasing order and never reused within the
    process, so an event for a dropped source can never alias a newer
    registration, and tokens from two Reactors never merge into one.

    Example:
        ```python
        allocator = TokenAllocator()
        first = allocator.allocate()
        second = allocator.allocate()
        assert second.id > first.id
        ```
    """

    _ids = itertools.count()

    def __init__(self) -> None:
        self._issued = 0

    def allocate(self) -> Token:
        """Issue a fresh Token with an inactive flag."""
        self._issued += 1
        return Token(id=next(TokenAllocator._ids))

    @property
    def issued(self) -> int:
        """Number of tokens handed out so far."""
        return self._issued

    def __repr__(self) -> str:
        return f"TokenAllocator(issued={self._issued})"
