"""
Readiness interest for registered sources.

Following Dave Cheney's principle: "Make zero values useful"
READABLE is the default interest, it is what nearly every consumer wants.
"""

import selectors
from enum import Flag


class Interest(Flag):
    """
    What kind of readiness a registration is waiting for.

    Values map directly onto the `selectors` event mask so the Reactor can
    hand them to the selector unchanged.
    """

    READABLE = selectors.EVENT_READ
    """Source has data to read (or EOF)."""

    WRITABLE = selectors.EVENT_WRITE
    """Source can accept a write without blocking."""

    BOTH = selectors.EVENT_READ | selectors.EVENT_WRITE
    """Either of the above."""

    @property
    def events(self) -> int:
        """Selector event mask for this interest."""
        return self.value

    def __str__(self) -> str:
        return self.name or repr(self)
