"""Errors raised by the DNS consumer task."""

from pykairos.core import KairosError

__all__ = [
    "ResolverError",
    "NameTooLongError",
    "TruncatedPacketError",
    "MalformedPacketError",
    "OutOfOptionsError",
]


class ResolverError(KairosError):
    """Base class for name-resolution failures."""

    pass


class NameTooLongError(ResolverError):
    """The query name (or one of its labels) does not fit the wire format."""

    pass


class TruncatedPacketError(ResolverError):
    """
    A read would run past the end of the packet.

    Attributes:
        offset: Cursor position when the read was attempted
        wanted: Bytes requested
        remaining: Bytes left in the packet
    """

    def __init__(self, offset: int, wanted: int, remaining: int):
        super().__init__(
            f"Packet truncated at offset {offset}: wanted {wanted} bytes, {remaining} left"
        )
        self.offset = offset
        self.wanted = wanted
        self.remaining = remaining


class MalformedPacketError(ResolverError):
    """The packet is long enough but its contents make no sense."""

    pass


class OutOfOptionsError(ResolverError):
    """Every server and name was tried without getting an answer."""

    pass
