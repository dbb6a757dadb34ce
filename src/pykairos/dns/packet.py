"""
DNS wire format: TXT query encoding and bounded response decoding.

Only what the resolver task needs: one TXT/IN question plus an EDNS OPT
record on the way out, header + question skipping + answer walking on the
way back. Every read goes through `Cursor`, which checks the requested
length against the bytes remaining before touching the buffer, so a short
or hostile packet raises TruncatedPacketError instead of reading garbage.

Layout of a query built by `encode_query("a.example")`:

    header   id | flags=0x0100 | qd=1 | an=0 | ns=0 | ar=1   (6 x u16, big-endian)
    question 01 'a' 07 'example' 00 | type=16 (TXT) | class=1 (IN)
    opt      00 | type=41 (OPT) | udp size=1000 | ttl=0 | rdlen=0
"""

import struct
from dataclasses import dataclass

from pykairos.dns.errors import (
    MalformedPacketError,
    NameTooLongError,
    ResolverError,
    TruncatedPacketError,
)

__all__ = [
    "HEADER_SIZE",
    "TYPE_TXT",
    "CLASS_IN",
    "DEFAULT_QUERY_ID",
    "Header",
    "Cursor",
    "encode_name",
    "encode_query",
    "decode_txt_answers",
]

HEADER_SIZE = 12
TYPE_TXT = 16
TYPE_OPT = 41
CLASS_IN = 1
FLAG_RECURSION_DESIRED = 0x0100
DEFAULT_QUERY_ID = 0x1337
EDNS_UDP_SIZE = 1000

MAX_NAME_LENGTH = 512
MAX_LABEL_LENGTH = 63

_HEADER = struct.Struct(">6H")
_POINTER_MASK = 0xC0


@dataclass(frozen=True)
class Header:
    """Fixed 12-byte DNS header."""

    id: int
    flags: int
    questions: int
    answers: int
    authorities: int
    additionals: int

    def encode(self) -> bytes:
        return _HEADER.pack(
            self.id,
            self.flags,
            self.questions,
            self.answers,
            self.authorities,
            self.additionals,
        )

    @classmethod
    def decode(cls, cursor: "Cursor") -> "Header":
        return cls(*_HEADER.unpack(cursor.read_bytes(HEADER_SIZE)))


class Cursor:
    """
    Read position over a packet with a bytes-remaining invariant.

    `0 <= offset <= len(data)` holds after every operation; any read that
    would break it raises TruncatedPacketError and leaves the offset where
    it was.

    Example:
        ```python
        cursor = Cursor(packet)
        header = Header.decode(cursor)
        cursor.skip_name()
        qtype = cursor.read_u16()
        ```
    """

    def __init__(self, data: bytes, offset: int = 0):
        if not 0 <= offset <= len(data):
            raise ValueError(f"offset {offset} outside packet of {len(data)} bytes")
        self._data = bytes(data)
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def _take(self, count: int) -> bytes:
        if count < 0 or count > self.remaining:
            raise TruncatedPacketError(self._offset, count, self.remaining)
        start = self._offset
        self._offset += count
        return self._data[start : self._offset]

    def read_u8(self) -> int:
        return self._take(1)[0]

    def read_u16(self) -> int:
        return int.from_bytes(self._take(2), "big")

    def read_u32(self) -> int:
        return int.from_bytes(self._take(4), "big")

    def read_bytes(self, count: int) -> bytes:
        return self._take(count)

    def skip(self, count: int) -> None:
        self._take(count)

    def skip_name(self) -> None:
        """
        Move past an encoded domain name.

        A name is a run of length-prefixed labels ending either in a zero
        byte or in a two-byte compression pointer (top two bits set). The
        pointer target is never followed, the cursor only needs to get past
        it.

        Raises:
            TruncatedPacketError: If the name runs off the end of the packet
            MalformedPacketError: On a reserved label type (0x40 / 0x80)
        """
        while True:
            length = self.read_u8()
            if length == 0:
                return
            if length & _POINTER_MASK == _POINTER_MASK:
                self.skip(1)
                return
            if length & _POINTER_MASK:
                raise MalformedPacketError(
                    f"Reserved label type 0x{length:02x} at offset {self._offset - 1}"
                )
            self.skip(length)

    def __repr__(self) -> str:
        return f"Cursor(offset={self._offset}, remaining={self.remaining})"


def encode_name(name: str) -> bytes:
    """
    Encode a dotted name as length-prefixed labels plus the zero terminator.

    Raises:
        NameTooLongError: Name over 512 bytes or a label over 63 bytes
    """
    raw = name.rstrip(".").encode("utf-8")
    if len(raw) > MAX_NAME_LENGTH:
        raise NameTooLongError(f"Name is {len(raw)} bytes, limit is {MAX_NAME_LENGTH}")

    encoded = bytearray()
    if raw:
        for label in raw.split(b"."):
            if not label:
                raise ResolverError(f"Empty label in name {name!r}")
            if len(label) > MAX_LABEL_LENGTH:
                raise NameTooLongError(
                    f"Label {label[:16]!r}... is {len(label)} bytes, limit is {MAX_LABEL_LENGTH}"
                )
            encoded.append(len(label))
            encoded += label
    encoded.append(0)
    return bytes(encoded)


def encode_query(name: str, query_id: int = DEFAULT_QUERY_ID) -> bytes:
    """
    Build a recursive TXT query for `name` with an EDNS OPT record.

    Args:
        name: Dotted domain name
        query_id: 16-bit transaction id echoed back by the server

    Returns:
        Wire-format query packet
    """
    header = Header(
        id=query_id,
        flags=FLAG_RECURSION_DESIRED,
        questions=1,
        answers=0,
        authorities=0,
        additionals=1,
    )
    question = encode_name(name) + struct.pack(">HH", TYPE_TXT, CLASS_IN)
    # root name, type OPT, advertised UDP payload size, ttl, empty rdata
    opt = b"\x00" + struct.pack(">HHIH", TYPE_OPT, EDNS_UDP_SIZE, 0, 0)
    return header.encode() + question + opt


def _character_strings(rdata: bytes) -> str:
    cursor = Cursor(rdata)
    parts = []
    while cursor.remaining:
        length = cursor.read_u8()
        parts.append(cursor.read_bytes(length))
    return b"".join(parts).decode("utf-8", errors="replace")


def decode_txt_answers(packet: bytes, query_id: int | None = None) -> list[str]:
    """
    Extract the TXT/IN answers from a response.

    Walks the header, skips every question (name + type + class) and reads
    each answer record's fixed fields and rdata through a bounded cursor.
    Records of other types are skipped by their declared length.

    Args:
        packet: Raw response bytes
        query_id: If given, the response id must match it

    Returns:
        One string per TXT record (its character-strings concatenated)

    Raises:
        TruncatedPacketError: A section runs past the end of the packet
        MalformedPacketError: Id mismatch or reserved label types
    """
    cursor = Cursor(packet)
    header = Header.decode(cursor)
    if query_id is not None and header.id != query_id:
        raise MalformedPacketError(f"Response id 0x{header.id:04x} != query id 0x{query_id:04x}")

    for _ in range(header.questions):
        cursor.skip_name()
        cursor.skip(4)  # type, class

    answers = []
    for _ in range(header.answers):
        cursor.skip_name()
        record_type = cursor.read_u16()
        record_class = cursor.read_u16()
        cursor.skip(4)  # ttl
        rdata = cursor.read_bytes(cursor.read_u16())
        if record_type == TYPE_TXT and record_class == CLASS_IN:
            answers.append(_character_strings(rdata))

    return answers
