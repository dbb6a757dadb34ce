"""
DNS TXT lookups over UDP, written as a pykairos consumer task.

- packet: query encoding and bounds-checked response decoding
- resolver: the `resolve` task and resolv.conf parsing
- errors: ResolverError hierarchy
"""

from pykairos.dns.errors import (
    MalformedPacketError,
    NameTooLongError,
    OutOfOptionsError,
    ResolverError,
    TruncatedPacketError,
)
from pykairos.dns.packet import Cursor, Header, decode_txt_answers, encode_name, encode_query
from pykairos.dns.resolver import DEFAULT_SERVERS, resolve, system_nameservers

__all__ = [
    "Cursor",
    "Header",
    "encode_name",
    "encode_query",
    "decode_txt_answers",
    "resolve",
    "system_nameservers",
    "DEFAULT_SERVERS",
    "ResolverError",
    "NameTooLongError",
    "TruncatedPacketError",
    "MalformedPacketError",
    "OutOfOptionsError",
]
