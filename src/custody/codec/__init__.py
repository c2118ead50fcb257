"""Request identifier codec."""

from custody.codec.request_id import (
    RequestIdIssuer,
    decode,
    decode_sequence,
    decode_tenant,
    encode,
)

__all__ = [
    "RequestIdIssuer",
    "decode",
    "decode_sequence",
    "decode_tenant",
    "encode",
]
