"""Request identifier codec — packs a tenant id into an opaque 256-bit id.

Layout (most significant bit first):

    | 255 ........ 224 | 223 ..................... 0 |
    |   tenant (32)    |        sequence (224)       |

encode() computes sequence XOR (tenant << 224). The two ranges never
overlap, so XOR is the same as concatenation. This is bit-packing only;
nothing here is cryptographic.

Round-trip law, for every valid sequence and tenant:
    decode_tenant(encode(s, t)) == t
    decode_sequence(encode(s, t)) == s
"""

from __future__ import annotations

from typing import Dict, Set, Tuple

from custody.errors import (
    InvalidAmount,
    InvalidRequestId,
    InvalidTenant,
    RequestAlreadyUsed,
    RequestTenantMismatch,
    SequenceTooLarge,
)
from custody.models.treasury import require_tenant

SEQUENCE_BITS = 224
TENANT_BITS = 32
ID_BITS = SEQUENCE_BITS + TENANT_BITS

SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1
TENANT_MASK = (1 << TENANT_BITS) - 1
MAX_REQUEST_ID = (1 << ID_BITS) - 1


def encode(sequence: int, tenant: int) -> int:
    """Pack a sequence number and tenant id into a request identifier.

    Raises:
        SequenceTooLarge: sequence needs more than 224 bits.
        InvalidAmount: sequence is negative.
        InvalidTenant: tenant is negative or needs more than 32 bits.
    """
    if isinstance(sequence, bool) or not isinstance(sequence, int) or sequence < 0:
        raise InvalidAmount(f"Sequence must be a non-negative integer, got {sequence!r}")
    if sequence > SEQUENCE_MASK:
        raise SequenceTooLarge(
            f"Sequence needs {sequence.bit_length()} bits, maximum is {SEQUENCE_BITS}",
            sequence=sequence,
        )
    if isinstance(tenant, bool) or not isinstance(tenant, int) or not 0 <= tenant <= TENANT_MASK:
        raise InvalidTenant(f"Tenant id must fit in {TENANT_BITS} bits, got {tenant!r}")
    return sequence ^ (tenant << SEQUENCE_BITS)


def decode_tenant(request_id: int) -> int:
    """High 32 bits (224..255)."""
    return _checked(request_id) >> SEQUENCE_BITS


def decode_sequence(request_id: int) -> int:
    """Low 224 bits."""
    return _checked(request_id) & SEQUENCE_MASK


def decode(request_id: int) -> Tuple[int, int]:
    """Return (sequence, tenant)."""
    return decode_sequence(request_id), decode_tenant(request_id)


def to_hex(request_id: int) -> str:
    """Zero-padded 64-digit hex form used in logs and the CLI."""
    return f"0x{_checked(request_id):064x}"


def from_hex(text: str) -> int:
    try:
        value = int(text, 16)
    except ValueError as e:
        raise InvalidRequestId(f"Not a hex request id: {text!r}") from e
    return _checked(value)


def _checked(request_id: int) -> int:
    if isinstance(request_id, bool) or not isinstance(request_id, int):
        raise InvalidRequestId(f"Request id must be an integer, got {request_id!r}")
    if request_id < 0 or request_id > MAX_REQUEST_ID:
        raise InvalidRequestId(f"Request id outside 256-bit range: {request_id}")
    return request_id


class RequestIdIssuer:
    """Issues per-tenant request ids and enforces one-shot consumption.

    Each tenant has its own monotonically increasing sequence starting at 1.
    A consumed id can never be consumed again, which gives off-chain
    authorised operations replay protection.

    Usage:
        issuer = RequestIdIssuer()
        rid = issuer.issue(7)
        issuer.consume(rid, tenant=7)
        issuer.consume(rid, tenant=7)   # RequestAlreadyUsed
    """

    def __init__(self) -> None:
        self._sequences: Dict[int, int] = {}
        self._consumed: Set[int] = set()

    def issue(self, tenant: int) -> int:
        request_id = self.next_id(tenant)
        self._sequences[tenant] = decode_sequence(request_id)
        return request_id

    def next_id(self, tenant: int) -> int:
        """The id issue() would return next, without advancing the sequence."""
        require_tenant(tenant)
        return encode(self.last_sequence(tenant) + 1, tenant)

    def check(self, request_id: int, tenant: int) -> None:
        """Validate that request_id belongs to tenant and is unused."""
        owner = decode_tenant(request_id)
        if owner != tenant:
            raise RequestTenantMismatch(
                f"Request id belongs to tenant {owner}, not {tenant}",
                owner=owner,
                tenant=tenant,
            )
        if self.is_consumed(request_id):
            raise RequestAlreadyUsed(
                f"Request id already used: {to_hex(request_id)}",
                request_id=to_hex(request_id),
            )

    def consume(self, request_id: int, tenant: int) -> None:
        self.check(request_id, tenant)
        self._consumed.add(request_id)

    def is_consumed(self, request_id: int) -> bool:
        return request_id in self._consumed

    def last_sequence(self, tenant: int) -> int:
        return self._sequences.get(tenant, 0)
