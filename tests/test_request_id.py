"""Tests for the request identifier codec and issuer."""

import pytest

from custody.codec import request_id as codec
from custody.codec.request_id import RequestIdIssuer
from custody.errors import (
    InvalidAmount,
    InvalidRequestId,
    InvalidTenant,
    RequestAlreadyUsed,
    RequestTenantMismatch,
    SequenceTooLarge,
)

MAX_SEQUENCE = 2**224 - 1
MAX_TENANT = 2**32 - 1


class TestEncodeDecode:
    @pytest.mark.parametrize(
        "sequence,tenant",
        [
            (0, 0),
            (1, 1),
            (42, 7),
            (MAX_SEQUENCE, 0),
            (0, MAX_TENANT),
            (MAX_SEQUENCE, MAX_TENANT),
            (2**100 + 12345, 2**31),
        ],
    )
    def test_round_trip(self, sequence: int, tenant: int) -> None:
        rid = codec.encode(sequence, tenant)
        assert codec.decode_tenant(rid) == tenant
        assert codec.decode_sequence(rid) == sequence
        assert codec.decode(rid) == (sequence, tenant)

    def test_layout_is_concatenation(self) -> None:
        assert codec.encode(5, 3) == (3 << 224) | 5
        assert codec.encode(MAX_SEQUENCE, MAX_TENANT) == 2**256 - 1

    def test_sequence_too_large(self) -> None:
        with pytest.raises(SequenceTooLarge):
            codec.encode(2**224, 1)

    def test_negative_sequence_rejected(self) -> None:
        with pytest.raises(InvalidAmount):
            codec.encode(-1, 1)

    def test_tenant_out_of_range(self) -> None:
        with pytest.raises(InvalidTenant):
            codec.encode(1, 2**32)
        with pytest.raises(InvalidTenant):
            codec.encode(1, -1)

    def test_decode_out_of_range(self) -> None:
        with pytest.raises(InvalidRequestId):
            codec.decode_tenant(2**256)
        with pytest.raises(InvalidRequestId):
            codec.decode_sequence(-1)

    def test_hex_round_trip(self) -> None:
        rid = codec.encode(42, 7)
        text = codec.to_hex(rid)
        assert len(text) == 66
        assert codec.from_hex(text) == rid

    def test_from_hex_rejects_garbage(self) -> None:
        with pytest.raises(InvalidRequestId):
            codec.from_hex("0xnothex")


class TestIssuer:
    def test_sequences_are_per_tenant(self) -> None:
        issuer = RequestIdIssuer()
        a1 = issuer.issue(1)
        a2 = issuer.issue(1)
        b1 = issuer.issue(2)
        assert codec.decode(a1) == (1, 1)
        assert codec.decode(a2) == (2, 1)
        assert codec.decode(b1) == (1, 2)
        assert issuer.last_sequence(1) == 2

    def test_issue_rejects_unset_tenant(self) -> None:
        with pytest.raises(InvalidTenant):
            RequestIdIssuer().issue(0)

    def test_consume_is_one_shot(self) -> None:
        issuer = RequestIdIssuer()
        rid = issuer.issue(7)
        issuer.consume(rid, 7)
        assert issuer.is_consumed(rid)
        with pytest.raises(RequestAlreadyUsed):
            issuer.consume(rid, 7)

    def test_tenant_mismatch(self) -> None:
        issuer = RequestIdIssuer()
        rid = issuer.issue(7)
        with pytest.raises(RequestTenantMismatch):
            issuer.consume(rid, 8)
        assert not issuer.is_consumed(rid)

    def test_next_id_does_not_advance(self) -> None:
        issuer = RequestIdIssuer()
        upcoming = issuer.next_id(3)
        assert issuer.last_sequence(3) == 0
        assert issuer.issue(3) == upcoming
        assert codec.decode(issuer.next_id(3)) == (2, 3)
