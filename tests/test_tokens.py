"""
토큰 변형 테스트
================

리프 인코딩, 사전 조건 검사, 상태 전이, 바인딩 커밋먼트.
"""

import pytest

from zkstate.errors import UnsupportedTokenType, ValidationError
from zkstate.field import CURVE_ORDER
from zkstate.poseidon import poseidon
from zkstate.tokens import (
    AttributeToken, EscrowToken, FungibleToken, Leaf, NFTToken, TokenType, TransferParams,
    VARIANTS, variant_for,
)


def leaf(owner, state, nonce=1, token_id=1):
    return Leaf(owner, nonce, token_id, tuple(state))


class TestTokenType:
    def test_parse_int(self):
        assert TokenType.parse(2) is TokenType.ATTRIBUTE

    def test_parse_name(self):
        assert TokenType.parse("escrow") is TokenType.ESCROW

    @pytest.mark.parametrize("value", [7, -1, "gold"])
    def test_unknown(self, value):
        with pytest.raises(UnsupportedTokenType):
            TokenType.parse(value)

    def test_every_type_has_variant(self):
        assert set(VARIANTS) == set(TokenType)

    def test_variant_for_unknown(self):
        with pytest.raises(UnsupportedTokenType):
            variant_for(9)


class TestLeafEncoding:
    def test_fungible_is_three_ary(self):
        l = leaf(11, (500000, 0, 0, 0), nonce=7)
        assert FungibleToken().encode_leaf(l) == poseidon([11, 500000, 7])

    def test_nft_is_four_ary(self):
        l = leaf(11, (1, 0, 0, 0), nonce=7, token_id=2)
        assert NFTToken().encode_leaf(l) == poseidon([11, 1, 7, 2])

    def test_attribute_nests_state_hash(self):
        l = leaf(11, (1, 5, 80, 3), nonce=9, token_id=3)
        expected = poseidon([11, 9, 3, poseidon([1, 5, 80, 3])])
        assert AttributeToken().encode_leaf(l) == expected

    def test_escrow_matches_attribute_layout(self):
        l = leaf(11, (1, 77, 0, 2500), nonce=9, token_id=4)
        assert EscrowToken().encode_leaf(l) == AttributeToken().encode_leaf(l)

    def test_state_change_changes_leaf(self):
        v = FungibleToken()
        assert v.encode_leaf(leaf(11, (5, 0, 0, 0))) != v.encode_leaf(leaf(11, (6, 0, 0, 0)))


# ─────────────────────────────────────────────────────────────────────
# FUNGIBLE
# ─────────────────────────────────────────────────────────────────────

class TestFungible:
    v = FungibleToken()

    def test_transition(self):
        s, r = self.v.transition((500000, 0, 0, 0), (120000, 0, 0, 0), TransferParams(amount=7500))
        assert s == (492500, 0, 0, 0)
        assert r == (127500, 0, 0, 0)

    def test_conservation(self):
        params = TransferParams(amount=123)
        s, r = self.v.transition((1000, 0, 0, 0), (55, 0, 0, 0), params)
        assert s[0] + r[0] == 1000 + 55

    def test_reserved_slot_kept(self):
        s, r = self.v.transition((10, 9, 0, 0), (0, 4, 0, 0), TransferParams(amount=1))
        assert s[1] == 9 and r[1] == 4

    def test_insufficient_balance(self):
        with pytest.raises(ValidationError):
            self.v.validate(leaf(11, (500000, 0, 0, 0)), leaf(22, (120000, 0, 0, 0)),
                            TransferParams(amount=600000))

    def test_exact_balance_allowed(self):
        self.v.validate(leaf(11, (100, 0, 0, 0)), leaf(22, (0, 0, 0, 0)), TransferParams(amount=100))

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount(self, amount):
        with pytest.raises(ValidationError):
            self.v.validate(leaf(11, (100, 0, 0, 0)), leaf(22, (0, 0, 0, 0)),
                            TransferParams(amount=amount))

    def test_receiver_overflow(self):
        with pytest.raises(ValidationError):
            self.v.validate(leaf(11, (100, 0, 0, 0)), leaf(22, ((1 << 64) - 50, 0, 0, 0)),
                            TransferParams(amount=100))

    def test_custom_range_bits(self):
        with pytest.raises(ValidationError):
            self.v.validate(leaf(11, (300, 0, 0, 0)), leaf(22, (0, 0, 0, 0)),
                            TransferParams(amount=1), range_bits=8)

    def test_out_of_field_value(self):
        with pytest.raises(ValidationError):
            self.v.validate(leaf(CURVE_ORDER, (100, 0, 0, 0)), leaf(22, (0, 0, 0, 0)),
                            TransferParams(amount=1))

    def test_wrong_state_size(self):
        with pytest.raises(ValidationError):
            self.v.validate(leaf(11, (100, 0, 0)), leaf(22, (0, 0, 0, 0)), TransferParams(amount=1))

    def test_binding_fields(self):
        fields = self.v.binding_fields(11, 22, 1, TransferParams(amount=7500), 5, 1700000000)
        assert fields == [11, 22, 1, 0, 7500, 5, 1700000000]

    def test_binding_depends_on_token(self):
        """리프에 token_id가 없어도 tx_log_id는 토큰마다 다르다."""
        params = TransferParams(amount=7500)
        a = self.v.binding_commitment(11, 22, 1, params, 5, 1700000000)
        b = self.v.binding_commitment(11, 22, 999, params, 5, 1700000000)
        assert a != b


# ─────────────────────────────────────────────────────────────────────
# NFT / ATTRIBUTE / ESCROW
# ─────────────────────────────────────────────────────────────────────

class TestNFT:
    v = NFTToken()

    def test_transition(self):
        s, r = self.v.transition((1, 0, 0, 0), (0, 0, 0, 0), TransferParams())
        assert (s[0], r[0]) == (0, 1)

    def test_exclusivity(self):
        """전이 전후 모두 정확히 한 명만 소유한다."""
        before = ((1, 0, 0, 0), (0, 0, 0, 0))
        after = self.v.transition(*before, TransferParams())
        assert before[0][0] + before[1][0] == 1
        assert after[0][0] + after[1][0] == 1

    def test_sender_must_own(self):
        with pytest.raises(ValidationError):
            self.v.validate(leaf(11, (0, 0, 0, 0)), leaf(22, (0, 0, 0, 0)), TransferParams())

    def test_receiver_already_owns(self):
        with pytest.raises(ValidationError):
            self.v.validate(leaf(11, (1, 0, 0, 0)), leaf(22, (1, 0, 0, 0)), TransferParams())

    def test_unused_slots_must_be_zero(self):
        with pytest.raises(ValidationError):
            self.v.validate(leaf(11, (1, 3, 0, 0)), leaf(22, (0, 0, 0, 0)), TransferParams())

    def test_binding_includes_token(self):
        fields = self.v.binding_fields(11, 22, 2, TransferParams(), 5, 6)
        assert fields == [11, 22, 2, 1, 0, 5, 6]


class TestAttribute:
    v = AttributeToken()

    def test_moves_all_slots(self):
        s, r = self.v.transition((1, 5, 80, 3), (0, 0, 0, 0), TransferParams())
        assert s == (0, 0, 0, 0)
        assert r == (1, 5, 80, 3)

    def test_receiver_must_be_empty(self):
        with pytest.raises(ValidationError):
            self.v.validate(leaf(11, (1, 5, 80, 3)), leaf(22, (0, 1, 0, 0)), TransferParams())

    def test_sender_must_own(self):
        with pytest.raises(ValidationError):
            self.v.validate(leaf(11, (0, 5, 80, 3)), leaf(22, (0, 0, 0, 0)), TransferParams())


class TestEscrow:
    v = EscrowToken()

    def test_transition(self):
        s, r = self.v.transition((1, 77, 0, 2500), (0, 0, 0, 0), TransferParams(escrow_provider=88))
        assert s == (0, 0, 0, 0)
        assert r == (1, 88, 0, 2500)

    def test_active_hold_blocks(self):
        with pytest.raises(ValidationError):
            self.v.validate(leaf(11, (1, 77, 1, 900)), leaf(22, (0, 0, 0, 0)),
                            TransferParams(escrow_provider=88))

    def test_receiver_already_owns(self):
        with pytest.raises(ValidationError):
            self.v.validate(leaf(11, (1, 77, 0, 900)), leaf(22, (1, 0, 0, 0)),
                            TransferParams(escrow_provider=88))

    def test_transfer_param_is_provider(self):
        assert self.v.transfer_param(TransferParams(escrow_provider=88)) == 88

    def test_commitment_depends_on_provider(self):
        a = self.v.binding_commitment(11, 22, 4, TransferParams(escrow_provider=1), 5, 6)
        b = self.v.binding_commitment(11, 22, 4, TransferParams(escrow_provider=2), 5, 6)
        assert a != b
