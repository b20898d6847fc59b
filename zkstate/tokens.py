"""
토큰 변형 (Token Variants): 리프 인코딩과 전이 규칙
===================================================

모든 리프는 {owner_key, nonce, token_id, state[4]} 형태이며,
토큰 유형에 따라 state 슬롯의 의미와 리프 해시 방식이 다르다.

  | 유형          | slot 0   | slot 1          | slot 2        | slot 3        |
  |---------------|----------|-----------------|---------------|---------------|
  | FUNGIBLE (0)  | balance  | reserved        | unused        | unused        |
  | NFT (1)       | owns     | unused          | unused        | unused        |
  | ATTRIBUTE (2) | owns     | level           | power         | rarity        |
  | ESCROW (3)    | owns     | escrow provider | escrow status | escrow amount |

**리프 인코딩**:
  - FUNGIBLE: H(owner, balance, nonce)
  - NFT: H(owner, owns, nonce, token_id)
  - ATTRIBUTE / ESCROW: H(owner, nonce, token_id, H(state₀, state₁, state₂, state₃))

**전이 규칙**은 validate()에서 사전 조건을 검사하고 transition()에서
사후 상태를 계산한다. 회로(zkstate.circuit.transfer)는 같은 규칙을
제약으로 다시 표현하므로, 두 곳의 규칙이 어긋나면 증명이 불만족된다.

전송 후에도 리프의 nonce는 바뀌지 않는다. 재사용 방지는 tx_nonce와
타임스탬프를 포함한 바인딩 커밋먼트가 담당한다.

**바인딩 커밋먼트** (모든 유형 공통):
  H(sender_key, receiver_key, token_id, token_type, transfer_param, tx_nonce, timestamp)
  FUNGIBLE의 리프에는 token_id가 없으므로, 증명이 어느 토큰에 대한 것인지는
  바인딩이 고정한다.
"""

from dataclasses import dataclass, replace
from enum import IntEnum

from zkstate.errors import UnsupportedTokenType, ValidationError
from zkstate.field import fits_bits, is_canonical
from zkstate.poseidon import poseidon


STATE_SIZE = 4

DEFAULT_RANGE_BITS = 64


class TokenType(IntEnum):
    FUNGIBLE = 0
    NFT = 1
    ATTRIBUTE = 2
    ESCROW = 3

    @classmethod
    def parse(cls, value):
        """정수/이름/TokenType을 TokenType으로 변환한다.

        Raises:
            UnsupportedTokenType: 알 수 없는 유형
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.upper()]
            except KeyError:
                raise UnsupportedTokenType(value) from None
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedTokenType(value) from None


@dataclass(frozen=True)
class Leaf:
    """누산기 리프의 평문 내용."""
    owner_key: int
    nonce: int
    token_id: int
    state: tuple

    def with_state(self, state):
        return replace(self, state=tuple(state))


@dataclass(frozen=True)
class TransferParams:
    """유형별 전송 파라미터. 사용하지 않는 필드는 0."""
    amount: int = 0
    escrow_provider: int = 0


# ─────────────────────────────────────────────────────────────────────
# 공통 기반
# ─────────────────────────────────────────────────────────────────────

class TokenVariant:
    """토큰 유형 하나의 인코딩/검증/전이 규칙."""

    token_type = None
    circuit_name = None
    state_labels = ()

    def encode_leaf(self, leaf):
        raise NotImplementedError

    def check_preconditions(self, sender, receiver, params, range_bits):
        raise NotImplementedError

    def transition(self, sender_state, receiver_state, params):
        """(sender_after, receiver_after) 상태 튜플을 반환한다."""
        raise NotImplementedError

    def transfer_param(self, params):
        return 0

    def validate(self, sender, receiver, params, range_bits=DEFAULT_RANGE_BITS):
        """전송 사전 조건 검사. 위반 시 ValidationError."""
        for role, leaf in (("sender", sender), ("receiver", receiver)):
            if len(leaf.state) != STATE_SIZE:
                raise ValidationError(f"{role} state must have {STATE_SIZE} slots")
            fields = (leaf.owner_key, leaf.nonce, leaf.token_id) + tuple(leaf.state)
            if not all(is_canonical(v) for v in fields):
                raise ValidationError(f"{role} leaf holds a value outside the field")
        for value in (params.amount, params.escrow_provider):
            if not is_canonical(value):
                raise ValidationError(f"transfer parameter outside the field: {value!r}")
        self.check_preconditions(sender, receiver, params, range_bits)

    def binding_fields(self, sender_key, receiver_key, token_id, params, tx_nonce, timestamp):
        return [sender_key, receiver_key, token_id, int(self.token_type),
                self.transfer_param(params), tx_nonce, timestamp]

    def binding_commitment(self, sender_key, receiver_key, token_id, params, tx_nonce, timestamp):
        """트랜잭션 바인딩 커밋먼트 (공개 tx_log_id)."""
        return poseidon(self.binding_fields(sender_key, receiver_key, token_id,
                                            params, tx_nonce, timestamp))

    def __repr__(self):
        return f"<{type(self).__name__} {self.token_type.name}>"


def _state_commitment(state):
    return poseidon(list(state))


# ─────────────────────────────────────────────────────────────────────
# 변형별 규칙
# ─────────────────────────────────────────────────────────────────────

class FungibleToken(TokenVariant):
    token_type = TokenType.FUNGIBLE
    circuit_name = "fungible_transfer"
    state_labels = ("balance", "reserved", "unused", "unused")

    def encode_leaf(self, leaf):
        return poseidon([leaf.owner_key, leaf.state[0], leaf.nonce])

    def check_preconditions(self, sender, receiver, params, range_bits):
        amount = params.amount
        balance = sender.state[0]
        if amount <= 0:
            raise ValidationError("amount must be positive")
        if not fits_bits(balance, range_bits) or not fits_bits(receiver.state[0], range_bits):
            raise ValidationError(f"balance exceeds {range_bits}-bit range")
        if amount > balance:
            raise ValidationError(f"insufficient balance: {balance} < {amount}")
        if not fits_bits(receiver.state[0] + amount, range_bits):
            raise ValidationError(f"receiver balance would exceed {range_bits}-bit range")

    def transition(self, sender_state, receiver_state, params):
        sender_after = (sender_state[0] - params.amount,) + tuple(sender_state[1:])
        receiver_after = (receiver_state[0] + params.amount,) + tuple(receiver_state[1:])
        return sender_after, receiver_after

    def transfer_param(self, params):
        return params.amount


class NFTToken(TokenVariant):
    token_type = TokenType.NFT
    circuit_name = "nft_transfer"
    state_labels = ("owns", "unused", "unused", "unused")

    def encode_leaf(self, leaf):
        return poseidon([leaf.owner_key, leaf.state[0], leaf.nonce, leaf.token_id])

    def check_preconditions(self, sender, receiver, params, range_bits):
        if sender.state[0] != 1:
            raise ValidationError("sender does not own the token")
        if receiver.state[0] != 0:
            raise ValidationError("receiver already owns the token")
        if any(sender.state[1:]) or any(receiver.state[1:]):
            raise ValidationError("unused NFT state slots must be zero")

    def transition(self, sender_state, receiver_state, params):
        return (0, 0, 0, 0), (1, 0, 0, 0)


class AttributeToken(TokenVariant):
    token_type = TokenType.ATTRIBUTE
    circuit_name = "attribute_transfer"
    state_labels = ("owns", "level", "power", "rarity")

    def encode_leaf(self, leaf):
        return poseidon([leaf.owner_key, leaf.nonce, leaf.token_id, _state_commitment(leaf.state)])

    def check_preconditions(self, sender, receiver, params, range_bits):
        if sender.state[0] != 1:
            raise ValidationError("sender does not own the token")
        if any(receiver.state):
            raise ValidationError("receiver already holds attribute state for the token")

    def transition(self, sender_state, receiver_state, params):
        return (0, 0, 0, 0), tuple(sender_state)


class EscrowToken(TokenVariant):
    token_type = TokenType.ESCROW
    circuit_name = "escrow_transfer"
    state_labels = ("owns", "escrow_provider", "escrow_status", "escrow_amount")

    def encode_leaf(self, leaf):
        return poseidon([leaf.owner_key, leaf.nonce, leaf.token_id, _state_commitment(leaf.state)])

    def check_preconditions(self, sender, receiver, params, range_bits):
        if sender.state[0] != 1:
            raise ValidationError("sender does not own the token")
        if receiver.state[0] != 0:
            raise ValidationError("receiver already owns the token")
        if sender.state[2] != 0:
            raise ValidationError("escrow hold is active")

    def transition(self, sender_state, receiver_state, params):
        receiver_after = (1, params.escrow_provider, 0, sender_state[3])
        return (0, 0, 0, 0), receiver_after

    def transfer_param(self, params):
        return params.escrow_provider


VARIANTS = {
    TokenType.FUNGIBLE: FungibleToken(),
    TokenType.NFT: NFTToken(),
    TokenType.ATTRIBUTE: AttributeToken(),
    TokenType.ESCROW: EscrowToken(),
}


def variant_for(token_type):
    """토큰 유형에 해당하는 변형 규칙.

    Raises:
        UnsupportedTokenType: 정의되지 않은 유형
    """
    return VARIANTS[TokenType.parse(token_type)]
