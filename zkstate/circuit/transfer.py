"""
전송 회로 (Transfer Circuits)
=============================

토큰 유형별 상태 전이 회로. 네 변형 모두 같은 입력 배치를 공유하고,
리프 인코딩과 전이 제약만 다르다.

**공개 입력** (선언 순서):
  root_before, root_after, tx_log_id (+ NFT/ATTRIBUTE/ESCROW: token_id)

**비공개 입력**:
  sender_key, receiver_key, sender_nonce, receiver_nonce, (FUNGIBLE: token_id),
  {sender,receiver}_state_{before,after}[4], transfer_param, tx_nonce, tx_timestamp,
  {sender,receiver}_{siblings,path_bits}_{before,after}[depth]

**공통 제약**:
  1. 리프 인코딩을 비공개 필드에서 다시 계산 (4개: 송신/수신 × 전/후)
  2. 포함 증명 4개: 전 리프 → root_before, 후 리프 → root_after
  3. 각 당사자의 경로 비트는 전/후 동일 (같은 리프 위치)
  4. 송신자와 수신자의 리프 위치는 서로 다름
  5. 변형별 전이 제약
  6. 바인딩 커밋먼트 H(keys, token_id, token_type, param, tx_nonce, timestamp) = tx_log_id

컴파일된 회로는 (유형, 깊이, 범위 비트)마다 한 번만 만들어 공유한다.
"""

import logging
from functools import lru_cache

from zkstate.circuit.gadgets import (
    assert_not_equal, merkle_inclusion, num_to_bits, pack_bits, poseidon, range_check,
)
from zkstate.circuit.r1cs import ConstraintSystem
from zkstate.tokens import DEFAULT_RANGE_BITS, STATE_SIZE, TokenType

logger = logging.getLogger(__name__)

CIRCUIT_VERSION = "1.0.0"

ROLES = ("sender", "receiver")
PHASES = ("before", "after")


# ─────────────────────────────────────────────────────────────────────
# 공통 회로 구조
# ─────────────────────────────────────────────────────────────────────

class TransferCircuit:
    """전송 회로 빌더의 공통 부분. 하위 클래스가 변형별 제약을 정의한다."""

    token_type = None
    circuit_name = None
    public_token_id = True

    def __init__(self, depth, range_bits=DEFAULT_RANGE_BITS):
        self.depth = depth
        self.range_bits = range_bits

    @property
    def circuit_id(self):
        suffix = "" if self.range_bits == DEFAULT_RANGE_BITS else f"_r{self.range_bits}"
        return f"{self.circuit_name}_d{self.depth}{suffix}"

    def encode_leaf(self, cs, key, nonce, token_id, state, name):
        raise NotImplementedError

    def constrain_transition(self, cs, s):
        raise NotImplementedError

    def binding_inputs(self, s):
        return [s["sender_key"], s["receiver_key"], s["token_id"], int(self.token_type),
                s["transfer_param"], s["tx_nonce"], s["tx_timestamp"]]

    def build(self):
        """제약 시스템을 만들고 고정(seal)하여 반환한다."""
        cs = ConstraintSystem(self.circuit_id)
        s = {}

        # 공개 입력은 가장 먼저 선언
        s["root_before"] = cs.public_input("root_before")
        s["root_after"] = cs.public_input("root_after")
        s["tx_log_id"] = cs.public_input("tx_log_id")
        s["token_id"] = cs.public_input("token_id") if self.public_token_id else None

        for role in ROLES:
            s[f"{role}_key"] = cs.private_input(f"{role}_key")
            s[f"{role}_nonce"] = cs.private_input(f"{role}_nonce")
        if s["token_id"] is None:
            # 리프에 token_id가 없는 변형도 바인딩에는 넣는다
            s["token_id"] = cs.private_input("token_id")
        for role in ROLES:
            for phase in PHASES:
                key = f"{role}_state_{phase}"
                s[key] = cs.private_input(key, STATE_SIZE)
        s["transfer_param"] = cs.private_input("transfer_param")
        s["tx_nonce"] = cs.private_input("tx_nonce")
        s["tx_timestamp"] = cs.private_input("tx_timestamp")
        for role in ROLES:
            for phase in PHASES:
                s[f"{role}_siblings_{phase}"] = cs.private_input(f"{role}_siblings_{phase}", self.depth)
                s[f"{role}_path_bits_{phase}"] = cs.private_input(f"{role}_path_bits_{phase}", self.depth)

        # 1-2. 리프 인코딩과 포함 증명
        for role in ROLES:
            for phase in PHASES:
                leaf = self.encode_leaf(cs, s[f"{role}_key"], s[f"{role}_nonce"], s["token_id"],
                                        s[f"{role}_state_{phase}"], f"{role}_leaf_{phase}")
                merkle_inclusion(cs, leaf, s[f"{role}_siblings_{phase}"],
                                 s[f"{role}_path_bits_{phase}"], s[f"root_{phase}"],
                                 f"{role}_path_{phase}")

        # 3. 전/후 같은 리프 위치
        for role in ROLES:
            for d in range(self.depth):
                cs.enforce_equal(s[f"{role}_path_bits_before"][d], s[f"{role}_path_bits_after"][d],
                                 f"{role}_same_index[{d}]")

        # 4. 송신자 ≠ 수신자
        assert_not_equal(cs, pack_bits(s["sender_path_bits_before"]),
                         pack_bits(s["receiver_path_bits_before"]), "distinct_leaves")

        # 5. 전이 규칙
        self.constrain_transition(cs, s)

        # 6. 바인딩
        commitment = poseidon(cs, self.binding_inputs(s), "binding")
        cs.enforce_equal(commitment, s["tx_log_id"], "binding")

        logger.debug("built %s: %d signals, %d constraints",
                     cs.name, cs.num_signals, cs.num_constraints)
        return cs.seal()

    # ── 변형별 헬퍼 ──

    def _enforce_state(self, cs, state, values, label):
        """state 슬롯을 상수/신호 값에 고정한다. values의 None은 건너뛴다."""
        for i, value in enumerate(values):
            if value is not None:
                cs.enforce_equal(state[i], value, f"{label}[{i}]")

    def _bit(self, cs, x, label):
        """소유 비트를 1비트로 분해한다."""
        return num_to_bits(cs, x, 1, label)[0]


def _state_hash(cs, state, name):
    return poseidon(cs, list(state), name)


# ─────────────────────────────────────────────────────────────────────
# 변형별 회로
# ─────────────────────────────────────────────────────────────────────

class FungibleTransferCircuit(TransferCircuit):
    """대체 가능 토큰: 잔액 이동과 보존.

    amount ≥ 1, 전/후 잔액이 모두 range_bits 범위 안에 있어야 하므로
    필드의 모듈러 순환으로 음수 잔액을 만들 수 없다.
    """

    token_type = TokenType.FUNGIBLE
    circuit_name = "fungible_transfer"
    public_token_id = False

    def encode_leaf(self, cs, key, nonce, token_id, state, name):
        return poseidon(cs, [key, state[0], nonce], name)

    def constrain_transition(self, cs, s):
        amount = s["transfer_param"]
        sb, rb = s["sender_state_before"], s["receiver_state_before"]
        sa, ra = s["sender_state_after"], s["receiver_state_after"]
        n = self.range_bits

        range_check(cs, amount - 1, n, "amount_positive")
        range_check(cs, sb[0], n, "sender_balance_before")
        range_check(cs, rb[0], n, "receiver_balance_before")
        cs.enforce_equal(sa[0], sb[0] - amount, "sender_debit")
        cs.enforce_equal(ra[0], rb[0] + amount, "receiver_credit")
        range_check(cs, sa[0], n, "sender_balance_after")
        range_check(cs, ra[0], n, "receiver_balance_after")
        for i in range(1, STATE_SIZE):
            cs.enforce_equal(sa[i], sb[i], f"sender_slot_kept[{i}]")
            cs.enforce_equal(ra[i], rb[i], f"receiver_slot_kept[{i}]")


class NFTTransferCircuit(TransferCircuit):
    """NFT: 소유 비트가 송신자 1 → 0, 수신자 0 → 1."""

    token_type = TokenType.NFT
    circuit_name = "nft_transfer"

    def encode_leaf(self, cs, key, nonce, token_id, state, name):
        return poseidon(cs, [key, state[0], nonce, token_id], name)

    def constrain_transition(self, cs, s):
        sender_owns = self._bit(cs, s["sender_state_before"][0], "sender_owns_before")
        receiver_owns = self._bit(cs, s["receiver_state_before"][0], "receiver_owns_before")
        cs.enforce_equal(sender_owns, 1, "sender_owns")
        cs.enforce_equal(receiver_owns, 0, "receiver_not_owner")
        self._enforce_state(cs, s["sender_state_before"], (None, 0, 0, 0), "sender_before_unused")
        self._enforce_state(cs, s["receiver_state_before"], (None, 0, 0, 0), "receiver_before_unused")
        self._enforce_state(cs, s["sender_state_after"], (0, 0, 0, 0), "sender_after")
        self._enforce_state(cs, s["receiver_state_after"], (1, 0, 0, 0), "receiver_after")
        cs.enforce_equal(s["transfer_param"], 0, "transfer_param_zero")


class AttributeTransferCircuit(TransferCircuit):
    """속성 토큰: 네 슬롯이 원자적으로 수신자에게 이동한다."""

    token_type = TokenType.ATTRIBUTE
    circuit_name = "attribute_transfer"

    def encode_leaf(self, cs, key, nonce, token_id, state, name):
        return poseidon(cs, [key, nonce, token_id, _state_hash(cs, state, f"{name}.state")], name)

    def constrain_transition(self, cs, s):
        sb = s["sender_state_before"]
        sender_owns = self._bit(cs, sb[0], "sender_owns_before")
        cs.enforce_equal(sender_owns, 1, "sender_owns")
        self._enforce_state(cs, s["receiver_state_before"], (0, 0, 0, 0), "receiver_before_empty")
        self._enforce_state(cs, s["receiver_state_after"], sb, "receiver_after")
        self._enforce_state(cs, s["sender_state_after"], (0, 0, 0, 0), "sender_after")
        cs.enforce_equal(s["transfer_param"], 0, "transfer_param_zero")


class EscrowTransferCircuit(TransferCircuit):
    """에스크로 토큰: 활성 보류(status = 1) 중에는 이동 불가.

    수신자 상태 = [1, 새 에스크로 제공자(transfer_param), 0, 송신자 에스크로 금액]
    """

    token_type = TokenType.ESCROW
    circuit_name = "escrow_transfer"

    def encode_leaf(self, cs, key, nonce, token_id, state, name):
        return poseidon(cs, [key, nonce, token_id, _state_hash(cs, state, f"{name}.state")], name)

    def constrain_transition(self, cs, s):
        sb = s["sender_state_before"]
        sender_owns = self._bit(cs, sb[0], "sender_owns_before")
        receiver_owns = self._bit(cs, s["receiver_state_before"][0], "receiver_owns_before")
        cs.enforce_equal(sender_owns, 1, "sender_owns")
        cs.enforce_equal(receiver_owns, 0, "receiver_not_owner")
        cs.enforce_equal(sb[2], 0, "escrow_not_held")
        self._enforce_state(cs, s["sender_state_after"], (0, 0, 0, 0), "sender_after")
        self._enforce_state(cs, s["receiver_state_after"],
                            (1, s["transfer_param"], 0, sb[3]), "receiver_after")


CIRCUITS = {
    TokenType.FUNGIBLE: FungibleTransferCircuit,
    TokenType.NFT: NFTTransferCircuit,
    TokenType.ATTRIBUTE: AttributeTransferCircuit,
    TokenType.ESCROW: EscrowTransferCircuit,
}


# ─────────────────────────────────────────────────────────────────────
# 컴파일
# ─────────────────────────────────────────────────────────────────────

class CompiledCircuit:
    """컴파일이 끝난 읽기 전용 회로.

    속성:
        circuit_id: 백엔드 키 (예: "fungible_transfer_d4")
        token_type: TokenType
        depth: 누산기 깊이
        range_bits: 잔액 범위 비트
        cs: 고정된 ConstraintSystem
        version: 회로 버전
    """

    def __init__(self, circuit_id, token_type, depth, range_bits, cs, version=CIRCUIT_VERSION):
        self.circuit_id = circuit_id
        self.token_type = token_type
        self.depth = depth
        self.range_bits = range_bits
        self.cs = cs
        self.version = version
        self._hash = None

    @property
    def name(self):
        return self.cs.name

    @property
    def circuit_hash(self):
        if self._hash is None:
            self._hash = self.cs.structure_hash()
        return self._hash

    @property
    def num_constraints(self):
        return self.cs.num_constraints

    def split_inputs(self, assignment):
        """전체 입력 딕셔너리를 (공개, 비공개)로 나눈다."""
        public_names = self.cs.public_input_names()
        private_names = self.cs.private_input_names()
        missing = [n for n in public_names + private_names if n not in assignment]
        if missing:
            raise ValueError(f"입력 누락: {missing}")
        public = {n: assignment[n] for n in public_names}
        private = {n: assignment[n] for n in private_names}
        return public, private

    def __repr__(self):
        return f"CompiledCircuit({self.circuit_id!r}, constraints={self.num_constraints})"


@lru_cache(maxsize=None)
def compile_circuit(token_type, depth=4, range_bits=DEFAULT_RANGE_BITS):
    """(유형, 깊이, 범위 비트)별 회로를 한 번만 컴파일한다.

    Raises:
        UnsupportedTokenType: 회로가 없는 유형
    """
    token_type = TokenType.parse(token_type)
    builder = CIRCUITS[token_type](depth, range_bits)
    cs = builder.build()
    logger.info("compiled circuit %s (%d constraints)", builder.circuit_id, cs.num_constraints)
    return CompiledCircuit(builder.circuit_id, token_type, depth, range_bits, cs)
