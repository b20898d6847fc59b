"""
전송 요청과 전송 기록 (상태 기계)
=================================

  REQUESTED → VALIDATED → WITNESS_BUILT → PROVEN → VERIFIED → COMMITTED

REJECTED와 COMMITTED는 최종 상태이며, 최종 기록은 어떤 속성도 바꿀 수 없다.
"""

from dataclasses import dataclass, field
from enum import Enum

from zkstate.errors import InvalidTransition
from zkstate.tokens import TransferParams


class TransferStatus(Enum):
    REQUESTED = "requested"
    VALIDATED = "validated"
    WITNESS_BUILT = "witness_built"
    PROVEN = "proven"
    VERIFIED = "verified"
    COMMITTED = "committed"
    REJECTED = "rejected"


# VERIFIED -> REQUESTED: 커밋 전에 증인이 오래됨 (재시도)
# PROVEN -> REJECTED: 자체 증명이 검증에 실패함
# VERIFIED -> REJECTED: 커밋 중 저장소 쓰기가 실패해 되돌림
TRANSITIONS = {
    TransferStatus.REQUESTED: {TransferStatus.VALIDATED, TransferStatus.REJECTED},
    TransferStatus.VALIDATED: {TransferStatus.WITNESS_BUILT, TransferStatus.REQUESTED,
                               TransferStatus.REJECTED},
    TransferStatus.WITNESS_BUILT: {TransferStatus.PROVEN, TransferStatus.REJECTED},
    TransferStatus.PROVEN: {TransferStatus.VERIFIED, TransferStatus.REJECTED},
    TransferStatus.VERIFIED: {TransferStatus.COMMITTED, TransferStatus.REQUESTED,
                              TransferStatus.REJECTED},
    TransferStatus.COMMITTED: set(),
    TransferStatus.REJECTED: set(),
}

FINAL = {TransferStatus.COMMITTED, TransferStatus.REJECTED}


@dataclass(frozen=True)
class TransferRequest:
    token_id: int
    sender_index: int
    receiver_index: int
    params: TransferParams = field(default_factory=TransferParams)
    tx_nonce: int = None
    timestamp: int = None


class TransferRecord:
    """파이프라인을 통과하는 전송 하나.

    각 단계가 필드를 채운다. COMMITTED 또는 REJECTED에 도달하면
    이후의 모든 대입은 InvalidTransition을 발생시킨다.
    """

    def __init__(self, request, tx_nonce, timestamp):
        object.__setattr__(self, "_final", False)
        self.token_id = request.token_id
        self.sender_index = request.sender_index
        self.receiver_index = request.receiver_index
        self.params = request.params
        self.tx_nonce = tx_nonce
        self.timestamp = timestamp
        self.token_type = None
        self.circuit_id = None
        self.sender_key = None
        self.receiver_key = None
        self.sender_state_before = None
        self.receiver_state_before = None
        self.sender_state_after = None
        self.receiver_state_after = None
        self.root_before = None
        self.root_after = None
        self.tx_log_id = None
        self.witness = None
        self.proof = None
        self.public_signals = None
        self.metadata = None
        self.error = None
        self.attempts = 0
        self.status = TransferStatus.REQUESTED

    def __setattr__(self, name, value):
        if self._final:
            raise InvalidTransition(f"transfer record is final ({self.status.value}); cannot set {name}")
        super().__setattr__(name, value)

    @property
    def is_final(self):
        return self._final

    def advance(self, status):
        if status not in TRANSITIONS[self.status]:
            raise InvalidTransition(f"{self.status.value} -> {status.value} is not allowed")
        self.status = status
        if status in FINAL:
            object.__setattr__(self, "_final", True)

    def reject(self, error):
        self.error = str(error)
        self.advance(TransferStatus.REJECTED)

    def reset_for_retry(self):
        """오래된 누산기 스냅샷에서 파생된 값을 모두 버린다."""
        for name in ("sender_state_after", "receiver_state_after", "root_before",
                     "root_after", "tx_log_id", "witness", "proof", "public_signals", "metadata"):
            setattr(self, name, None)
        self.advance(TransferStatus.REQUESTED)

    def __repr__(self):
        return (f"TransferRecord(token={self.token_id}, {self.sender_index}->{self.receiver_index}, "
                f"status={self.status.value})")


class LoggedVerification:
    """로그에 저장된 전송 하나를 다시 검증한 결과.

    속성:
        verified: 백엔드가 저장된 증명을 받아들였는지
        errors, warnings: 메타데이터와 공개 신호 대조 결과
    """

    def __init__(self, tx_log_id, verified, errors, warnings):
        self.tx_log_id = tx_log_id
        self.verified = verified
        self.errors = errors
        self.warnings = warnings

    @property
    def ok(self):
        return self.verified and not self.errors

    def __repr__(self):
        return (f"LoggedVerification(verified={self.verified}, errors={len(self.errors)}, "
                f"warnings={len(self.warnings)})")
