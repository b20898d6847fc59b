"""
zkstate 오류 계층
=================

  | 오류                   | 처리                                          |
  |------------------------|-----------------------------------------------|
  | ValidationError        | REJECTED 기록 반환                            |
  | UnsatisfiableCircuit   | REJECTED 기록 반환                            |
  | UnsupportedTokenType   | REJECTED 표시 후 전파                         |
  | AccumulatorIndexError  | REJECTED 표시 후 전파                         |
  | StaleWitness           | 재시도 (max_commit_attempts까지)              |
  | WitnessInconsistency   | CRITICAL 로그 후 전파 (alert)                 |
  | VerificationFailed     | CRITICAL 로그 후 전파 (alert)                 |

alert = True인 오류는 올바른 구현에서는 일어나지 않아야 하는 내부 결함이다.
"""


class ZkStateError(Exception):
    """zkstate가 발생시키는 모든 오류의 기반 클래스."""

    alert = False


class ConfigError(ZkStateError):
    """잘못된 설정 값 또는 읽을 수 없는 설정 파일."""


class ValidationError(ZkStateError):
    """전송 요청이 사전 조건을 위반함 (잔액 부족, 소유 불일치,
    송신자 == 수신자, 에스크로 보류 등)."""


class UnsupportedTokenType(ZkStateError):
    """해당 유형의 변형(리프 인코딩, 전이 규칙, 회로)이 없음."""

    def __init__(self, token_type):
        super().__init__(f"unsupported token type: {token_type!r}")
        self.token_type = token_type


class AccumulatorIndexError(ZkStateError, IndexError):
    """리프 인덱스가 [0, 2^depth) 범위 밖."""

    def __init__(self, index, capacity):
        super().__init__(f"leaf index {index} out of range for {capacity} leaves")
        self.index = index
        self.capacity = capacity


class WitnessInconsistency(ZkStateError):
    """로컬에서 재생한 포함 경로가 기대한 루트를 만들지 못함."""

    alert = True


class UnsatisfiableCircuit(ZkStateError):
    """조립된 증인이 제약을 하나 이상 위반함. failed에 제약 라벨."""

    def __init__(self, circuit_id, failed=()):
        failed = list(failed)
        shown = ", ".join(failed[:5])
        if len(failed) > 5:
            shown += f", ... ({len(failed)} total)"
        super().__init__(f"circuit {circuit_id} unsatisfied: {shown}")
        self.circuit_id = circuit_id
        self.failed = failed


class VerificationFailed(ZkStateError):
    """자체 증명기가 만든 증명이 검증되지 않음."""

    alert = True


class StaleWitness(ZkStateError):
    """증인을 만든 뒤 권위 있는 루트가 움직임."""


class InvalidTransition(ZkStateError):
    """허용되지 않는 기록 상태 전이, 또는 최종 기록의 수정."""
