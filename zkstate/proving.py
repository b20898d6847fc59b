"""
증명 도구 경계 (Proving Backend)
================================

파이프라인은 ProvingBackend하고만 통신한다. 백엔드는 증명할 수 있는
컴파일된 회로를 보관하고, 이름 붙은 입력에서 증인을 풀며, 만족하지 않는
할당은 증명 작업 전에 거부한다.

하위 클래스는 _setup / _prove / _verify를 구현한다. 검증 키가 없는
백엔드는 verification_key에서 None을 돌려준다.
"""

import logging

from zkstate.errors import UnsatisfiableCircuit

logger = logging.getLogger(__name__)


class ProofResult:
    """prove의 결과: 불투명한 증명과 공개 신호."""

    def __init__(self, proof, public_signals):
        self.proof = proof
        self.public_signals = public_signals

    def __iter__(self):
        yield self.proof
        yield self.public_signals


class ProvingBackend:
    """circuit_id로 회로를 찾는 증명 백엔드의 기반 클래스."""

    proving_system = None

    def __init__(self):
        self._circuits = {}

    def register(self, compiled, seed=None):
        """compiled를 증명 가능하게 등록하고 circuit_id를 반환한다."""
        if compiled.circuit_id not in self._circuits:
            self._circuits[compiled.circuit_id] = compiled
            self._setup(compiled, seed)
        return compiled.circuit_id

    def circuit(self, circuit_id):
        try:
            return self._circuits[circuit_id]
        except KeyError:
            raise KeyError(f"circuit not registered: {circuit_id}") from None

    def solve(self, circuit_id, public_inputs, private_witness):
        """전체 증인을 계산한다. 제약 위반 시 UnsatisfiableCircuit."""
        cs = self.circuit(circuit_id).cs
        try:
            witness = cs.solve(public_inputs, private_witness)
        except ValueError as e:
            raise UnsatisfiableCircuit(circuit_id, [str(e)]) from e
        failed = cs.unsatisfied(witness)
        if failed:
            logger.info("circuit %s unsatisfied (%d constraints)", circuit_id, len(failed))
            raise UnsatisfiableCircuit(circuit_id, failed)
        return witness

    def prove(self, circuit_id, public_inputs, private_witness):
        """ProofResult(proof, public_signals)를 반환한다."""
        compiled = self.circuit(circuit_id)
        witness = self.solve(circuit_id, public_inputs, private_witness)
        proof = self._prove(compiled, witness)
        return ProofResult(proof, compiled.cs.public_signals(witness))

    def verify(self, circuit_id, proof, public_signals):
        compiled = self.circuit(circuit_id)
        if len(public_signals) != compiled.cs.num_public:
            return False
        return self._verify(compiled, proof, list(public_signals))

    def verification_key(self, circuit_id):
        """검증 키. 키 개념이 없는 백엔드는 None."""
        return None

    def _setup(self, compiled, seed):
        pass

    def _prove(self, compiled, witness):
        raise NotImplementedError

    def _verify(self, compiled, proof, public_signals):
        raise NotImplementedError
