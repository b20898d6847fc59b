"""
Groth16 증명 백엔드
===================

zkstate.proving.ProvingBackend 구현. 회로마다 한 번 설정(setup)을 수행하고,
키는 이후 읽기 전용으로 공유된다.

  register(compiled, seed)  → 설정, 키 저장
  prove(circuit_id, ...)    → 증인 계산 → 제약 검사 → h(x) → (A, B, C)
  verify(circuit_id, ...)   → 페어링 검사

공개 신호 순서는 회로의 공개 입력 선언 순서를 따른다.
"""

import logging

from py_ecc import bn128

from zkstate.field import to_fr
from zkstate.groth16.proving import build_rpub_enum, prove
from zkstate.groth16.qap import compute_hx
from zkstate.groth16.setup import setup
from zkstate.groth16.verifying import verify
from zkstate.proving import ProvingBackend

logger = logging.getLogger(__name__)


class Groth16Proof:
    """Groth16 증명: A ∈ G1, B ∈ G2, C ∈ G1."""

    def __init__(self, a, b, c):
        self.a = a
        self.b = b
        self.c = c

    def __eq__(self, other):
        if not isinstance(other, Groth16Proof):
            return NotImplemented
        return (self.a, self.b, self.c) == (other.a, other.b, other.c)

    def __repr__(self):
        return "Groth16Proof(...)"


def _on_curve(point, b):
    return point is not None and bn128.is_on_curve(point, b)


class Groth16Backend(ProvingBackend):
    proving_system = "groth16"

    def __init__(self, seed=None):
        super().__init__()
        self.seed = seed
        self._keys = {}

    def _setup(self, compiled, seed):
        seed = self.seed if seed is None else seed
        self._keys[compiled.circuit_id] = setup(compiled.cs, seed)

    def proving_key(self, circuit_id):
        self.circuit(circuit_id)
        return self._keys[circuit_id][0]

    def verification_key(self, circuit_id):
        self.circuit(circuit_id)
        return self._keys[circuit_id][1]

    def _prove(self, compiled, witness):
        pk = self._keys[compiled.circuit_id][0]
        Hx = compute_hx(compiled.cs, witness)
        a, b, c = prove(pk, witness, Hx)
        logger.debug("groth16 proof generated for %s", compiled.circuit_id)
        return Groth16Proof(a, b, c)

    def _verify(self, compiled, proof, public_signals):
        vk = self._keys[compiled.circuit_id][1]
        if not isinstance(proof, Groth16Proof):
            return False
        if not (_on_curve(proof.a, bn128.b) and _on_curve(proof.b, bn128.b2)
                and _on_curve(proof.c, bn128.b)):
            return False
        r_vec = {0: to_fr(1)}
        for wire, value in zip(vk.pub_r_indexs[1:], public_signals):
            r_vec[wire] = to_fr(value)
        rx_pub = build_rpub_enum(vk.pub_r_indexs, r_vec)
        ok = verify(proof.a, proof.b, proof.c, vk.alpha_g1, vk.sigma1_3(), vk.sigma2_1, rx_pub)
        if not ok:
            logger.warning("groth16 verification failed for %s", compiled.circuit_id)
        return ok
