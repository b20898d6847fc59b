"""
공용 테스트 픽스처
==================

깊이 4 (16 리프) 데모 원장과, 제약 검사만 수행하는 증명 백엔드 대역(double).

  | index | 소유자 | 토큰        | 상태                   |
  |-------|--------|-------------|------------------------|
  | 0     | carol  | 1 FUNGIBLE  | 70000                  |
  | 3     | alice  | 1 FUNGIBLE  | 500000                 |
  | 9     | bob    | 1 FUNGIBLE  | 120000                 |
  | 15    | dan    | 1 FUNGIBLE  | 90000                  |
  | 4     | alice  | 2 NFT       | owns                   |
  | 5     | bob    | 2 NFT       | -                      |
  | 6     | carol  | 2 NFT       | owns                   |
  | 10    | alice  | 3 ATTRIBUTE | [1, 5, 80, 3]          |
  | 11    | bob    | 3 ATTRIBUTE | -                      |
  | 12    | carol  | 4 ESCROW    | [1, 77, 0, 2500]       |
  | 13    | dan    | 4 ESCROW    | -                      |
  | 14    | alice  | 4 ESCROW    | [1, 77, 1, 900] (보류) |
"""

import hashlib

import pytest

from zkstate.config import Settings
from zkstate.pipeline import TransferPipeline
from zkstate.proving import ProvingBackend
from zkstate.storage import TinyDBLedger, TokenRegistry, TransactionLog, open_database, seed_ledger
from zkstate.tokens import Leaf, TokenType


ALICE, BOB, CAROL, DAN = 11, 22, 33, 44

FUNGIBLE_TOKEN = 1
NFT_TOKEN = 2
ATTRIBUTE_TOKEN = 3
ESCROW_TOKEN = 4

DEMO_LEAVES = {
    0: Leaf(CAROL, 1, FUNGIBLE_TOKEN, (70000, 0, 0, 0)),
    3: Leaf(ALICE, 7, FUNGIBLE_TOKEN, (500000, 0, 0, 0)),
    9: Leaf(BOB, 42, FUNGIBLE_TOKEN, (120000, 0, 0, 0)),
    15: Leaf(DAN, 2, FUNGIBLE_TOKEN, (90000, 0, 0, 0)),
    4: Leaf(ALICE, 8, NFT_TOKEN, (1, 0, 0, 0)),
    5: Leaf(BOB, 43, NFT_TOKEN, (0, 0, 0, 0)),
    6: Leaf(CAROL, 2, NFT_TOKEN, (1, 0, 0, 0)),
    10: Leaf(ALICE, 9, ATTRIBUTE_TOKEN, (1, 5, 80, 3)),
    11: Leaf(BOB, 44, ATTRIBUTE_TOKEN, (0, 0, 0, 0)),
    12: Leaf(CAROL, 3, ESCROW_TOKEN, (1, 77, 0, 2500)),
    13: Leaf(DAN, 3, ESCROW_TOKEN, (0, 0, 0, 0)),
    14: Leaf(ALICE, 10, ESCROW_TOKEN, (1, 77, 1, 900)),
}


def _digest(circuit_id, public_signals):
    h = hashlib.sha256(circuit_id.encode())
    for v in public_signals:
        h.update(str(int(v)).encode() + b",")
    return h.hexdigest()


class SolvingBackend(ProvingBackend):
    """제약 만족 여부만 검사하는 증명 백엔드 대역.

    증명 대신 (회로, 공개 신호)의 다이제스트를 돌려준다.
    before_prove 훅은 다음 증명 한 번 직전에 호출된다 (잠금 없이).
    """

    proving_system = "r1cs-check"

    def __init__(self):
        super().__init__()
        self.prove_calls = 0
        self.before_prove = None
        self.reject_all = False

    def _prove(self, compiled, witness):
        self.prove_calls += 1
        hook, self.before_prove = self.before_prove, None
        if hook is not None:
            hook()
        return {"protocol": self.proving_system,
                "digest": _digest(compiled.circuit_id, compiled.cs.public_signals(witness))}

    def _verify(self, compiled, proof, public_signals):
        if self.reject_all:
            return False
        return proof.get("digest") == _digest(compiled.circuit_id, public_signals)


def build_pipeline(settings=None, backend=None, leaves=None):
    db = open_database()
    ledger = TinyDBLedger(db)
    registry = TokenRegistry(db)
    registry.register(FUNGIBLE_TOKEN, TokenType.FUNGIBLE, "demo coin")
    registry.register(NFT_TOKEN, TokenType.NFT, "demo nft")
    registry.register(ATTRIBUTE_TOKEN, TokenType.ATTRIBUTE, "demo item")
    registry.register(ESCROW_TOKEN, TokenType.ESCROW, "demo escrow")
    seed_ledger(ledger, DEMO_LEAVES if leaves is None else leaves)
    return TransferPipeline(ledger, backend or SolvingBackend(), TransactionLog(db), registry,
                            settings or Settings())


# ─────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def backend():
    return SolvingBackend()


@pytest.fixture
def pipeline(backend):
    """데모 원장 위의 새 파이프라인 (테스트마다 새 메모리 DB)."""
    p = build_pipeline(backend=backend)
    yield p
    p.close()


@pytest.fixture
def make_pipeline():
    """build_pipeline 팩토리. 만든 파이프라인은 테스트 종료 시 닫는다."""
    created = []

    def factory(settings=None, backend=None, leaves=None):
        p = build_pipeline(settings=settings, backend=backend, leaves=leaves)
        created.append(p)
        return p

    yield factory
    for p in created:
        p.close()


@pytest.fixture
def demo_leaves():
    return dict(DEMO_LEAVES)
