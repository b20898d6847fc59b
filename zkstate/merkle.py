"""
고정 깊이 Merkle 누산기 (Accumulator)
=====================================

모든 계정/토큰 리프를 하나의 루트로 커밋하는 이진 트리.

    layers[0]      : 2^depth 개의 리프 (빈 리프는 0)
    layers[d + 1]  : layers[d]의 인접 쌍을 H(left, right)로 결합
    layers[depth]  : [root]

**포함 경로 (Inclusion Path)**:
  리프에서 루트까지 올라가며 각 레벨의 형제 노드(sibling)와
  위치 비트(path bit)를 기록한다. bit = 0이면 추적 중인 노드가 왼쪽 자식.
  자식의 좌우 순서는 값이 아니라 인덱스 홀짝으로만 결정된다.

**재생 (Replay)**:
  경로 재생은 회로의 멀티플렉서와 같은 2차식 선택을 사용한다.
      left  = (1 - bit)·cur + bit·sib
      right = (1 - bit)·sib + bit·cur
  회로 밖 미러와 회로 안 제약이 같은 산술을 따르므로, 로컬 재생이
  성공한 경로는 회로에서도 만족된다.

사용 예시:
    >>> acc = Accumulator.build_empty(4)
    >>> acc.update_leaf(3, leaf)
    >>> path = acc.path_for(3)
    >>> verify_path(leaf, path, acc.root)  # True
"""

import logging

from zkstate.errors import AccumulatorIndexError
from zkstate.field import FR, to_fr
from zkstate.poseidon import hash2

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# 포함 경로
# ─────────────────────────────────────────────────────────────────────

class InclusionPath:
    """리프 → 루트 경로.

    속성:
        siblings: 레벨별 형제 노드 (FR 리스트, 길이 depth)
        path_bits: 레벨별 위치 비트 (0/1 리스트, 길이 depth)
    """

    def __init__(self, siblings, path_bits):
        if len(siblings) != len(path_bits):
            raise ValueError("siblings와 path_bits의 길이가 다릅니다")
        self.siblings = [to_fr(s) for s in siblings]
        self.path_bits = [int(b) for b in path_bits]

    @property
    def depth(self):
        return len(self.siblings)

    @property
    def index(self):
        """경로 비트가 가리키는 리프 인덱스."""
        return sum(b << d for d, b in enumerate(self.path_bits))

    def __eq__(self, other):
        if not isinstance(other, InclusionPath):
            return NotImplemented
        return self.siblings == other.siblings and self.path_bits == other.path_bits

    def __repr__(self):
        return f"InclusionPath(index={self.index}, depth={self.depth})"


def select_pair(cur, sib, bit):
    """위치 비트에 따라 (left, right)를 선택한다.

    bit는 0 또는 1이어야 한다. 회로의 mux 분해와 같은 식을 사용한다.
    """
    bit = FR(bit)
    one_minus = FR(1) - bit
    left = one_minus * cur + bit * sib
    right = one_minus * sib + bit * cur
    return left, right


def compute_root(leaf, path):
    """경로를 재생하여 루트를 계산한다."""
    cur = to_fr(leaf)
    for sib, bit in zip(path.siblings, path.path_bits):
        if bit not in (0, 1):
            raise ValueError(f"path bit은 0 또는 1이어야 합니다: {bit}")
        left, right = select_pair(cur, sib, bit)
        cur = hash2(left, right)
    return cur


def verify_path(leaf, path, root):
    """경로 재생 결과가 root와 같은지 확인한다."""
    return compute_root(leaf, path) == to_fr(root)


# ─────────────────────────────────────────────────────────────────────
# 누산기
# ─────────────────────────────────────────────────────────────────────

_ZERO_HASHES = {}


def zero_hashes(depth):
    """레벨별 빈 서브트리 해시 [z₀, z₁, ..., z_depth].

    z₀ = 0, z_{d+1} = H(z_d, z_d)
    """
    if depth not in _ZERO_HASHES:
        zs = [FR(0)]
        for _ in range(depth):
            zs.append(hash2(zs[-1], zs[-1]))
        _ZERO_HASHES[depth] = zs
    return list(_ZERO_HASHES[depth])


class Accumulator:
    """고정 깊이 이진 Merkle 트리.

    누산기 자체는 동기화를 하지 않는다. 공유 인스턴스는
    zkstate.pipeline.state.AccumulatorHandle을 통해서만 접근한다.
    """

    def __init__(self, depth, layers):
        self.depth = depth
        self.layers = layers

    @classmethod
    def build_empty(cls, depth):
        """모든 리프가 0인 트리를 만든다."""
        if depth < 1:
            raise ValueError(f"depth는 1 이상이어야 합니다: {depth}")
        zs = zero_hashes(depth)
        layers = [[zs[d]] * (1 << (depth - d)) for d in range(depth + 1)]
        return cls(depth, layers)

    @classmethod
    def from_leaves(cls, depth, leaves):
        """{index: leaf} 매핑으로 트리를 만든다. 나머지 리프는 0."""
        acc = cls.build_empty(depth)
        for index, leaf in leaves.items():
            acc._check_index(index)
            acc.layers[0][index] = to_fr(leaf)
        acc._rebuild()
        return acc

    @property
    def capacity(self):
        return 1 << self.depth

    @property
    def root(self):
        return self.layers[self.depth][0]

    def leaf(self, index):
        self._check_index(index)
        return self.layers[0][index]

    def _check_index(self, index):
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < self.capacity:
            raise AccumulatorIndexError(index, self.capacity)

    def _rebuild(self):
        for d in range(self.depth):
            below = self.layers[d]
            self.layers[d + 1] = [hash2(below[2 * i], below[2 * i + 1])
                                  for i in range(len(below) // 2)]

    def update_leaf(self, index, leaf):
        """리프 하나를 교체하고 조상 노드를 다시 계산한다.

        같은 값으로 다시 갱신해도 루트는 변하지 않는다.

        Raises:
            AccumulatorIndexError: index가 [0, 2^depth) 밖일 때
        """
        self._check_index(index)
        self.layers[0][index] = to_fr(leaf)
        idx = index
        for d in range(self.depth):
            parent = idx >> 1
            left = self.layers[d][2 * parent]
            right = self.layers[d][2 * parent + 1]
            self.layers[d + 1][parent] = hash2(left, right)
            idx = parent
        logger.debug("leaf %d updated, root=%s", index, int(self.root))
        return self.root

    def path_for(self, index):
        """index 리프의 포함 경로를 반환한다."""
        self._check_index(index)
        siblings = []
        bits = []
        idx = index
        for d in range(self.depth):
            bit = idx % 2
            sibling_idx = idx - 1 if bit else idx + 1
            siblings.append(self.layers[d][sibling_idx])
            bits.append(bit)
            idx >>= 1
        return InclusionPath(siblings, bits)

    def copy(self):
        """독립적인 스냅샷. 원본 갱신의 영향을 받지 않는다."""
        return Accumulator(self.depth, [list(layer) for layer in self.layers])

    def __repr__(self):
        return f"Accumulator(depth={self.depth}, root={int(self.root)})"
