"""
Merkle 누산기 테스트
====================

  - 빈 트리 / 리프 갱신 / 멱등성
  - 포함 경로 추출 및 재생 (모든 인덱스)
  - 범위 밖 인덱스
  - 스냅샷 독립성
"""

import pytest

from zkstate.errors import AccumulatorIndexError
from zkstate.field import FR
from zkstate.merkle import (
    Accumulator, InclusionPath, compute_root, select_pair, verify_path, zero_hashes,
)
from zkstate.poseidon import hash2


# ─────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def populated():
    """리프 몇 개가 채워진 깊이 4 트리."""
    return Accumulator.from_leaves(4, {0: 70, 3: 500, 9: 120, 15: 90})


# ─────────────────────────────────────────────────────────────────────
# 구조
# ─────────────────────────────────────────────────────────────────────

class TestBuildEmpty:
    def test_layer_sizes(self):
        acc = Accumulator.build_empty(4)
        assert [len(layer) for layer in acc.layers] == [16, 8, 4, 2, 1]

    def test_root_is_zero_hash(self):
        acc = Accumulator.build_empty(4)
        assert acc.root == zero_hashes(4)[4]

    def test_zero_hashes_chain(self):
        zs = zero_hashes(3)
        assert zs[0] == FR(0)
        for d in range(3):
            assert zs[d + 1] == hash2(zs[d], zs[d])

    def test_invalid_depth(self):
        with pytest.raises(ValueError):
            Accumulator.build_empty(0)

    def test_parent_invariant(self, populated):
        """layers[d+1][i] == H(layers[d][2i], layers[d][2i+1])"""
        for d in range(populated.depth):
            for i, node in enumerate(populated.layers[d + 1]):
                assert node == hash2(populated.layers[d][2 * i], populated.layers[d][2 * i + 1])


class TestUpdateLeaf:
    def test_changes_root(self):
        acc = Accumulator.build_empty(4)
        before = acc.root
        acc.update_leaf(5, 1234)
        assert acc.root != before

    def test_matches_full_rebuild(self, populated):
        populated.update_leaf(7, 42)
        rebuilt = Accumulator.from_leaves(4, {0: 70, 3: 500, 9: 120, 15: 90, 7: 42})
        assert populated.root == rebuilt.root

    def test_idempotent(self, populated):
        """같은 값으로 다시 갱신해도 루트가 바뀌지 않는다."""
        root = populated.root
        populated.update_leaf(3, populated.leaf(3))
        assert populated.root == root

    def test_returns_root(self, populated):
        assert populated.update_leaf(1, 5) == populated.root

    @pytest.mark.parametrize("index", [16, -1, 100])
    def test_out_of_range(self, populated, index):
        with pytest.raises(AccumulatorIndexError):
            populated.update_leaf(index, 1)

    def test_index_error_is_index_error(self, populated):
        with pytest.raises(IndexError):
            populated.update_leaf(16, 1)


# ─────────────────────────────────────────────────────────────────────
# 포함 경로
# ─────────────────────────────────────────────────────────────────────

class TestPath:
    def test_round_trip_all_indices(self, populated):
        for index in range(populated.capacity):
            path = populated.path_for(index)
            assert compute_root(populated.leaf(index), path) == populated.root

    def test_bits_follow_index_parity(self, populated):
        path = populated.path_for(9)  # 0b1001
        assert path.path_bits == [1, 0, 0, 1]
        assert path.index == 9

    def test_siblings(self, populated):
        path = populated.path_for(3)
        assert path.siblings[0] == populated.layers[0][2]
        assert path.siblings[1] == populated.layers[1][0]

    def test_wrong_leaf_fails(self, populated):
        path = populated.path_for(3)
        assert not verify_path(501, path, populated.root)

    def test_wrong_bits_fail(self, populated):
        path = populated.path_for(3)
        flipped = InclusionPath(path.siblings, [1 - path.path_bits[0]] + path.path_bits[1:])
        assert not verify_path(populated.leaf(3), flipped, populated.root)

    def test_non_binary_bit_rejected(self, populated):
        path = populated.path_for(3)
        bad = InclusionPath(path.siblings, [2] + path.path_bits[1:])
        with pytest.raises(ValueError):
            compute_root(populated.leaf(3), bad)

    def test_path_after_update(self, populated):
        """갱신 후 추출한 경로는 새 루트를 재현한다."""
        populated.update_leaf(3, 492)
        path = populated.path_for(3)
        assert verify_path(492, path, populated.root)

    def test_path_out_of_range(self, populated):
        with pytest.raises(AccumulatorIndexError):
            populated.path_for(16)

    def test_mismatched_lengths(self):
        with pytest.raises(ValueError):
            InclusionPath([1, 2], [0])


class TestSelectPair:
    def test_bit_zero_keeps_order(self):
        assert select_pair(FR(1), FR(2), 0) == (FR(1), FR(2))

    def test_bit_one_swaps(self):
        assert select_pair(FR(1), FR(2), 1) == (FR(2), FR(1))


class TestCopy:
    def test_snapshot_is_independent(self, populated):
        snap = populated.copy()
        populated.update_leaf(2, 77)
        assert snap.root != populated.root
        assert snap.leaf(2) == FR(0)
