"""
R1CS 제약 시스템 테스트
=======================

x³ + x + 5 = 35 예제로 선형 결합, 증인 계산, 제약 검사를 확인한다.
"""

import pytest

from zkstate.circuit.r1cs import ONE, ConstraintSystem, LinearCombination
from zkstate.field import FR, CURVE_ORDER


# ─────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def cubic():
    """out = x³ + x + 5"""
    cs = ConstraintSystem("cubic")
    out = cs.public_input("out")
    x = cs.private_input("x")
    x2 = cs.mul(x, x, "x2")
    x3 = cs.mul(x2, x, "x3")
    cs.enforce_equal(x3 + x + 5, out, "result")
    return cs.seal()


# ─────────────────────────────────────────────────────────────────────
# 선형 결합
# ─────────────────────────────────────────────────────────────────────

class TestLinearCombination:
    def test_constant(self):
        lc = LinearCombination.constant(7)
        assert lc.is_constant()
        assert lc.constant_value() == FR(7)

    def test_zero_terms_dropped(self):
        lc = LinearCombination.signal(3) - LinearCombination.signal(3)
        assert lc.terms == {}

    def test_coefficients_reduced(self):
        lc = LinearCombination({2: CURVE_ORDER + 4})
        assert lc.terms == {2: 4}

    def test_negative_coefficient(self):
        lc = -LinearCombination.signal(1)
        assert lc.terms == {1: CURVE_ORDER - 1}

    def test_evaluate(self):
        witness = [FR(1), FR(3), FR(10)]
        lc = LinearCombination.signal(1) * 2 + LinearCombination.signal(2) + 5
        assert lc.evaluate(witness) == FR(21)

    def test_reverse_ops(self):
        witness = [FR(1), FR(3)]
        lc = 10 - LinearCombination.signal(1)
        assert lc.evaluate(witness) == FR(7)

    def test_signal_product_rejected(self):
        with pytest.raises(TypeError):
            LinearCombination.signal(1) * LinearCombination.signal(2)

    def test_constant_lc_product(self):
        lc = LinearCombination.signal(1) * LinearCombination.constant(3)
        assert lc.terms == {1: 3}


# ─────────────────────────────────────────────────────────────────────
# 제약 시스템
# ─────────────────────────────────────────────────────────────────────

class TestConstraintSystem:
    def test_layout(self, cubic):
        assert cubic.signal_names[ONE] == "one"
        assert cubic.public_wires == [1]
        assert cubic.num_constraints == 3
        assert cubic.num_signals == 5

    def test_input_names(self, cubic):
        assert cubic.public_input_names() == ["out"]
        assert cubic.private_input_names() == ["x"]

    def test_solve_satisfies(self, cubic):
        w = cubic.solve({"out": 35, "x": 3})
        assert w == [FR(1), FR(35), FR(3), FR(9), FR(27)]
        assert cubic.is_satisfied(w)
        assert cubic.unsatisfied(w) == []

    def test_wrong_public_output(self, cubic):
        w = cubic.solve({"out": 36, "x": 3})
        assert not cubic.is_satisfied(w)
        assert cubic.unsatisfied(w) == ["result"]

    def test_split_inputs(self, cubic):
        w = cubic.solve({"out": 35}, {"x": 3})
        assert cubic.public_signals(w) == [FR(35)]

    def test_missing_input(self, cubic):
        with pytest.raises(ValueError):
            cubic.solve({"out": 35})

    def test_unknown_input(self, cubic):
        with pytest.raises(ValueError):
            cubic.solve({"out": 35, "x": 3, "y": 1})

    def test_private_passed_as_public(self, cubic):
        with pytest.raises(ValueError):
            cubic.solve({"out": 35, "x": 3}, {})

    @pytest.mark.parametrize("value", [-1, CURVE_ORDER, True, "3"])
    def test_non_canonical_input(self, cubic, value):
        with pytest.raises(ValueError):
            cubic.solve({"out": 35, "x": value})

    def test_public_after_private(self):
        cs = ConstraintSystem("bad")
        cs.private_input("x")
        with pytest.raises(RuntimeError):
            cs.public_input("out")

    def test_duplicate_input(self):
        cs = ConstraintSystem("dup")
        cs.public_input("a")
        with pytest.raises(ValueError):
            cs.public_input("a")

    def test_sealed(self, cubic):
        with pytest.raises(RuntimeError):
            cubic.private_input("late")

    def test_array_input(self):
        cs = ConstraintSystem("arr")
        xs = cs.private_input("xs", 3)
        cs.enforce_equal(xs[0] + xs[1] + xs[2], 6, "sum")
        cs.seal()
        assert cs.is_satisfied(cs.solve({"xs": [1, 2, 3]}))
        with pytest.raises(ValueError):
            cs.solve({"xs": [1, 2]})

    def test_structure_hash_deterministic(self, cubic):
        other = ConstraintSystem("cubic")
        out = other.public_input("out")
        x = other.private_input("x")
        x2 = other.mul(x, x, "x2")
        x3 = other.mul(x2, x, "x3")
        other.enforce_equal(x3 + x + 5, out, "result")
        assert other.structure_hash() == cubic.structure_hash()

    def test_structure_hash_sensitive(self, cubic):
        other = ConstraintSystem("cubic")
        out = other.public_input("out")
        x = other.private_input("x")
        x2 = other.mul(x, x, "x2")
        x3 = other.mul(x2, x, "x3")
        other.enforce_equal(x3 + x + 6, out, "result")
        assert other.structure_hash() != cubic.structure_hash()
