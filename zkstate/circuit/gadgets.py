"""
회로 가젯 (Circuit Gadgets)
===========================

전이 회로를 구성하는 재사용 가능한 제약 묶음.

  | 가젯              | 제약 수                          | 의미                      |
  |-------------------|----------------------------------|---------------------------|
  | assert_bool       | 1                                | b·(b - 1) = 0             |
  | num_to_bits       | n + 1                            | x = Σ bᵢ·2ⁱ, bᵢ ∈ {0,1}   |
  | assert_not_equal  | 1                                | (x - y)·inv = 1           |
  | select_pair       | 6                                | 위치 비트에 따른 좌우 선택|
  | poseidon          | 3 × (S-box 개수)                 | Poseidon 순열             |
  | merkle_root       | depth × (1 + 6 + Poseidon(2))    | 경로 재생                 |

Poseidon의 ARK와 MDS 단계는 선형이므로 제약 없이 선형 결합으로 누적되고,
S-box x⁵만 곱셈 게이트 3개 (x², x⁴, x⁵)로 제약된다.

모든 가젯은 zkstate.poseidon / zkstate.merkle의 회로 밖 계산과
같은 산술을 따른다.
"""

from zkstate.circuit.r1cs import LinearCombination
from zkstate.field import FR
from zkstate.poseidon import get_params, MAX_INPUTS


# ─────────────────────────────────────────────────────────────────────
# 불리언 / 비트 분해 / 부등식
# ─────────────────────────────────────────────────────────────────────

def assert_bool(cs, b, label):
    """b ∈ {0, 1} 제약: b·(b - 1) = 0."""
    cs.enforce(b, b - 1, LinearCombination(), label)


def num_to_bits(cs, x, n_bits, name):
    """x를 n_bits 비트로 분해하고 재조합 제약을 건다.

    x가 [0, 2^n_bits) 밖이면 힌트가 만든 하위 비트로는 재조합이 맞지 않아
    제약이 불만족된다. 필드 원소의 범위 검사는 이 가젯으로만 한다.

    Returns:
        list[LinearCombination]: 리틀엔디안 비트 신호
    """
    x = LinearCombination.lift(x)

    def hint(w):
        v = x.evaluate(w).n
        return [(v >> i) & 1 for i in range(n_bits)]

    bits = cs.intermediates([f"{name}.bit[{i}]" for i in range(n_bits)], hint)
    acc = LinearCombination()
    for i, b in enumerate(bits):
        assert_bool(cs, b, f"{name}.bool[{i}]")
        acc = acc + b * (1 << i)
    cs.enforce_equal(acc, x, f"{name}.recompose")
    return bits


def range_check(cs, x, n_bits, name):
    """x ∈ [0, 2^n_bits) 제약."""
    num_to_bits(cs, x, n_bits, name)


def assert_not_equal(cs, x, y, name):
    """x ≠ y 제약. 차이의 역원이 존재해야 한다."""
    diff = LinearCombination.lift(x) - LinearCombination.lift(y)

    def hint(w):
        d = diff.evaluate(w)
        return FR(0) if d == FR(0) else FR(1) / d

    inv = cs.intermediate(f"{name}.inv", hint)
    cs.enforce(diff, inv, LinearCombination.constant(1), name)


# ─────────────────────────────────────────────────────────────────────
# Poseidon
# ─────────────────────────────────────────────────────────────────────

def _sbox(cs, x, name):
    x2 = cs.mul(x, x, f"{name}.x2")
    x4 = cs.mul(x2, x2, f"{name}.x4")
    return cs.mul(x4, x, f"{name}.x5")


def poseidon(cs, inputs, name):
    """회로 안 Poseidon 해시. zkstate.poseidon.poseidon과 같은 값을 낸다.

    Args:
        cs: ConstraintSystem
        inputs: LinearCombination(또는 상수) 리스트
        name: 신호 이름 접두사

    Returns:
        LinearCombination: 해시 출력 (최종 state[0])
    """
    if not 1 <= len(inputs) <= MAX_INPUTS:
        raise ValueError(f"Poseidon 입력 개수는 1..{MAX_INPUTS}: {len(inputs)}")
    params = get_params(len(inputs) + 1)
    t = params.t
    state = [LinearCombination()] + [LinearCombination.lift(x) for x in inputs]
    for r in range(params.num_rounds):
        rc = params.constants_for_round(r)
        state = [state[i] + LinearCombination.constant(rc[i]) for i in range(t)]
        if params.is_full_round(r):
            state = [_sbox(cs, state[i], f"{name}.r{r}.s{i}") for i in range(t)]
        else:
            state[0] = _sbox(cs, state[0], f"{name}.r{r}.s0")
        mixed = []
        for row in params.mds:
            acc = LinearCombination()
            for m, s in zip(row, state):
                acc = acc + s * m
            mixed.append(acc)
        state = mixed
    return state[0]


# ─────────────────────────────────────────────────────────────────────
# Merkle 포함 증명
# ─────────────────────────────────────────────────────────────────────

def select_pair(cs, cur, sib, bit, name):
    """위치 비트에 따라 (left, right)를 선택한다.

    각 출력은 곱셈 게이트 2개와 덧셈 제약 1개로 분해된다.
        left_a  = (1 - bit)·cur     left_b  = bit·sib     left  = left_a + left_b
        right_a = (1 - bit)·sib     right_b = bit·cur     right = right_a + right_b
    bit의 불리언 제약은 호출자가 건다.
    """
    one_minus = 1 - LinearCombination.lift(bit)
    left_a = cs.mul(one_minus, cur, f"{name}.left_a")
    left_b = cs.mul(bit, sib, f"{name}.left_b")
    left = cs.assign(left_a + left_b, f"{name}.left")
    right_a = cs.mul(one_minus, sib, f"{name}.right_a")
    right_b = cs.mul(bit, cur, f"{name}.right_b")
    right = cs.assign(right_a + right_b, f"{name}.right")
    return left, right


def merkle_root(cs, leaf, siblings, path_bits, name):
    """리프와 경로로 루트를 계산하는 제약. 계산된 루트 신호를 반환한다."""
    if len(siblings) != len(path_bits):
        raise ValueError("siblings와 path_bits의 길이가 다릅니다")
    cur = LinearCombination.lift(leaf)
    for d, (sib, bit) in enumerate(zip(siblings, path_bits)):
        assert_bool(cs, bit, f"{name}.l{d}.bit")
        left, right = select_pair(cs, cur, sib, bit, f"{name}.l{d}")
        cur = poseidon(cs, [left, right], f"{name}.l{d}.h")
    return cur


def merkle_inclusion(cs, leaf, siblings, path_bits, root, name):
    """leaf가 root 아래 path_bits 위치에 있다는 제약."""
    computed = merkle_root(cs, leaf, siblings, path_bits, name)
    cs.enforce_equal(computed, root, f"{name}.root")
    return computed


def pack_bits(bits):
    """비트 신호 리스트 → Σ bᵢ·2ⁱ 선형 결합."""
    acc = LinearCombination()
    for i, b in enumerate(bits):
        acc = acc + LinearCombination.lift(b) * (1 << i)
    return acc
