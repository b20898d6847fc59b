"""
Poseidon 해시 (bn128 스칼라 필드)
=================================

리프 커밋먼트, Merkle 노드, 트랜잭션 바인딩 커밋먼트에 사용되는
대수적(algebraic) 스펀지 해시. 회로 안에서도 같은 순열을 제약으로
재현해야 하므로 여기 정의된 상수와 라운드 구조가 회로 가젯
(zkstate.circuit.gadgets.poseidon)과 정확히 일치해야 한다.

**구조** (폭 t = 입력 수 + 1):
  state = [0, x₁, ..., x_{t-1}]
  각 라운드: 라운드 상수 덧셈(ARK) → S-box(x⁵) → MDS 행렬 곱
  - 전체 라운드(full round) R_F = 8: 모든 원소에 S-box (앞 4, 뒤 4)
  - 부분 라운드(partial round) R_P: state[0]에만 S-box
  출력 = 최종 state[0]

**파라미터 생성**:
  - R_P는 폭별 표준 값 (N_ROUNDS_P[t - 2])
  - 라운드 상수: Grain LFSR 출력에서 254비트 정수를 뽑아 p 이상은 버린다
  - MDS: Grain 출력으로 얻은 서로 다른 xᵢ, yⱼ에 대한 Cauchy 행렬
    M[i][j] = 1 / (xᵢ + yⱼ)

사용 예시:
    >>> from zkstate.poseidon import poseidon
    >>> h = poseidon([1, 2])   # 2-입력 (t = 3)
"""

from functools import lru_cache

from zkstate.field import FR, CURVE_ORDER


FULL_ROUNDS = 8

# 폭 t = 2..17 에 대한 부분 라운드 수 (인덱스 t - 2)
N_ROUNDS_P = [56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68]

MAX_INPUTS = len(N_ROUNDS_P)

FIELD_BITS = CURVE_ORDER.bit_length()  # 254


# ─────────────────────────────────────────────────────────────────────
# Grain LFSR
# ─────────────────────────────────────────────────────────────────────

def _grain_stream(t, r_f, r_p):
    """80비트 Grain LFSR 비트 스트림.

    초기 상태 (MSB 우선):
        field(2) | sbox(4) | n(12) | t(12) | R_F(10) | R_P(10) | 1 × 30

    상태는 정수 하나로 관리한다. 비트 i가 시퀀스의 i번째 원소이며,
    새 비트는 b62 ⊕ b51 ⊕ b38 ⊕ b23 ⊕ b13 ⊕ b0 이다.
    처음 160비트는 버리고, 이후 비트 쌍 (b, b')에서 b = 1일 때만 b'을 출력한다.
    """
    header = (
        format(1, "02b")            # 소수체
        + format(0, "04b")          # S-box x^α
        + format(FIELD_BITS, "012b")
        + format(t, "012b")
        + format(r_f, "010b")
        + format(r_p, "010b")
        + "1" * 30
    )
    state = 0
    for i, ch in enumerate(header):
        if ch == "1":
            state |= 1 << i

    def step():
        nonlocal state
        bit = ((state >> 62) ^ (state >> 51) ^ (state >> 38)
               ^ (state >> 23) ^ (state >> 13) ^ state) & 1
        state = (state >> 1) | (bit << 79)
        return bit

    for _ in range(160):
        step()

    while True:
        first = step()
        while first == 0:
            step()
            first = step()
        yield step()


def _take_bits(stream, n):
    value = 0
    for _ in range(n):
        value = (value << 1) | next(stream)
    return value


# ─────────────────────────────────────────────────────────────────────
# 파라미터
# ─────────────────────────────────────────────────────────────────────

class PoseidonParams:
    """폭 t에 대한 Poseidon 파라미터.

    속성:
        t: 상태 폭 (입력 수 + 1)
        full_rounds: R_F
        partial_rounds: R_P
        round_constants: 길이 (R_F + R_P)·t 의 정수 리스트
        mds: t × t 정수 행렬
    """

    def __init__(self, t, full_rounds, partial_rounds, round_constants, mds):
        self.t = t
        self.full_rounds = full_rounds
        self.partial_rounds = partial_rounds
        self.round_constants = round_constants
        self.mds = mds

    @property
    def num_rounds(self):
        return self.full_rounds + self.partial_rounds

    def is_full_round(self, r):
        """r번째 라운드가 전체 라운드인지 여부."""
        half = self.full_rounds // 2
        return r < half or r >= half + self.partial_rounds

    def constants_for_round(self, r):
        return self.round_constants[r * self.t:(r + 1) * self.t]

    def __repr__(self):
        return f"PoseidonParams(t={self.t}, R_F={self.full_rounds}, R_P={self.partial_rounds})"


@lru_cache(maxsize=None)
def get_params(t):
    """폭 t에 대한 파라미터를 생성한다 (폭별로 한 번만 계산).

    Raises:
        ValueError: t가 지원 범위 [2, 17] 밖일 때
    """
    if t < 2 or t - 2 >= len(N_ROUNDS_P):
        raise ValueError(f"지원하지 않는 Poseidon 폭: t={t}")
    r_f = FULL_ROUNDS
    r_p = N_ROUNDS_P[t - 2]
    stream = _grain_stream(t, r_f, r_p)

    # 라운드 상수: 거부 샘플링으로 [0, p) 범위 정수만 사용
    constants = []
    while len(constants) < (r_f + r_p) * t:
        value = _take_bits(stream, FIELD_BITS)
        if value < CURVE_ORDER:
            constants.append(value)

    # Cauchy MDS: 2t개의 서로 다른 원소, xᵢ + yⱼ ≠ 0
    while True:
        elems = [_take_bits(stream, FIELD_BITS) % CURVE_ORDER for _ in range(2 * t)]
        xs, ys = elems[:t], elems[t:]
        if len(set(elems)) != 2 * t:
            continue
        if any((x + y) % CURVE_ORDER == 0 for x in xs for y in ys):
            continue
        break
    mds = [[pow(x + y, CURVE_ORDER - 2, CURVE_ORDER) for y in ys] for x in xs]

    return PoseidonParams(t, r_f, r_p, constants, mds)


# ─────────────────────────────────────────────────────────────────────
# 순열 및 해시
# ─────────────────────────────────────────────────────────────────────

def permute(state, params=None):
    """Poseidon 순열을 정수 상태 벡터에 적용한다.

    Args:
        state: 길이 t의 정수 리스트 (각 원소 ∈ [0, p))
        params: PoseidonParams (None이면 len(state)로 조회)

    Returns:
        list[int]: 순열 결과
    """
    p = CURVE_ORDER
    if params is None:
        params = get_params(len(state))
    t = params.t
    state = list(state)
    for r in range(params.num_rounds):
        rc = params.constants_for_round(r)
        state = [(state[i] + rc[i]) % p for i in range(t)]
        if params.is_full_round(r):
            state = [pow(s, 5, p) for s in state]
        else:
            state[0] = pow(state[0], 5, p)
        state = [sum(m * s for m, s in zip(row, state)) % p for row in params.mds]
    return state


def poseidon(inputs):
    """입력 리스트의 Poseidon 해시를 FR로 반환한다.

    Args:
        inputs: 1..16개의 정수 또는 FR

    Returns:
        FR: 해시 값

    Raises:
        ValueError: 입력 개수가 지원 범위를 벗어날 때
    """
    if not 1 <= len(inputs) <= MAX_INPUTS:
        raise ValueError(f"Poseidon 입력 개수는 1..{MAX_INPUTS}: {len(inputs)}")
    state = [0] + [int(x) % CURVE_ORDER for x in inputs]
    return FR(permute(state)[0])


def hash2(a, b):
    """2-입력 해시. Merkle 내부 노드 결합 H(left, right)."""
    return poseidon([a, b])
