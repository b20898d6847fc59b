"""
zkstate 기반 모듈: 유한체(Finite Field) 및 타원곡선 연산
========================================================

이 모듈은 상태 전이 증명 시스템 전체에서 사용되는 기본 대수적 도구를 정의한다.

**유한체 FR**:
  bn128 타원곡선의 스칼라 필드 (scalar field). Poseidon 해시, Merkle 누산기,
  R1CS 제약, Groth16 증명이 모두 이 필드 위에서 계산된다.
  - 위수(order) p ≈ 2^254, 소수체(prime field)
  - p - 1 = 2^28 × m (m은 홀수) → 최대 2^28차 단위근(root of unity)을 지원

**타원곡선 연산**:
  Groth16 설정/증명/검증을 위한 G1, G2 그룹 연산 및 페어링.

**단위근(Roots of Unity)**:
  QAP 평가 도메인 H = {1, ω, ω², ..., ω^(n-1)}을 정의한다.

**비트 분해**:
  필드 안에서는 대소 비교가 불가능하므로, 모든 범위 검사는 고정 폭
  비트 분해로 표현된다. 회로 밖의 미러 계산도 같은 규칙을 사용한다.

사용 예시:
    >>> from zkstate.field import FR, G1, ec_mul
    >>> a = FR(3)
    >>> b = FR(7)
    >>> c = a * b        # FR(21)
    >>> P = ec_mul(G1, 5)  # 5·G1
"""

from py_ecc.fields import bn128_FQ as FQ
from py_ecc import bn128


# ─────────────────────────────────────────────────────────────────────
# 유한체(Finite Field) FR
# ─────────────────────────────────────────────────────────────────────

class FR(FQ):
    """bn128 스칼라 필드 위의 유한체 원소.

    bn128.curve_order (≈ 2^254) 위의 모듈러 산술을 지원한다.
    py_ecc의 FQ 클래스를 상속하여 +, -, *, /, ** 등의 필드 연산을 제공한다.

    속성:
        field_modulus: bn128 곡선 위수 (소수 p)

    예시:
        >>> x = FR(3)
        >>> x * x          # FR(9)
        >>> FR(1) / FR(3)   # 3의 모듈러 역원
    """
    field_modulus = bn128.curve_order


# 곡선 위수 (필드 크기)
CURVE_ORDER = bn128.curve_order


def to_fr(value):
    """정수 또는 FR을 FR로 변환한다. 이미 FR이면 그대로 반환."""
    if isinstance(value, FR):
        return value
    return FR(int(value))


def is_canonical(value):
    """value가 [0, p) 범위의 정수 표현인지 확인한다.

    필드 원소로 환원되기 전의 외부 입력(잔액, 키, 타임스탬프 등)을
    검증할 때 사용한다. 음수나 p 이상의 값은 모듈러 환원으로
    다른 값과 충돌하므로 거부해야 한다.
    """
    if isinstance(value, FR):
        return True
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return 0 <= value < CURVE_ORDER


# ─────────────────────────────────────────────────────────────────────
# 범위 검사
# ─────────────────────────────────────────────────────────────────────

def fits_bits(value, n_bits):
    """value가 [0, 2^n_bits) 범위인지 확인한다."""
    v = int(value)
    return 0 <= v < (1 << n_bits)


# ─────────────────────────────────────────────────────────────────────
# 타원곡선 상수 및 연산
# ─────────────────────────────────────────────────────────────────────

# G1 그룹 생성자 (generator)
G1 = bn128.G1

# G2 그룹 생성자 (generator)
G2 = bn128.G2

# 영점 (point at infinity) - bn128에서 항등원은 None으로 표현
Z1 = None


def ec_mul(point, scalar):
    """타원곡선 스칼라 곱셈: scalar · point.

    Args:
        point: G1 또는 G2 위의 점
        scalar: 정수 또는 FR 원소

    Returns:
        scalar · point (같은 그룹의 점). scalar ≡ 0이면 None (무한원점)
    """
    if isinstance(scalar, FR):
        scalar = int(scalar)
    return bn128.multiply(point, scalar % CURVE_ORDER)


def ec_add(p1, p2):
    """타원곡선 점 덧셈: p1 + p2."""
    return bn128.add(p1, p2)


def ec_neg(point):
    """타원곡선 점의 역원 (negation): -point."""
    return bn128.neg(point)


def ec_lincomb(points, scalars):
    """다중 스칼라 곱 Σ scalarᵢ · pointᵢ.

    증인 벡터는 대부분 0 또는 1(비트 분해)이므로 해당 항은 곱셈 없이 처리한다.

    Args:
        points: 같은 그룹의 점 리스트
        scalars: 정수 또는 FR 리스트 (points와 같은 길이)

    Returns:
        합산된 점 (모든 항이 0이면 None)
    """
    acc = Z1
    for point, scalar in zip(points, scalars):
        s = int(scalar) % CURVE_ORDER
        if s == 0 or point is None:
            continue
        if s == 1:
            acc = bn128.add(acc, point)
        else:
            acc = bn128.add(acc, bn128.multiply(point, s))
    return acc


def ec_pairing(g2_point, g1_point):
    """쌍선형 페어링 e(G1, G2) → GT.

    주의:
        py_ecc.bn128.pairing의 인자 순서는 (G2, G1)이다.
    """
    return bn128.pairing(g2_point, g1_point)


# ─────────────────────────────────────────────────────────────────────
# 단위근 (Roots of Unity)
# ─────────────────────────────────────────────────────────────────────

def get_root_of_unity(n):
    """n차 원시 단위근(primitive n-th root of unity) ω를 반환한다.

    bn128 스칼라 필드의 경우 p - 1 = 2^28 × m 이므로 최대 2^28차
    단위근까지 지원한다. 생성자 g = FR(5)를 사용하여 ω = g^((p-1)/n).

    Args:
        n: 단위근의 차수 (2의 거듭제곱이어야 하며, ≤ 2^28)

    Returns:
        FR: n차 원시 단위근

    Raises:
        ValueError: n이 2의 거듭제곱이 아니거나 2^28을 초과할 때
    """
    if n < 1 or (n & (n - 1)) != 0:
        raise ValueError(f"n은 2의 거듭제곱이어야 합니다: {n}")
    if n > (1 << 28):
        raise ValueError(f"n은 2^28 이하여야 합니다: {n}")
    if n == 1:
        return FR(1)

    # ω^n = g^(p-1) = 1 (페르마 소정리)
    g = FR(5)
    exponent = (CURVE_ORDER - 1) // n
    return g ** exponent


def next_power_of_2(n):
    """n 이상인 가장 작은 2의 거듭제곱."""
    p = 1
    while p < n:
        p <<= 1
    return p
