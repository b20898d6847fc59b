"""
R1CS → QAP 변환 (Quadratic Arithmetic Program)
==============================================

Groth16은 제약 시스템을 다항식 항등식으로 바꾸어 증명한다.

**행(row) 배치**:
  크기 n (2의 거듭제곱) 도메인 H = {1, ω, ..., ω^(n-1)}의 j번째 점에
  j번째 제약을 대응시킨다. 제약 뒤에는 공개 신호마다 `pub · 0 = 0` 행을
  하나씩 추가하여 공개 신호의 A 다항식이 서로 선형 독립이 되도록 한다.

      n = next_pow2(제약 수 + 공개 신호 수(ONE 포함))

**배선 다항식**:
  uᵢ(x) = Σⱼ A[j][i]·Lⱼ(x),  vᵢ(x), wᵢ(x)도 마찬가지.
  Lⱼ(x) = (ω^j / n) · (x^n - 1) / (x - ω^j)

**몫 다항식**:
  h(x) = (A(x)·B(x) - C(x)) / Z(x),  Z(x) = x^n - 1
  도메인 위에서는 Z가 0이므로 코셋 k·H에서 평가하여 나눈다.
"""

from zkstate.circuit.r1cs import ONE, LinearCombination
from zkstate.field import FR, get_root_of_unity, next_power_of_2


# 코셋 생성자 (bn128에서의 관례)
COSET_K = FR(5)


# ─────────────────────────────────────────────────────────────────────
# FFT / IFFT
# ─────────────────────────────────────────────────────────────────────

def fft(coeffs, omega):
    """재귀 Cooley-Tukey radix-2 FFT: 계수 → [p(1), p(ω), ..., p(ω^{n-1})]."""
    n = len(coeffs)
    if n == 1:
        return [coeffs[0] if isinstance(coeffs[0], FR) else FR(coeffs[0])]

    even_vals = fft(coeffs[0::2], omega * omega)
    odd_vals = fft(coeffs[1::2], omega * omega)

    result = [FR(0)] * n
    omega_k = FR(1)
    half = n // 2
    for k in range(half):
        t = omega_k * odd_vals[k]
        result[k] = even_vals[k] + t
        result[k + half] = even_vals[k] - t
        omega_k = omega_k * omega
    return result


def ifft(evals, omega):
    """역 FFT: 평가값 → 계수. 역 단위근으로 FFT 후 n으로 나눈다."""
    n = len(evals)
    coeffs = fft(evals, FR(1) / omega)
    n_inv = FR(1) / FR(n)
    return [c * n_inv for c in coeffs]


def coset_fft(coeffs, omega, k=COSET_K):
    """코셋 k·H에서의 평가: 계수 cᵢ → kⁱ·cᵢ 로 바꾼 뒤 FFT."""
    shifted = []
    k_power = FR(1)
    for c in coeffs:
        shifted.append(c * k_power)
        k_power = k_power * k
    return fft(shifted, omega)


def coset_ifft(evals, omega, k=COSET_K):
    """코셋 평가값 → 계수. IFFT 후 kⁱ 인자를 제거한다."""
    coeffs = ifft(evals, omega)
    k_inv = FR(1) / k
    k_inv_power = FR(1)
    result = []
    for c in coeffs:
        result.append(c * k_inv_power)
        k_inv_power = k_inv_power * k_inv
    return result


# ─────────────────────────────────────────────────────────────────────
# QAP 구조
# ─────────────────────────────────────────────────────────────────────

def qap_rows(cs):
    """(A, B, C) 선형 결합 행 리스트. 제약 행 + 공개 신호 행."""
    rows = [(c.a, c.b, c.c) for c in cs.constraints]
    zero = LinearCombination()
    for wire in [ONE] + cs.public_wires:
        rows.append((LinearCombination.signal(wire), zero, zero))
    return rows


def domain_size(cs):
    return next_power_of_2(cs.num_constraints + cs.num_public + 1)


def vanishing_eval(n, x):
    """Z(x) = x^n - 1."""
    return x ** n - FR(1)


def lagrange_evals(n, omega, x):
    """[L₀(x), ..., L_{n-1}(x)].

    Raises:
        ValueError: x가 도메인 위의 점일 때 (설정 값을 다시 뽑아야 함)
    """
    zx = vanishing_eval(n, x)
    if zx == FR(0):
        raise ValueError("평가 점이 도메인 위에 있습니다")
    factor = zx / FR(n)
    result = []
    omega_j = FR(1)
    for _ in range(n):
        result.append(factor * omega_j / (x - omega_j))
        omega_j = omega_j * omega
    return result


def wire_polys_at(cs, x):
    """모든 신호에 대해 uᵢ(x), vᵢ(x), wᵢ(x)와 Z(x)를 계산한다.

    Returns:
        tuple: (Ax_val, Bx_val, Cx_val, Zx_val, n)
    """
    n = domain_size(cs)
    omega = get_root_of_unity(n)
    basis = lagrange_evals(n, omega, x)
    num_wires = cs.num_signals
    Ax_val = [FR(0)] * num_wires
    Bx_val = [FR(0)] * num_wires
    Cx_val = [FR(0)] * num_wires
    for j, (a, b, c) in enumerate(qap_rows(cs)):
        lj = basis[j]
        for target, lc in ((Ax_val, a), (Bx_val, b), (Cx_val, c)):
            for wire, coeff in lc.terms.items():
                target[wire] = target[wire] + lj * coeff
    return Ax_val, Bx_val, Cx_val, vanishing_eval(n, x), n


def compute_hx(cs, witness):
    """몫 다항식 h(x)의 계수 (길이 n - 1).

    증인이 제약을 만족하지 않으면 나머지가 생기므로 결과는 의미가 없다.
    호출 전에 cs.is_satisfied(witness)를 확인해야 한다.
    """
    n = domain_size(cs)
    omega = get_root_of_unity(n)
    a_evals = [FR(0)] * n
    b_evals = [FR(0)] * n
    c_evals = [FR(0)] * n
    for j, (a, b, c) in enumerate(qap_rows(cs)):
        a_evals[j] = a.evaluate(witness)
        b_evals[j] = b.evaluate(witness)
        c_evals[j] = c.evaluate(witness)

    a_coset = coset_fft(ifft(a_evals, omega), omega)
    b_coset = coset_fft(ifft(b_evals, omega), omega)
    c_coset = coset_fft(ifft(c_evals, omega), omega)

    # 코셋 위에서 Z(k·ωʲ) = kⁿ - 1 (상수)
    z_inv = FR(1) / (COSET_K ** n - FR(1))
    h_evals = [(a_coset[j] * b_coset[j] - c_coset[j]) * z_inv for j in range(n)]
    h_coeffs = coset_ifft(h_evals, omega)
    return h_coeffs[:n - 1]
