"""
Groth16 회로별 설정 (Circuit-specific Setup)
============================================

toxic waste (α, β, γ, δ, x)로 증명 키와 검증 키를 만든다.

  sigma1_1 = [α·G1, β·G1, δ·G1]
  sigma1_3 = 공개 신호 i: ((β·uᵢ(x) + α·vᵢ(x) + wᵢ(x)) / γ)·G1
  sigma1_4 = 비공개 신호 i: ((β·uᵢ(x) + α·vᵢ(x) + wᵢ(x)) / δ)·G1
  sigma1_5 = [(xⁱ·Z(x) / δ)·G1 for i < n - 1]
  sigma2_1 = [β·G2, γ·G2, δ·G2]
  a_query  = [uᵢ(x)·G1],  b_query_g1 = [vᵢ(x)·G1],  b_query_g2 = [vᵢ(x)·G2]

seed를 주면 결정론적으로 생성한다 (테스트/데모용). 실제 시스템에서는
다자간 설정 의식(MPC ceremony)의 결과를 사용해야 한다.
"""

import hashlib
import logging
import secrets

from zkstate.field import FR, G1, G2, CURVE_ORDER, ec_mul
from zkstate.groth16.qap import wire_polys_at

logger = logging.getLogger(__name__)


def sigma11(alpha, beta, delta):
    return [ec_mul(G1, alpha), ec_mul(G1, beta), ec_mul(G1, delta)]


def sigma13(numWires, alpha, beta, gamma, Ax_val, Bx_val, Cx_val, pub_r_indexs):
    sigma1_3 = [None] * numWires
    for i in pub_r_indexs:
        val = (beta * Ax_val[i] + alpha * Bx_val[i] + Cx_val[i]) / gamma
        sigma1_3[i] = ec_mul(G1, val)
    return sigma1_3


def sigma14(numWires, alpha, beta, delta, Ax_val, Bx_val, Cx_val, pub_r_indexs):
    public = set(pub_r_indexs)
    sigma1_4 = [None] * numWires
    for i in range(numWires):
        if i in public:
            continue
        val = (beta * Ax_val[i] + alpha * Bx_val[i] + Cx_val[i]) / delta
        sigma1_4[i] = ec_mul(G1, val)
    return sigma1_4


def sigma15(numGates, delta, x_val, Zx_val):
    sigma1_5 = []
    x_pow = FR(1)
    base = Zx_val / delta
    for _ in range(numGates - 1):
        sigma1_5.append(ec_mul(G1, x_pow * base))
        x_pow = x_pow * x_val
    return sigma1_5


def sigma21(beta, delta, gamma):
    return [ec_mul(G2, beta), ec_mul(G2, gamma), ec_mul(G2, delta)]


def wire_query(point, vals):
    return [ec_mul(point, v) for v in vals]


class ToxicWaste:
    """설정 비밀 값. 키 생성 직후 폐기한다."""

    def __init__(self, alpha, beta, gamma, delta, x):
        self.alpha = alpha
        self.beta = beta
        self.gamma = gamma
        self.delta = delta
        self.x = x

    @classmethod
    def generate(cls, seed=None, label=""):
        """seed가 있으면 sha256(seed|label|name)에서, 없으면 secrets로 뽑는다."""
        values = []
        for name in ("alpha", "beta", "gamma", "delta", "x"):
            if seed is not None:
                h = hashlib.sha256(f"{seed}|{label}|{name}".encode()).digest()
                v = int.from_bytes(h, "big") % (CURVE_ORDER - 1) + 1
            else:
                v = secrets.randbelow(CURVE_ORDER - 1) + 1
            values.append(FR(v))
        return cls(*values)


class ProvingKey:
    def __init__(self, sigma1_1, sigma2_1, a_query, b_query_g1, b_query_g2,
                 sigma1_4, sigma1_5, pub_r_indexs, domain_size):
        self.sigma1_1 = sigma1_1
        self.sigma2_1 = sigma2_1
        self.a_query = a_query
        self.b_query_g1 = b_query_g1
        self.b_query_g2 = b_query_g2
        self.sigma1_4 = sigma1_4
        self.sigma1_5 = sigma1_5
        self.pub_r_indexs = pub_r_indexs
        self.domain_size = domain_size


class VerifyingKey:
    """검증 키: α·G1, [β, γ, δ]·G2, 공개 신호별 IC 점.

    ic[k]는 pub_r_indexs[k] 신호의 sigma1_3 점이다 (k = 0은 상수 ONE).
    """

    def __init__(self, alpha_g1, sigma2_1, ic, pub_r_indexs):
        self.alpha_g1 = alpha_g1
        self.sigma2_1 = sigma2_1
        self.ic = ic
        self.pub_r_indexs = pub_r_indexs

    @property
    def num_public(self):
        return len(self.ic) - 1

    def sigma1_3(self):
        """신호 인덱스 → 점 매핑 (verify()의 입력 형식)."""
        return dict(zip(self.pub_r_indexs, self.ic))


def setup(cs, seed=None):
    """제약 시스템에 대한 (ProvingKey, VerifyingKey)를 생성한다."""
    for attempt in range(8):
        toxic = ToxicWaste.generate(seed, f"{cs.name}|{attempt}")
        try:
            Ax_val, Bx_val, Cx_val, Zx_val, n = wire_polys_at(cs, toxic.x)
        except ValueError:
            # x가 도메인 위의 점인 경우 다시 뽑는다
            continue
        break
    else:
        raise RuntimeError("설정 값을 생성하지 못했습니다")

    alpha, beta, gamma, delta, x = toxic.alpha, toxic.beta, toxic.gamma, toxic.delta, toxic.x
    numWires = cs.num_signals
    pub_r_indexs = [0] + list(cs.public_wires)

    logger.info("groth16 setup for %s: %d wires, domain %d", cs.name, numWires, n)

    sigma1_1 = sigma11(alpha, beta, delta)
    sigma1_3 = sigma13(numWires, alpha, beta, gamma, Ax_val, Bx_val, Cx_val, pub_r_indexs)
    sigma1_4 = sigma14(numWires, alpha, beta, delta, Ax_val, Bx_val, Cx_val, pub_r_indexs)
    sigma1_5 = sigma15(n, delta, x, Zx_val)
    sigma2_1 = sigma21(beta, delta, gamma)

    pk = ProvingKey(
        sigma1_1=sigma1_1,
        sigma2_1=sigma2_1,
        a_query=wire_query(G1, Ax_val),
        b_query_g1=wire_query(G1, Bx_val),
        b_query_g2=wire_query(G2, Bx_val),
        sigma1_4=sigma1_4,
        sigma1_5=sigma1_5,
        pub_r_indexs=pub_r_indexs,
        domain_size=n,
    )
    vk = VerifyingKey(sigma1_1[0], sigma2_1, [sigma1_3[i] for i in pub_r_indexs], pub_r_indexs)
    return pk, vk
