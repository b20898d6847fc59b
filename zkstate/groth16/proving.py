"""Groth16 prover: proof_a, proof_b, proof_c over a solved witness."""

import secrets

from zkstate.field import CURVE_ORDER, ec_add, ec_lincomb, ec_mul, ec_neg


def random_scalar():
    return secrets.randbelow(CURVE_ORDER - 1) + 1


def proof_a(sigma1_1, a_query, Rx, r):
    # A = α + Σ rᵢ·uᵢ(x) + r·δ
    proof_A = ec_add(sigma1_1[0], ec_lincomb(a_query, Rx))
    return ec_add(proof_A, ec_mul(sigma1_1[2], r))


def proof_b(sigma2_1, b_query_g2, Rx, s):
    # B = β + Σ rᵢ·vᵢ(x) + s·δ  (G2)
    proof_B = ec_add(sigma2_1[0], ec_lincomb(b_query_g2, Rx))
    return ec_add(proof_B, ec_mul(sigma2_1[2], s))


def proof_c(sigma1_1, b_query_g1, sigma1_4, sigma1_5, Rx, Hx, s, r, prf_A, pub_r_indexs):
    # Build temp_proof_B, g1_based
    temp_proof_B = ec_add(sigma1_1[1], ec_lincomb(b_query_g1, Rx))
    temp_proof_B = ec_add(temp_proof_B, ec_mul(sigma1_1[2], s))

    # C = s·A + r·B - r·s·δ + Σ_priv rᵢ·sigma1_4ᵢ + Σ hᵢ·sigma1_5ᵢ
    proof_C = ec_add(ec_add(ec_mul(prf_A, s), ec_mul(temp_proof_B, r)),
                     ec_neg(ec_mul(ec_mul(sigma1_1[2], s), r)))

    public = set(pub_r_indexs)
    private_points = [p for i, p in enumerate(sigma1_4) if i not in public]
    private_values = [v for i, v in enumerate(Rx) if i not in public]
    proof_C = ec_add(proof_C, ec_lincomb(private_points, private_values))
    proof_C = ec_add(proof_C, ec_lincomb(sigma1_5, Hx))
    return proof_C


def build_rpub_enum(pub_r_indexs, r_vec):
    o = []
    for i in pub_r_indexs:
        o.append((i, r_vec[i]))
    return o


def prove(pk, witness, Hx, r=None, s=None):
    """(A, B, C) 증명 튜플. r, s를 생략하면 무작위로 뽑는다."""
    r = random_scalar() if r is None else r
    s = random_scalar() if s is None else s
    prf_A = proof_a(pk.sigma1_1, pk.a_query, witness, r)
    prf_B = proof_b(pk.sigma2_1, pk.b_query_g2, witness, s)
    prf_C = proof_c(pk.sigma1_1, pk.b_query_g1, pk.sigma1_4, pk.sigma1_5,
                    witness, Hx, s, r, prf_A, pk.pub_r_indexs)
    return prf_A, prf_B, prf_C
