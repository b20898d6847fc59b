from zkstate.field import ec_add, ec_mul, ec_pairing


def lhs(prf_A, prf_B):
    return ec_pairing(prf_B, prf_A)


def rhs(prf_C, alpha_g1, sigma1_3, sigma2_1, rx_pub):
    RHS = ec_pairing(sigma2_1[0], alpha_g1)
    temp = None
    for i, ri in rx_pub:
        if sigma1_3[i] is None:
            continue
        temp = ec_add(temp, ec_mul(sigma1_3[i], ri))
    RHS = (RHS * ec_pairing(sigma2_1[1], temp)) * ec_pairing(sigma2_1[2], prf_C)
    return RHS


# rx_pub = [(index_i, ri), ...]
def verify(prf_A, prf_B, prf_C, alpha_g1, sigma1_3, sigma2_1, rx_pub):
    """e(A, B) == e(α, β)·e(Σ rᵢ·sigma1_3ᵢ, γ)·e(C, δ)"""
    return lhs(prf_A, prf_B) == rhs(prf_C, alpha_g1, sigma1_3, sigma2_1, rx_pub)
