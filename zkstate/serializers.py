"""
zkstate 데이터 직렬화/역직렬화 헬퍼
====================================

TinyDB 저장소와 JSON 출력에 사용할 수 있는 형태로 객체를 변환한다.
FR, G1, G2, Groth16 증명, 검증 키, 공개 신호, 리프, 전송 기록 등.
큰 정수는 모두 10진 문자열로 저장한다.
"""

from py_ecc import bn128
from py_ecc.fields import bn128_FQ as FQ

from zkstate.field import FR
from zkstate.groth16.backend import Groth16Proof
from zkstate.groth16.setup import VerifyingKey
from zkstate.tokens import Leaf, TransferParams


# ─── FR ───

def serialize_fr(val):
    """FR → str(int)"""
    return str(int(val))


def deserialize_fr(s):
    """str(int) → FR"""
    return FR(int(s))


# ─── FR list ───

def serialize_fr_list(lst):
    """list[FR] → list[str]"""
    return [str(int(v)) for v in lst]


def deserialize_fr_list(data):
    """list[str] → list[FR]"""
    return [FR(int(s)) for s in data]


# ─── G1 point ───

def serialize_g1(point):
    """G1 point → [str, str] or None"""
    if point is None:
        return None
    return [str(int(point[0])), str(int(point[1]))]


def deserialize_g1(data):
    """[str, str] or None → G1 point"""
    if data is None:
        return None
    return (FQ(int(data[0])), FQ(int(data[1])))


# ─── G2 point ───

def serialize_g2(point):
    """G2 point → [[str,str],[str,str]] or None"""
    if point is None:
        return None
    return [
        [str(int(point[0].coeffs[0])), str(int(point[0].coeffs[1]))],
        [str(int(point[1].coeffs[0])), str(int(point[1].coeffs[1]))]
    ]


def deserialize_g2(data):
    """[[str,str],[str,str]] or None → G2 point"""
    if data is None:
        return None
    return (
        bn128.FQ2([int(data[0][0]), int(data[0][1])]),
        bn128.FQ2([int(data[1][0]), int(data[1][1])])
    )


# ─── Groth16 proof ───

def serialize_proof(proof):
    """Groth16Proof → dict (snarkjs와 비슷한 pi_a/pi_b/pi_c 키).

    Groth16이 아닌 백엔드의 증명은 dict여야 하며 그대로 복사한다.
    """
    if proof is None:
        return None
    if isinstance(proof, Groth16Proof):
        return {
            "protocol": "groth16",
            "curve": "bn128",
            "pi_a": serialize_g1(proof.a),
            "pi_b": serialize_g2(proof.b),
            "pi_c": serialize_g1(proof.c),
        }
    return dict(proof)


def deserialize_proof(data):
    if data is None:
        return None
    if data.get("protocol") == "groth16":
        return Groth16Proof(
            deserialize_g1(data["pi_a"]),
            deserialize_g2(data["pi_b"]),
            deserialize_g1(data["pi_c"]),
        )
    return dict(data)


# ─── Verification key ───

def serialize_vk(vk):
    """VerifyingKey → dict"""
    return {
        "protocol": "groth16",
        "curve": "bn128",
        "nPublic": vk.num_public,
        "vk_alpha_1": serialize_g1(vk.alpha_g1),
        "vk_beta_2": serialize_g2(vk.sigma2_1[0]),
        "vk_gamma_2": serialize_g2(vk.sigma2_1[1]),
        "vk_delta_2": serialize_g2(vk.sigma2_1[2]),
        "IC": [serialize_g1(p) for p in vk.ic],
        "pub_r_indexs": list(vk.pub_r_indexs),
    }


def deserialize_vk(data):
    sigma2_1 = [deserialize_g2(data["vk_beta_2"]),
                deserialize_g2(data["vk_gamma_2"]),
                deserialize_g2(data["vk_delta_2"])]
    return VerifyingKey(
        deserialize_g1(data["vk_alpha_1"]),
        sigma2_1,
        [deserialize_g1(p) for p in data["IC"]],
        list(data["pub_r_indexs"]),
    )


# ─── Leaf ───

def serialize_leaf(leaf):
    return {
        "owner_key": str(leaf.owner_key),
        "nonce": str(leaf.nonce),
        "token_id": str(leaf.token_id),
        "state": [str(v) for v in leaf.state],
    }


def deserialize_leaf(data):
    return Leaf(
        owner_key=int(data["owner_key"]),
        nonce=int(data["nonce"]),
        token_id=int(data["token_id"]),
        state=tuple(int(v) for v in data["state"]),
    )


# ─── Transfer record ───

def _int_list(values):
    return None if values is None else [str(int(v)) for v in values]


def _opt_fr(val):
    return None if val is None else serialize_fr(val)


def serialize_record(record):
    """TransferRecord → dict (트랜잭션 로그 저장 형식)."""
    params = record.params or TransferParams()
    return {
        "tx_log_id": _opt_fr(record.tx_log_id),
        "token_id": str(record.token_id),
        "token_type": None if record.token_type is None else int(record.token_type),
        "sender_index": record.sender_index,
        "receiver_index": record.receiver_index,
        "sender_key": None if record.sender_key is None else str(record.sender_key),
        "receiver_key": None if record.receiver_key is None else str(record.receiver_key),
        "amount": str(params.amount),
        "escrow_provider": str(params.escrow_provider),
        "sender_state_before": _int_list(record.sender_state_before),
        "receiver_state_before": _int_list(record.receiver_state_before),
        "sender_state_after": _int_list(record.sender_state_after),
        "receiver_state_after": _int_list(record.receiver_state_after),
        "root_before": _opt_fr(record.root_before),
        "root_after": _opt_fr(record.root_after),
        "tx_nonce": str(record.tx_nonce),
        "timestamp": str(record.timestamp),
        "status": record.status.value,
        "proof": serialize_proof(record.proof),
        "public_signals": None if record.public_signals is None
        else serialize_fr_list(record.public_signals),
        "metadata": record.metadata,
        "error": record.error,
    }
