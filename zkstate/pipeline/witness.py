"""
전송 증인 구성 (Witness Builder)
================================

누산기 스냅샷 위에서 전이를 미리 적용해 보고, 회로 입력 전체를 만든다.

  1. 전 리프 인코딩이 스냅샷의 리프와 같은지 확인
  2. root_before, 전 경로 2개 추출
  3. 전이 규칙으로 후 상태 계산, 후 리프 재인코딩
  4. 스냅샷 사본에 두 리프 갱신 → root_after, 후 경로 2개 추출
  5. 경로 4개를 로컬에서 재생 (불일치 = WitnessInconsistency)
  6. 바인딩 커밋먼트 tx_log_id 계산

스냅샷은 이 함수 안에서만 사용되며 권위 있는 누산기는 바뀌지 않는다.
"""

from zkstate.errors import WitnessInconsistency
from zkstate.merkle import verify_path


class TransferWitness:
    """회로 입력과 커밋에 필요한 파생 값.

    속성:
        assignment: 회로 입력 이름 → 값 (공개 + 비공개)
        root_before, root_after, tx_log_id: FR
        sender_after, receiver_after: Leaf (후 상태)
        sender_leaf_after, receiver_leaf_after: FR (후 리프 해시)
    """

    def __init__(self, assignment, root_before, root_after, tx_log_id,
                 sender_after, receiver_after, sender_leaf_after, receiver_leaf_after):
        self.assignment = assignment
        self.root_before = root_before
        self.root_after = root_after
        self.tx_log_id = tx_log_id
        self.sender_after = sender_after
        self.receiver_after = receiver_after
        self.sender_leaf_after = sender_leaf_after
        self.receiver_leaf_after = receiver_leaf_after


def _check_replay(leaf, path, root, label):
    if not verify_path(leaf, path, root):
        raise WitnessInconsistency(f"{label} path does not reproduce the expected root")


def build_transfer_witness(snapshot, variant, token_id, sender_index, receiver_index,
                           sender, receiver, params, tx_nonce, timestamp):
    """증인을 구성한다.

    Args:
        snapshot: 권위 있는 누산기의 사본 (Accumulator)
        variant: TokenVariant
        sender, receiver: 전 상태 Leaf
        params: TransferParams

    Raises:
        WitnessInconsistency: 원장과 누산기가 어긋나거나 경로 재생이 실패할 때
    """
    sender_leaf_before = variant.encode_leaf(sender)
    receiver_leaf_before = variant.encode_leaf(receiver)
    if snapshot.leaf(sender_index) != sender_leaf_before:
        raise WitnessInconsistency(f"ledger leaf {sender_index} does not match the accumulator")
    if snapshot.leaf(receiver_index) != receiver_leaf_before:
        raise WitnessInconsistency(f"ledger leaf {receiver_index} does not match the accumulator")

    root_before = snapshot.root
    sender_path_before = snapshot.path_for(sender_index)
    receiver_path_before = snapshot.path_for(receiver_index)

    sender_state_after, receiver_state_after = variant.transition(sender.state, receiver.state, params)
    sender_after = sender.with_state(sender_state_after)
    receiver_after = receiver.with_state(receiver_state_after)
    sender_leaf_after = variant.encode_leaf(sender_after)
    receiver_leaf_after = variant.encode_leaf(receiver_after)

    work = snapshot.copy()
    work.update_leaf(sender_index, sender_leaf_after)
    work.update_leaf(receiver_index, receiver_leaf_after)
    root_after = work.root
    sender_path_after = work.path_for(sender_index)
    receiver_path_after = work.path_for(receiver_index)

    _check_replay(sender_leaf_before, sender_path_before, root_before, "sender before")
    _check_replay(receiver_leaf_before, receiver_path_before, root_before, "receiver before")
    _check_replay(sender_leaf_after, sender_path_after, root_after, "sender after")
    _check_replay(receiver_leaf_after, receiver_path_after, root_after, "receiver after")

    tx_log_id = variant.binding_commitment(sender.owner_key, receiver.owner_key, token_id,
                                           params, tx_nonce, timestamp)

    assignment = {
        "root_before": root_before,
        "root_after": root_after,
        "tx_log_id": tx_log_id,
        "token_id": token_id,
        "sender_key": sender.owner_key,
        "receiver_key": receiver.owner_key,
        "sender_nonce": sender.nonce,
        "receiver_nonce": receiver.nonce,
        "sender_state_before": list(sender.state),
        "receiver_state_before": list(receiver.state),
        "sender_state_after": list(sender_state_after),
        "receiver_state_after": list(receiver_state_after),
        "transfer_param": variant.transfer_param(params),
        "tx_nonce": tx_nonce,
        "tx_timestamp": timestamp,
    }
    paths = {
        "sender": (sender_path_before, sender_path_after),
        "receiver": (receiver_path_before, receiver_path_after),
    }
    for role, (before, after) in paths.items():
        assignment[f"{role}_siblings_before"] = before.siblings
        assignment[f"{role}_path_bits_before"] = before.path_bits
        assignment[f"{role}_siblings_after"] = after.siblings
        assignment[f"{role}_path_bits_after"] = after.path_bits

    return TransferWitness(assignment, root_before, root_after, tx_log_id,
                           sender_after, receiver_after, sender_leaf_after, receiver_leaf_after)
