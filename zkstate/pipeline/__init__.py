"""
Transfer Pipeline: 상태 전이 증명 오케스트레이터
=================================================

전송 요청 하나를 검증 → 증인 구성 → 증명 → 검증 → 커밋 순서로 처리한다.

  ┌─────────────────────────────────────────────────────┐
  │  REQUESTED                                          │
  │    validate: 토큰 등록, 리프 존재, 유형별 사전 조건 │
  ├─────────────────────────────────────────────────────┤
  │  VALIDATED                                          │
  │    build_witness: 읽기 잠금 아래 스냅샷, 경로 재생  │
  ├─────────────────────────────────────────────────────┤
  │  WITNESS_BUILT                                      │
  │    prove: 잠금 없이 백엔드 증명                     │
  ├─────────────────────────────────────────────────────┤
  │  PROVEN                                             │
  │    verify: 자체 증명 검증 (실패 = 내부 결함)        │
  ├─────────────────────────────────────────────────────┤
  │  VERIFIED                                           │
  │    commit: 쓰기 잠금 아래 루트 확인 → 원장/누산기   │
  │            갱신 → 트랜잭션 로그 기록                │
  └─────────────────────────────────────────────────────┘
         → COMMITTED      (REJECTED: 검증/증명 단계 실패)

누산기는 검증이 끝난 뒤에만 바뀐다. 커밋 도중 저장소 쓰기가 실패하면
원장과 누산기를 전 상태로 되돌리고 기록은 REJECTED가 된다.
커밋 시점에 루트가 이미 움직였다면 (StaleWitness) 기록을 처음부터 다시 처리한다.

사용 예시:
    >>> pipeline = TransferPipeline(ledger, backend, tx_log, registry)
    >>> record = pipeline.execute(TransferRequest(token_id=1, sender_index=3,
    ...                                           receiver_index=9,
    ...                                           params=TransferParams(amount=7500)))
    >>> record.status  # TransferStatus.COMMITTED
"""

import logging
import secrets
import time
from concurrent.futures import ThreadPoolExecutor

from zkstate.circuit.transfer import compile_circuit
from zkstate.config import Settings, configure_logging
from zkstate.errors import (
    AccumulatorIndexError, InvalidTransition, StaleWitness, UnsatisfiableCircuit, UnsupportedTokenType,
    ValidationError, VerificationFailed, WitnessInconsistency,
)
from zkstate.field import is_canonical
from zkstate.groth16.backend import Groth16Backend
from zkstate.merkle import Accumulator
from zkstate.metadata import generate_proof_metadata, validate_metadata
from zkstate.pipeline.record import (
    TRANSITIONS, LoggedVerification, TransferRecord, TransferRequest, TransferStatus,
)
from zkstate.pipeline.state import AccumulatorHandle
from zkstate.pipeline.witness import build_transfer_witness
from zkstate.serializers import deserialize_fr_list, deserialize_proof
from zkstate.storage import TinyDBLedger, TokenRegistry, TransactionLog, open_database
from zkstate.tokens import Leaf, TokenType, TransferParams

logger = logging.getLogger(__name__)

__all__ = [
    "LoggedVerification", "TransferPipeline", "TransferRecord", "TransferRequest",
    "TransferStatus", "TransferParams",
]


class TransferPipeline:
    """검증부터 커밋까지 전송을 처리한다.

    Args:
        ledger: list_leaves / get_leaf / update_leaf_state를 제공하는 원장
        backend: ProvingBackend
        tx_log: TransactionLog
        registry: TokenRegistry
        settings: Settings (기본값 사용 시 None)
    """

    def __init__(self, ledger, backend, tx_log, registry, settings=None):
        self.ledger = ledger
        self.backend = backend
        self.tx_log = tx_log
        self.registry = registry
        self.settings = settings or Settings()
        self.accumulator = AccumulatorHandle(self.load_accumulator())
        self._executor = None

    @classmethod
    def from_settings(cls, settings=None, backend=None):
        """settings.db_path의 TinyDB 위에 원장/레지스트리/로그를 열어 파이프라인을 만든다.

        backend를 생략하면 setup_seed로 설정하는 Groth16Backend를 사용한다.
        settings.log_level로 로깅을 설정한다.
        """
        settings = settings or Settings()
        configure_logging(settings.log_level)
        db = open_database(settings.db_path)
        if backend is None:
            backend = Groth16Backend(seed=settings.setup_seed)
        return cls(TinyDBLedger(db), backend, TransactionLog(db), TokenRegistry(db), settings)

    # ── 누산기 ──

    def load_accumulator(self):
        """원장 전체에서 누산기를 다시 만든다."""
        leaves = {}
        for index, owner_key, nonce, token_id, state in self.ledger.list_leaves():
            variant = self.registry.variant_for(token_id)
            leaves[index] = variant.encode_leaf(Leaf(owner_key, nonce, token_id, tuple(state)))
        acc = Accumulator.from_leaves(self.settings.tree_depth, leaves)
        logger.info("accumulator loaded: %d leaves, root=%s", len(leaves), int(acc.root))
        return acc

    def resync(self):
        """원장에서 누산기를 다시 만든다. 원장 읽기부터 교체까지 쓰기 잠금 안에서."""
        return self.accumulator.rebuild(self.load_accumulator)

    @property
    def root(self):
        return self.accumulator.root

    def circuit_for(self, token_type):
        compiled = compile_circuit(token_type, self.settings.tree_depth, self.settings.range_bits)
        self.backend.register(compiled, seed=self.settings.setup_seed)
        return compiled

    # ── 단계 ──

    def request(self, request):
        tx_nonce = request.tx_nonce if request.tx_nonce is not None else secrets.randbelow(1 << 64)
        timestamp = request.timestamp if request.timestamp is not None else int(time.time())
        record = TransferRecord(request, tx_nonce, timestamp)
        logger.info("transfer requested: token=%s %s->%s", request.token_id,
                    request.sender_index, request.receiver_index)
        return record

    def _check_index(self, index):
        capacity = 1 << self.settings.tree_depth
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < capacity:
            raise AccumulatorIndexError(index, capacity)

    def _read_leaves(self, record):
        sender = self.ledger.get_leaf(record.sender_index)
        receiver = self.ledger.get_leaf(record.receiver_index)
        if sender is None:
            raise ValidationError(f"no leaf at sender index {record.sender_index}")
        if receiver is None:
            raise ValidationError(f"no leaf at receiver index {record.receiver_index}")
        return sender, receiver

    def validate(self, record):
        """사전 조건 검사. 위반 시 ValidationError (증명 작업 전)."""
        variant = self.registry.variant_for(record.token_id)
        self._check_index(record.sender_index)
        self._check_index(record.receiver_index)
        if record.sender_index == record.receiver_index:
            raise ValidationError("sender and receiver must differ")
        if not is_canonical(record.tx_nonce) or not is_canonical(record.timestamp):
            raise ValidationError("tx_nonce and timestamp must be field elements")

        with self.accumulator.read():
            sender, receiver = self._read_leaves(record)
        for role, leaf in (("sender", sender), ("receiver", receiver)):
            if leaf.token_id != record.token_id:
                raise ValidationError(f"{role} leaf holds token {leaf.token_id}, not {record.token_id}")
        if sender.owner_key == receiver.owner_key:
            raise ValidationError("sender and receiver must differ")
        variant.validate(sender, receiver, record.params, self.settings.range_bits)

        record.token_type = variant.token_type
        record.sender_key = sender.owner_key
        record.receiver_key = receiver.owner_key
        record.sender_state_before = tuple(sender.state)
        record.receiver_state_before = tuple(receiver.state)
        record.advance(TransferStatus.VALIDATED)
        logger.info("transfer validated: %s", record)
        return record

    def build_witness(self, record):
        variant = self.registry.variant_for(record.token_id)
        with self.accumulator.read() as acc:
            snapshot = acc.copy()
            sender, receiver = self._read_leaves(record)
        if tuple(sender.state) != record.sender_state_before or \
                tuple(receiver.state) != record.receiver_state_before:
            raise StaleWitness("ledger changed after validation")

        witness = build_transfer_witness(
            snapshot, variant, record.token_id, record.sender_index, record.receiver_index,
            sender, receiver, record.params, record.tx_nonce, record.timestamp)
        if self.tx_log.get(witness.tx_log_id) is not None:
            raise ValidationError(f"transaction {int(witness.tx_log_id)} was already committed")

        record.witness = witness
        record.root_before = witness.root_before
        record.root_after = witness.root_after
        record.tx_log_id = witness.tx_log_id
        record.sender_state_after = tuple(witness.sender_after.state)
        record.receiver_state_after = tuple(witness.receiver_after.state)
        record.advance(TransferStatus.WITNESS_BUILT)
        logger.info("witness built: root_before=%s root_after=%s",
                    int(record.root_before), int(record.root_after))
        return record

    def prove(self, record):
        """백엔드 증명. 잠금을 잡지 않는다. 불만족 시 UnsatisfiableCircuit."""
        compiled = self.circuit_for(record.token_type)
        record.circuit_id = compiled.circuit_id
        public, private = compiled.split_inputs(record.witness.assignment)
        proof, public_signals = self.backend.prove(compiled.circuit_id, public, private)

        vk = self.backend.verification_key(compiled.circuit_id)
        record.proof = proof
        record.public_signals = public_signals
        record.metadata = generate_proof_metadata(self.backend.proving_system, compiled, vk)
        record.advance(TransferStatus.PROVEN)
        logger.info("proof generated for %s", compiled.circuit_id)
        return record

    def _expected_public_signals(self, record):
        expected = [record.root_before, record.root_after, record.tx_log_id]
        if TokenType(record.token_type) != TokenType.FUNGIBLE:
            expected.append(record.token_id)
        return [int(v) for v in expected]

    def verify(self, record):
        """자체 증명 검증. 실패는 내부 결함이므로 VerificationFailed."""
        signals = [int(v) for v in record.public_signals]
        if signals != self._expected_public_signals(record):
            raise VerificationFailed(f"public signals of {record.circuit_id} do not match the witness")
        if not self.backend.verify(record.circuit_id, record.proof, record.public_signals):
            raise VerificationFailed(f"proof for {record.circuit_id} did not verify")
        record.advance(TransferStatus.VERIFIED)
        logger.info("proof verified for %s", record.circuit_id)
        return record

    def commit(self, record):
        """쓰기 잠금 아래 원장/누산기/트랜잭션 로그를 갱신한다.

        원장 쓰기, 누산기 갱신, 로그 기록 중 하나라도 실패하면 이미 바뀐
        원장 리프와 누산기 리프를 전 상태로 되돌리고, 기록을 REJECTED로
        표시한 뒤 원래 예외를 다시 발생시킨다.

        Raises:
            StaleWitness: 권위 있는 루트가 root_before와 다를 때
        """
        if record.status is not TransferStatus.VERIFIED:
            raise InvalidTransition(f"cannot commit a {record.status.value} record")
        witness = record.witness
        updates = [
            (record.sender_index, record.sender_state_before, witness.sender_after.state,
             witness.sender_leaf_after),
            (record.receiver_index, record.receiver_state_before, witness.receiver_after.state,
             witness.receiver_leaf_after),
        ]
        with self.accumulator.write() as acc:
            if acc.root != record.root_before:
                raise StaleWitness("accumulator root moved since the witness was built")
            leaves_before = [(index, acc.leaf(index)) for index, _, _, _ in updates]
            written = []
            try:
                for index, state_before, state_after, _ in updates:
                    self.ledger.update_leaf_state(index, state_after)
                    written.append((index, state_before))
                for index, _, _, leaf_after in updates:
                    acc.update_leaf(index, leaf_after)
                if acc.root != record.root_after:
                    raise WitnessInconsistency("committed root differs from the proven root_after")
                self.tx_log.append(record, status=TransferStatus.COMMITTED.value)
            except Exception as e:
                record.reject(e)
                logger.error("commit rolled back for %s: %s", record, e)
                self._rollback(acc, leaves_before, written)
                raise
            record.witness = None
            record.advance(TransferStatus.COMMITTED)
        logger.info("transfer committed: tx_log_id=%s root=%s",
                    int(record.tx_log_id), int(record.root_after))
        return record

    def _rollback(self, acc, leaves_before, written):
        """쓰기 잠금 안에서만 호출된다."""
        for index, leaf in leaves_before:
            acc.update_leaf(index, leaf)
        for index, state in reversed(written):
            self.ledger.update_leaf_state(index, state)

    # ── 저장된 전송 재검증 ──

    def verify_logged(self, tx_log_id):
        """트랜잭션 로그에 저장된 전송의 증명을 다시 검증한다.

        저장된 증명과 공개 신호를 역직렬화해 백엔드로 검증하고, 공개 신호가
        기록된 루트/tx_log_id와 같은지, 메타데이터가 현재 회로와 검증 키에
        맞는지 확인한다.

        Returns:
            LoggedVerification

        Raises:
            ValidationError: 로그에 없는 tx_log_id
        """
        entry = self.tx_log.get(tx_log_id)
        if entry is None:
            raise ValidationError(f"no logged transaction {int(tx_log_id)}")
        token_type = TokenType.parse(entry["token_type"])
        compiled = self.circuit_for(token_type)
        proof = deserialize_proof(entry["proof"])
        public_signals = deserialize_fr_list(entry["public_signals"] or [])

        vk = self.backend.verification_key(compiled.circuit_id)
        errors, warnings = validate_metadata(entry.get("metadata") or {}, compiled, vk)
        expected = [entry["root_before"], entry["root_after"], entry["tx_log_id"]]
        if token_type != TokenType.FUNGIBLE:
            expected.append(entry["token_id"])
        if [str(int(v)) for v in public_signals] != expected:
            errors.append("public signals do not match the logged transfer")

        verified = proof is not None and self.backend.verify(compiled.circuit_id, proof, public_signals)
        result = LoggedVerification(int(tx_log_id), verified, errors, warnings)
        logger.info("logged transfer %s re-verified: %s", result.tx_log_id, result)
        return result

    # ── 전체 흐름 ──

    def _reject(self, record, error):
        if record.is_final:
            return
        if TransferStatus.REJECTED in TRANSITIONS[record.status]:
            record.reject(error)
        else:
            record.error = str(error)

    def execute(self, request):
        """요청 하나를 끝까지 처리한다.

        ValidationError / UnsatisfiableCircuit → REJECTED 기록을 반환.
        UnsupportedTokenType / AccumulatorIndexError → REJECTED로 표시 후 예외 전파.
        WitnessInconsistency / VerificationFailed → CRITICAL 로그 후 예외 전파.
        커밋 중 저장소 오류 → 원장/누산기를 되돌리고 REJECTED, 예외 전파.
        StaleWitness → 최대 max_commit_attempts번 재시도.
        """
        record = self.request(request)
        attempts = self.settings.max_commit_attempts
        while True:
            record.attempts += 1
            try:
                self.validate(record)
                self.build_witness(record)
                self.prove(record)
                self.verify(record)
                return self.commit(record)
            except (ValidationError, UnsatisfiableCircuit) as e:
                logger.info("transfer rejected: %s", e)
                self._reject(record, e)
                return record
            except (UnsupportedTokenType, AccumulatorIndexError) as e:
                logger.warning("transfer rejected: %s", e)
                self._reject(record, e)
                raise
            except (WitnessInconsistency, VerificationFailed) as e:
                logger.critical("internal fault while processing %s: %s", record, e)
                self._reject(record, e)
                raise
            except StaleWitness as e:
                if record.attempts >= attempts:
                    logger.warning("giving up after %d stale attempts: %s", record.attempts, e)
                    record.reset_for_retry()
                    self._reject(record, e)
                    raise
                logger.info("stale witness (attempt %d), retrying: %s", record.attempts, e)
                record.reset_for_retry()

    def submit(self, request):
        """execute를 작업 스레드에서 실행하고 Future를 반환한다."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.settings.worker_threads,
                                                thread_name_prefix="zkstate")
        return self._executor.submit(self.execute, request)

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
