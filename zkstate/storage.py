"""
TinyDB 기반 협력자 (Ledger / Transaction Log / Token Registry)
==============================================================

  | 클래스          | 테이블    | 키         | 용도                          |
  |-----------------|-----------|------------|-------------------------------|
  | TinyDBLedger    | leaves    | index      | 리프 평문 (권위 있는 원장)    |
  | TransactionLog  | tx_logs   | tx_log_id  | 커밋된 전송 기록 (추가 전용)  |
  | TokenRegistry   | tokens    | token_id   | 토큰 유형 등록                |

db_path가 None이면 MemoryStorage를 사용한다. 세 저장소는 같은
TinyDB 인스턴스의 서로 다른 테이블을 공유할 수 있다. JSONStorage는 파일
핸들 하나를 읽고 쓰므로, 같은 인스턴스를 쓰는 저장소는 모두 그 인스턴스의
잠금 하나(database_lock)를 공유한다.
"""

import logging
import threading
import weakref

from tinydb import Query, TinyDB
from tinydb.storages import MemoryStorage

from zkstate.errors import ValidationError
from zkstate.serializers import deserialize_leaf, serialize_leaf, serialize_record
from zkstate.tokens import STATE_SIZE, Leaf, variant_for

logger = logging.getLogger(__name__)

DATA = Query()

_DB_LOCKS = weakref.WeakKeyDictionary()
_DB_LOCKS_GUARD = threading.Lock()


def open_database(path=None):
    """TinyDB 인스턴스. path가 None이면 메모리 저장소."""
    db = TinyDB(storage=MemoryStorage) if path is None else TinyDB(path)
    database_lock(db)
    return db


def database_lock(db):
    """db 인스턴스 하나에 잠금 하나. 같은 db를 쓰는 저장소는 같은 잠금을 받는다."""
    with _DB_LOCKS_GUARD:
        lock = _DB_LOCKS.get(db)
        if lock is None:
            lock = _DB_LOCKS[db] = threading.RLock()
        return lock


# ─────────────────────────────────────────────────────────────────────
# 원장 (Ledger)
# ─────────────────────────────────────────────────────────────────────

class TinyDBLedger:
    """리프 평문 저장소. 인덱스 하나에 리프 하나."""

    def __init__(self, db=None):
        self.db = db if db is not None else open_database()
        self.table = self.db.table("leaves")
        self._lock = database_lock(self.db)

    def put_leaf(self, index, leaf):
        if len(leaf.state) != STATE_SIZE:
            raise ValueError(f"state must have {STATE_SIZE} slots")
        with self._lock:
            doc = {"index": index, **serialize_leaf(leaf)}
            self.table.upsert(doc, DATA.index == index)
        logger.debug("ledger put leaf %d", index)

    def get_leaf(self, index):
        """Leaf 또는 None."""
        with self._lock:
            rows = self.table.search(DATA.index == index)
        if not rows:
            return None
        return deserialize_leaf(rows[0])

    def list_leaves(self):
        """[(index, owner_key, nonce, token_id, state)] 인덱스 순."""
        with self._lock:
            rows = self.table.all()
        result = []
        for row in sorted(rows, key=lambda r: r["index"]):
            leaf = deserialize_leaf(row)
            result.append((row["index"], leaf.owner_key, leaf.nonce, leaf.token_id, leaf.state))
        return result

    def update_leaf_state(self, index, new_state):
        if len(new_state) != STATE_SIZE:
            raise ValueError(f"state must have {STATE_SIZE} slots")
        with self._lock:
            updated = self.table.update({"state": [str(int(v)) for v in new_state]},
                                        DATA.index == index)
        if not updated:
            raise KeyError(f"no leaf at index {index}")
        logger.debug("ledger leaf %d state updated", index)


# ─────────────────────────────────────────────────────────────────────
# 토큰 레지스트리
# ─────────────────────────────────────────────────────────────────────

class TokenInfo:
    def __init__(self, token_id, token_type, name=""):
        self.token_id = token_id
        self.token_type = token_type
        self.name = name

    def __repr__(self):
        return f"TokenInfo({self.token_id}, type={self.token_type}, name={self.name!r})"


class TokenRegistry:
    """token_id → 토큰 유형. 유형 값의 해석은 variant_for에서 한다."""

    def __init__(self, db=None):
        self.db = db if db is not None else open_database()
        self.table = self.db.table("tokens")
        self._lock = database_lock(self.db)

    def register(self, token_id, token_type, name=""):
        with self._lock:
            self.table.upsert({"token_id": str(token_id), "token_type": int(token_type),
                               "name": name}, DATA.token_id == str(token_id))
        return TokenInfo(token_id, int(token_type), name)

    def get(self, token_id):
        with self._lock:
            rows = self.table.search(DATA.token_id == str(token_id))
        if not rows:
            return None
        row = rows[0]
        return TokenInfo(int(row["token_id"]), row["token_type"], row.get("name", ""))

    def variant_for(self, token_id):
        """등록된 토큰의 변형 규칙.

        Raises:
            ValidationError: 등록되지 않은 토큰
            UnsupportedTokenType: 등록된 유형에 변형이 없을 때
        """
        info = self.get(token_id)
        if info is None:
            raise ValidationError(f"unknown token: {token_id}")
        return variant_for(info.token_type)


# ─────────────────────────────────────────────────────────────────────
# 트랜잭션 로그
# ─────────────────────────────────────────────────────────────────────

class TransactionLog:
    """커밋된 전송 기록. tx_log_id 기준 추가 전용."""

    def __init__(self, db=None):
        self.db = db if db is not None else open_database()
        self.table = self.db.table("tx_logs")
        self._lock = database_lock(self.db)

    def append(self, record, status=None):
        """기록을 추가한다. status가 주어지면 저장되는 상태 값을 대신한다."""
        doc = serialize_record(record)
        if status is not None:
            doc["status"] = status
        key = doc["tx_log_id"]
        if key is None:
            raise ValueError("record has no tx_log_id")
        with self._lock:
            if self.table.contains(DATA.tx_log_id == key):
                raise ValueError(f"duplicate tx_log_id: {key}")
            self.table.insert(doc)
        logger.info("tx log appended %s", key)
        return key

    def get(self, tx_log_id):
        key = str(int(tx_log_id))
        with self._lock:
            rows = self.table.search(DATA.tx_log_id == key)
        return dict(rows[0]) if rows else None

    def all(self):
        with self._lock:
            return [dict(r) for r in self.table.all()]

    def __len__(self):
        with self._lock:
            return len(self.table)


def seed_ledger(ledger, accounts):
    """{index: Leaf} 매핑을 원장에 기록한다."""
    for index, leaf in accounts.items():
        if not isinstance(leaf, Leaf):
            raise TypeError(f"expected Leaf at index {index}")
        ledger.put_leaf(index, leaf)
