"""
권위 있는 누산기와 읽기/쓰기 잠금
=================================

  read()  : 여러 스레드가 동시에 (root, path_for, snapshot)
  write() : 한 스레드만, 읽는 스레드가 모두 빠진 뒤

쓰기를 기다리는 스레드가 있으면 새 읽기는 대기한다.
"""

import logging
import threading
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """다수의 읽기 또는 하나의 쓰기."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self):
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self):
        with self._cond:
            self._writer = False
            self._cond.notify_all()


class AccumulatorHandle:
    """유일한 권위 있는 누산기를 소유한다.

    read() 안에서 받은 트리는 수정하지 않는다. 모든 수정은 write() 안에서.
    """

    def __init__(self, accumulator):
        self._acc = accumulator
        self._lock = ReadWriteLock()

    @contextmanager
    def read(self):
        self._lock.acquire_read()
        try:
            yield self._acc
        finally:
            self._lock.release_read()

    @contextmanager
    def write(self):
        self._lock.acquire_write()
        try:
            yield self._acc
        finally:
            self._lock.release_write()

    @property
    def depth(self):
        return self._acc.depth

    @property
    def root(self):
        with self.read() as acc:
            return acc.root

    def snapshot(self):
        with self.read() as acc:
            return acc.copy()

    def path_for(self, index):
        with self.read() as acc:
            return acc.path_for(index)

    def rebuild(self, factory):
        """쓰기 잠금을 잡은 채 factory()로 새 누산기를 만들어 교체한다.

        원장을 읽는 동안 다른 커밋이 끼어들 수 없다.
        """
        with self.write():
            accumulator = factory()
            self._acc = accumulator
        logger.info("accumulator rebuilt, root=%s", int(accumulator.root))
        return accumulator
