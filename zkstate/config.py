"""
zkstate 설정
============

설정 값의 출처 (우선순위 높은 순):
    1. 환경 변수 (ZKSTATE_*)
    2. YAML 설정 파일 (Settings.from_yaml)
    3. 기본값

  | 키                  | 환경 변수                     | 기본값 |
  |---------------------|-------------------------------|--------|
  | tree_depth          | ZKSTATE_TREE_DEPTH            | 4      |
  | range_bits          | ZKSTATE_RANGE_BITS            | 64     |
  | setup_seed          | ZKSTATE_SETUP_SEED            | None   |
  | db_path             | ZKSTATE_DB_PATH               | None   |
  | max_commit_attempts | ZKSTATE_MAX_COMMIT_ATTEMPTS   | 3      |
  | worker_threads      | ZKSTATE_WORKER_THREADS        | 1      |
  | log_level           | ZKSTATE_LOG_LEVEL             | INFO   |

db_path가 None이면 TinyDB를 메모리 저장소로 사용한다.
"""

import logging
import os
from dataclasses import dataclass, fields, replace

import yaml

from zkstate.errors import ConfigError

ENV_PREFIX = "ZKSTATE_"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    tree_depth: int = 4
    range_bits: int = 64
    setup_seed: str = None
    db_path: str = None
    max_commit_attempts: int = 3
    worker_threads: int = 1
    log_level: str = "INFO"

    def __post_init__(self):
        self.validate()

    def validate(self):
        if not 1 <= self.tree_depth <= 32:
            raise ConfigError(f"tree_depth must be in [1, 32]: {self.tree_depth}")
        if not 1 <= self.range_bits <= 252:
            raise ConfigError(f"range_bits must be in [1, 252]: {self.range_bits}")
        if self.max_commit_attempts < 1:
            raise ConfigError(f"max_commit_attempts must be >= 1: {self.max_commit_attempts}")
        if self.worker_threads < 1:
            raise ConfigError(f"worker_threads must be >= 1: {self.worker_threads}")
        if logging.getLevelName(str(self.log_level).upper()) not in (
                logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL):
            raise ConfigError(f"unknown log level: {self.log_level}")

    @property
    def capacity(self):
        return 1 << self.tree_depth

    def override(self, **values):
        return replace(self, **values)

    @classmethod
    def _coerce(cls, name, value):
        if value is None:
            return None
        target = {f.name: f.default for f in fields(cls)}[name]
        try:
            if isinstance(target, int):
                return int(value)
            return str(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid value for {name}: {value!r}") from e

    @classmethod
    def from_mapping(cls, mapping, base=None):
        known = {f.name for f in fields(cls)}
        unknown = set(mapping) - known
        if unknown:
            raise ConfigError(f"unknown settings: {sorted(unknown)}")
        values = {k: cls._coerce(k, v) for k, v in mapping.items()}
        return replace(base, **values) if base is not None else cls(**values)

    @classmethod
    def from_env(cls, environ=None, base=None):
        environ = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            key = ENV_PREFIX + f.name.upper()
            if key in environ:
                values[f.name] = environ[key]
        return cls.from_mapping(values, base=base)

    @classmethod
    def from_yaml(cls, path):
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"cannot read settings file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"settings file {path} must contain a mapping")
        section = data.get("zkstate", data)
        return cls.from_mapping(section)

    @classmethod
    def load(cls, path=None, environ=None):
        """기본값 → YAML 파일 → 환경 변수 순으로 합친다."""
        base = cls.from_yaml(path) if path else cls()
        return cls.from_env(environ, base=base)


def configure_logging(level="INFO"):
    logging.basicConfig(level=getattr(logging, str(level).upper()), format=LOG_FORMAT)
