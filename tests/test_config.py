"""
설정 테스트: 기본값, YAML 파일, 환경 변수, 검증
"""

import logging

import pytest

from zkstate.config import Settings, configure_logging
from zkstate.errors import ConfigError


class TestDefaults:
    def test_values(self):
        s = Settings()
        assert (s.tree_depth, s.range_bits, s.max_commit_attempts) == (4, 64, 3)
        assert s.setup_seed is None and s.db_path is None
        assert s.capacity == 16

    def test_override(self):
        s = Settings().override(tree_depth=5)
        assert s.capacity == 32

    @pytest.mark.parametrize("values", [
        {"tree_depth": 0},
        {"range_bits": 300},
        {"max_commit_attempts": 0},
        {"worker_threads": 0},
        {"log_level": "LOUD"},
    ])
    def test_invalid(self, values):
        with pytest.raises(ConfigError):
            Settings(**values)


class TestSources:
    def test_from_mapping_unknown_key(self):
        with pytest.raises(ConfigError):
            Settings.from_mapping({"depth": 4})

    def test_from_mapping_coerces(self):
        s = Settings.from_mapping({"tree_depth": "3", "setup_seed": 123})
        assert s.tree_depth == 3
        assert s.setup_seed == "123"

    def test_from_mapping_bad_int(self):
        with pytest.raises(ConfigError):
            Settings.from_mapping({"tree_depth": "deep"})

    def test_from_env(self):
        env = {"ZKSTATE_TREE_DEPTH": "5", "ZKSTATE_SETUP_SEED": "demo", "HOME": "/root"}
        s = Settings.from_env(env)
        assert s.tree_depth == 5
        assert s.setup_seed == "demo"

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "zkstate.yaml"
        path.write_text("zkstate:\n  tree_depth: 6\n  range_bits: 32\n  log_level: debug\n")
        s = Settings.from_yaml(str(path))
        assert (s.tree_depth, s.range_bits, s.log_level) == (6, 32, "debug")

    def test_from_yaml_flat(self, tmp_path):
        path = tmp_path / "flat.yaml"
        path.write_text("max_commit_attempts: 5\n")
        assert Settings.from_yaml(str(path)).max_commit_attempts == 5

    def test_yaml_not_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError):
            Settings.from_yaml(str(path))

    def test_yaml_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            Settings.from_yaml(str(tmp_path / "missing.yaml"))

    def test_load_env_wins(self, tmp_path):
        path = tmp_path / "zkstate.yaml"
        path.write_text("tree_depth: 6\nworker_threads: 2\n")
        s = Settings.load(str(path), environ={"ZKSTATE_TREE_DEPTH": "3"})
        assert s.tree_depth == 3
        assert s.worker_threads == 2

    def test_load_defaults(self):
        assert Settings.load(environ={}) == Settings()


class TestLogging:
    def test_level_name(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))
        configure_logging("debug")
        assert calls[0]["level"] == logging.DEBUG
