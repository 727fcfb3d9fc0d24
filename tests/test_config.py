"""Tests for settings loading (YAML + environment overrides)."""

from __future__ import annotations

import logging

import pytest

from caddycore.config import (
    CaddySettings,
    ClassifierSettings,
    MemorySettings,
    OfflineSettings,
    SessionSettings,
    load_settings,
)
from caddycore.errors import ContractViolationError


def _write(tmp_path, text):
    path = tmp_path / "caddy-settings.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    def test_numbers(self):
        s = CaddySettings()
        assert (s.classifier.route_threshold, s.classifier.confirm_threshold) == (0.75, 0.50)
        assert (s.offline.strong_threshold, s.offline.weak_threshold) == (0.7, 0.4)
        assert (s.classifier.text_timeout_seconds, s.classifier.voice_timeout_seconds) == (3.0, 4.5)
        assert (s.memory.half_life_days, s.memory.max_age_days, s.memory.retention_days) == (14.0, 84.0, 90)
        assert s.session.history_capacity == 10

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_settings(tmp_path / "nope.yaml", env={}) == CaddySettings()

    def test_bundled_file_matches_defaults(self):
        assert load_settings(env={}) == CaddySettings()


class TestYaml:
    def test_sections_applied(self, tmp_path):
        path = _write(
            tmp_path,
            "classifier:\n  route_threshold: 0.8\n  history_turns: 2\n"
            "offline:\n  strong_threshold: 0.6\n  weak_threshold: 0.3\n"
            "memory:\n  window_days: 14\n"
            "session:\n  history_capacity: 4\n"
            "decision_log: /tmp/decisions.jsonl\n",
        )
        s = load_settings(path, env={})
        assert s.classifier.route_threshold == 0.8
        assert s.classifier.history_turns == 2
        assert s.offline.strong_threshold == 0.6
        assert s.memory.window_days == 14
        assert s.session.history_capacity == 4
        assert s.decision_log == "/tmp/decisions.jsonl"

    def test_unknown_keys_warned(self, tmp_path, caplog):
        path = _write(tmp_path, "classifier:\n  warp_speed: 9\n")
        with caplog.at_level(logging.WARNING, logger="caddycore.config"):
            s = load_settings(path, env={})
        assert s.classifier == ClassifierSettings()
        assert "warp_speed" in caplog.text

    def test_non_mapping_section_ignored(self, tmp_path):
        path = _write(tmp_path, "offline: [1, 2]\n")
        assert load_settings(path, env={}).offline == OfflineSettings()

    def test_malformed_yaml_gives_defaults(self, tmp_path):
        path = _write(tmp_path, "classifier: [unclosed\n")
        assert load_settings(path, env={}) == CaddySettings()

    def test_invalid_thresholds_raise(self, tmp_path):
        path = _write(tmp_path, "classifier:\n  route_threshold: 0.4\n  confirm_threshold: 0.6\n")
        with pytest.raises(ContractViolationError):
            load_settings(path, env={})


class TestEnvironment:
    def test_overrides(self, tmp_path):
        env = {
            "CADDY_LLM_BASE_URL": "http://gpu:8001",
            "CADDY_LLM_MODEL": "caddy-small",
            "CADDY_LLM_API_KEY": "secret",
            "CADDY_DB_PATH": str(tmp_path / "shots.db"),
            "CADDY_DECISION_LOG": str(tmp_path / "log.jsonl"),
        }
        s = load_settings(tmp_path / "nope.yaml", env=env)
        assert s.classifier.base_url == "http://gpu:8001"
        assert s.classifier.model == "caddy-small"
        assert s.classifier.api_key == "secret"
        assert s.memory.db_path == str(tmp_path / "shots.db")
        assert s.decision_log == str(tmp_path / "log.jsonl")

    def test_reads_os_environ(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CADDY_LLM_MODEL", "from-env")
        assert load_settings(tmp_path / "nope.yaml").classifier.model == "from-env"


class TestValidation:
    @pytest.mark.parametrize(
        "factory",
        [
            lambda: ClassifierSettings(route_threshold=1.2),
            lambda: ClassifierSettings(text_timeout_seconds=0),
            lambda: OfflineSettings(strong_threshold=0.3, weak_threshold=0.5),
            lambda: MemorySettings(half_life_days=0),
            lambda: MemorySettings(min_samples=0),
            lambda: SessionSettings(history_capacity=0),
        ],
    )
    def test_rejected(self, factory):
        with pytest.raises(ContractViolationError):
            factory()
