"""Tests for the command-line entry point."""

import json
import logging
import sys

import pytest
import yaml

import main
from writer_ai.cache import CacheEntry, CacheStore, generate_key
from writer_ai.config import CacheSettings, reset_settings


@pytest.fixture(autouse=True)
def _isolate():
    reset_settings()
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    reset_settings()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "llm": {"url": "http://localhost:11434/api/chat", "model_name": "llama3"},
                "cache": {"directory": str(tmp_path / "cache")},
            }
        )
    )
    return path


def run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["main.py", *argv])
    main.main()


class TestInitConfig:
    def test_creates_file(self, tmp_path, monkeypatch, capsys):
        target = tmp_path / "new" / "config.yaml"
        run(monkeypatch, "--config", str(target), "init-config")
        assert target.exists()
        assert "Created default config file" in capsys.readouterr().out

    def test_keeps_existing(self, config_file, monkeypatch, capsys):
        before = config_file.read_text()
        run(monkeypatch, "--config", str(config_file), "init-config")
        assert config_file.read_text() == before
        assert "already exists" in capsys.readouterr().out


class TestCacheCommands:
    def _seed(self, tmp_path):
        with CacheStore.open(tmp_path / "cache", CacheSettings()) as store:
            store.store(generate_key("a", "llama3", 0), "A")
            store._backend[generate_key("b", "llama3", 0)] = CacheEntry(
                response="B", created_at=1, expires_at=2
            ).to_bytes()

    def test_stats(self, tmp_path, config_file, monkeypatch, capsys):
        self._seed(tmp_path)
        run(monkeypatch, "--config", str(config_file), "cache", "stats")
        data = json.loads(capsys.readouterr().out)
        assert data["entry_count"] == 1
        assert data["enabled"] is True

    def test_clear(self, tmp_path, config_file, monkeypatch, capsys):
        self._seed(tmp_path)
        run(monkeypatch, "--config", str(config_file), "cache", "clear")
        assert "Removed 1 entries" in capsys.readouterr().out

    def test_cleanup(self, tmp_path, config_file, monkeypatch, capsys):
        with CacheStore.open(tmp_path / "cache", CacheSettings(enabled=False)) as store:
            store._backend[generate_key("b", "llama3", 0)] = CacheEntry(
                response="B", created_at=1, expires_at=2
            ).to_bytes()
        config_file.write_text(
            yaml.safe_dump(
                {"cache": {"enabled": True, "directory": str(tmp_path / "cache")}}
            )
        )
        run(monkeypatch, "--config", str(config_file), "cache", "cleanup")
        # opening the store already swept the expired entry
        assert "Removed 0 expired entries" in capsys.readouterr().out


class TestErrors:
    def test_no_command_exits(self, monkeypatch):
        with pytest.raises(SystemExit):
            run(monkeypatch)

    def test_config_error_exits(self, tmp_path, monkeypatch, capsys):
        bad = tmp_path / "config.yaml"
        bad.write_text("cache:\n  ttl_days: -5\n")
        with pytest.raises(SystemExit) as info:
            run(monkeypatch, "--config", str(bad), "cache", "stats")
        assert info.value.code == 1
        assert "ttl_days" in capsys.readouterr().err
