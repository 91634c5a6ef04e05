"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from urlsentry.config import Config, load_config, validate_config

_ENV_VARS = (
    "BACKEND",
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "SUPABASE_TABLE",
    "WEBHOOK_URL",
    "SCAN_IDLE_TIMEOUT",
    "SCAN_MAX_DURATION",
    "HISTORY_LIMIT",
    "MAX_CSV_BYTES",
    "LOCAL_SCORER_DELAY",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setattr("urlsentry.config.load_dotenv", lambda *a, **k: None)
    return tmp_path


def test_defaults(clean_env):
    config = load_config()
    assert config.backend == "local"
    assert config.scan_idle_timeout == 120.0
    assert config.scan_max_duration == 900.0
    assert config.completion_threshold == 3
    assert config.history_limit == 50
    assert config.max_csv_bytes == 5 * 1024 * 1024
    assert config.data_dir.exists()
    assert config.database_path == clean_env / "data" / "urlsentry.db"
    assert validate_config(config) == []


def test_settings_yaml_and_env_precedence(clean_env, monkeypatch):
    config_dir = clean_env / "config"
    config_dir.mkdir()
    (config_dir / "settings.yaml").write_text(
        "scan:\n"
        "  idle_timeout: 30\n"
        "  history_limit: 10\n"
        "  completion_threshold: 5\n"
        "local_scorer:\n"
        "  delay: 0.1\n"
        "  suspicious_tlds: ['.Zip', 'mov']\n"
    )
    monkeypatch.setenv("HISTORY_LIMIT", "20")

    config = load_config()
    assert config.scan_idle_timeout == 30.0
    assert config.history_limit == 20
    assert config.completion_threshold == 5
    assert config.local_scorer_delay == 0.1
    assert config.suspicious_tlds == {"zip", "mov"}


def test_malformed_settings_are_ignored(clean_env):
    config_dir = clean_env / "config"
    config_dir.mkdir()
    (config_dir / "settings.yaml").write_text("scan: [unclosed\n")
    config = load_config()
    assert config.scan_idle_timeout == 120.0


def test_supabase_backend_requires_credentials(tmp_path):
    config = Config(backend="supabase", data_dir=tmp_path / "data")
    errors = validate_config(config)
    assert "SUPABASE_URL is required for the supabase backend" in errors
    assert "SUPABASE_KEY is required for the supabase backend" in errors
    assert "WEBHOOK_URL is required for the supabase backend" in errors

    config = Config(
        backend="supabase",
        supabase_url="https://proj.supabase.co",
        supabase_key="anon",
        webhook_url="https://scorer.test/hook",
        data_dir=tmp_path / "data",
    )
    assert validate_config(config) == []


def test_invalid_values_are_reported(tmp_path):
    config = Config(
        backend="redis",
        scan_idle_timeout=0,
        completion_threshold=0,
        history_limit=0,
        data_dir=Path(tmp_path / "data"),
    )
    errors = validate_config(config)
    assert len(errors) == 4
