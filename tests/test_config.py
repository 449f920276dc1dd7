"""Tests for apiguard.config -- XDG paths, env expansion, file loading, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from apiguard.config import (
    _atomic_write,
    default_config_path,
    expand_env_vars,
    get_config_dir,
    load_config,
    resolve_config,
    resolve_credential,
    save_config,
)
from apiguard.exceptions import ConfigError
from apiguard.models import CacheConfig, ClientConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestConfigDir:
    def test_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Linux without XDG_CONFIG_HOME uses ~/.config/apiguard."""
        monkeypatch.setattr("apiguard.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "apiguard"
        assert result.is_dir()

    def test_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """XDG_CONFIG_HOME is honoured."""
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("apiguard.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        assert get_config_dir() == custom / "apiguard"

    def test_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Non-XDG platforms use ~/.apiguard."""
        monkeypatch.setattr("apiguard.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".apiguard"

    def test_default_config_path(self, isolated_config: Path) -> None:
        assert default_config_path() == isolated_config / "config.json"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        """Missing parent directories are created."""
        target = tmp_path / "a" / "b" / "config.json"
        _atomic_write(target, "{}")
        assert target.read_text(encoding="utf-8") == "{}"

    def test_no_temp_files_left_on_success(self, tmp_path: Path) -> None:
        """Only the target file remains after a write."""
        target = tmp_path / "config.json"
        _atomic_write(target, "content")
        assert list(tmp_path.iterdir()) == [target]

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        """A failed write removes its temp file and re-raises."""
        target = tmp_path / "config.json"
        with patch("apiguard.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Environment expansion
# ---------------------------------------------------------------------------


class TestExpandEnvVars:
    def test_plain_reference(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """${VAR} is replaced by the variable's value."""
        monkeypatch.setenv("API_HOST", "example.test")
        assert expand_env_vars("https://${API_HOST}/v1") == "https://example.test/v1"

    def test_default_used_when_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """${VAR:default} falls back when VAR is unset."""
        monkeypatch.delenv("API_URL", raising=False)
        assert expand_env_vars("${API_URL:http://localhost:8080}") == "http://localhost:8080"

    def test_set_value_beats_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A set variable wins over the inline default."""
        monkeypatch.setenv("API_URL", "https://prod")
        assert expand_env_vars("${API_URL:http://localhost}") == "https://prod"

    def test_unset_without_default_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An unset variable with no default names itself in the error."""
        monkeypatch.delenv("MISSING_VAR", raising=False)
        with pytest.raises(ConfigError, match="MISSING_VAR"):
            expand_env_vars("key=${MISSING_VAR}")

    def test_text_without_references_unchanged(self) -> None:
        assert expand_env_vars('{"a": "$HOME"}') == '{"a": "$HOME"}'


# ---------------------------------------------------------------------------
# Loading and saving
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_missing_default_file_gives_defaults(self, isolated_config: Path) -> None:
        """No file at the default location means all defaults."""
        config = load_config()
        assert config == ClientConfig()
        assert config.retry.max_attempts == 3
        assert config.cache.max_size == 100

    def test_missing_explicit_file_raises(self, tmp_path: Path) -> None:
        """An explicit path must exist."""
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.json")

    def test_json_file(self, tmp_path: Path) -> None:
        """JSON files are merged over the defaults."""
        path = tmp_path / "config.json"
        _write_json(path, {"retry": {"max_attempts": 5}, "pagination": {"limit": 25}})
        config = load_config(path)
        assert config.retry.max_attempts == 5
        assert config.pagination.limit == 25
        assert config.pagination.max_total == 50

    def test_yaml_file_with_env_expansion(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """YAML files get ${VAR} expansion before parsing."""
        monkeypatch.setenv("CANNY_URL", "https://staging.example/api/v1/")
        monkeypatch.delenv("CACHE_SIZE", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text(
            "base_url: ${CANNY_URL}\n"
            "cache:\n"
            "  max_size: ${CACHE_SIZE:10}\n"
            "  ttl:\n"
            "    boards: 60\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.base_url == "https://staging.example/api/v1"
        assert config.cache.max_size == 10
        assert config.cache.ttl == {"boards": 60}

    def test_empty_yaml_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == ClientConfig()

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        """Unparseable content becomes a ConfigError."""
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid config"):
            load_config(path)

    def test_schema_violation_raises(self, tmp_path: Path) -> None:
        """Values outside their bounds become a ConfigError."""
        path = tmp_path / "config.json"
        _write_json(path, {"retry": {"max_attempts": 0}})
        with pytest.raises(ConfigError, match="Invalid config"):
            load_config(path)

    def test_unknown_keys_are_kept(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        _write_json(path, {"team": "support"})
        assert load_config(path).model_extra == {"team": "support"}

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        """save_config() writes what load_config() reads back."""
        original = ClientConfig(cache=CacheConfig(max_size=7, ttl={"posts": 30}))
        written = save_config(original)
        assert written == isolated_config / "config.json"
        assert load_config() == original


class TestCacheTtl:
    def test_resource_prefix_lookup(self) -> None:
        """TTLs are looked up by the endpoint's resource prefix."""
        cache = CacheConfig()
        assert cache.ttl_for("boards/list") == 3600
        assert cache.ttl_for("/users/retrieve") == 86400
        assert cache.ttl_for("comments/list") == 180

    def test_unknown_resource_uses_default(self) -> None:
        """Resources without an entry use default_ttl."""
        assert CacheConfig().ttl_for("votes/list") == 300
        assert CacheConfig(default_ttl=None).ttl_for("votes/list") is None


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------


class TestResolveConfig:
    @pytest.fixture(autouse=True)
    def _setup(self, isolated_config: Path) -> None:
        self.config_dir = isolated_config

    def test_defaults(self) -> None:
        assert resolve_config().base_url == "https://canny.io/api/v1"

    def test_default_file_is_read(self) -> None:
        """The default config file is used when nothing overrides it."""
        _write_json(self.config_dir / "config.json", {"base_url": "https://file.test"})
        assert resolve_config().base_url == "https://file.test"

    def test_env_config_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """APIGUARD_CONFIG points at another file."""
        other = tmp_path / "other.json"
        _write_json(other, {"base_url": "https://env-file.test"})
        monkeypatch.setenv("APIGUARD_CONFIG", str(other))
        assert resolve_config().base_url == "https://env-file.test"

    def test_cli_config_beats_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """--config wins over APIGUARD_CONFIG."""
        env_file = tmp_path / "env.json"
        cli_file = tmp_path / "cli.json"
        _write_json(env_file, {"base_url": "https://env.test"})
        _write_json(cli_file, {"base_url": "https://cli.test"})
        monkeypatch.setenv("APIGUARD_CONFIG", str(env_file))
        assert resolve_config(cli_config=str(cli_file)).base_url == "https://cli.test"

    def test_env_base_url_beats_file(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """APIGUARD_BASE_URL overrides the file and loses its trailing slash."""
        _write_json(self.config_dir / "config.json", {"base_url": "https://file.test"})
        monkeypatch.setenv("APIGUARD_BASE_URL", "https://env.test/")
        assert resolve_config().base_url == "https://env.test"

    def test_cli_base_url_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """--base-url wins over APIGUARD_BASE_URL."""
        monkeypatch.setenv("APIGUARD_BASE_URL", "https://env.test")
        assert resolve_config(cli_base_url="https://cli.test/").base_url == "https://cli.test"


# ---------------------------------------------------------------------------
# Credential resolution
# ---------------------------------------------------------------------------


class TestResolveCredential:
    def test_env_source(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """env:NAME reads the variable."""
        monkeypatch.setenv("MY_TOKEN", "secret123")
        assert resolve_credential("env:MY_TOKEN") == "secret123"

    def test_env_source_missing_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An unset variable is a ConfigError."""
        monkeypatch.delenv("NONEXISTENT_VAR", raising=False)
        with pytest.raises(ConfigError, match="not set"):
            resolve_credential("env:NONEXISTENT_VAR")

    def test_env_source_empty_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An empty variable counts as unset."""
        monkeypatch.setenv("EMPTY_VAR", "")
        with pytest.raises(ConfigError, match="not set"):
            resolve_credential("env:EMPTY_VAR")

    def test_file_source(self, tmp_path: Path) -> None:
        """file:PATH reads the file and strips whitespace."""
        cred_file = tmp_path / "token.txt"
        cred_file.write_text("  my-secret-token  \n", encoding="utf-8")
        assert resolve_credential(f"file:{cred_file}") == "my-secret-token"

    def test_file_source_missing_raises(self) -> None:
        """A missing credential file is a ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            resolve_credential("file:/nonexistent/path/token.txt")

    def test_file_source_home_expansion(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """~ in file: paths expands to the home directory."""
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / ".canny-key").write_text("expanded-secret", encoding="utf-8")
        assert resolve_credential("file:~/.canny-key") == "expanded-secret"

    def test_unknown_source_raises(self) -> None:
        """Unknown schemes are rejected."""
        with pytest.raises(ConfigError, match="Unknown credential source"):
            resolve_credential("magic:wand")
