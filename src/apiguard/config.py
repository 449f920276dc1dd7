"""Where apiguard settings come from.

Everything that touches the file system or the environment lives here;
:mod:`apiguard.client`, :mod:`apiguard.retry` and friends only ever see a
validated :class:`~apiguard.models.ClientConfig` and a plain API key.

Lookup order for the config file:

1. ``--config PATH`` on the command line;
2. ``$APIGUARD_CONFIG``;
3. ``config.json`` in :func:`get_config_dir` (absent is fine).

Files may be JSON or YAML (by suffix). ``${VAR}`` / ``${VAR:default}``
references are substituted from the environment before parsing, which
lets one file serve several deployments::

    base_url: ${CANNY_URL:https://canny.io/api/v1}
    api_key_source: env:CANNY_API_KEY
    retry:
      max_attempts: 5

``--base-url`` and ``$APIGUARD_BASE_URL`` override ``base_url`` from the
file, in that order.
"""

from __future__ import annotations

import contextlib
import json
import os
import platform
import re
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from pydantic import ValidationError

from apiguard.exceptions import ConfigError
from apiguard.models import ClientConfig

_APP_NAME = "apiguard"
_CONFIG_FILENAME = "config.json"
_YAML_SUFFIXES = frozenset({".yaml", ".yml"})

ENV_CONFIG = "APIGUARD_CONFIG"
ENV_BASE_URL = "APIGUARD_BASE_URL"

_ENV_REF = re.compile(r"\$\{([^}]+)\}")


# --- Paths ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def get_config_dir() -> Path:
    """Return (and create) the per-user config directory.

    ``$XDG_CONFIG_HOME/apiguard`` (``~/.config/apiguard``) on Linux and BSD,
    ``~/.apiguard`` elsewhere.
    """
    if _is_xdg_platform():
        root = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
        directory = root / _APP_NAME
    else:
        directory = Path.home() / f".{_APP_NAME}"
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def default_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* so readers never observe a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


# --- Reading and writing ---


def expand_env_vars(text: str) -> str:
    """Substitute ``${VAR}`` and ``${VAR:default}`` in *text*.

    The default is everything after the first colon, so
    ``${URL:http://localhost:8080}`` works. An empty default counts as no
    default.

    Raises:
        ConfigError: A referenced variable is unset and has no default.
    """

    def substitute(match: re.Match[str]) -> str:
        name, _, fallback = match.group(1).partition(":")
        if name in os.environ:
            return os.environ[name]
        if not fallback:
            raise ConfigError(f"Environment variable not set: {name}")
        return fallback

    return _ENV_REF.sub(substitute, text)


def _read_document(path: Path) -> Any:
    text = expand_env_vars(path.read_text(encoding="utf-8"))
    try:
        if path.suffix in _YAML_SUFFIXES:
            return yaml.safe_load(text)
        return json.loads(text)
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def load_config(path: Optional[Path] = None) -> ClientConfig:
    """Read and validate a config file.

    With no *path* the default location is used and a missing file simply
    means "all defaults". An explicit *path* must exist.

    Raises:
        ConfigError: Missing explicit file, unparseable content, unset
            ``${VAR}`` reference, or a value that fails validation.
    """
    target = Path(path) if path is not None else default_config_path()
    if not target.is_file():
        if path is not None:
            raise ConfigError(f"Configuration file not found: {target}")
        return ClientConfig()

    document = _read_document(target)
    try:
        return ClientConfig.model_validate(document or {})
    except ValidationError as exc:
        raise ConfigError(f"Invalid config at {target}: {exc}") from exc


def save_config(config: ClientConfig, path: Optional[Path] = None) -> Path:
    """Write *config* as JSON (default location unless *path* is given)."""
    target = Path(path) if path is not None else default_config_path()
    _atomic_write(target, json.dumps(config.model_dump(mode="json"), indent=2) + "\n")
    return target


def resolve_config(
    cli_config: Optional[str] = None,
    cli_base_url: Optional[str] = None,
) -> ClientConfig:
    """Build the effective :class:`ClientConfig` for one invocation."""
    file_name = cli_config or os.environ.get(ENV_CONFIG)
    config = load_config(Path(file_name) if file_name else None)

    base_url = cli_base_url if cli_base_url is not None else os.environ.get(ENV_BASE_URL)
    if base_url:
        config.base_url = base_url.rstrip("/")
    return config


# --- Credentials ---


def _key_from_env(name: str) -> str:
    value = os.environ.get(name, "")
    if not value:
        raise ConfigError(f"Environment variable '{name}' is not set (source: env:{name})")
    return value


def _key_from_file(location: str) -> str:
    path = Path(location).expanduser()
    if not path.is_file():
        raise ConfigError(f"Credential file not found: {path} (source: file:{location})")
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc


_CREDENTIAL_READERS: dict[str, Callable[[str], str]] = {
    "env": _key_from_env,
    "file": _key_from_file,
}


def resolve_credential(source: str) -> str:
    """Read the API key described by *source*.

    ``env:NAME`` reads an environment variable (empty counts as unset);
    ``file:PATH`` reads a file, ``~`` expanded and whitespace stripped.

    Raises:
        ConfigError: Unknown scheme, or the key cannot be read.
    """
    scheme, _, reference = source.partition(":")
    reader = _CREDENTIAL_READERS.get(scheme)
    if reader is None or not reference:
        raise ConfigError(f"Unknown credential source format: {source}")
    return reader(reference)
