"""Configuration resolution and private-file writes.

This module handles everything memberstack-cli keeps on disk outside the
token itself:

* **Directory layout** -- a single hidden directory, ``~/.memberstack/`` by
  default (``$MEMBERSTACK_HOME`` overrides it), holding the token file, an
  optional ``config.json`` and crash logs. See :func:`get_home_dir`.
* **Precedence resolution** -- :func:`resolve_settings` merges CLI flags,
  environment variables, the config file, and defaults into one
  :class:`~memberstack_cli.models.Settings` value.
* **Atomic private writes** -- :func:`atomic_write_private` writes a file via
  temp-file-then-rename with ``0o600`` permissions inside a ``0o700``
  directory.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from memberstack_cli.exceptions import ConfigError
from memberstack_cli.models import Settings

_HOME_DIRNAME = ".memberstack"
_CONFIG_FILENAME = "config.json"

_ENV_HOME = "MEMBERSTACK_HOME"
_ENV_OVERRIDES: dict[str, str] = {
    "MEMBERSTACK_OAUTH_ISSUER": "issuer",
    "MEMBERSTACK_GRAPHQL_URL": "graphql_url",
    "MEMBERSTACK_MODE": "mode",
    "MEMBERSTACK_CALLBACK_TIMEOUT": "callback_timeout",
}
_MODES = ("sandbox", "live")


# --- Paths ---


def get_home_dir() -> Path:
    """Return the hidden per-user directory (not created).

    ``$MEMBERSTACK_HOME`` wins over ``~/.memberstack``.
    """
    env_value = os.environ.get(_ENV_HOME, "")
    if env_value:
        return Path(env_value).expanduser()
    return Path.home() / _HOME_DIRNAME


def get_logs_dir(home: Optional[Path] = None) -> Path:
    """Return the crash-log directory, creating it if necessary."""
    path = (home or get_home_dir()) / "logs"
    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    return path


# --- Private file writes ---


def ensure_private_dir(path: Path) -> None:
    """Create *path* (and parents) with owner-only permissions.

    ``mkdir`` honours the umask, so an existing or freshly created directory
    is chmod-ed explicitly.
    """
    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    os.chmod(path, 0o700)


def atomic_write_private(path: Path, data: str) -> None:
    """Write *data* to *path* atomically with ``0o600`` permissions.

    The temporary file is created in the same directory so that
    ``os.replace`` is an atomic rename on POSIX, and its permissions are
    restricted before any content is written.

    Raises:
        OSError: If the directory or file cannot be written.
    """
    ensure_private_dir(path.parent)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        os.chmod(tmp_path, 0o600)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config file ---


def load_config_file(home: Optional[Path] = None) -> dict[str, Any]:
    """Load ``<home>/config.json``.

    Returns:
        The parsed JSON object, or an empty dict if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = (home or get_home_dir()) / _CONFIG_FILENAME
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config at {path}: expected a JSON object")
    return data


# --- Precedence resolution ---


def resolve_settings(
    live: bool = False,
    callback_timeout: Optional[float] = None,
    home: Optional[Path] = None,
) -> Settings:
    """Resolve settings with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``live``, ``callback_timeout``)
        2. Environment variables (``MEMBERSTACK_OAUTH_ISSUER``,
           ``MEMBERSTACK_GRAPHQL_URL``, ``MEMBERSTACK_MODE``,
           ``MEMBERSTACK_CALLBACK_TIMEOUT``)
        3. ``<home>/config.json``
        4. Defaults

    Args:
        live: Use the live environment instead of sandbox.
        callback_timeout: Seconds to wait for the login redirect.
        home: Override for the hidden directory (tests, ``$MEMBERSTACK_HOME``).

    Raises:
        ConfigError: If any layer supplies an invalid value.
    """
    home = home or get_home_dir()

    values: dict[str, Any] = load_config_file(home)
    for env_var, field in _ENV_OVERRIDES.items():
        env_value = os.environ.get(env_var)
        if env_value:
            values[field] = env_value

    if live:
        values["mode"] = "live"
    if callback_timeout is not None:
        values["callback_timeout"] = callback_timeout

    values["token_dir"] = home

    try:
        settings = Settings.model_validate(values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc

    if settings.mode not in _MODES:
        raise ConfigError(
            f"Unknown mode '{settings.mode}'. Expected one of: {', '.join(_MODES)}"
        )
    if settings.callback_timeout is not None and settings.callback_timeout <= 0:
        # 0 waits indefinitely, as `auth login --timeout 0` does
        settings = settings.model_copy(update={"callback_timeout": None})
    return settings
