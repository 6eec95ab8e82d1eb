"""Configuration loading, precedence resolution, and atomic file writes.

* **Generator config** -- a JSON or YAML file validated into
  :class:`~specgen.models.GeneratorConfig` by :func:`load_generator_config`.
* **Precedence resolution** -- :func:`resolve_config` picks the file to
  load: the ``--config`` flag, then the ``SPECGEN_CONFIG`` environment
  variable, then ``./specgen.json`` / ``./specgen.yaml`` in the working
  directory, then built-in defaults.
* **Data directory** -- XDG compliant on Linux/BSD, ``~/.specgen/`` on
  macOS and Windows. Only crash logs live there.

Every file specgen writes -- generated sources as well as config
skeletons -- goes through :func:`atomic_write`, so an interrupted run never
leaves a half-written file behind.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from specgen.exceptions import ConfigError
from specgen.models import GeneratorConfig

_APP_NAME = "specgen"
_ENV_CONFIG = "SPECGEN_CONFIG"
PROJECT_CONFIG_FILENAMES = ("specgen.json", "specgen.yaml", "specgen.yml")


# --- Data directory ---


def _is_xdg_platform() -> bool:
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/specgen/`` (default ``~/.local/share/specgen/``).
    On macOS/Windows: ``~/.specgen/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_DATA_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* through a temp file in the same directory plus ``os.replace``.

    Parent directories are created. On any failure the temp file is
    removed and the original file (if any) is left untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

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
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


# --- Loading ---


def load_generator_config(path: Path) -> GeneratorConfig:
    """Load and validate a configuration file.

    ``.yaml``/``.yml`` files are parsed with PyYAML; anything else is
    parsed as JSON.

    Raises:
        ConfigError: If the file is missing, unparseable, or fails
            validation.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read config {path}: {exc}") from exc

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data: Any = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain an object")

    try:
        return GeneratorConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config file {path}:\n{exc}") from exc


def find_project_config(directory: Optional[Path] = None) -> Optional[Path]:
    """Return the first project config file found in *directory* (default: cwd)."""
    base = directory or Path.cwd()
    for name in PROJECT_CONFIG_FILENAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def resolve_config(cli_config: Optional[str] = None) -> tuple[GeneratorConfig, Optional[Path]]:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. ``cli_config`` (the ``--config`` flag)
        2. ``SPECGEN_CONFIG`` environment variable
        3. Project config (``./specgen.json``, ``./specgen.yaml``, ``./specgen.yml``)
        4. Defaults

    Returns:
        A tuple of ``(config, source_path_or_None)``.
    """
    if cli_config:
        path = Path(cli_config)
        return load_generator_config(path), path

    env_config = os.environ.get(_ENV_CONFIG)
    if env_config:
        path = Path(env_config)
        return load_generator_config(path), path

    project = find_project_config()
    if project is not None:
        return load_generator_config(project), project

    return GeneratorConfig(), None


def write_config(path: Path, config: GeneratorConfig) -> None:
    """Serialize *config* to *path* (YAML for ``.yaml``/``.yml``, JSON otherwise)."""
    data = config.model_dump(mode="json")
    if path.suffix.lower() in (".yaml", ".yml"):
        text = yaml.safe_dump(data, sort_keys=False)
    else:
        text = json.dumps(data, indent=2) + "\n"
    atomic_write(path, text)
