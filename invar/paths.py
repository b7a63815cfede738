from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from .config import InvarConfig


APP_NAME = "invar"
CONFIG_FILE_NAME = "invar.toml"


def _xdg_dir(env_var: str, fallback: str) -> Path:
    raw = os.environ.get(env_var, "").strip()
    if raw:
        return Path(raw).expanduser()
    return Path.home() / fallback


def config_root() -> Path:
    return _xdg_dir("XDG_CONFIG_HOME", ".config") / APP_NAME


def data_root() -> Path:
    return _xdg_dir("XDG_DATA_HOME", ".local/share") / APP_NAME


def state_root() -> Path:
    return _xdg_dir("XDG_STATE_HOME", ".local/state") / APP_NAME


def config_path() -> Path:
    """Location of invar.toml; `INVAR_CONFIG` wins over the XDG default."""

    override = os.environ.get("INVAR_CONFIG", "").strip()
    if override:
        return Path(override).expanduser()
    return config_root() / CONFIG_FILE_NAME


def resolve_data_dir(cli_value: str | None, configured: str = "") -> Path:
    for candidate in (cli_value, os.environ.get("INVAR_DATA_DIR"), configured):
        if candidate and candidate.strip():
            return Path(candidate.strip()).expanduser()
    return data_root() / "tasks"


@dataclass(frozen=True)
class InvarPaths:
    config_file: Path
    data_dir: Path
    log_file: Path | None


def invar_paths(config: InvarConfig, *, data_dir: str | None = None) -> InvarPaths:
    log_file: Path | None = None
    if config.logging.enabled:
        configured = config.logging.file.strip()
        log_file = Path(configured).expanduser() if configured else state_root() / "logs" / "invar.log"
    return InvarPaths(
        config_file=config_path(),
        data_dir=resolve_data_dir(data_dir, config.storage.data_dir),
        log_file=log_file,
    )


def ensure_state_dirs(paths: InvarPaths) -> InvarPaths:
    paths.data_dir.parent.mkdir(parents=True, exist_ok=True)
    if paths.log_file is not None:
        paths.log_file.parent.mkdir(parents=True, exist_ok=True)
    return paths
