from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import re
import tomllib

from .gitrepo import DEFAULT_AUTHOR_EMAIL, DEFAULT_AUTHOR_NAME


_COLOR_RE = re.compile(r"^(#[0-9a-fA-F]{6}|[a-z_]+[0-9]*)$")


def _as_bool(value, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "y", "on"}:
            return True
        if lowered in {"0", "false", "no", "n", "off"}:
            return False
    return bool(default)


def _as_str(value, *, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _as_color(value, *, default: str) -> str:
    if isinstance(value, str) and _COLOR_RE.match(value.strip()):
        return value.strip()
    return default


def _table(data: dict, key: str) -> dict:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


@dataclass(frozen=True)
class StorageConfig:
    data_dir: str = ""


@dataclass(frozen=True)
class GitConfig:
    author_name: str = DEFAULT_AUTHOR_NAME
    author_email: str = DEFAULT_AUTHOR_EMAIL


@dataclass(frozen=True)
class LoggingConfig:
    enabled: bool = True
    file: str = ""


@dataclass(frozen=True)
class ThemeConfig:
    accent: str = "#7aa2f7"
    high: str = "#f7768e"
    medium: str = "#e0af68"
    low: str = "#9ece6a"
    muted: str = "#565f89"
    overdue: str = "#f7768e"

    def priority_color(self, priority: str) -> str:
        return {"high": self.high, "medium": self.medium, "low": self.low}.get(priority, self.muted)


@dataclass(frozen=True)
class InvarConfig:
    storage: StorageConfig = field(default_factory=StorageConfig)
    git: GitConfig = field(default_factory=GitConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    theme: ThemeConfig = field(default_factory=ThemeConfig)


def load_invar_toml(path: Path) -> tuple[InvarConfig, str]:
    """Load user config from invar.toml.

    Returns (config, warning). Warning is empty on success; on a parse
    failure the defaults are returned together with the reason.
    """

    if not path.exists():
        return InvarConfig(), ""

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        return InvarConfig(), f"invar.toml parse failed: {exc}"

    storage = _table(data, "storage")
    git = _table(data, "git")
    logging = _table(data, "logging")
    theme = _table(data, "theme")

    cfg = InvarConfig(
        storage=StorageConfig(
            data_dir=_as_str(storage.get("data_dir"), default=StorageConfig.data_dir),
        ),
        git=GitConfig(
            author_name=_as_str(git.get("author_name"), default=GitConfig.author_name),
            author_email=_as_str(git.get("author_email"), default=GitConfig.author_email),
        ),
        logging=LoggingConfig(
            enabled=_as_bool(logging.get("enabled"), default=LoggingConfig.enabled),
            file=_as_str(logging.get("file"), default=LoggingConfig.file),
        ),
        theme=ThemeConfig(
            accent=_as_color(theme.get("accent"), default=ThemeConfig.accent),
            high=_as_color(theme.get("high"), default=ThemeConfig.high),
            medium=_as_color(theme.get("medium"), default=ThemeConfig.medium),
            low=_as_color(theme.get("low"), default=ThemeConfig.low),
            muted=_as_color(theme.get("muted"), default=ThemeConfig.muted),
            overdue=_as_color(theme.get("overdue"), default=ThemeConfig.overdue),
        ),
    )
    return cfg, ""
