from __future__ import annotations

import contextlib
from datetime import datetime, timezone
from pathlib import Path


def append_log_line(log_file: Path, *, level: str, message: str) -> None:
    normalized_message = " ".join(message.split())
    stamp = datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()
    line = f"{stamp} [{level.strip().lower() or 'info'}] {normalized_message}\n"
    with contextlib.suppress(Exception):
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with log_file.open("a", encoding="utf-8") as handle:
            handle.write(line)


class AppLog:
    """Append-only application log. A `None` path turns it into a no-op.

    Instances are callable as `(level, message)` so they can be handed to the
    store as its log hook.
    """

    def __init__(self, path: Path | None) -> None:
        self.path = path

    def __call__(self, level: str, message: str) -> None:
        if self.path is None:
            return
        append_log_line(self.path, level=level, message=message)

    def info(self, message: str) -> None:
        self("info", message)

    def warn(self, message: str) -> None:
        self("warn", message)

    def error(self, message: str) -> None:
        self("error", message)
