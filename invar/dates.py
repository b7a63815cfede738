"""Deadline text interpretation.

`parse_deadline` has three outcomes: the text clears the deadline (empty or
"none"), resolves to a concrete local timestamp, or is not understood. The
caller decides what "not understood" means at its call site.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo


END_OF_DAY = time(23, 59)
MORNING = time(9, 0)

CLEAR_WORDS = {"", "none"}

_RELATIVE_KEYWORDS: dict[str, tuple[int, time]] = {
    "today": (0, END_OF_DAY),
    "tomorrow": (1, END_OF_DAY),
    "next week": (7, MORNING),
    "in 3 days": (3, END_OF_DAY),
    "in a week": (7, END_OF_DAY),
}

_ABSOLUTE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M",
    "%m-%d-%Y",
    "%m/%d/%Y",
    "%b %d %Y",
    "%B %d %Y",
)

# Anchored to the current year before parsing.
_YEARLESS_FORMATS = (
    "%b %d",
    "%B %d",
)

EXAMPLES_HINT = "today, tomorrow, next week, in 3 days, 2026-02-01, Jan 2"


@dataclass(frozen=True)
class DeadlineParse:
    understood: bool
    value: datetime | None = None

    @property
    def cleared(self) -> bool:
        return self.understood and self.value is None


NOT_UNDERSTOOD = DeadlineParse(understood=False)


def _at(day: date, clock: time, zone: tzinfo | None) -> datetime:
    naive = datetime.combine(day, clock)
    if zone is not None:
        return naive.replace(tzinfo=zone)
    return naive.astimezone()


def resolve_keyword(keyword: str, *, now: datetime | None = None) -> datetime | None:
    """Resolve one of the relative keywords ("today", "next week", ...)."""

    entry = _RELATIVE_KEYWORDS.get(keyword.strip().lower())
    if entry is None:
        return None
    days, clock = entry
    current = now or datetime.now()
    return _at(current.date() + timedelta(days=days), clock, current.tzinfo)


def parse_deadline(text: str | None, *, now: datetime | None = None) -> DeadlineParse:
    raw = " ".join((text or "").strip().lower().split())
    if raw in CLEAR_WORDS:
        return DeadlineParse(understood=True)

    current = now or datetime.now()
    zone = current.tzinfo

    relative = resolve_keyword(raw, now=current)
    if relative is not None:
        return DeadlineParse(understood=True, value=relative)

    for fmt in _ABSOLUTE_FORMATS:
        try:
            parsed = datetime.strptime(raw, fmt)
        except ValueError:
            continue
        return DeadlineParse(understood=True, value=_at(parsed.date(), parsed.time(), zone))

    for fmt in _YEARLESS_FORMATS:
        try:
            parsed = datetime.strptime(f"{raw} {current.year}", f"{fmt} %Y")
        except ValueError:
            continue
        return DeadlineParse(understood=True, value=_at(parsed.date(), parsed.time(), zone))

    return NOT_UNDERSTOOD
