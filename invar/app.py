from __future__ import annotations

from datetime import datetime

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Static

from .applog import AppLog
from .browser import (
    DeadlineMenuView,
    DeadlineTextView,
    InputMode,
    ListView,
    PriorityMenuView,
    TaskBrowser,
    TextInputView,
    View,
)
from .config import ThemeConfig
from .dates import EXAMPLES_HINT
from .store import TaskStore
from .task import PRIORITY_ORDER, Priority, Task


HELP_TEXT = "n new  e edit  space complete  p priority  d deadline  a archive  D delete  tab switch  q quit"
MENU_HINT = "↑/↓ navigate · Enter select · Esc cancel"
TEXT_HINT = "Enter to save · Shift+Enter (or Ctrl+J) for new line · Esc to cancel"
DEADLINE_HINT = "Enter to save · Esc to cancel"
TEXT_CURSOR = "▏"
DEADLINE_DATE_FORMAT = "%b %d"

PRIORITY_LABELS = {
    Priority.HIGH: "HIGH",
    Priority.MEDIUM: "MED",
    Priority.LOW: "LOW",
}


class InvarApp(App[None]):
    CSS = """
    Screen {
        layout: vertical;
    }

    #header {
        height: 1;
        padding: 0 1;
        background: $boost;
        color: $text;
    }

    #task-list {
        height: 1fr;
        padding: 0 1;
    }

    #overlay {
        height: auto;
        max-height: 14;
        border: round $accent;
        margin: 0 2;
        padding: 0 1;
    }

    #status-bar {
        height: 1;
        padding: 0 1;
    }

    #stats {
        height: 1;
        padding: 0 1;
        background: $boost;
    }

    #help {
        height: 1;
        padding: 0 1;
        text-style: dim;
    }
    """

    # Priority bindings so tab/ctrl+c reach the browser instead of focus cycling / app quit.
    BINDINGS = [
        Binding("ctrl+c", "forward_key('ctrl+c')", "Quit", show=False, priority=True),
        Binding("tab", "forward_key('tab')", "Switch view", show=False, priority=True),
    ]

    def __init__(
        self,
        store: TaskStore,
        *,
        ui_theme: ThemeConfig | None = None,
        app_log: AppLog | None = None,
        notice: str = "",
    ) -> None:
        super().__init__()
        self.ui_theme = ui_theme or ThemeConfig()
        self.app_log = app_log or AppLog(None)
        self.browser = TaskBrowser(store, log=self.app_log)
        if notice:
            self.browser.set_status(notice, level="warn")

        self.header_bar: Static
        self.task_list: Static
        self.overlay_panel: Static
        self.status_bar: Static
        self.stats_bar: Static

    def compose(self) -> ComposeResult:
        yield Static("", id="header")
        yield Static("", id="task-list")
        yield Static("", id="overlay")
        yield Static("", id="status-bar")
        yield Static("", id="stats")
        yield Static(HELP_TEXT, id="help")

    def on_mount(self) -> None:
        self.header_bar = self.query_one("#header", Static)
        self.task_list = self.query_one("#task-list", Static)
        self.overlay_panel = self.query_one("#overlay", Static)
        self.status_bar = self.query_one("#status-bar", Static)
        self.stats_bar = self.query_one("#stats", Static)
        self.overlay_panel.display = False
        self.app_log.info("interactive session started")
        self.call_after_refresh(self._sync_page_size)
        self._render_all()

    def on_resize(self, _: events.Resize) -> None:
        self.call_after_refresh(self._sync_page_size)

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self._forward(event.key, event.character)

    def on_paste(self, event: events.Paste) -> None:
        event.stop()
        self.browser.insert_text(event.text)
        self._render_all()

    def action_forward_key(self, key: str) -> None:
        self._forward(key, None)

    def _forward(self, key: str, character: str | None) -> None:
        self.browser.press(key, character)
        if self.browser.quit_requested:
            self.app_log.info("interactive session ended")
            self.exit()
            return
        self._render_all()

    def _sync_page_size(self) -> None:
        if not hasattr(self, "task_list"):
            return
        height = self.task_list.size.height
        if height > 0:
            self.browser.set_page_size(height)
        self._render_all()

    def _render_all(self) -> None:
        if not hasattr(self, "task_list"):
            return
        browser = self.browser
        theme = self.ui_theme
        now = datetime.now().astimezone()

        self.header_bar.update(_header_text(browser.show_archived, theme))

        rows = [
            _task_row(task, selected=(browser.scroll + offset == browser.cursor), theme=theme, now=now)
            for offset, task in enumerate(browser.visible_tasks())
        ]
        if rows:
            self.task_list.update(Text("\n").join(rows))
        else:
            empty = "Archive is empty." if browser.show_archived else "No tasks. Press n to add one."
            self.task_list.update(Text(empty, style=theme.muted))

        overlay = _overlay_text(browser.view, theme)
        self.overlay_panel.display = overlay is not None
        if overlay is not None:
            self.overlay_panel.update(overlay)

        status_style = {"error": f"bold {theme.overdue}", "warn": theme.medium}.get(browser.status_level, theme.muted)
        self.status_bar.update(Text(browser.status, style=status_style))
        self.stats_bar.update(_counts_line(*browser.counts(now)))


def _deadline_label(task: Task, now: datetime | None = None) -> str:
    if task.deadline is None:
        return ""
    label = task.deadline.strftime(DEADLINE_DATE_FORMAT)
    if task.is_overdue(now):
        return f"! {label}"
    return label


def _counts_line(total: int, pending: int, overdue: int) -> str:
    return f"{total} tasks · {pending} pending · {overdue} overdue"


def _header_text(show_archived: bool, theme: ThemeConfig) -> Text:
    active_style = f"bold {theme.accent}"
    idle_style = theme.muted
    return Text.assemble(
        ("◆ invar", f"bold {theme.accent}"),
        "   ",
        ("Active", idle_style if show_archived else active_style),
        " ",
        ("Archive", active_style if show_archived else idle_style),
    )


def _task_row(task: Task, *, selected: bool, theme: ThemeConfig, now: datetime | None = None) -> Text:
    if task.is_completed:
        bullet = ("✓", theme.low)
    elif selected:
        bullet = ("●", theme.accent)
    else:
        bullet = ("○", theme.muted)

    title_style = f"strike {theme.muted}" if task.is_completed else ""
    if selected:
        title_style = f"bold {title_style}".strip()

    parts: list[tuple[str, str] | str] = [
        bullet,
        " ",
        (task.title, title_style),
        "  ",
        (PRIORITY_LABELS[task.priority], f"bold {theme.priority_color(task.priority.value)}"),
    ]
    deadline = _deadline_label(task, now)
    if deadline:
        overdue = deadline.startswith("!")
        parts.extend(["  ", (deadline, f"bold {theme.overdue}" if overdue else theme.muted)])
    row = Text.assemble(*parts)
    if selected:
        row.stylize("reverse")
    return row


def _menu_text(labels: list[str], cursor: int, theme: ThemeConfig) -> Text:
    lines = []
    for index, label in enumerate(labels):
        if index == cursor:
            lines.append(Text(f"▸ {label}", style=f"bold {theme.accent}"))
        else:
            lines.append(Text(f"  {label}"))
    return Text("\n").join(lines)


def _overlay_text(view: View, theme: ThemeConfig) -> Text | None:
    title_style = f"bold {theme.accent}"
    hint_style = theme.muted
    if isinstance(view, ListView):
        return None
    if isinstance(view, TextInputView):
        title = "Edit Task" if view.mode is InputMode.EDIT else "New Task"
        body = Text(view.buffer + TEXT_CURSOR)
        hint = TEXT_HINT
    elif isinstance(view, DeadlineTextView):
        title = "Set Deadline"
        body = Text.assemble((f"Examples: {EXAMPLES_HINT}", hint_style), "\n\n", view.buffer + TEXT_CURSOR)
        hint = DEADLINE_HINT
    elif isinstance(view, PriorityMenuView):
        title = "Priority"
        body = _menu_text([PRIORITY_LABELS[p] for p in PRIORITY_ORDER], view.cursor, theme)
        hint = MENU_HINT
    elif isinstance(view, DeadlineMenuView):
        title = "Deadline"
        body = _menu_text([option.label for option in view.options], view.cursor, theme)
        hint = MENU_HINT
    else:
        return None
    return Text.assemble((title, title_style), "\n\n", body, "\n\n", (hint, hint_style))


def run_terminal_app(
    store: TaskStore,
    *,
    ui_theme: ThemeConfig | None = None,
    app_log: AppLog | None = None,
    notice: str = "",
) -> int:
    app = InvarApp(store, ui_theme=ui_theme, app_log=app_log, notice=notice)
    # Mouse reporting off so the terminal's own text selection keeps working.
    app.run(mouse=False)
    return 0
