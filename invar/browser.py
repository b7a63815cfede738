"""Keystroke-driven state machine behind the terminal UI.

The browser owns the current view, the cached (sorted) task list, the cursor
and scroll position. It never touches files: every mutation goes through the
store, after which the list is rebuilt from what the store returns.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Protocol, Union

from .dates import parse_deadline, resolve_keyword
from .errors import CommitError, StoreError
from .gitrepo import GitCommitResult
from .store import short_id
from .task import PRIORITY_ORDER, Task, new_task


LogHook = Callable[[str, str], None]

DEFAULT_PAGE_SIZE = 10
NEWLINE_KEYS = frozenset({"shift+enter", "ctrl+j", "alt+enter"})
CONFIRM_KEY = "enter"
CANCEL_KEY = "escape"

LIST_KEYS: dict[str, str] = {
    "up": "up",
    "k": "up",
    "down": "down",
    "j": "down",
    "n": "new",
    "e": "edit",
    "space": "complete",
    " ": "complete",
    "a": "archive",
    "D": "delete",
    "shift+d": "delete",
    "p": "priority",
    "d": "deadline",
    "tab": "switch",
    "q": "quit",
    "ctrl+c": "quit",
}

MENU_UP_KEYS = frozenset({"up", "k"})
MENU_DOWN_KEYS = frozenset({"down", "j"})


class TaskSource(Protocol):
    def list_tasks(self, archived: bool = False) -> list[Task]: ...

    def load(self, task_id: str) -> Task: ...

    def save(self, task: Task) -> GitCommitResult: ...

    def delete(self, task_id: str) -> GitCommitResult: ...


class InputMode(str, Enum):
    NEW = "new"
    EDIT = "edit"


class DeadlineChoice(str, Enum):
    TODAY = "today"
    TOMORROW = "tomorrow"
    NEXT_WEEK = "next week"
    CUSTOM = "custom"
    CLEAR = "clear"


@dataclass(frozen=True)
class DeadlineOption:
    label: str
    choice: DeadlineChoice


FIXED_DEADLINE_OPTIONS: tuple[DeadlineOption, ...] = (
    DeadlineOption("Today", DeadlineChoice.TODAY),
    DeadlineOption("Tomorrow", DeadlineChoice.TOMORROW),
    DeadlineOption("Next week", DeadlineChoice.NEXT_WEEK),
    DeadlineOption("Custom...", DeadlineChoice.CUSTOM),
)
CLEAR_DEADLINE_OPTION = DeadlineOption("Clear deadline", DeadlineChoice.CLEAR)


def deadline_menu_options(task: Task) -> tuple[DeadlineOption, ...]:
    if task.deadline is None:
        return FIXED_DEADLINE_OPTIONS
    return (*FIXED_DEADLINE_OPTIONS, CLEAR_DEADLINE_OPTION)


@dataclass(frozen=True)
class ListView:
    pass


@dataclass(frozen=True)
class TextInputView:
    mode: InputMode
    task_id: str | None = None
    buffer: str = ""


@dataclass(frozen=True)
class DeadlineTextView:
    task_id: str
    buffer: str = ""


@dataclass(frozen=True)
class PriorityMenuView:
    task_id: str
    cursor: int = 0


@dataclass(frozen=True)
class DeadlineMenuView:
    task_id: str
    options: tuple[DeadlineOption, ...]
    cursor: int = 0


View = Union[ListView, TextInputView, DeadlineTextView, PriorityMenuView, DeadlineMenuView]

_PRIORITY_RANK = {priority: rank for rank, priority in enumerate(PRIORITY_ORDER)}


def task_sort_key(task: Task) -> tuple[bool, int, bool, float, float]:
    deadline = task.deadline
    return (
        task.completed_at is not None,
        _PRIORITY_RANK.get(task.priority, len(PRIORITY_ORDER)),
        deadline is None,
        deadline.timestamp() if deadline is not None else 0.0,
        -task.created_at.timestamp(),
    )


def sort_tasks(tasks: list[Task]) -> list[Task]:
    """Incomplete first, then high/medium/low, then earliest deadline (undated
    last), then newest first."""

    return sorted(tasks, key=task_sort_key)


class TaskBrowser:
    def __init__(
        self,
        store: TaskSource,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        log: LogHook | None = None,
    ) -> None:
        self.store = store
        self.view: View = ListView()
        self.show_archived = False
        self.tasks: list[Task] = []
        self.cursor = 0
        self.scroll = 0
        self.page_size = max(1, int(page_size))
        self.status = ""
        self.status_level = "info"
        self.quit_requested = False
        self._log_hook = log
        self.reload()

    # -------------------- queries --------------------

    @property
    def selected(self) -> Task | None:
        if not self.tasks or self.cursor >= len(self.tasks):
            return None
        return self.tasks[self.cursor]

    def visible_tasks(self) -> list[Task]:
        return self.tasks[self.scroll : self.scroll + self.page_size]

    def counts(self, now: datetime | None = None) -> tuple[int, int, int]:
        total = len(self.tasks)
        pending = sum(1 for task in self.tasks if not task.is_completed)
        overdue = sum(1 for task in self.tasks if task.is_overdue(now))
        return total, pending, overdue

    # -------------------- list maintenance --------------------

    def reload(self) -> None:
        try:
            tasks = self.store.list_tasks(archived=self.show_archived)
        except StoreError as exc:
            self._fail("listing tasks", exc)
            tasks = []
        self.tasks = sort_tasks(tasks)
        self._clamp_cursor()

    def set_page_size(self, rows: int) -> None:
        self.page_size = max(1, int(rows))
        self._keep_cursor_visible()

    def _clamp_cursor(self) -> None:
        if self.cursor >= len(self.tasks):
            self.cursor = len(self.tasks) - 1
        if self.cursor < 0:
            self.cursor = 0
        self._keep_cursor_visible()

    def _keep_cursor_visible(self) -> None:
        if self.cursor < self.scroll:
            self.scroll = self.cursor
        elif self.cursor >= self.scroll + self.page_size:
            self.scroll = self.cursor - self.page_size + 1

    def _select(self, task_id: str) -> None:
        for index, task in enumerate(self.tasks):
            if task.id == task_id:
                self.cursor = index
                self._keep_cursor_visible()
                return

    # -------------------- status / logging --------------------

    def _emit(self, level: str, message: str) -> None:
        if self._log_hook is not None:
            self._log_hook(level, message)

    def set_status(self, message: str, *, level: str = "info") -> None:
        self.status = message
        self.status_level = level

    def _fail(self, action: str, exc: StoreError) -> None:
        if isinstance(exc, CommitError) and exc.written:
            self.set_status(f"{action}: applied on disk, history not updated ({exc})", level="warn")
            self._emit("warn", f"{action}: {exc}")
            return
        self.set_status(f"{action} failed: {exc}", level="error")
        self._emit("error", f"{action} failed: {exc}")

    # -------------------- store calls --------------------

    def _fetch(self, task_id: str) -> Task | None:
        try:
            return self.store.load(task_id)
        except StoreError as exc:
            self._fail(f"loading task {short_id(task_id)}", exc)
            return None

    def _save(self, task: Task, *, verb: str = "updated") -> bool:
        try:
            result = self.store.save(task)
        except StoreError as exc:
            self._fail(f"saving task {short_id(task.id)}", exc)
            return False
        commit = f" @ {result.commit}" if result.commit else ""
        self._emit("info", f"{verb} task {short_id(task.id)} ({result.summary}{commit})")
        return True

    def _mutate(self, task_id: str, change: Callable[[Task], None]) -> None:
        task = self._fetch(task_id)
        if task is not None:
            change(task)
            self._save(task)
        self.reload()

    # -------------------- input --------------------

    def press(self, key: str, character: str | None = None) -> None:
        """Handle one key event; `character` is the printable text it produced, if any."""

        self.status = ""
        self.status_level = "info"
        view = self.view
        if isinstance(view, TextInputView):
            self._press_text_input(view, key, character)
        elif isinstance(view, DeadlineTextView):
            self._press_deadline_text(view, key, character)
        elif isinstance(view, PriorityMenuView):
            self._press_priority_menu(view, key)
        elif isinstance(view, DeadlineMenuView):
            self._press_deadline_menu(view, key)
        else:
            self._press_list(key, character)

    def insert_text(self, text: str) -> None:
        """Append pasted text to the buffer of the active text view."""

        view = self.view
        if isinstance(view, TextInputView):
            self.view = replace(view, buffer=view.buffer + text.replace("\r\n", "\n"))
        elif isinstance(view, DeadlineTextView):
            self.view = replace(view, buffer=view.buffer + " ".join(text.split()))

    def cancel(self) -> None:
        self.view = ListView()

    # -------------------- list view --------------------

    def _press_list(self, key: str, character: str | None) -> None:
        command = LIST_KEYS.get(key)
        if command is None and character:
            command = LIST_KEYS.get(character)
        if command is None:
            return

        if command == "quit":
            self.quit_requested = True
            return
        if command == "up":
            self.move_up()
            return
        if command == "down":
            self.move_down()
            return
        if command == "new":
            self.view = TextInputView(mode=InputMode.NEW)
            return
        if command == "switch":
            self.show_archived = not self.show_archived
            self.cursor = 0
            self.scroll = 0
            self.reload()
            return

        task = self.selected
        if task is None:
            return
        if command == "edit":
            self.view = TextInputView(mode=InputMode.EDIT, task_id=task.id, buffer=task.content)
        elif command == "complete":
            self._mutate(task.id, lambda t: t.uncomplete() if t.is_completed else t.complete())
        elif command == "archive":
            self._mutate(task.id, lambda t: t.unarchive() if self.show_archived else t.archive())
        elif command == "delete":
            self.delete_selected()
        elif command == "priority":
            self.view = PriorityMenuView(task_id=task.id, cursor=PRIORITY_ORDER.index(task.priority))
        elif command == "deadline":
            self.view = DeadlineMenuView(task_id=task.id, options=deadline_menu_options(task))

    def move_up(self) -> None:
        if self.cursor > 0:
            self.cursor -= 1
            if self.cursor < self.scroll:
                self.scroll = self.cursor

    def move_down(self) -> None:
        if self.cursor < len(self.tasks) - 1:
            self.cursor += 1
            if self.cursor >= self.scroll + self.page_size:
                self.scroll = self.cursor - self.page_size + 1

    def delete_selected(self) -> None:
        task = self.selected
        if task is None:
            return
        try:
            self.store.delete(task.id)
        except StoreError as exc:
            self._fail(f"deleting task {short_id(task.id)}", exc)
        else:
            self._emit("info", f"deleted task {short_id(task.id)}")
        self.reload()

    # -------------------- text views --------------------

    def _press_text_input(self, view: TextInputView, key: str, character: str | None) -> None:
        if key == CANCEL_KEY:
            self.view = ListView()
            return
        if key == CONFIRM_KEY:
            self._confirm_text_input(view)
            return
        if key in NEWLINE_KEYS:
            self.view = replace(view, buffer=view.buffer + "\n")
            return
        buffer = _edit_buffer(view.buffer, key, character)
        if buffer is not None:
            self.view = replace(view, buffer=buffer)

    def _confirm_text_input(self, view: TextInputView) -> None:
        content = view.buffer
        self.view = ListView()
        if not content.strip():
            return
        if view.mode is InputMode.NEW or view.task_id is None:
            task = new_task(content)
            saved = self._save(task, verb="created")
            self.reload()
            if saved:
                self._select(task.id)
            return
        self._mutate(view.task_id, lambda t: t.set_content(content))

    def _press_deadline_text(self, view: DeadlineTextView, key: str, character: str | None) -> None:
        if key == CANCEL_KEY:
            self.view = ListView()
            return
        if key == CONFIRM_KEY:
            self.view = ListView()
            parsed = parse_deadline(view.buffer)
            if not parsed.understood:
                self.set_status(f"could not understand deadline: {view.buffer.strip()}", level="warn")
                return
            self._mutate(view.task_id, lambda t: t.set_deadline(parsed.value))
            return
        buffer = _edit_buffer(view.buffer, key, character)
        if buffer is not None:
            self.view = replace(view, buffer=buffer)

    # -------------------- menus --------------------

    def _press_priority_menu(self, view: PriorityMenuView, key: str) -> None:
        if key == CANCEL_KEY:
            self.view = ListView()
        elif key in MENU_UP_KEYS:
            self.view = replace(view, cursor=max(0, view.cursor - 1))
        elif key in MENU_DOWN_KEYS:
            self.view = replace(view, cursor=min(len(PRIORITY_ORDER) - 1, view.cursor + 1))
        elif key == CONFIRM_KEY:
            self.view = ListView()
            priority = PRIORITY_ORDER[view.cursor]
            self._mutate(view.task_id, lambda t: t.set_priority(priority))

    def _press_deadline_menu(self, view: DeadlineMenuView, key: str) -> None:
        if key == CANCEL_KEY:
            self.view = ListView()
        elif key in MENU_UP_KEYS:
            self.view = replace(view, cursor=max(0, view.cursor - 1))
        elif key in MENU_DOWN_KEYS:
            self.view = replace(view, cursor=min(len(view.options) - 1, view.cursor + 1))
        elif key == CONFIRM_KEY:
            self._choose_deadline(view, view.options[view.cursor])

    def _choose_deadline(self, view: DeadlineMenuView, option: DeadlineOption) -> None:
        if option.choice is DeadlineChoice.CUSTOM:
            self.view = DeadlineTextView(task_id=view.task_id)
            return
        self.view = ListView()
        deadline = None
        if option.choice is not DeadlineChoice.CLEAR:
            deadline = resolve_keyword(option.choice.value)
        self._mutate(view.task_id, lambda t: t.set_deadline(deadline))


def _edit_buffer(buffer: str, key: str, character: str | None) -> str | None:
    if key == "backspace":
        return buffer[:-1]
    if character and len(character) == 1 and character.isprintable():
        return buffer + character
    return None
