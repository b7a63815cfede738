from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

from .errors import CommitError, DecodeError, StoreError, StoreIOError, TaskNotFoundError
from .gitrepo import DEFAULT_AUTHOR_EMAIL, DEFAULT_AUTHOR_NAME, CommitEntry, GitCommitResult, GitRepo
from .task import Task


TASK_FILE_SUFFIX = ".json"
ID_PREFIX_LEN = 8

LogHook = Callable[[str, str], None]


def short_id(task_id: str) -> str:
    return task_id[:ID_PREFIX_LEN]


def decode_task(raw: str, *, source: str = "task") -> Task:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"{source}: invalid JSON: {exc}") from exc
    try:
        return Task.from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise DecodeError(f"{source}: malformed task record: {exc}") from exc


def encode_task(task: Task) -> str:
    return json.dumps(task.to_dict(), indent=2, ensure_ascii=False) + "\n"


class TaskStore:
    """One JSON file per task in a flat directory that is also a git working tree.

    Every save/delete commits the whole tree. The file write comes first and
    the commit second, with no rollback between them: if the commit fails the
    file keeps the new state and `CommitError(written=True)` is raised.
    """

    def __init__(self, data_dir: Path, repo: GitRepo, *, log: LogHook | None = None) -> None:
        self.data_dir = data_dir
        self.repo = repo
        self._log_hook = log

    @classmethod
    def open(
        cls,
        data_dir: Path | str,
        *,
        author_name: str = DEFAULT_AUTHOR_NAME,
        author_email: str = DEFAULT_AUTHOR_EMAIL,
        log: LogHook | None = None,
    ) -> TaskStore:
        root = Path(data_dir).expanduser()
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreIOError(f"cannot create data directory {root}: {exc}") from exc
        if not root.is_dir():
            raise StoreIOError(f"data directory is not a directory: {root}")
        repo = GitRepo.init_or_open(root, author_name=author_name, author_email=author_email)
        return cls(root, repo, log=log)

    def _emit(self, level: str, message: str) -> None:
        if self._log_hook is not None:
            self._log_hook(level, message)

    def task_path(self, task_id: str) -> Path:
        clean = (task_id or "").strip()
        if not clean or "/" in clean or "\\" in clean or clean.startswith("."):
            raise TaskNotFoundError(f"invalid task id: {task_id!r}")
        return self.data_dir / f"{clean}{TASK_FILE_SUFFIX}"

    def _commit(self, message: str, *, what: str) -> GitCommitResult:
        result = self.repo.commit_all(message)
        if not result.ok:
            raise CommitError(f"{what} on disk but not committed: {result.summary}", written=True)
        return result

    def save(self, task: Task) -> GitCommitResult:
        path = self.task_path(task.id)
        try:
            path.write_text(encode_task(task), encoding="utf-8")
        except OSError as exc:
            raise StoreIOError(f"cannot write {path.name}: {exc}") from exc
        return self._commit(f"Update task: {short_id(task.id)}", what=f"task {short_id(task.id)} saved")

    def load(self, task_id: str) -> Task:
        path = self.task_path(task_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise TaskNotFoundError(f"no such task: {short_id(task_id)}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise StoreIOError(f"cannot read {path.name}: {exc}") from exc
        task = decode_task(raw, source=path.name)
        if task.id != path.stem:
            raise DecodeError(f"{path.name}: id {task.id!r} does not match file name")
        return task

    def delete(self, task_id: str) -> GitCommitResult:
        path = self.task_path(task_id)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise TaskNotFoundError(f"no such task: {short_id(task_id)}") from exc
        except OSError as exc:
            raise StoreIOError(f"cannot delete {path.name}: {exc}") from exc
        return self._commit(f"Delete task: {short_id(task_id)}", what=f"task {short_id(task_id)} deleted")

    def list_tasks(self, archived: bool = False) -> list[Task]:
        """Tasks whose archived flag matches; unreadable records are skipped."""

        try:
            paths = sorted(self.data_dir.glob(f"*{TASK_FILE_SUFFIX}"))
        except OSError as exc:
            raise StoreIOError(f"cannot list {self.data_dir}: {exc}") from exc

        tasks: list[Task] = []
        for path in paths:
            if not path.is_file():
                continue
            try:
                task = self.load(path.stem)
            except StoreError as exc:
                self._emit("warn", f"skipped task record {path.name}: {exc}")
                continue
            if task.archived == archived:
                tasks.append(task)
        return tasks

    def log(self, *, limit: int | None = None) -> list[CommitEntry]:
        return self.repo.log(limit=limit)
