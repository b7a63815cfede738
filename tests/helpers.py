from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
import os
from pathlib import Path
from typing import Iterator
from unittest.mock import patch

from invar.errors import CommitError, StoreError, TaskNotFoundError
from invar.gitrepo import GitCommitResult
from invar.task import Priority, Task


BASE_TIME = datetime(2026, 3, 10, 15, 30, tzinfo=timezone.utc)


@contextmanager
def isolated_git_env(tmp: str | Path) -> Iterator[None]:
    """Keep the user's global/system git config out of test repositories."""

    env = {"GIT_CONFIG_GLOBAL": str(Path(tmp) / "global.gitconfig"), "GIT_CONFIG_NOSYSTEM": "1"}
    with patch.dict(os.environ, env, clear=False):
        yield


def make_task(
    task_id: str,
    content: str = "",
    *,
    priority: Priority = Priority.MEDIUM,
    deadline: datetime | None = None,
    created_offset_minutes: int = 0,
    completed: bool = False,
    archived: bool = False,
) -> Task:
    created = BASE_TIME + timedelta(minutes=created_offset_minutes)
    return Task(
        id=task_id,
        content=content or task_id,
        priority=priority,
        deadline=deadline,
        created_at=created,
        updated_at=created,
        completed_at=created if completed else None,
        archived=archived,
    )


class MemoryStore:
    """In-memory stand-in for TaskStore with switchable failures.

    `fail_with` is raised by every mutating call; `fail_reads` also makes
    loads and listings fail.
    """

    def __init__(self, tasks: list[Task] | None = None) -> None:
        self.tasks: dict[str, Task] = {task.id: replace(task, tags=list(task.tags)) for task in tasks or []}
        self.saves: list[str] = []
        self.deletes: list[str] = []
        self.fail_with: StoreError | None = None
        self.fail_reads = False

    def list_tasks(self, archived: bool = False) -> list[Task]:
        if self.fail_reads and self.fail_with is not None:
            raise self.fail_with
        return [replace(task) for task in self.tasks.values() if task.archived == archived]

    def load(self, task_id: str) -> Task:
        if self.fail_reads and self.fail_with is not None:
            raise self.fail_with
        try:
            return replace(self.tasks[task_id], tags=list(self.tasks[task_id].tags))
        except KeyError as exc:
            raise TaskNotFoundError(f"no such task: {task_id[:8]}") from exc

    def save(self, task: Task) -> GitCommitResult:
        if self.fail_with is not None:
            if isinstance(self.fail_with, CommitError) and self.fail_with.written:
                self.tasks[task.id] = replace(task)
            raise self.fail_with
        self.tasks[task.id] = replace(task)
        self.saves.append(task.id)
        return GitCommitResult(True, True, "commit created", commit="abc1234")

    def delete(self, task_id: str) -> GitCommitResult:
        if self.fail_with is not None:
            raise self.fail_with
        if task_id not in self.tasks:
            raise TaskNotFoundError(f"no such task: {task_id[:8]}")
        del self.tasks[task_id]
        self.deletes.append(task_id)
        return GitCommitResult(True, True, "commit created", commit="abc1234")
