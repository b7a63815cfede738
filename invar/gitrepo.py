from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import subprocess
from pathlib import Path

from .errors import VersionControlError


DEFAULT_AUTHOR_NAME = "Invar"
DEFAULT_AUTHOR_EMAIL = "invar@localhost"
GIT_TIMEOUT_S = 15.0
HASH_PREFIX_LEN = 7

_LOG_FIELD_SEP = "\x1f"


def _run_git(repo_root: Path, *args: str, timeout_s: float = GIT_TIMEOUT_S) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            ["git", *args],
            cwd=str(repo_root),
            text=True,
            capture_output=True,
            check=False,
            timeout=timeout_s,
        )
    except Exception:
        return subprocess.CompletedProcess(args=["git", *args], returncode=124, stdout="", stderr="git invocation failed")


def _detail(proc: subprocess.CompletedProcess[str]) -> str:
    return " ".join(proc.stderr.strip().split()) or f"exit={proc.returncode}"


@dataclass(frozen=True)
class GitCommitResult:
    ok: bool
    committed: bool
    summary: str
    commit: str = ""


@dataclass(frozen=True)
class CommitEntry:
    hash: str
    date: datetime
    message: str

    def format(self) -> str:
        return f"{self.hash} {self.date.date().isoformat()} {self.message}"


def is_git_repo(repo_root: Path) -> bool:
    """True when `repo_root` is itself the top of a git working tree."""

    proc = _run_git(repo_root, "rev-parse", "--show-toplevel")
    if proc.returncode != 0 or not proc.stdout.strip():
        return False
    return Path(proc.stdout.strip()).resolve() == repo_root.resolve()


class GitRepo:
    """A working tree whose every change is committed as a whole."""

    def __init__(
        self,
        root: Path,
        *,
        author_name: str = DEFAULT_AUTHOR_NAME,
        author_email: str = DEFAULT_AUTHOR_EMAIL,
    ) -> None:
        self.root = root
        self.author_name = author_name or DEFAULT_AUTHOR_NAME
        self.author_email = author_email or DEFAULT_AUTHOR_EMAIL

    @classmethod
    def init_or_open(
        cls,
        root: Path,
        *,
        author_name: str = DEFAULT_AUTHOR_NAME,
        author_email: str = DEFAULT_AUTHOR_EMAIL,
    ) -> GitRepo:
        if not (root / ".git").exists():
            init = _run_git(root, "-c", "init.defaultBranch=main", "init", "-q")
            if init.returncode != 0:
                raise VersionControlError(f"git init failed in {root}: {_detail(init)}")
        elif not is_git_repo(root):
            raise VersionControlError(f"not a usable git repository: {root}")
        return cls(root, author_name=author_name, author_email=author_email)

    def _commit_args(self) -> tuple[str, ...]:
        # Commits always carry the configured identity, whatever the user's global config says.
        return (
            "-c",
            f"user.name={self.author_name}",
            "-c",
            f"user.email={self.author_email}",
            "-c",
            "commit.gpgsign=false",
        )

    def commit_all(self, message: str) -> GitCommitResult:
        add = _run_git(self.root, "add", "-A")
        if add.returncode != 0:
            return GitCommitResult(False, False, f"git add failed: {_detail(add)}")

        staged = _run_git(self.root, "diff", "--cached", "--quiet")
        if staged.returncode == 0:
            return GitCommitResult(True, False, "no changes to commit")
        if staged.returncode != 1:
            return GitCommitResult(False, False, f"git staged-diff failed: {_detail(staged)}")

        commit = _run_git(self.root, *self._commit_args(), "commit", "-q", "-m", message)
        if commit.returncode != 0:
            return GitCommitResult(False, False, f"git commit failed: {_detail(commit)}")

        head = _run_git(self.root, "rev-parse", "--short", "HEAD")
        sha = head.stdout.strip() if head.returncode == 0 else ""
        return GitCommitResult(True, True, "commit created", commit=sha)

    def has_commits(self) -> bool:
        proc = _run_git(self.root, "rev-parse", "--verify", "-q", "HEAD")
        return proc.returncode == 0

    def log(self, *, limit: int | None = None) -> list[CommitEntry]:
        """Commit history, newest first. Empty for a repository without commits."""

        if not self.has_commits():
            return []
        args = ["log", "--format=%H%x1f%aI%x1f%s"]
        if limit is not None:
            args.append(f"--max-count={max(1, int(limit))}")
        proc = _run_git(self.root, *args)
        if proc.returncode != 0:
            raise VersionControlError(f"git log failed: {_detail(proc)}")

        entries: list[CommitEntry] = []
        for line in proc.stdout.splitlines():
            parts = line.split(_LOG_FIELD_SEP, 2)
            if len(parts) != 3:
                continue
            sha, stamp, subject = parts
            try:
                when = datetime.fromisoformat(stamp.strip())
            except ValueError:
                continue
            entries.append(CommitEntry(hash=sha[:HASH_PREFIX_LEN], date=when, message=subject))
        return entries
