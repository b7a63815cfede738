from __future__ import annotations

from datetime import timedelta
import json
from pathlib import Path
import subprocess
from tempfile import TemporaryDirectory
import unittest
from unittest.mock import patch

from invar.errors import CommitError, DecodeError, StoreIOError, TaskNotFoundError, VersionControlError
from invar.gitrepo import GitCommitResult
from invar.store import TaskStore
from invar.task import Priority, new_task

from tests.helpers import BASE_TIME, isolated_git_env, make_task


def _git(repo: Path, *args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(["git", *args], cwd=str(repo), text=True, capture_output=True, check=False)


class StoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        tmp = TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.tmp = Path(tmp.name)
        self.enterContext(isolated_git_env(self.tmp))
        self.data_dir = self.tmp / "tasks"
        self.logged: list[tuple[str, str]] = []
        self.store = TaskStore.open(self.data_dir, log=lambda level, message: self.logged.append((level, message)))


class TestTaskStore(StoreTestCase):
    def test_open_initializes_repository(self) -> None:
        self.assertTrue((self.data_dir / ".git").is_dir())
        self.assertEqual([], self.store.list_tasks())
        self.assertEqual([], self.store.log())

    def test_open_is_idempotent(self) -> None:
        self.store.save(make_task("a"))
        reopened = TaskStore.open(self.data_dir)
        self.assertEqual(["a"], [task.id for task in reopened.list_tasks()])

    def test_save_and_load_round_trip(self) -> None:
        dated = make_task(
            "0f8fad5b-d9cb-469f-a165-70867728950e",
            "Call the bank\nabout the card",
            priority=Priority.HIGH,
            deadline=BASE_TIME + timedelta(days=2),
            completed=True,
            archived=True,
        )
        dated.tags = ["errands", "finance"]
        undated = new_task("  plain\n", priority=Priority.LOW)

        for task in (dated, undated):
            with self.subTest(task=task.id):
                self.store.save(task)
                loaded = self.store.load(task.id)
                self.assertEqual(task, loaded)

        self.assertIsNone(self.store.load(undated.id).deadline)
        self.assertIsNone(self.store.load(undated.id).completed_at)

    def test_file_layout_omits_absent_fields(self) -> None:
        self.store.save(make_task("a", "plain"))
        data = json.loads((self.data_dir / "a.json").read_text(encoding="utf-8"))
        self.assertNotIn("deadline", data)
        self.assertNotIn("completed_at", data)
        self.assertEqual("a", data["id"])
        self.assertEqual([], data["tags"])

    def test_save_and_delete_commit_with_short_id(self) -> None:
        task_id = "0f8fad5b-d9cb-469f-a165-70867728950e"
        result = self.store.save(make_task(task_id))
        self.assertTrue(result.committed)
        self.assertTrue(result.commit)
        self.store.delete(task_id)

        messages = [entry.message for entry in self.store.log()]
        self.assertEqual(["Delete task: 0f8fad5b", "Update task: 0f8fad5b"], messages)
        self.assertFalse((self.data_dir / f"{task_id}.json").exists())

        author = _git(self.data_dir, "log", "-1", "--format=%an <%ae>")
        self.assertEqual("Invar <invar@localhost>", author.stdout.strip())

    def test_configured_author_is_used(self) -> None:
        store = TaskStore.open(self.tmp / "other", author_name="Sam", author_email="sam@example.com")
        store.save(make_task("a"))
        author = _git(store.data_dir, "log", "-1", "--format=%an <%ae>")
        self.assertEqual("Sam <sam@example.com>", author.stdout.strip())

    def test_unchanged_save_creates_no_commit(self) -> None:
        task = make_task("a")
        self.store.save(task)
        result = self.store.save(task)
        self.assertTrue(result.ok)
        self.assertFalse(result.committed)
        self.assertEqual(1, len(self.store.log()))

    def test_log_entries_are_short_hashes_newest_first(self) -> None:
        self.store.save(make_task("a"))
        self.store.save(make_task("b"))
        entries = self.store.log()
        self.assertEqual(2, len(entries))
        self.assertEqual(7, len(entries[0].hash))
        self.assertEqual("Update task: b", entries[0].message)
        self.assertIn(entries[0].hash, entries[0].format())
        self.assertEqual(1, len(self.store.log(limit=1)))

    def test_missing_task_raises_not_found(self) -> None:
        with self.assertRaises(TaskNotFoundError):
            self.store.load("nope")
        with self.assertRaises(TaskNotFoundError):
            self.store.delete("nope")

    def test_unsafe_ids_are_rejected(self) -> None:
        for task_id in ("", "../escape", ".git", "a/b"):
            with self.subTest(task_id=task_id):
                with self.assertRaises(TaskNotFoundError):
                    self.store.load(task_id)

    def test_corrupt_file_raises_decode_error_and_is_skipped_in_listing(self) -> None:
        self.store.save(make_task("good"))
        (self.data_dir / "bad.json").write_text("{not json", encoding="utf-8")
        (self.data_dir / "shape.json").write_text(json.dumps({"id": "shape"}), encoding="utf-8")

        with self.assertRaises(DecodeError):
            self.store.load("bad")
        self.assertEqual(["good"], [task.id for task in self.store.list_tasks()])
        skipped = [message for level, message in self.logged if level == "warn"]
        self.assertEqual(2, len(skipped))

    def test_id_must_match_file_name(self) -> None:
        record = make_task("inner").to_dict()
        (self.data_dir / "outer.json").write_text(json.dumps(record), encoding="utf-8")
        with self.assertRaises(DecodeError):
            self.store.load("outer")

    def test_listing_partitions_on_archived_flag(self) -> None:
        self.store.save(make_task("active"))
        self.store.save(make_task("old", archived=True))
        (self.data_dir / "notes.txt").write_text("ignored", encoding="utf-8")

        self.assertEqual(["active"], [task.id for task in self.store.list_tasks()])
        self.assertEqual(["old"], [task.id for task in self.store.list_tasks(archived=True)])

    def test_commit_failure_keeps_written_file(self) -> None:
        failed = GitCommitResult(False, False, "git commit failed: boom")
        with patch("invar.store.GitRepo.commit_all", return_value=failed):
            with self.assertRaises(CommitError) as ctx:
                self.store.save(make_task("a", "written anyway"))
        self.assertTrue(ctx.exception.written)
        self.assertEqual("written anyway", self.store.load("a").content)


class TestStoreOpenFailures(unittest.TestCase):
    def test_data_path_that_is_a_file(self) -> None:
        with TemporaryDirectory() as tmp, isolated_git_env(tmp):
            blocker = Path(tmp) / "tasks"
            blocker.write_text("not a directory", encoding="utf-8")
            with self.assertRaises(StoreIOError):
                TaskStore.open(blocker)

    def test_unusable_git_directory(self) -> None:
        with TemporaryDirectory() as tmp, isolated_git_env(tmp):
            root = Path(tmp) / "tasks"
            (root / ".git").mkdir(parents=True)
            (root / ".git" / "HEAD").write_text("garbage", encoding="utf-8")
            with self.assertRaises(VersionControlError):
                TaskStore.open(root)


if __name__ == "__main__":
    unittest.main()
