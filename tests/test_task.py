from __future__ import annotations

from datetime import datetime, timedelta, timezone
import unittest
from unittest.mock import patch

from invar.task import Priority, Task, new_task

from tests.helpers import BASE_TIME, make_task


class TestTaskLifecycle(unittest.TestCase):
    def test_new_task_starts_pending_medium_and_unarchived(self) -> None:
        task = new_task("Write report", now=BASE_TIME)

        self.assertEqual(36, len(task.id))
        self.assertEqual(Priority.MEDIUM, task.priority)
        self.assertIsNone(task.deadline)
        self.assertIsNone(task.completed_at)
        self.assertFalse(task.archived)
        self.assertEqual([], task.tags)
        self.assertEqual(BASE_TIME, task.created_at)
        self.assertEqual(BASE_TIME, task.updated_at)

    def test_new_task_ids_are_unique(self) -> None:
        ids = {new_task("x").id for _ in range(50)}
        self.assertEqual(50, len(ids))

    def test_cycle_priority_wraps_high_medium_low(self) -> None:
        task = make_task("a", priority=Priority.HIGH)
        seen = []
        for _ in range(3):
            task.cycle_priority()
            seen.append(task.priority)
        self.assertEqual([Priority.MEDIUM, Priority.LOW, Priority.HIGH], seen)

    def test_complete_and_uncomplete_track_updated_at(self) -> None:
        task = make_task("a")
        later = BASE_TIME + timedelta(hours=2)
        with patch("invar.task._now", return_value=later):
            task.complete()
        self.assertTrue(task.is_completed)
        self.assertEqual(later, task.completed_at)
        self.assertEqual(later, task.updated_at)

        even_later = later + timedelta(minutes=5)
        with patch("invar.task._now", return_value=even_later):
            task.uncomplete()
        self.assertFalse(task.is_completed)
        self.assertIsNone(task.completed_at)
        self.assertEqual(even_later, task.updated_at)

    def test_updated_at_never_precedes_created_at(self) -> None:
        task = make_task("a")
        with patch("invar.task._now", return_value=BASE_TIME - timedelta(days=1)):
            task.archive()
        self.assertTrue(task.archived)
        self.assertEqual(task.created_at, task.updated_at)

        backdated = Task(id="b", content="b", created_at=BASE_TIME, updated_at=BASE_TIME - timedelta(hours=1))
        self.assertEqual(BASE_TIME, backdated.updated_at)

    def test_setters_touch_updated_at(self) -> None:
        task = make_task("a")
        later = BASE_TIME + timedelta(minutes=1)
        with patch("invar.task._now", return_value=later):
            task.set_priority(Priority.LOW)
            task.set_content("changed")
            task.set_deadline(BASE_TIME + timedelta(days=1))
        self.assertEqual(Priority.LOW, task.priority)
        self.assertEqual("changed", task.content)
        self.assertEqual(later, task.updated_at)

    def test_title_is_first_line(self) -> None:
        self.assertEqual("Buy milk", make_task("a", "Buy milk\nand eggs").title)
        self.assertEqual("", Task(id="b", content="").title)


class TestOverdue(unittest.TestCase):
    def test_past_deadline_is_overdue(self) -> None:
        task = make_task("a", deadline=BASE_TIME - timedelta(minutes=1))
        self.assertTrue(task.is_overdue(BASE_TIME))

    def test_future_or_missing_deadline_is_not_overdue(self) -> None:
        self.assertFalse(make_task("a", deadline=BASE_TIME + timedelta(minutes=1)).is_overdue(BASE_TIME))
        self.assertFalse(make_task("b").is_overdue(BASE_TIME))

    def test_completed_task_is_never_overdue(self) -> None:
        task = make_task("a", deadline=BASE_TIME - timedelta(days=3), completed=True)
        self.assertFalse(task.is_overdue(BASE_TIME))


class TestTaskRecord(unittest.TestCase):
    def test_to_dict_omits_absent_optionals(self) -> None:
        data = make_task("a", "hello").to_dict()
        self.assertNotIn("deadline", data)
        self.assertNotIn("completed_at", data)
        self.assertEqual([], data["tags"])
        self.assertFalse(data["archived"])
        self.assertEqual("medium", data["priority"])
        self.assertEqual(BASE_TIME.isoformat(), data["created_at"])

    def test_from_dict_reads_full_record(self) -> None:
        deadline = datetime(2026, 3, 12, 23, 59, tzinfo=timezone.utc)
        task = make_task("a", "multi\nline", priority=Priority.HIGH, deadline=deadline, completed=True, archived=True)
        restored = Task.from_dict(task.to_dict())

        self.assertEqual(task.id, restored.id)
        self.assertEqual("multi\nline", restored.content)
        self.assertEqual(Priority.HIGH, restored.priority)
        self.assertEqual(deadline, restored.deadline)
        self.assertEqual(task.completed_at, restored.completed_at)
        self.assertTrue(restored.archived)

    def test_from_dict_defaults_missing_optionals(self) -> None:
        restored = Task.from_dict({"id": "a", "content": "x", "created_at": BASE_TIME.isoformat()})
        self.assertEqual(Priority.MEDIUM, restored.priority)
        self.assertEqual([], restored.tags)
        self.assertFalse(restored.archived)
        self.assertEqual(restored.created_at, restored.updated_at)

    def test_from_dict_rejects_malformed_records(self) -> None:
        bad_records = [
            [],
            {"content": "no id", "created_at": BASE_TIME.isoformat()},
            {"id": "a", "content": "x"},
            {"id": "a", "content": "x", "created_at": "yesterday"},
            {"id": "a", "content": "x", "created_at": BASE_TIME.isoformat(), "priority": "urgent"},
            {"id": "a", "content": "x", "created_at": BASE_TIME.isoformat(), "tags": "work"},
        ]
        for record in bad_records:
            with self.subTest(record=record):
                with self.assertRaises((KeyError, TypeError, ValueError)):
                    Task.from_dict(record)

    def test_naive_timestamps_are_read_as_local_time(self) -> None:
        restored = Task.from_dict({"id": "a", "content": "x", "created_at": "2026-03-10T15:30:00"})
        self.assertIsNotNone(restored.created_at.tzinfo)


if __name__ == "__main__":
    unittest.main()
