from __future__ import annotations


class StoreError(RuntimeError):
    pass


class StoreIOError(StoreError):
    pass


class DecodeError(StoreError):
    pass


class TaskNotFoundError(StoreError):
    pass


class VersionControlError(StoreError):
    pass


class CommitError(VersionControlError):
    """The commit after a file change failed.

    `written` is true when the task file change already reached disk; the
    working tree then holds the new state while history does not.
    """

    def __init__(self, message: str, *, written: bool = False) -> None:
        super().__init__(message)
        self.written = written
