from __future__ import annotations

import argparse
import sys

from . import __version__
from .applog import AppLog
from .config import InvarConfig, load_invar_toml
from .dates import EXAMPLES_HINT, parse_deadline
from .errors import CommitError, StoreError
from .paths import config_path, ensure_state_dirs, invar_paths
from .store import TaskStore, short_id
from .task import Priority, new_task


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invar",
        description="Invar: a personal task tracker with a git-backed history",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-n", "--new", dest="quick_add", metavar="TEXT", help="Create a task and exit.")
    parser.add_argument("--deadline", metavar="WHEN", help=f"Deadline for -n ({EXAMPLES_HINT}).")
    parser.add_argument(
        "--priority",
        choices=[priority.value for priority in Priority],
        help="Priority for -n (default: medium).",
    )
    parser.add_argument("--log", action="store_true", help="Print the task history and exit.")
    parser.add_argument("--data-dir", metavar="DIR", help="Task directory (overrides INVAR_DATA_DIR and invar.toml).")
    return parser


def _open_store(config: InvarConfig, data_dir, log: AppLog) -> TaskStore:
    return TaskStore.open(
        data_dir,
        author_name=config.git.author_name,
        author_email=config.git.author_email,
        log=log,
    )


def cmd_quick_add(args: argparse.Namespace, store: TaskStore, log: AppLog) -> int:
    content = args.quick_add or ""
    if not content.strip():
        print("Error: task text is empty.", file=sys.stderr)
        return 1

    deadline = None
    if args.deadline is not None:
        parsed = parse_deadline(args.deadline)
        if not parsed.understood:
            print(f"Error: could not understand deadline: {args.deadline}", file=sys.stderr)
            print(f"Try one of: {EXAMPLES_HINT}", file=sys.stderr)
            return 1
        deadline = parsed.value

    task = new_task(content, priority=Priority(args.priority) if args.priority else Priority.MEDIUM)
    if deadline is not None:
        task.set_deadline(deadline)

    try:
        result = store.save(task)
    except CommitError as exc:
        if not exc.written:
            raise
        print(f"Task created: {content}")
        print(f"Warning: history not updated: {exc}", file=sys.stderr)
        log.warn(f"quick-add {short_id(task.id)}: {exc}")
        return 1

    log.info(f"created task {short_id(task.id)} from command line ({result.summary})")
    print(f"Task created: {content}")
    return 0


def cmd_log(store: TaskStore) -> int:
    for entry in store.log():
        print(entry.format())
    return 0


def _run_terminal_app_entry(**kwargs) -> int:
    from .app import run_terminal_app

    return run_terminal_app(**kwargs)


def cmd_app(store: TaskStore, config: InvarConfig, log: AppLog, *, notice: str = "") -> int:
    try:
        return _run_terminal_app_entry(store=store, ui_theme=config.theme, app_log=log, notice=notice)
    except ModuleNotFoundError as exc:
        if exc.name == "textual":
            print(
                "Interactive mode requires `textual`. Install it with `pip install textual`, "
                "or use `invar -n TEXT` / `invar --log`.",
                file=sys.stderr,
            )
            return 1
        raise


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.quick_add is None and (args.deadline is not None or args.priority is not None):
        parser.error("--deadline and --priority require -n/--new")
    if args.log and args.quick_add is not None:
        parser.error("--log cannot be combined with -n/--new")

    config, warning = load_invar_toml(config_path())
    paths = invar_paths(config, data_dir=args.data_dir)
    try:
        ensure_state_dirs(paths)
    except OSError as exc:
        print(f"Error: cannot create invar directories: {exc}", file=sys.stderr)
        return 1
    log = AppLog(paths.log_file)
    if warning:
        log.warn(warning)

    try:
        store = _open_store(config, paths.data_dir, log)
    except StoreError as exc:
        log.error(f"cannot open task store at {paths.data_dir}: {exc}")
        print(f"Error: cannot open task store at {paths.data_dir}: {exc}", file=sys.stderr)
        return 1

    try:
        if args.quick_add is not None:
            return cmd_quick_add(args, store, log)
        if args.log:
            return cmd_log(store)
    except StoreError as exc:
        log.error(str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    return cmd_app(store, config, log, notice=warning)
