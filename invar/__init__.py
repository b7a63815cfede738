"""invar: a git-backed personal task tracker for the terminal."""

__version__ = "0.3.0"
