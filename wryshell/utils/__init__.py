"""Utility helpers for wryshell."""

from .async_helpers import TaskSet, read_text_async


__all__ = ["TaskSet", "read_text_async"]
