"""Async utility helpers for wryshell.

Small helpers around the single asyncio loop that owns shell state.
"""

from __future__ import annotations

import asyncio

from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar


T = TypeVar("T")


class TaskSet:
    """Strong references to fire-and-forget tasks.

    The loop only keeps weak references to tasks, so anything scheduled
    without being awaited must be held somewhere until it finishes.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, T], name: str | None = None) -> asyncio.Task[T]:
        """Schedule a coroutine on the running loop and track it.

        Parameters
        ----------
        coro : Coroutine
            The coroutine to run.
        name : str, optional
            Task name, shown in debug output.

        Returns
        -------
        asyncio.Task
            The scheduled task.
        """
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def cancel_all(self) -> int:
        """Cancel every tracked task.

        Returns
        -------
        int
            Number of tasks that were still pending.
        """
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        return len(pending)

    async def join(self) -> None:
        """Wait until no tracked task is left, including ones spawned meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._tasks)


async def read_text_async(path: str | Path, encoding: str = "utf-8") -> str:
    """Read a whole text file without blocking the loop.

    Parameters
    ----------
    path : str or Path
        File to read.
    encoding : str, optional
        Text encoding.

    Returns
    -------
    str
        The file contents.
    """
    return await asyncio.to_thread(Path(path).read_text, encoding=encoding)
