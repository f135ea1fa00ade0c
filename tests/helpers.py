"""Shared test helpers."""

from __future__ import annotations

import asyncio

from typing import TYPE_CHECKING, Any

from tests.constants import DEFAULT_TIMEOUT
from wryshell.models import Signal


if TYPE_CHECKING:
    from collections.abc import Callable

    from wryshell.events import EventBus


class SignalRecorder:
    """Collects emitted signals."""

    def __init__(self) -> None:
        self.toggled: list[tuple[str, bool]] = []
        self.parsed = 0

    def on_toggled(self, name: str, visible: bool) -> None:
        self.toggled.append((name, visible))

    def on_parsed(self) -> None:
        self.parsed += 1

    def attach(self, events: EventBus) -> SignalRecorder:
        events.connect(Signal.WINDOW_TOGGLED, self.on_toggled)
        events.connect(Signal.CONFIG_PARSED, self.on_parsed)
        return self


async def wait_for(predicate: Callable[[], Any], timeout: float = DEFAULT_TIMEOUT) -> None:
    """Poll a predicate on the loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            msg = "Condition not met before timeout"
            raise TimeoutError(msg)
        await asyncio.sleep(0.01)
