"""Delayed window close scheduling.

A window with a configured close delay passes through a pending state
before it is hidden, which gives close animations time to run. At most one
timer exists per window name.
"""

from __future__ import annotations

import asyncio

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from ..log import debug
from ..models import ReschedulePolicy


class ScheduleOutcome(str, Enum):
    """What a close request did to the pending state of a window."""

    STARTED = "started"
    RESET = "reset"
    IGNORED = "ignored"


@dataclass
class PendingClose:
    """A scheduled hide for one window."""

    name: str
    deadline: float
    timer: asyncio.TimerHandle | None = None

    def cancel(self) -> None:
        if self.timer is not None:
            self.timer.cancel()


class CloseDelayScheduler:
    """Owns the per-window close delays and their pending timers.

    Parameters
    ----------
    delays : Mapping of str to int, optional
        Close delay in milliseconds per window name.
    policy : ReschedulePolicy, optional
        Behaviour of a close request while one is already pending.
    """

    def __init__(
        self,
        delays: Mapping[str, int] | None = None,
        policy: ReschedulePolicy | str = ReschedulePolicy.RESET,
    ) -> None:
        self._delays: Mapping[str, int] = MappingProxyType(dict(delays or {}))
        self.policy = ReschedulePolicy(policy)
        self._pending: dict[str, PendingClose] = {}

    def load(self, delays: Mapping[str, int]) -> None:
        """Replace the delay table; called once when the configuration is applied."""
        self._delays = MappingProxyType(dict(delays))
        debug(f"Loaded close delays for {len(self._delays)} window(s)")

    @property
    def delays(self) -> Mapping[str, int]:
        """Read-only view of the delay table."""
        return self._delays

    def delay_for(self, name: str) -> int:
        """Close delay in milliseconds, 0 when the window closes immediately."""
        return self._delays.get(name, 0)

    def is_pending(self, name: str) -> bool:
        return name in self._pending

    def pending_names(self) -> list[str]:
        return list(self._pending)

    def schedule(self, name: str, action: Callable[[], None]) -> ScheduleOutcome:
        """Arrange for ``action`` to run once the window's delay elapses.

        Must be called from the loop that owns shell state.

        Parameters
        ----------
        name : str
            The window name. Its delay must be positive.
        action : Callable
            Hides the window.

        Returns
        -------
        ScheduleOutcome
            ``STARTED`` for a new pending close, ``RESET`` when an existing
            timer was replaced, ``IGNORED`` when the existing timer was kept.
        """
        existing = self._pending.get(name)
        if existing is not None and self.policy is ReschedulePolicy.IGNORE:
            debug(f"Close of '{name}' already pending, keeping current timer")
            return ScheduleOutcome.IGNORED

        if existing is not None:
            existing.cancel()

        loop = asyncio.get_running_loop()
        delay = self.delay_for(name) / 1000
        pending = PendingClose(name=name, deadline=loop.time() + delay)
        pending.timer = loop.call_later(delay, self._fire, pending, action)
        self._pending[name] = pending

        if existing is not None:
            debug(f"Close of '{name}' rescheduled in {delay:.3f}s")
            return ScheduleOutcome.RESET
        debug(f"Close of '{name}' scheduled in {delay:.3f}s")
        return ScheduleOutcome.STARTED

    def _fire(self, pending: PendingClose, action: Callable[[], None]) -> None:
        # A replaced or cancelled entry must never act.
        if self._pending.get(pending.name) is not pending:
            return
        del self._pending[pending.name]
        debug(f"Delayed close of '{pending.name}' elapsed")
        action()

    def cancel(self, name: str) -> bool:
        """Cancel the pending close of a window.

        Returns
        -------
        bool
            True if a timer was pending.
        """
        pending = self._pending.pop(name, None)
        if pending is None:
            return False
        pending.cancel()
        debug(f"Cancelled pending close of '{name}'")
        return True

    def cancel_all(self) -> int:
        """Cancel every pending close.

        Returns
        -------
        int
            Number of timers cancelled.
        """
        count = 0
        for name in list(self._pending):
            if self.cancel(name):
                count += 1
        return count
