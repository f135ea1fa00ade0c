"""Window registry: named windows, their visibility and lifecycle.

Registry operations never raise. Failures are logged and reported as a
:class:`~wryshell.models.RegistryStatus`, leaving escalation (a duplicate
name shuts the shell down) to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..backend import WindowHandle, is_window
from ..exceptions import DuplicateWindow, InvalidWindow, UnknownWindow
from ..log import debug, error
from ..models import RegistryStatus, Signal, ToggleResult
from .scheduler import CloseDelayScheduler, ScheduleOutcome


if TYPE_CHECKING:
    from ..events import EventBus


@dataclass
class Window:
    """A registered window.

    ``published`` is the last visibility announced on the event bus. It is
    the logical state: a window with a pending close is already not visible
    even though the backend still shows it.
    """

    name: str
    handle: WindowHandle
    published: bool
    listener_id: int = 0


class WindowRegistry:
    """Maps window names to backend handles.

    Parameters
    ----------
    events : EventBus
        Receives ``window-toggled`` whenever a window's logical
        visibility changes.
    scheduler : CloseDelayScheduler, optional
        Delayed close timers. A scheduler without delays is created if
        omitted.
    """

    def __init__(self, events: EventBus, scheduler: CloseDelayScheduler | None = None) -> None:
        self._events = events
        self.scheduler = scheduler or CloseDelayScheduler()
        self._windows: dict[str, Window] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def __contains__(self, name: object) -> bool:
        return name in self._windows

    @property
    def names(self) -> list[str]:
        return list(self._windows)

    @property
    def handles(self) -> list[WindowHandle]:
        return [window.handle for window in self._windows.values()]

    def _lookup(self, name: str) -> Window | None:
        window = self._windows.get(name)
        if window is None:
            error(str(UnknownWindow(name)))
        return window

    def _logical_visibility(self, window: Window) -> bool:
        return window.handle.visible and not self.scheduler.is_pending(window.name)

    def _publish(self, window: Window) -> None:
        visible = self._logical_visibility(window)
        if visible == window.published:
            return
        window.published = visible
        self._events.emit(Signal.WINDOW_TOGGLED, window.name, visible)

    def _on_handle_visibility(self, name: str) -> None:
        window = self._windows.get(name)
        if window is not None:
            self._publish(window)

    def add(self, name: str, handle: Any) -> RegistryStatus:
        """Register a window under a name.

        Parameters
        ----------
        name : str
            Unique, non-empty window name.
        handle : WindowHandle
            The backend window.

        Returns
        -------
        RegistryStatus
            ``OK``, ``INVALID_WINDOW`` or ``DUPLICATE_WINDOW``.
        """
        if not is_window(handle):
            error(
                str(
                    InvalidWindow(
                        f"{handle!r} is not a window, but it is of type {type(handle).__name__}"
                    )
                )
            )
            return RegistryStatus.INVALID_WINDOW

        if not name:
            error(str(InvalidWindow(f"{handle!r} has no name")))
            return RegistryStatus.INVALID_WINDOW

        if name in self._windows:
            error(str(DuplicateWindow(name)))
            return RegistryStatus.DUPLICATE_WINDOW

        window = Window(name=name, handle=handle, published=handle.visible)
        window.listener_id = handle.connect_visibility(
            lambda _visible: self._on_handle_visibility(name)
        )
        self._windows[name] = window
        debug(f"Registered window '{name}'")
        return RegistryStatus.OK

    def remove(self, name: str) -> RegistryStatus:
        """Destroy a window and forget it.

        Returns
        -------
        RegistryStatus
            ``OK`` or ``UNKNOWN_WINDOW``.
        """
        window = self._lookup(name)
        if window is None:
            return RegistryStatus.UNKNOWN_WINDOW

        self.scheduler.cancel(name)
        window.handle.disconnect_visibility(window.listener_id)
        window.handle.destroy()
        del self._windows[name]
        debug(f"Removed window '{name}'")
        return RegistryStatus.OK

    def get(self, name: str) -> WindowHandle | None:
        """Get the handle of a window, or None (logged) if there is none."""
        window = self._lookup(name)
        return window.handle if window is not None else None

    def is_visible(self, name: str) -> bool | None:
        """Logical visibility of a window, None if unknown.

        A window whose close is pending counts as not visible.
        """
        window = self._windows.get(name)
        if window is None:
            return None
        return self._logical_visibility(window)

    def open(self, name: str) -> RegistryStatus:
        """Show a window, cancelling any pending close."""
        window = self._lookup(name)
        if window is None:
            return RegistryStatus.UNKNOWN_WINDOW

        self.scheduler.cancel(name)
        window.handle.show()
        self._publish(window)
        return RegistryStatus.OK

    def close(self, name: str) -> RegistryStatus:
        """Hide a window, after its close delay if one is configured.

        With a delay, ``window-toggled(name, False)`` is published right
        away and the backend hides the window once the delay elapses.
        Closing a window the backend already hides is a no-op.
        """
        window = self._lookup(name)
        if window is None:
            return RegistryStatus.UNKNOWN_WINDOW

        if not window.handle.visible:
            return RegistryStatus.OK

        if self.scheduler.delay_for(name) > 0:
            outcome = self.scheduler.schedule(name, lambda: self._hide_now(name))
            if outcome is ScheduleOutcome.STARTED:
                self._publish(window)
        else:
            window.handle.hide()
            self._publish(window)
        return RegistryStatus.OK

    def _hide_now(self, name: str) -> None:
        window = self._windows.get(name)
        if window is None:
            return
        window.handle.hide()
        self._publish(window)

    def toggle(self, name: str) -> ToggleResult:
        """Close a logically visible window, open any other.

        Returns
        -------
        ToggleResult
            The status and the logical visibility after the toggle.
        """
        window = self._lookup(name)
        if window is None:
            return ToggleResult(RegistryStatus.UNKNOWN_WINDOW)

        if self._logical_visibility(window):
            self.close(name)
        else:
            self.open(name)
        return ToggleResult(RegistryStatus.OK, self._logical_visibility(window))

    def destroy_all(self) -> int:
        """Destroy every window.

        Returns
        -------
        int
            Number of windows destroyed.
        """
        count = 0
        for name in list(self._windows):
            if self.remove(name) is RegistryStatus.OK:
                count += 1
        debug(f"Destroyed {count} windows")
        return count

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """Snapshot of every window for display or serialization."""
        return {
            name: {
                "visible": self._logical_visibility(window),
                "pending_close": self.scheduler.is_pending(name),
            }
            for name, window in self._windows.items()
        }
