"""Window backend interface and the headless backend.

The shell never draws anything itself. It talks to a backend through the
two protocols below; the headless backend keeps windows fully functional
(visibility, notifications, destruction) without a display, which is what
runs in CI and in the default daemon.
"""

from __future__ import annotations

import itertools

from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from .log import debug, error
from .models import WindowDeclaration


VisibilityCallback = Callable[[bool], None]


@runtime_checkable
class WindowHandle(Protocol):
    """A top-level window owned by a backend."""

    @property
    def name(self) -> str: ...

    @property
    def visible(self) -> bool: ...

    def show(self) -> None: ...

    def hide(self) -> None: ...

    def destroy(self) -> None: ...

    def connect_visibility(self, callback: VisibilityCallback) -> int: ...

    def disconnect_visibility(self, handler_id: int) -> None: ...


class WindowBackend(Protocol):
    """Rendering backend the shell delegates drawing concerns to."""

    def create_window(self, declaration: WindowDeclaration) -> WindowHandle: ...

    def apply_css(self, path: Path) -> bool: ...

    def reset_css(self) -> None: ...

    def append_icon_search_path(self, path: Path) -> None: ...

    def set_interactive_debugging(self, enabled: bool) -> None: ...


class HeadlessWindow:
    """Window that tracks state but is never drawn.

    Visibility listeners fire only on actual changes, like a toolkit's
    ``notify::visible``.
    """

    def __init__(self, name: str, visible: bool = True, title: str | None = None) -> None:
        self._name = name
        self._visible = visible
        self.title = title
        self.destroyed = False
        self._listeners: dict[int, VisibilityCallback] = {}
        self._ids = itertools.count(1)

    def __repr__(self) -> str:
        return f"HeadlessWindow(name={self._name!r}, visible={self._visible})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def visible(self) -> bool:
        return self._visible

    def _set_visible(self, visible: bool) -> None:
        if self.destroyed or visible == self._visible:
            return
        self._visible = visible
        for callback in list(self._listeners.values()):
            callback(visible)

    def show(self) -> None:
        self._set_visible(True)

    def hide(self) -> None:
        self._set_visible(False)

    def destroy(self) -> None:
        if self.destroyed:
            return
        self._set_visible(False)
        self.destroyed = True
        self._listeners.clear()

    def connect_visibility(self, callback: VisibilityCallback) -> int:
        handler_id = next(self._ids)
        self._listeners[handler_id] = callback
        return handler_id

    def disconnect_visibility(self, handler_id: int) -> None:
        self._listeners.pop(handler_id, None)


class HeadlessBackend:
    """Backend without a display.

    Records the style sheets, icon paths and inspector state it is asked to
    apply so they can be inspected.
    """

    def __init__(self) -> None:
        self.windows: list[HeadlessWindow] = []
        self.css: list[Path] = []
        self.icon_paths: list[Path] = []
        self.interactive_debugging = False

    def create_window(self, declaration: WindowDeclaration) -> HeadlessWindow:
        window = HeadlessWindow(declaration.name, declaration.visible, declaration.title)
        self.windows.append(window)
        debug(f"Created headless window '{declaration.name}'")
        return window

    def apply_css(self, path: Path) -> bool:
        """Register a style sheet; a missing file is reported like a parse error."""
        if not path.is_file():
            error(f"CSS ERROR: unable to read {path}")
            return False
        self.css.append(path)
        return True

    def reset_css(self) -> None:
        self.css.clear()

    def append_icon_search_path(self, path: Path) -> None:
        self.icon_paths.append(path)

    def set_interactive_debugging(self, enabled: bool) -> None:
        self.interactive_debugging = enabled
        debug(f"Interactive debugging {'enabled' if enabled else 'disabled'}")


def is_window(obj: Any) -> bool:
    """Check that an object satisfies the WindowHandle protocol."""
    return isinstance(obj, WindowHandle)
