"""Main wryshell application class."""

from __future__ import annotations

import asyncio
import inspect

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .backend import HeadlessBackend, WindowBackend, WindowHandle, is_window
from .bridge import RemoteExecutionBridge
from .bus import SessionBus
from .config import ShellSettings
from .events import EventBus, HandlerFunc
from .exceptions import BusNameOwnedError, ConfigLoadError, ConfigNotFoundError, InvalidWindow
from .loader import ConfigLoader
from .log import debug, error, info, log_handler_error
from .models import RegistryStatus, ReschedulePolicy, ShellConfig, Signal, ToggleResult, WindowDeclaration
from .scripts import ScriptExecutor
from .utils import TaskSet
from .window_manager import CloseDelayScheduler, WindowRegistry


class Shell:
    """The shell controller process.

    Owns the windows declared by the user configuration, publishes their
    visibility on an in-process event bus and exports a remote control
    object on the session bus.

    Examples
    --------
    >>> shell = Shell()
    >>> shell.setup(config_dir="~/.config/wryshell")
    >>> exit_code = asyncio.run(shell.run())
    """

    def __init__(
        self,
        backend: WindowBackend | None = None,
        executor: ScriptExecutor | None = None,
        bus: SessionBus | None = None,
        settings: ShellSettings | None = None,
    ) -> None:
        """Initialize the shell.

        Parameters
        ----------
        backend : WindowBackend, optional
            Window backend. Defaults to the headless backend.
        executor : ScriptExecutor, optional
            Compiler for remote scripts.
        bus : SessionBus, optional
            Session bus. Built from the settings if omitted.
        settings : ShellSettings, optional
            Process settings. If None, loads from env/files.
        """
        self._settings = settings or ShellSettings()
        self.backend: WindowBackend = backend or HeadlessBackend()
        self.bus = bus or SessionBus(
            runtime_dir=self._settings.runtime_dir,
            connect_timeout=self._settings.timeout.connect,
            response_timeout=self._settings.timeout.response,
        )

        self.bus_name = self._settings.bus_name
        self.object_path = self._settings.object_path
        self._config_dir = self._settings.config_dir.expanduser()
        self._config_entry = self._settings.config_entry

        self._events = EventBus()
        self._registry = WindowRegistry(
            self._events,
            CloseDelayScheduler(policy=ReschedulePolicy(self._settings.window.reschedule_policy)),
        )
        self.bridge = RemoteExecutionBridge(self, executor)
        self._tasks = TaskSet()

        self._quit_event = asyncio.Event()
        self._quitting = False
        self._exit_code = 0

    def setup(
        self,
        bus_name: str | None = None,
        object_path: str | None = None,
        config_dir: str | Path | None = None,
        config_entry: str | Path | None = None,
    ) -> None:
        """Override startup parameters before :meth:`run`."""
        if bus_name is not None:
            self.bus_name = bus_name
        if object_path is not None:
            self.object_path = object_path
        if config_dir is not None:
            self._config_dir = Path(config_dir).expanduser()
        if config_entry is not None:
            self._config_entry = str(config_entry)

    @property
    def settings(self) -> ShellSettings:
        return self._settings

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def registry(self) -> WindowRegistry:
        return self._registry

    @property
    def windows(self) -> list[WindowHandle]:
        """Handles of every registered window, in registration order."""
        return self._registry.handles

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    @property
    def config_path(self) -> Path:
        """Absolute path of the configuration module."""
        return ConfigLoader(self._config_dir, self._config_entry).path

    @property
    def is_quitting(self) -> bool:
        return self._quitting

    @property
    def exit_code(self) -> int:
        return self._exit_code

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------

    def add_window(self, window: Any) -> RegistryStatus:
        """Register a window handle or declaration.

        A duplicate name is fatal: the shell quits with exit code 1.

        Parameters
        ----------
        window : WindowHandle, WindowDeclaration or Mapping
            A backend window, or a declaration the backend turns into one.

        Returns
        -------
        RegistryStatus
            The registry's verdict.
        """
        if isinstance(window, (WindowDeclaration, Mapping)):
            try:
                declaration = WindowDeclaration.model_validate(
                    dict(window) if isinstance(window, Mapping) else window
                )
            except ValidationError as exc:
                error(str(InvalidWindow(f"Invalid window declaration: {exc}")))
                return RegistryStatus.INVALID_WINDOW
            window = self.backend.create_window(declaration)

        name = window.name if is_window(window) else ""
        status = self._registry.add(name, window)
        if status is RegistryStatus.DUPLICATE_WINDOW:
            self.quit(exit_code=1)
        return status

    def remove_window(self, window: str | WindowHandle) -> RegistryStatus:
        """Destroy a window, given its name or its handle."""
        name = window if isinstance(window, str) else window.name
        return self._registry.remove(name)

    def get_window(self, name: str) -> WindowHandle | None:
        return self._registry.get(name)

    def open_window(self, name: str) -> RegistryStatus:
        return self._registry.open(name)

    def close_window(self, name: str) -> RegistryStatus:
        return self._registry.close(name)

    def toggle_window(self, name: str) -> ToggleResult:
        return self._registry.toggle(name)

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def connect(self, signal: Signal | str, handler: HandlerFunc) -> int:
        """Connect a handler to ``window-toggled`` or ``config-parsed``."""
        return self._events.connect(signal, handler)

    def disconnect(self, handler_id: int) -> bool:
        return self._events.disconnect(handler_id)

    # ------------------------------------------------------------------
    # Backend passthrough
    # ------------------------------------------------------------------

    def resolve_path(self, path: str | Path) -> Path:
        """Resolve a path against the config directory."""
        return ConfigLoader(self._config_dir, self._config_entry).resolve_path(path)

    def apply_css(self, path: str | Path, reset: bool = False) -> bool:
        """Load a style sheet, optionally dropping the ones applied before."""
        if reset:
            self.reset_css()
        return self.backend.apply_css(self.resolve_path(path))

    def reset_css(self) -> None:
        self.backend.reset_css()

    def add_icons(self, path: str | Path) -> None:
        self.backend.append_icon_search_path(self.resolve_path(path))

    def inspector(self) -> None:
        """Open the backend's interactive debugger."""
        self.backend.set_interactive_debugging(True)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def load_config(self) -> ShellConfig | None:
        """Load and apply the user configuration, then emit ``config-parsed``.

        A missing configuration file is fatal. Any other load error is
        logged and the shell keeps running without windows.

        Returns
        -------
        ShellConfig or None
            The applied configuration, None if it could not be loaded.
        """
        loader = ConfigLoader(self._config_dir, self._config_entry)
        config: ShellConfig | None = None
        try:
            config = loader.load()
        except ConfigNotFoundError as exc:
            error(str(exc))
            self.quit(exit_code=1)
            return None
        except ConfigLoadError as exc:
            error(str(exc))

        if config is not None and not self.apply_config(config):
            return config

        self._events.emit(Signal.CONFIG_PARSED)
        return config

    def apply_config(self, config: ShellConfig) -> bool:
        """Apply a validated configuration.

        Returns
        -------
        bool
            False if a duplicate window name stopped the shell.
        """
        self._registry.scheduler.load(config.close_window_delay)
        if config.style:
            self.apply_css(config.style)
        if config.icons:
            self.add_icons(config.icons)

        for window in config.windows:
            if self.add_window(window) is RegistryStatus.DUPLICATE_WINDOW:
                return False

        if config.on_window_toggled is not None:
            self.connect(Signal.WINDOW_TOGGLED, config.on_window_toggled)

        if config.on_config_parsed is not None:
            try:
                result = config.on_config_parsed(self)
                if inspect.iscoroutine(result):
                    self._tasks.spawn(result, name="on-config-parsed")
            except Exception as exc:
                log_handler_error("onConfigParsed", exc)

        debug(f"Applied config with {len(self._registry)} window(s)")
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> int:
        """Own the bus name, load the configuration and serve until quit.

        Returns
        -------
        int
            Process exit code.
        """
        try:
            await self.bus.own_name(self.bus_name)
        except BusNameOwnedError as exc:
            error(f"{exc}. Is another instance running?")
            return 1

        self.bus.export(self.object_path, self.bridge.exported_methods())
        info(f"Serving {self.object_path} on {self.bus_name}")

        self.load_config()
        await self._quit_event.wait()

        await self.bus.release_name()
        await self.bridge.join()
        await self._events.join()
        info(f"Shell exited with code {self._exit_code}")
        return self._exit_code

    def quit(self, exit_code: int = 0) -> None:
        """Stop the shell.

        Pending closes and running scripts are cancelled and every window
        is destroyed before :meth:`run` returns. Only the first call counts.
        """
        if self._quitting:
            return
        self._quitting = True
        self._exit_code = exit_code
        debug(f"Quitting with exit code {exit_code}")

        self._registry.scheduler.cancel_all()
        self.bridge.cancel_all()
        self._events.cancel_pending()
        self._tasks.cancel_all()
        self._registry.destroy_all()
        self._quit_event.set()

    def to_dict(self) -> dict[str, Any]:
        """Snapshot of the shell state."""
        return {
            "bus_name": self.bus_name,
            "object_path": self.object_path,
            "config_path": str(self.config_path),
            "windows": self._registry.to_dict(),
            "quitting": self._quitting,
        }
