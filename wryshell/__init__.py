"""wryshell - Desktop shell controller with a remote control bus.

This package keeps a set of named windows declared by a Python
configuration module, publishes their visibility as in-process signals and
lets other processes toggle windows or run code in the shell over a local
session bus.
"""

from .app import Shell
from .backend import HeadlessBackend, HeadlessWindow, WindowBackend, WindowHandle
from .bridge import RemoteExecutionBridge
from .bus import SessionBus
from .client import RemoteClient
from .config import (
    LogSettings,
    ShellSettings,
    TimeoutSettings,
    WindowSettings,
    get_settings,
)
from .events import EventBus
from .exceptions import (
    BusNameOwnedError,
    ConfigLoadError,
    ConfigNotFoundError,
    DuplicateWindow,
    InvalidWindow,
    IPCError,
    IPCTimeoutError,
    ScriptCompileError,
    ScriptError,
    ScriptRuntimeError,
    UnknownWindow,
    WindowError,
    WryShellException,
)
from .models import (
    RegistryStatus,
    ReschedulePolicy,
    ShellConfig,
    Signal,
    ToggleResult,
    WindowDeclaration,
)
from .scripts import PythonScriptExecutor, ScriptExecutor
from .window_manager import CloseDelayScheduler, WindowRegistry


__version__ = "0.1.0"

__all__ = [
    "BusNameOwnedError",
    "CloseDelayScheduler",
    "ConfigLoadError",
    "ConfigNotFoundError",
    "DuplicateWindow",
    "EventBus",
    "HeadlessBackend",
    "HeadlessWindow",
    "IPCError",
    "IPCTimeoutError",
    "InvalidWindow",
    "LogSettings",
    "PythonScriptExecutor",
    "RegistryStatus",
    "RemoteClient",
    "RemoteExecutionBridge",
    "ReschedulePolicy",
    "ScriptCompileError",
    "ScriptError",
    "ScriptExecutor",
    "ScriptRuntimeError",
    "SessionBus",
    "Shell",
    "ShellConfig",
    "ShellSettings",
    "Signal",
    "TimeoutSettings",
    "ToggleResult",
    "UnknownWindow",
    "WindowBackend",
    "WindowDeclaration",
    "WindowError",
    "WindowHandle",
    "WindowRegistry",
    "WindowSettings",
    "WryShellException",
    "__version__",
    "get_settings",
]
