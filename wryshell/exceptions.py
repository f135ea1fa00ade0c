"""wryshell exception hierarchy.

All wryshell-specific exceptions inherit from WryShellException, enabling
catch-all handling while supporting specific error types.
"""

from __future__ import annotations

from typing import Any


class WryShellException(Exception):
    """Base exception for all wryshell errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize wryshell exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (name, method, path, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class WindowError(WryShellException):
    """Window registry operation failed.

    The window name is kept as an attribute rather than in the context so
    that ``str()`` yields the bare diagnostic shown to bus callers.
    """

    def __init__(self, message: str, name: str | None = None, **context: Any) -> None:
        """Initialize window error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        name : str, optional
            The window name that caused the error.
        **context : Any
            Additional context.
        """
        super().__init__(message, **context)
        self.name = name


class UnknownWindow(WindowError):
    """No window is registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"There is no window named {name}", name=name)


class DuplicateWindow(WindowError):
    """A window with the same name is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"There is already a window named {name}", name=name)


class InvalidWindow(WindowError):
    """The object offered for registration is not a usable window."""


class ScriptError(WryShellException):
    """Remote script failed to compile or to run."""


class ScriptCompileError(ScriptError):
    """Script text could not be compiled.

    Reported synchronously; the script never starts.
    """

    def __init__(self, message: str, lineno: int | None = None, **context: Any) -> None:
        """Initialize compile error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        lineno : int, optional
            Line of the script where compilation failed.
        **context : Any
            Additional context.
        """
        if lineno is not None:
            context["lineno"] = lineno
        super().__init__(message, **context)
        self.lineno = lineno


class ScriptRuntimeError(ScriptError):
    """Script raised, or its promise was rejected, while running."""


class ConfigLoadError(WryShellException):
    """The user configuration could not be loaded.

    Non-fatal: the shell continues with no windows registered.
    """

    def __init__(self, message: str, path: str | None = None, **context: Any) -> None:
        """Initialize config load error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        path : str, optional
            The configuration entry path.
        **context : Any
            Additional context.
        """
        super().__init__(message, path=path, **context)
        self.path = path


class ConfigNotFoundError(ConfigLoadError):
    """The configuration entry file does not exist.

    Fatal: the shell quits.
    """


class IPCError(WryShellException):
    """Bus communication failed.

    Raised when a bus name cannot be reached, a frame cannot be decoded,
    or the remote method reported an error.
    """

    def __init__(
        self,
        message: str,
        method: str | None = None,
        bus_name: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize IPC error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        method : str, optional
            The bus method involved.
        bus_name : str, optional
            The bus name involved.
        **context : Any
            Additional context.
        """
        super().__init__(message, method=method, bus_name=bus_name, **context)
        self.method = method
        self.bus_name = bus_name


class IPCTimeoutError(IPCError):
    """Bus response timeout."""

    def __init__(
        self,
        message: str,
        timeout: float,
        method: str | None = None,
        bus_name: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize timeout error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        timeout : float
            The timeout value in seconds.
        method : str, optional
            The bus method that timed out.
        bus_name : str, optional
            The bus name involved.
        **context : Any
            Additional context.
        """
        super().__init__(message, method=method, bus_name=bus_name, timeout=timeout, **context)
        self.timeout = timeout


class BusNameOwnedError(IPCError):
    """Another live process already owns the bus name."""
