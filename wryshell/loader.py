"""Loading of the user's shell configuration module.

The configuration is a Python file (``config.py`` in the config directory
by default) whose module-level ``config`` is either a mapping or a
:class:`~wryshell.models.ShellConfig`::

    from wryshell import HeadlessWindow

    config = {
        "style": "style.css",
        "windows": [HeadlessWindow("bar"), {"name": "launcher", "visible": False}],
        "closeWindowDelay": {"launcher": 300},
    }

The config directory is put on ``sys.path`` so the module can import its
siblings, also lazily from callbacks. It stays there until a config from
another directory is loaded, which replaces the entry.
"""

from __future__ import annotations

import importlib.util
import sys

from pathlib import Path
from types import ModuleType
from typing import ClassVar

from pydantic import ValidationError

from .exceptions import ConfigLoadError, ConfigNotFoundError
from .log import debug
from .models import ShellConfig
from .scripts import describe_exception


MODULE_NAME = "wryshell_user_config"


class ConfigLoader:
    """Imports the configuration module and validates its descriptor.

    Parameters
    ----------
    config_dir : Path
        Base directory for the entry module and for relative asset paths.
    entry : str or Path, optional
        The configuration module, relative to ``config_dir`` unless absolute.
    """

    # sys.path entry added by the last load, if the directory was not there already
    _added_path: ClassVar[str | None] = None

    def __init__(self, config_dir: str | Path, entry: str | Path = "config.py") -> None:
        self.config_dir = Path(config_dir).expanduser()
        entry_path = Path(entry).expanduser()
        self.path = entry_path if entry_path.is_absolute() else self.config_dir / entry_path

    def resolve_path(self, value: str | Path) -> Path:
        """Resolve a descriptor path against the config directory."""
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.config_dir / path

    def _use_sys_path(self) -> None:
        entry = str(self.config_dir)
        previous = ConfigLoader._added_path
        if previous == entry and entry in sys.path:
            return
        if previous is not None and previous in sys.path:
            sys.path.remove(previous)
        ConfigLoader._added_path = None
        if entry not in sys.path:
            sys.path.insert(0, entry)
            ConfigLoader._added_path = entry

    def load_module(self) -> ModuleType:
        """Import the configuration module.

        Raises
        ------
        ConfigNotFoundError
            If the entry file does not exist.
        ConfigLoadError
            If the module cannot be imported.
        """
        if not self.path.is_file():
            raise ConfigNotFoundError(f"Config file not found: {self.path}", path=str(self.path))

        spec = importlib.util.spec_from_file_location(MODULE_NAME, self.path)
        if spec is None or spec.loader is None:
            raise ConfigLoadError(f"Cannot import {self.path}", path=str(self.path))

        self._use_sys_path()

        module = importlib.util.module_from_spec(spec)
        sys.modules[MODULE_NAME] = module
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            sys.modules.pop(MODULE_NAME, None)
            raise ConfigLoadError(
                f"Error while importing config: {describe_exception(exc)}", path=str(self.path)
            ) from exc
        debug(f"Imported config module {self.path}")
        return module

    def load(self) -> ShellConfig:
        """Import the module and validate its ``config`` descriptor.

        Raises
        ------
        ConfigNotFoundError
            If the entry file does not exist.
        ConfigLoadError
            If the module fails to import, has no ``config`` or the
            descriptor is invalid.
        """
        module = self.load_module()
        if not hasattr(module, "config"):
            raise ConfigLoadError(
                "Config module does not define a 'config' object", path=str(self.path)
            )
        try:
            return ShellConfig.from_descriptor(module.config)
        except (TypeError, ValidationError) as exc:
            raise ConfigLoadError(f"Invalid config: {exc}", path=str(self.path)) from exc
