"""Configuration system for wryshell using pydantic-settings.

Supports layered configuration:
1. Built-in defaults (lowest priority)
2. pyproject.toml [tool.wryshell] section (project-level)
3. ./wryshell.toml (project-level, explicit)
4. ~/.config/wryshell/settings.toml (user-level, overrides project)
5. $WRYSHELL_CONFIG_FILE (explicit settings file)
6. Environment variables (highest priority)

Environment variables use WRYSHELL_ prefix with nested delimiter __.
Example: WRYSHELL_LOG__LEVEL, WRYSHELL_TIMEOUT__RESPONSE

These are process settings (bus name, paths, timeouts). The user's shell
configuration, which declares windows and callbacks, is a Python module
loaded by :mod:`wryshell.loader`.
"""

from __future__ import annotations

import os
import sys
import tempfile

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .log import warn


if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib  # type: ignore[import-not-found]
    except ImportError:
        tomllib = None


DEFAULT_BUS_NAME = "io.github.wryshell"
DEFAULT_OBJECT_PATH = "/io/github/wryshell"


def _user_config_home() -> Path:
    """Return the per-user configuration directory root."""
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "~")).expanduser()
    return Path(os.environ.get("XDG_CONFIG_HOME", "~/.config")).expanduser()


def _find_config_files() -> list[Path]:
    """Find all settings files in order of precedence (lowest first)."""
    files = []

    # Project-level pyproject.toml [tool.wryshell] (lowest file priority)
    pyproject = Path("pyproject.toml")
    if pyproject.exists():
        files.append(pyproject)

    # Explicit wryshell.toml (project-level)
    wryshell_toml = Path("wryshell.toml")
    if wryshell_toml.exists():
        files.append(wryshell_toml)

    # User-level settings (overrides project settings)
    user_config = _user_config_home() / "wryshell" / "settings.toml"
    if user_config.exists():
        files.append(user_config)

    # Environment variable override for settings file (highest file priority)
    env_config = os.environ.get("WRYSHELL_CONFIG_FILE")
    if env_config:
        env_path = Path(env_config)
        if env_path.exists():
            files.append(env_path)

    return files


def _load_toml_config() -> dict[str, Any]:
    """Load and merge all TOML settings files."""
    if tomllib is None:
        return {}

    merged: dict[str, Any] = {}

    for config_file in _find_config_files():
        try:
            data = tomllib.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            warn(f"Ignoring unreadable settings file {config_file}: {exc}")
            continue

        # Handle pyproject.toml [tool.wryshell] section
        if config_file.name == "pyproject.toml":
            data = data.get("tool", {}).get("wryshell", {})

        merged = _deep_merge(merged, data)

    return merged


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``, recursing into tables."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


SECTION_TABLES = ("log", "timeout", "window")


class TomlFilesSource(PydanticBaseSettingsSource):
    """Values read from the layered settings files.

    Ranked below environment variables, so an exported ``WRYSHELL_*``
    variable always wins over a file.

    Parameters
    ----------
    settings_cls : type[BaseSettings]
        The settings class being built.
    table : str, optional
        Read only this section table. Without it the top-level keys are
        read and the section tables are left to their own classes.
    """

    def __init__(self, settings_cls: type[BaseSettings], table: str | None = None) -> None:
        super().__init__(settings_cls)
        self.table = table

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        data = _load_toml_config()
        if self.table is not None:
            section = data.get(self.table)
            return dict(section) if isinstance(section, dict) else {}
        return {key: value for key, value in data.items() if key not in SECTION_TABLES}


class SectionSettings(BaseSettings):
    """A settings section backed by one table of the settings files."""

    toml_table: ClassVar[str]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlFilesSource(settings_cls, cls.toml_table),
            file_secret_settings,
        )


def default_runtime_dir() -> Path:
    """Return the directory that holds bus sockets for this user."""
    runtime = os.environ.get("XDG_RUNTIME_DIR")
    if runtime:
        return Path(runtime) / "wryshell"
    uid = os.getuid() if hasattr(os, "getuid") else os.getpid()
    return Path(tempfile.gettempdir()) / f"wryshell-{uid}"


class LogSettings(SectionSettings):
    """Logging settings.

    Environment prefix: WRYSHELL_LOG__
    Example: WRYSHELL_LOG__LEVEL=DEBUG
    """

    toml_table: ClassVar[str] = "log"
    model_config = SettingsConfigDict(
        env_prefix="WRYSHELL_LOG__",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: str = "%(name)s - %(levelname)s - %(message)s"


class TimeoutSettings(SectionSettings):
    """Timeout settings for bus traffic.

    Script bodies themselves are never timed out.

    Environment prefix: WRYSHELL_TIMEOUT__
    Example: WRYSHELL_TIMEOUT__RESPONSE=10.0
    """

    toml_table: ClassVar[str] = "timeout"
    model_config = SettingsConfigDict(
        env_prefix="WRYSHELL_TIMEOUT__",
        extra="ignore",
    )

    connect: float = Field(default=2.0, ge=0.1, description="Bus connect timeout in seconds")
    response: float = Field(
        default=5.0, ge=0.5, description="Method reply timeout for synchronous bus calls"
    )


class WindowSettings(SectionSettings):
    """Window lifecycle settings.

    Environment prefix: WRYSHELL_WINDOW__
    Example: WRYSHELL_WINDOW__RESCHEDULE_POLICY=ignore
    """

    toml_table: ClassVar[str] = "window"
    model_config = SettingsConfigDict(
        env_prefix="WRYSHELL_WINDOW__",
        extra="ignore",
    )

    reschedule_policy: Literal["reset", "ignore"] = Field(
        default="reset",
        description=(
            "What a close request does while a delayed close is already pending: "
            "'reset' restarts the delay, 'ignore' keeps the running timer"
        ),
    )


class ShellSettings(BaseSettings):
    """Main settings aggregating all configuration sections.

    Environment prefix: WRYSHELL__

    Configuration sources (in order of precedence):
    1. Built-in defaults
    2. pyproject.toml [tool.wryshell] section
    3. ./wryshell.toml (project-level)
    4. ~/.config/wryshell/settings.toml (user-level, overrides project)
    5. $WRYSHELL_CONFIG_FILE
    6. Environment variables
    7. Keyword arguments (highest priority)

    Each section class reads its own table from the settings files, so
    the section environment variables also outrank the files.
    """

    model_config = SettingsConfigDict(
        env_prefix="WRYSHELL__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    bus_name: str = Field(default=DEFAULT_BUS_NAME, description="Bus name owned by the shell")
    object_path: str = Field(
        default=DEFAULT_OBJECT_PATH, description="Object path the shell is exported at"
    )
    config_dir: Path = Field(
        default_factory=lambda: _user_config_home() / "wryshell",
        description="Directory relative style and icon paths resolve against",
    )
    config_entry: str = Field(
        default="config.py",
        description="Configuration module, relative to config_dir unless absolute",
    )
    runtime_dir: Path = Field(
        default_factory=default_runtime_dir,
        description="Directory holding one socket per bus name",
    )

    log: LogSettings = Field(default_factory=LogSettings)
    timeout: TimeoutSettings = Field(default_factory=TimeoutSettings)
    window: WindowSettings = Field(default_factory=WindowSettings)

    _SECTIONS: ClassVar[tuple[str, ...]] = SECTION_TABLES

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlFilesSource(settings_cls),
            file_secret_settings,
        )

    @field_validator("bus_name")
    @classmethod
    def _validate_bus_name(cls, v: str) -> str:
        """Bus names become socket file names: no separators, not empty."""
        if not v or "/" in v or "\\" in v or v in (".", ".."):
            msg = f"Invalid bus name: {v!r}"
            raise ValueError(msg)
        return v

    @field_validator("object_path")
    @classmethod
    def _validate_object_path(cls, v: str) -> str:
        if not v.startswith("/"):
            msg = f"Object path must start with '/': {v!r}"
            raise ValueError(msg)
        return v

    @property
    def config_path(self) -> Path:
        """Absolute path of the configuration entry module."""
        entry = Path(self.config_entry).expanduser()
        if entry.is_absolute():
            return entry
        return self.config_dir.expanduser() / entry

    def _top_level(self) -> dict[str, str]:
        return {
            "bus_name": self.bus_name,
            "object_path": self.object_path,
            "config_dir": str(self.config_dir),
            "config_entry": self.config_entry,
            "runtime_dir": str(self.runtime_dir),
        }

    def to_toml(self) -> str:
        """Render the settings as a wryshell.toml document."""
        lines = ["# wryshell settings", "# Generated by: wryshell config --toml", ""]
        lines.extend(f'{key} = "{value}"' for key, value in self._top_level().items())
        lines.append("")

        all_data = self.model_dump(include=set(self._SECTIONS))
        for section_name in self._SECTIONS:
            lines.append(f"[{section_name}]")
            for field_name, field_value in all_data[section_name].items():
                if isinstance(field_value, bool):
                    value_str = "true" if field_value else "false"
                elif isinstance(field_value, str):
                    value_str = f'"{field_value}"'
                else:
                    value_str = str(field_value)
                lines.append(f"{field_name} = {value_str}")
            lines.append("")

        return "\n".join(lines)

    def to_env(self) -> str:
        """Render the settings as ``export`` lines for a shell profile."""
        lines = [
            "# wryshell environment variables",
            "# Generated by: wryshell config --env",
            "",
        ]
        lines.extend(
            f'export WRYSHELL__{key.upper()}="{value}"' for key, value in self._top_level().items()
        )
        lines.append("")

        all_data = self.model_dump(include=set(self._SECTIONS))
        for section_name in self._SECTIONS:
            for field_name, field_value in all_data[section_name].items():
                env_name = f"WRYSHELL_{section_name.upper()}__{field_name.upper()}"
                if isinstance(field_value, bool):
                    value_str = "true" if field_value else "false"
                else:
                    value_str = str(field_value)
                lines.append(f'export {env_name}="{value_str}"')

        return "\n".join(lines)

    def show(self) -> str:
        """Render the settings for `wryshell config --show`."""
        lines = ["wryshell settings", "=" * 60, ""]
        for field_name, field_value in self._top_level().items():
            lines.append(f"  {field_name:20} = {field_value}")

        all_data = self.model_dump(include=set(self._SECTIONS))
        for section_name in self._SECTIONS:
            lines.append(f"\n[{section_name}]")
            lines.append("-" * 40)
            for field_name, field_value in all_data[section_name].items():
                value_str = str(field_value)
                if len(value_str) > 50:
                    value_str = value_str[:47] + "..."
                lines.append(f"  {field_name:20} = {value_str}")

        return "\n".join(lines)


@lru_cache(maxsize=1)
def get_settings() -> ShellSettings:
    """Get the global settings instance (cached).

    Call clear_settings() to reload configuration.
    """
    return ShellSettings()


def clear_settings() -> None:
    """Drop the cached settings; the next get_settings() reads every source again."""
    get_settings.cache_clear()


def reload_settings() -> ShellSettings:
    """Clear the cache and read the settings again."""
    clear_settings()
    return get_settings()
