"""Pydantic models and small value types shared across wryshell."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .log import warn


class Signal(str, Enum):
    """In-process signals published on the event bus."""

    WINDOW_TOGGLED = "window-toggled"
    CONFIG_PARSED = "config-parsed"


class RegistryStatus(str, Enum):
    """Outcome of a window registry operation."""

    OK = "ok"
    UNKNOWN_WINDOW = "unknown_window"
    INVALID_WINDOW = "invalid_window"
    DUPLICATE_WINDOW = "duplicate_window"


class ReschedulePolicy(str, Enum):
    """What a close request does while a delayed close is already pending."""

    RESET = "reset"
    IGNORE = "ignore"


@dataclass(frozen=True)
class ToggleResult:
    """Result of toggling a window.

    Attributes
    ----------
    status : RegistryStatus
        ``OK`` or ``UNKNOWN_WINDOW``.
    visible : bool or None
        Logical visibility after the toggle, None when the window is unknown.
    """

    status: RegistryStatus
    visible: bool | None = None

    @property
    def ok(self) -> bool:
        return self.status is RegistryStatus.OK


class WindowDeclaration(BaseModel):
    """A window declared by name in the shell configuration.

    The backend turns declarations into window handles.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    title: str | None = None
    visible: bool = True


# Legacy descriptor fields and where their settings live now.
DEPRECATED_FIELDS: dict[str, str] = {
    "notificationPopupTimeout": "Notifications.popupTimeout",
    "notificationForceTimeout": "Notifications.forceTimeout",
    "cacheNotificationActions": "Notifications.cacheActions",
    "cacheCoverArt": "Mpris.cacheCoverArt",
    "maxStreamVolume": "Audio.maxStreamVolume",
}


class ShellConfig(BaseModel):
    """Declarative descriptor exported by the user's configuration module.

    Field names are snake_case; the camelCase spellings
    (``closeWindowDelay``, ``onWindowToggled``...) are accepted as aliases.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore",
    )

    windows: list[Any] = Field(default_factory=list)
    style: str | None = None
    icons: str | None = None
    on_window_toggled: Callable[..., Any] | None = None
    on_config_parsed: Callable[..., Any] | None = None
    close_window_delay: dict[str, int] = Field(default_factory=dict)

    @field_validator("close_window_delay")
    @classmethod
    def _validate_delays(cls, v: dict[str, int]) -> dict[str, int]:
        negative = sorted(name for name, delay in v.items() if delay < 0)
        if negative:
            msg = f"close_window_delay must be non-negative, got negative delay for: {', '.join(negative)}"
            raise ValueError(msg)
        return v

    @classmethod
    def known_keys(cls) -> set[str]:
        """All accepted field spellings, snake_case and camelCase."""
        keys = set(cls.model_fields)
        keys.update(to_camel(name) for name in cls.model_fields)
        return keys

    @classmethod
    def from_descriptor(cls, descriptor: Any) -> ShellConfig:
        """Build a config from a mapping or an existing ShellConfig.

        Legacy and unknown keys are reported and dropped.

        Parameters
        ----------
        descriptor : Mapping or ShellConfig
            The object exported by the configuration module.

        Returns
        -------
        ShellConfig
            The validated config.

        Raises
        ------
        TypeError
            If the descriptor is neither a mapping nor a ShellConfig.
        pydantic.ValidationError
            If a known field has an invalid value.
        """
        if isinstance(descriptor, ShellConfig):
            return descriptor
        if not isinstance(descriptor, Mapping):
            msg = f"config must be a mapping or ShellConfig, got {type(descriptor).__name__}"
            raise TypeError(msg)

        known = cls.known_keys()
        accepted: dict[str, Any] = {}
        for key, value in descriptor.items():
            if key in known:
                accepted[key] = value
                continue
            replacement = DEPRECATED_FIELDS.get(key) or DEPRECATED_FIELDS.get(to_camel(str(key)))
            if replacement:
                warn(f"{key} config option has been removed: use {replacement} instead")
            else:
                warn(f"Unknown config option '{key}' ignored")
        return cls.model_validate(accepted)


class RemoteCall(BaseModel):
    """A script submitted over the bus, with the optional caller address.

    Empty strings are treated as absent, matching how bus clients pass
    optional string arguments.
    """

    script: str
    client_bus: str | None = None
    client_path: str | None = None

    @field_validator("client_bus", "client_path", mode="before")
    @classmethod
    def _empty_is_absent(cls, v: Any) -> Any:
        return v or None

    @property
    def has_caller(self) -> bool:
        """True when both caller fields are present and replies go over the bus."""
        return self.client_bus is not None and self.client_path is not None

    @property
    def partial_caller(self) -> bool:
        """True when exactly one of the caller fields is present."""
        return (self.client_bus is None) != (self.client_path is None)


class RpcResult(BaseModel):
    """Outcome of one remote script: a value or an error, never both."""

    value: str | None = None
    error: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> RpcResult:
        if (self.value is None) == (self.error is None):
            msg = "RpcResult needs exactly one of value or error"
            raise ValueError(msg)
        return self

    @property
    def ok(self) -> bool:
        return self.error is None


class BusMessage(BaseModel):
    """A single JSON frame on the session bus."""

    type: Literal["call", "return", "error"]
    serial: int = 0
    path: str = "/"
    method: str = ""
    args: list[Any] = Field(default_factory=list)
    no_reply: bool = False
    result: Any = None
    error: str | None = None
