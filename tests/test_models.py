"""Tests for shared models."""

from __future__ import annotations

import pytest

from pydantic import ValidationError

from wryshell.models import (
    BusMessage,
    RegistryStatus,
    RemoteCall,
    RpcResult,
    ShellConfig,
    ToggleResult,
    WindowDeclaration,
)


class TestShellConfig:
    """Tests for the configuration descriptor model."""

    def test_camel_and_snake_case(self) -> None:
        camel = ShellConfig.from_descriptor({"closeWindowDelay": {"a": 1}})
        snake = ShellConfig.from_descriptor({"close_window_delay": {"a": 1}})
        assert camel.close_window_delay == snake.close_window_delay == {"a": 1}

    def test_known_keys(self) -> None:
        keys = ShellConfig.known_keys()
        assert {"onWindowToggled", "on_window_toggled", "style", "icons"} <= keys

    def test_existing_config_passes_through(self) -> None:
        config = ShellConfig(style="style.css")
        assert ShellConfig.from_descriptor(config) is config

    def test_non_mapping(self) -> None:
        with pytest.raises(TypeError, match="got int"):
            ShellConfig.from_descriptor(3)

    def test_callback_must_be_callable(self) -> None:
        with pytest.raises(ValidationError):
            ShellConfig.from_descriptor({"onConfigParsed": "not callable"})


class TestWindowDeclaration:
    """Tests for declared windows."""

    def test_defaults(self) -> None:
        declaration = WindowDeclaration(name="bar")
        assert declaration.visible is True
        assert declaration.title is None

    def test_rejects_unknown_fields(self) -> None:
        with pytest.raises(ValidationError):
            WindowDeclaration.model_validate({"name": "bar", "width": 10})

    def test_rejects_empty_name(self) -> None:
        with pytest.raises(ValidationError):
            WindowDeclaration(name="")


class TestRemoteCall:
    """Tests for caller addressing."""

    def test_empty_strings_are_absent(self) -> None:
        call = RemoteCall(script="1", client_bus="", client_path="")
        assert call.client_bus is None
        assert call.client_path is None
        assert not call.has_caller
        assert not call.partial_caller

    def test_full_caller(self) -> None:
        call = RemoteCall(script="1", client_bus="a.b", client_path="/client")
        assert call.has_caller
        assert not call.partial_caller

    def test_partial_caller(self) -> None:
        call = RemoteCall(script="1", client_bus="a.b")
        assert not call.has_caller
        assert call.partial_caller


class TestResults:
    """Tests for result values."""

    def test_rpc_result_exactly_one(self) -> None:
        assert RpcResult(value="2").ok
        assert not RpcResult(error="ValueError: x").ok
        with pytest.raises(ValidationError):
            RpcResult()
        with pytest.raises(ValidationError):
            RpcResult(value="2", error="x")

    def test_toggle_result(self) -> None:
        assert ToggleResult(RegistryStatus.OK, True).ok
        assert not ToggleResult(RegistryStatus.UNKNOWN_WINDOW).ok

    def test_bus_message_json(self) -> None:
        message = BusMessage(type="call", serial=3, path="/x", method="Add", args=[1, 2])
        decoded = BusMessage.model_validate_json(message.model_dump_json())
        assert decoded == message

    def test_bus_message_type(self) -> None:
        with pytest.raises(ValidationError):
            BusMessage(type="signal")
