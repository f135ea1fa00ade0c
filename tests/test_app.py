"""Tests for the Shell application context."""

from __future__ import annotations

import asyncio
import logging

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from tests.constants import CLOSE_DELAY, DEFAULT_TIMEOUT, TIMER_MARGIN
from tests.helpers import SignalRecorder, wait_for
from wryshell.app import Shell
from wryshell.backend import HeadlessBackend, HeadlessWindow
from wryshell.config import ShellSettings
from wryshell.models import RegistryStatus, Signal


if TYPE_CHECKING:
    from collections.abc import Callable


class TestWindows:
    """Tests for window management through the shell."""

    def test_add_handle(self, shell: Shell) -> None:
        window = HeadlessWindow("bar")
        assert shell.add_window(window) is RegistryStatus.OK
        assert shell.windows == [window]
        assert shell.get_window("bar") is window

    def test_add_declaration(self, shell: Shell, backend: HeadlessBackend) -> None:
        """Declarations are materialised by the backend."""
        assert shell.add_window({"name": "launcher", "visible": False, "title": "Launcher"}) is RegistryStatus.OK
        window = shell.get_window("launcher")
        assert window is backend.windows[0]
        assert window.visible is False
        assert backend.windows[0].title == "Launcher"

    def test_invalid_declaration(self, shell: Shell, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.ERROR, logger="wryshell"):
            status = shell.add_window({"name": "", "colour": "red"})
        assert status is RegistryStatus.INVALID_WINDOW
        assert "Invalid window declaration" in caplog.text
        assert shell.windows == []

    def test_invalid_object(self, shell: Shell) -> None:
        assert shell.add_window(42) is RegistryStatus.INVALID_WINDOW
        assert not shell.is_quitting

    def test_duplicate_quits(self, shell: Shell) -> None:
        """The first add succeeds; a duplicate name shuts the shell down."""
        first = HeadlessWindow("bar")
        assert shell.add_window(first) is RegistryStatus.OK
        assert shell.add_window(HeadlessWindow("bar")) is RegistryStatus.DUPLICATE_WINDOW
        assert shell.is_quitting
        assert shell.exit_code == 1
        assert first.destroyed
        assert shell.windows == []

    def test_remove_by_handle(self, shell: Shell) -> None:
        window = HeadlessWindow("bar")
        shell.add_window(window)
        assert shell.remove_window(window) is RegistryStatus.OK
        assert shell.windows == []

    def test_open_close_toggle(self, shell: Shell, recorder: SignalRecorder) -> None:
        shell.add_window(HeadlessWindow("bar"))
        recorder.attach(shell.events)
        shell.close_window("bar")
        shell.open_window("bar")
        assert shell.toggle_window("bar").visible is False
        assert recorder.toggled == [("bar", False), ("bar", True), ("bar", False)]

    def test_connect_disconnect(self, shell: Shell) -> None:
        calls: list[tuple[str, bool]] = []
        handler_id = shell.connect("window-toggled", lambda name, visible: calls.append((name, visible)))
        shell.add_window(HeadlessWindow("bar"))
        shell.toggle_window("bar")
        assert shell.disconnect(handler_id) is True
        shell.toggle_window("bar")
        assert calls == [("bar", False)]


class TestBackendPassthrough:
    """Style, icons and inspector."""

    def test_apply_css_relative_to_config_dir(
        self, shell: Shell, backend: HeadlessBackend, config_dir: Path
    ) -> None:
        (config_dir / "style.css").write_text("* {}", encoding="utf-8")
        assert shell.apply_css("style.css") is True
        assert backend.css == [config_dir / "style.css"]

    def test_apply_css_reset(self, shell: Shell, backend: HeadlessBackend, config_dir: Path) -> None:
        for name in ("a.css", "b.css"):
            (config_dir / name).write_text("* {}", encoding="utf-8")
        shell.apply_css("a.css")
        shell.apply_css("b.css", reset=True)
        assert backend.css == [config_dir / "b.css"]

    def test_missing_css(self, shell: Shell, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.ERROR, logger="wryshell"):
            assert shell.apply_css("missing.css") is False
        assert "CSS ERROR" in caplog.text

    def test_add_icons(self, shell: Shell, backend: HeadlessBackend, config_dir: Path) -> None:
        shell.add_icons("icons")
        assert backend.icon_paths == [config_dir / "icons"]

    def test_inspector(self, shell: Shell, backend: HeadlessBackend) -> None:
        shell.inspector()
        assert backend.interactive_debugging is True


class TestLoadConfig:
    """Tests for applying the configuration module."""

    def test_full_config(
        self,
        shell: Shell,
        backend: HeadlessBackend,
        config_dir: Path,
        write_config: Callable[[str], Path],
    ) -> None:
        (config_dir / "style.css").write_text("* {}", encoding="utf-8")
        write_config(
            """
            from wryshell import HeadlessWindow

            order = []

            config = {
                "style": "style.css",
                "icons": "icons",
                "windows": [HeadlessWindow("bar"), {"name": "launcher"}],
                "closeWindowDelay": {"launcher": 80},
                "onWindowToggled": lambda name, visible: order.append(("toggled", name, visible)),
                "onConfigParsed": lambda app: order.append(("parsed", len(app.windows))),
            }
            """
        )
        recorder = SignalRecorder()
        shell.connect(Signal.CONFIG_PARSED, lambda: recorder.on_parsed())

        config = shell.load_config()

        assert config is not None
        assert [window.name for window in shell.windows] == ["bar", "launcher"]
        assert backend.css == [config_dir / "style.css"]
        assert backend.icon_paths == [config_dir / "icons"]
        assert shell.registry.scheduler.delay_for("launcher") == 80
        assert recorder.parsed == 1

        import wryshell_user_config as module  # noqa: PLC0415

        assert module.order == [("parsed", 2)]
        shell.toggle_window("bar")
        assert module.order[-1] == ("toggled", "bar", False)

    def test_on_config_parsed_runs_before_signal(
        self, shell: Shell, write_config: Callable[[str], Path]
    ) -> None:
        write_config(
            """
            calls = []
            config = {"onConfigParsed": lambda app: calls.append("callback")}
            """
        )
        seen: list[str] = []

        def on_parsed() -> None:
            import wryshell_user_config as module  # noqa: PLC0415

            seen.extend(module.calls)
            seen.append("signal")

        shell.connect(Signal.CONFIG_PARSED, on_parsed)
        shell.load_config()
        assert seen == ["callback", "signal"]

    def test_failing_on_config_parsed_is_logged(
        self, shell: Shell, write_config: Callable[[str], Path], caplog: pytest.LogCaptureFixture
    ) -> None:
        write_config("config = {'onConfigParsed': lambda app: 1 / 0}\n")
        recorder = SignalRecorder().attach(shell.events)
        with caplog.at_level(logging.ERROR, logger="wryshell"):
            shell.load_config()
        assert "ZeroDivisionError" in caplog.text or "division by zero" in caplog.text
        assert recorder.parsed == 1

    def test_missing_config_attribute(
        self, shell: Shell, write_config: Callable[[str], Path], recorder: SignalRecorder
    ) -> None:
        """config-parsed is emitted exactly once and no window is registered."""
        write_config("windows = []\n")
        recorder.attach(shell.events)
        assert shell.load_config() is None
        assert recorder.parsed == 1
        assert shell.windows == []
        assert not shell.is_quitting

    def test_missing_file_quits(self, shell: Shell, recorder: SignalRecorder) -> None:
        recorder.attach(shell.events)
        assert shell.load_config() is None
        assert shell.is_quitting
        assert shell.exit_code == 1
        assert recorder.parsed == 0

    def test_duplicate_in_config_stops_loading(
        self,
        shell: Shell,
        backend: HeadlessBackend,
        write_config: Callable[[str], Path],
        recorder: SignalRecorder,
    ) -> None:
        write_config("config = {'windows': [{'name': 'a'}, {'name': 'a'}, {'name': 'b'}]}\n")
        recorder.attach(shell.events)
        shell.load_config()
        assert shell.is_quitting
        assert shell.exit_code == 1
        assert [window.name for window in backend.windows] == ["a", "a"]
        assert recorder.parsed == 0

    def test_config_path(self, settings: ShellSettings, config_dir: Path, tmp_path: Path) -> None:
        shell = Shell(settings=settings)
        assert shell.config_path == config_dir / "config.py"
        shell.setup(config_dir=tmp_path, config_entry="other.py")
        assert shell.config_path == tmp_path / "other.py"
        assert shell.config_dir == tmp_path


class TestQuit:
    """Tests for shutdown."""

    @pytest.mark.asyncio
    async def test_quit_cancels_pending_close(self, shell: Shell) -> None:
        shell.registry.scheduler.load({"bar": 80})
        window = HeadlessWindow("bar")
        shell.add_window(window)
        shell.close_window("bar")

        shell.quit()

        assert shell.registry.scheduler.pending_names() == []
        assert window.destroyed
        await asyncio.sleep(CLOSE_DELAY + TIMER_MARGIN)
        assert shell.windows == []

    def test_only_first_quit_counts(self, shell: Shell) -> None:
        shell.quit(exit_code=1)
        shell.quit(exit_code=0)
        assert shell.exit_code == 1

    def test_to_dict(self, shell: Shell) -> None:
        shell.add_window(HeadlessWindow("bar"))
        state = shell.to_dict()
        assert state["bus_name"] == "test.wryshell"
        assert state["windows"] == {"bar": {"visible": True, "pending_close": False}}
        assert state["quitting"] is False


class TestRun:
    """Tests for the serving lifecycle."""

    @pytest.mark.asyncio
    async def test_run_serves_until_quit(self, running_shell: Shell) -> None:
        address = running_shell.bus.address("test.wryshell")
        assert address.exists()
        assert [window.name for window in running_shell.windows] == ["bar", "launcher"]

        running_shell.quit()
        await wait_for(lambda: not running_shell.bus.is_serving)
        assert not address.exists()

    @pytest.mark.asyncio
    async def test_missing_config_exits_with_error(self, shell: Shell) -> None:
        exit_code = await asyncio.wait_for(shell.run(), DEFAULT_TIMEOUT)
        assert exit_code == 1
        assert not shell.bus.address("test.wryshell").exists()

    @pytest.mark.asyncio
    async def test_second_instance_refused(
        self, running_shell: Shell, settings: ShellSettings, caplog: pytest.LogCaptureFixture
    ) -> None:
        second = Shell(settings=settings)
        with caplog.at_level(logging.ERROR, logger="wryshell"):
            exit_code = await asyncio.wait_for(second.run(), DEFAULT_TIMEOUT)
        assert exit_code == 1
        assert "already owned" in caplog.text
        assert running_shell.bus.is_serving
