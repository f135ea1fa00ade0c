"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
import textwrap

from pathlib import Path
from typing import TYPE_CHECKING

import pytest
import pytest_asyncio

from tests.constants import BUS_TIMEOUT, DEFAULT_TIMEOUT
from tests.helpers import SignalRecorder, wait_for
from wryshell.app import Shell
from wryshell.backend import HeadlessBackend
from wryshell.config import ShellSettings, clear_settings
from wryshell.events import EventBus


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable, Generator


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Keep settings files and WRYSHELL_* variables of the host out of tests."""
    for key in list(os.environ):
        if key.startswith("WRYSHELL"):
            monkeypatch.delenv(key)
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    clear_settings()
    yield
    clear_settings()


@pytest.fixture
def runtime_dir() -> Generator[Path, None, None]:
    """Short runtime directory; Unix socket paths are limited to ~100 bytes."""
    path = Path(tempfile.mkdtemp(prefix="ws"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    path = tmp_path / "config"
    path.mkdir()
    return path


@pytest.fixture
def settings(runtime_dir: Path, config_dir: Path) -> ShellSettings:
    """Settings pointing at the test runtime and config directories."""
    return ShellSettings(
        bus_name="test.wryshell",
        runtime_dir=runtime_dir,
        config_dir=config_dir,
        timeout={"connect": BUS_TIMEOUT, "response": BUS_TIMEOUT},
    )


@pytest.fixture
def write_config(config_dir: Path) -> Callable[[str], Path]:
    """Write a configuration module into the config directory."""

    def _write(source: str, name: str = "config.py") -> Path:
        path = config_dir / name
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def backend() -> HeadlessBackend:
    return HeadlessBackend()


@pytest.fixture
def shell(settings: ShellSettings, backend: HeadlessBackend) -> Shell:
    return Shell(backend=backend, settings=settings)


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder() -> SignalRecorder:
    return SignalRecorder()


DEFAULT_CONFIG = """
from wryshell import HeadlessWindow

config = {
    "windows": [HeadlessWindow("bar"), {"name": "launcher", "visible": False}],
}
"""


@pytest.fixture
def shell_config(write_config: Callable[[str], Path]) -> Path:
    """Configuration module used by running_shell; override to change it."""
    return write_config(DEFAULT_CONFIG)


@pytest_asyncio.fixture
async def running_shell(shell: Shell, shell_config: Path) -> AsyncGenerator[Shell, None]:
    """A shell serving on the test bus with shell_config loaded."""
    task = asyncio.create_task(shell.run())
    await wait_for(lambda: shell.bus.is_serving or task.done())
    yield shell
    shell.quit()
    await asyncio.wait_for(task, DEFAULT_TIMEOUT)
