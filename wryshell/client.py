"""Client for a running shell instance.

Script requests register a short-lived client object on the session bus
and pass its address along, so the shell can stream ``Print`` output
and deliver the final ``Return`` or ``Error``.
"""

from __future__ import annotations

import asyncio
import uuid

from collections.abc import Callable
from pathlib import Path
from typing import Any

from .bus import SessionBus
from .config import ShellSettings
from .exceptions import ScriptError
from .log import debug
from .models import RpcResult


CLIENT_PATH = "/client"


class RemoteClient:
    """Talks to the shell that owns a bus name.

    Parameters
    ----------
    bus_name : str, optional
        Bus name of the shell. Defaults to the configured one.
    object_path : str, optional
        Object path of the shell. Defaults to the configured one.
    bus : SessionBus, optional
        Bus to connect through. Built from the settings if omitted.
    settings : ShellSettings, optional
        Process settings. If None, loads from env/files.
    on_print : Callable, optional
        Receives every line a script prints. Defaults to :func:`print`.
    """

    def __init__(
        self,
        bus_name: str | None = None,
        object_path: str | None = None,
        bus: SessionBus | None = None,
        settings: ShellSettings | None = None,
        on_print: Callable[[str], Any] | None = None,
    ) -> None:
        settings = settings or ShellSettings()
        self.bus_name = bus_name or settings.bus_name
        self.object_path = object_path or settings.object_path
        self.bus = bus or SessionBus(
            runtime_dir=settings.runtime_dir,
            connect_timeout=settings.timeout.connect,
            response_timeout=settings.timeout.response,
        )
        self.on_print = on_print or print

    async def _call(self, method: str, *args: Any) -> Any:
        return await self.bus.call(self.bus_name, self.object_path, method, *args)

    async def _run_script(self, method: str, payload: str, timeout: float | None) -> str:
        """Invoke a script method and wait for its reply lane.

        Raises
        ------
        ScriptError
            If the script failed to compile or run.
        IPCError
            If the shell is unreachable.
        asyncio.TimeoutError
            If ``timeout`` elapsed before the reply.
        """
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[RpcResult] = loop.create_future()

        def settle(result: RpcResult) -> None:
            if not outcome.done():
                outcome.set_result(result)

        client_name = f"wryshell.client.{uuid.uuid4().hex}"
        endpoint = SessionBus(
            runtime_dir=self.bus.runtime_dir,
            connect_timeout=self.bus.connect_timeout,
            response_timeout=self.bus.response_timeout,
        )
        endpoint.export(
            CLIENT_PATH,
            {
                "Print": lambda text: self.on_print(text),
                "Return": lambda value: settle(RpcResult(value=value)),
                "Error": lambda message: settle(RpcResult(error=message)),
            },
        )
        await endpoint.own_name(client_name)
        debug(f"Client endpoint {client_name} waiting for {method}")
        try:
            await self._call(method, payload, client_name, CLIENT_PATH)
            result = await asyncio.wait_for(outcome, timeout)
        finally:
            await endpoint.release_name()

        if result.error is not None:
            raise ScriptError(result.error)
        return result.value or ""

    async def run_js(self, script: str, timeout: float | None = None) -> str:
        """Run a script in the shell and return the string form of its value."""
        return await self._run_script("RunJs", script, timeout)

    async def run_file(self, path: str | Path, timeout: float | None = None) -> str:
        """Run a script file; the path is resolved on the client side.

        A file the shell cannot read never gets a reply, so pass a
        ``timeout`` unless waiting forever is acceptable.
        """
        return await self._run_script("RunFile", str(Path(path).resolve()), timeout)

    async def run_promise(self, script: str, timeout: float | None = None) -> str:
        """Run a deprecated resolve/reject script."""
        return await self._run_script("RunPromise", script, timeout)

    async def toggle_window(self, name: str) -> str:
        return await self._call("ToggleWindow", name)

    async def inspector(self) -> None:
        await self._call("Inspector")

    async def quit(self) -> None:
        await self._call("Quit")
