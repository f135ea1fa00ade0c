"""Session bus: named endpoints for local inter-process calls.

Every bus name is a Unix-domain socket in the user's runtime directory,
carrying WebSocket frames. A process owns a name by serving on its socket
and exports objects at object paths; peers call methods on those objects
with JSON frames (:class:`~wryshell.models.BusMessage`).

Frames on one connection are handled in order, so a caller that sends
several one-way notifications over the same connection sees them arrive
in the order they were sent.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import itertools
import os

from collections.abc import AsyncIterator, Callable, Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from websockets.asyncio.client import ClientConnection, unix_connect
from websockets.asyncio.server import Server, ServerConnection, unix_serve
from websockets.exceptions import ConnectionClosed, WebSocketException

from .config import default_runtime_dir
from .exceptions import BusNameOwnedError, IPCError, IPCTimeoutError
from .log import debug, exception, warn
from .models import BusMessage
from .scripts import describe_exception


MethodTable = Mapping[str, Callable[..., Any]]


class BusPeer:
    """A client connection to one bus name."""

    def __init__(self, bus_name: str, connection: ClientConnection, timeout: float) -> None:
        self.bus_name = bus_name
        self._connection = connection
        self._timeout = timeout
        self._serials = itertools.count(1)

    async def _send(self, message: BusMessage) -> None:
        try:
            await self._connection.send(message.model_dump_json())
        except ConnectionClosed as exc:
            raise IPCError(
                f"Connection to {self.bus_name} closed", method=message.method, bus_name=self.bus_name
            ) from exc

    async def call(self, path: str, method: str, *args: Any, timeout: float | None = None) -> Any:
        """Call a method and wait for its reply.

        Raises
        ------
        IPCError
            If the remote method failed or the connection dropped.
        IPCTimeoutError
            If no reply arrived within the timeout.
        """
        serial = next(self._serials)
        await self._send(BusMessage(type="call", serial=serial, path=path, method=method, args=list(args)))
        limit = self._timeout if timeout is None else timeout
        try:
            reply = await asyncio.wait_for(self._wait_reply(serial, method), limit)
        except asyncio.TimeoutError as exc:
            raise IPCTimeoutError(
                f"No reply to {method}", timeout=limit, method=method, bus_name=self.bus_name
            ) from exc
        if reply.type == "error":
            raise IPCError(reply.error or "Remote error", method=method, bus_name=self.bus_name)
        return reply.result

    async def _wait_reply(self, serial: int, method: str) -> BusMessage:
        while True:
            try:
                raw = await self._connection.recv()
            except ConnectionClosed as exc:
                raise IPCError(
                    f"Connection to {self.bus_name} closed before reply",
                    method=method,
                    bus_name=self.bus_name,
                ) from exc
            try:
                reply = BusMessage.model_validate_json(raw)
            except ValidationError:
                warn(f"Discarding malformed frame from {self.bus_name}")
                continue
            if reply.serial == serial:
                return reply

    async def notify(self, path: str, method: str, *args: Any) -> None:
        """Send a one-way call; the remote side does not reply."""
        await self._send(
            BusMessage(type="call", path=path, method=method, args=list(args), no_reply=True)
        )


class SessionBus:
    """Owns at most one bus name and connects to others.

    Parameters
    ----------
    runtime_dir : Path, optional
        Directory holding the ``bus/`` socket directory.
    connect_timeout : float, optional
        Seconds to wait for a connection to open.
    response_timeout : float, optional
        Default seconds to wait for a method reply.
    """

    def __init__(
        self,
        runtime_dir: Path | None = None,
        connect_timeout: float = 2.0,
        response_timeout: float = 5.0,
    ) -> None:
        self.runtime_dir = Path(runtime_dir) if runtime_dir is not None else default_runtime_dir()
        self.connect_timeout = connect_timeout
        self.response_timeout = response_timeout
        self.name: str | None = None
        self._server: Server | None = None
        self._objects: dict[str, MethodTable] = {}

    def address(self, bus_name: str) -> Path:
        """Socket path of a bus name."""
        return self.runtime_dir / "bus" / bus_name

    @property
    def is_serving(self) -> bool:
        return self._server is not None

    # ------------------------------------------------------------------
    # Serving side
    # ------------------------------------------------------------------

    def export(self, object_path: str, methods: MethodTable) -> None:
        """Make methods callable at an object path."""
        self._objects[object_path] = dict(methods)
        debug(f"Exported {sorted(methods)} at {object_path}")

    def unexport(self, object_path: str) -> bool:
        return self._objects.pop(object_path, None) is not None

    async def own_name(self, bus_name: str) -> None:
        """Start serving on a bus name.

        A socket file left behind by a dead process is replaced.

        Raises
        ------
        BusNameOwnedError
            If a live process already serves the name.
        """
        address = self.address(bus_name)
        address.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        if address.exists():
            if await self.name_has_owner(bus_name):
                raise BusNameOwnedError(f"Bus name {bus_name} is already owned", bus_name=bus_name)
            debug(f"Removing stale socket {address}")
            address.unlink(missing_ok=True)

        self._server = await unix_serve(self._serve, path=str(address))
        with contextlib.suppress(OSError):
            os.chmod(address, 0o600)
        self.name = bus_name
        debug(f"Owning bus name {bus_name} at {address}")

    async def release_name(self) -> None:
        """Stop serving and remove the socket."""
        server = self._server
        if server is None:
            return
        server.close()
        await server.wait_closed()
        if self.name is not None:
            self.address(self.name).unlink(missing_ok=True)
            debug(f"Released bus name {self.name}")
        self._server = None
        self.name = None

    async def _serve(self, connection: ServerConnection) -> None:
        try:
            async for raw in connection:
                reply = await self._handle_frame(raw)
                if reply is not None:
                    await connection.send(reply.model_dump_json())
        except ConnectionClosed:
            debug("Bus peer disconnected")

    async def _handle_frame(self, raw: str | bytes) -> BusMessage | None:
        try:
            message = BusMessage.model_validate_json(raw)
        except ValidationError as exc:
            warn(f"Rejecting malformed bus frame: {exc}")
            return BusMessage(type="error", error="Malformed frame")

        if message.type != "call":
            warn(f"Ignoring unexpected '{message.type}' frame")
            return None

        try:
            result = await self._invoke(message)
        except Exception as exc:
            if not isinstance(exc, IPCError):
                exception(f"Bus method {message.method} failed")
            if message.no_reply:
                return None
            return BusMessage(type="error", serial=message.serial, error=describe_exception(exc))

        if message.no_reply:
            return None
        return BusMessage(type="return", serial=message.serial, result=result)

    async def _invoke(self, message: BusMessage) -> Any:
        methods = self._objects.get(message.path)
        if methods is None:
            raise IPCError(f"No object at path {message.path}", method=message.method)
        method = methods.get(message.method)
        if method is None:
            raise IPCError(f"No method {message.method} at {message.path}", method=message.method)

        debug(f"[BUS] {message.path}.{message.method}({len(message.args)} args)")
        result = method(*message.args)
        if inspect.isawaitable(result):
            result = await result
        return result

    # ------------------------------------------------------------------
    # Calling side
    # ------------------------------------------------------------------

    async def name_has_owner(self, bus_name: str) -> bool:
        """Whether a live process serves a bus name."""
        try:
            async with self.connect(bus_name):
                return True
        except IPCError:
            return False

    @contextlib.asynccontextmanager
    async def connect(self, bus_name: str) -> AsyncIterator[BusPeer]:
        """Open a connection to a bus name.

        Raises
        ------
        IPCError
            If nothing serves the name.
        """
        address = self.address(bus_name)
        try:
            connection = await unix_connect(path=str(address), open_timeout=self.connect_timeout)
        except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
            raise IPCError(
                f"Unable to reach {bus_name}: {describe_exception(exc)}", bus_name=bus_name
            ) from exc
        try:
            yield BusPeer(bus_name, connection, self.response_timeout)
        finally:
            await connection.close()

    async def call(
        self, bus_name: str, object_path: str, method: str, *args: Any, timeout: float | None = None
    ) -> Any:
        """Call a method on another bus name and return its result."""
        async with self.connect(bus_name) as peer:
            return await peer.call(object_path, method, *args, timeout=timeout)

    async def notify(self, bus_name: str, object_path: str, method: str, *args: Any) -> None:
        """Send a one-way call to another bus name."""
        async with self.connect(bus_name) as peer:
            await peer.notify(object_path, method, *args)
