"""Remote execution bridge: the shell object exported on the session bus.

Bus methods
-----------
``RunJs(script, client_bus, client_path)``
    Compile and run a script in the shell process.
``RunFile(path, client_bus, client_path)``
    Same, with the script read from a file.
``RunPromise(script, client_bus, client_path)``
    Deprecated resolve/reject variant of ``RunJs``.
``ToggleWindow(name) -> str``
    ``"true"``/``"false"`` or a diagnostic for unknown names.
``Inspector()``
    Open the backend's interactive debugger.
``Quit()``
    Shut the shell down once the reply is written.

Script output goes back to the caller when ``client_bus`` and
``client_path`` name a client object, which receives ``Print``,
``Return`` and ``Error`` calls in order over a single connection.
Without a caller, values and prints go to stdout and errors to the log.
"""

from __future__ import annotations

import asyncio
import inspect

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .exceptions import IPCError, ScriptCompileError, ScriptRuntimeError, UnknownWindow
from .log import debug, error, warn
from .models import RemoteCall, RpcResult
from .scripts import PythonScriptExecutor, ScriptEntry, ScriptExecutor, describe_exception, strip_shebang
from .utils import TaskSet, read_text_async


if TYPE_CHECKING:
    from .app import Shell
    from .bus import SessionBus


class LocalReplyLane:
    """Replies for callers without a bus address."""

    def output(self, text: str) -> None:
        print(text, flush=True)

    def reply(self, value: str) -> None:
        print(value, flush=True)

    def fail(self, message: str) -> None:
        error(message)


class BusReplyLane:
    """Ordered replies to a client object on the bus.

    Messages are queued synchronously and written by :meth:`run` over one
    connection, opened when the first message is queued. ``Print`` is a
    one-way notification; the final ``Return`` or ``Error`` waits for the
    client's acknowledgement before the connection is closed.
    """

    def __init__(self, bus: SessionBus, client_bus: str, client_path: str) -> None:
        self.bus = bus
        self.client_bus = client_bus
        self.client_path = client_path
        self._queue: asyncio.Queue[tuple[str, str]] = asyncio.Queue()
        self._finished = False

    def _put(self, method: str, text: str) -> None:
        if self._finished:
            debug(f"Dropping {method} for {self.client_bus}: reply already sent")
            return
        if method != "Print":
            self._finished = True
        self._queue.put_nowait((method, text))

    def output(self, text: str) -> None:
        self._put("Print", text)

    def reply(self, value: str) -> None:
        self._put("Return", value)

    def fail(self, message: str) -> None:
        self._put("Error", message)

    async def run(self) -> None:
        """Deliver queued messages until the final reply is acknowledged."""
        method, text = await self._queue.get()
        try:
            async with self.bus.connect(self.client_bus) as peer:
                while method == "Print":
                    await peer.notify(self.client_path, method, text)
                    method, text = await self._queue.get()
                await peer.call(self.client_path, method, text)
        except IPCError as exc:
            error(f"Unable to deliver {method} to {self.client_bus}: {exc}")


ReplyLane = LocalReplyLane | BusReplyLane


class RemoteExecutionBridge:
    """Runs remote requests against the shell.

    Parameters
    ----------
    app : Shell
        Application context handed to scripts as ``app``.
    executor : ScriptExecutor, optional
        Script compiler. Defaults to :class:`PythonScriptExecutor`.
    bus : SessionBus, optional
        Bus used to reach callers. Defaults to the shell's bus.
    """

    def __init__(
        self,
        app: Shell,
        executor: ScriptExecutor | None = None,
        bus: SessionBus | None = None,
    ) -> None:
        self.app = app
        self.executor: ScriptExecutor = executor or PythonScriptExecutor()
        self.bus = bus if bus is not None else app.bus
        self._tasks = TaskSet()

    def exported_methods(self) -> dict[str, Callable[..., Any]]:
        """Bus method table for the shell object."""
        return {
            "RunJs": self.run_js,
            "RunFile": self.run_file,
            "RunPromise": self.run_promise,
            "ToggleWindow": self.toggle_window,
            "Inspector": self.inspector,
            "Quit": self.quit,
        }

    @property
    def pending(self) -> int:
        """Number of scripts and reply deliveries still in flight."""
        return len(self._tasks)

    def _open_lane(self, call: RemoteCall) -> ReplyLane:
        if call.partial_caller:
            warn("client_bus and client_path must be given together; replying locally")
        client_bus, client_path = call.client_bus, call.client_path
        if client_bus is not None and client_path is not None and self.bus is not None:
            lane = BusReplyLane(self.bus, client_bus, client_path)
            self._tasks.spawn(lane.run(), name=f"reply:{client_bus}")
            return lane
        return LocalReplyLane()

    @staticmethod
    def _deliver(lane: ReplyLane, result: RpcResult) -> None:
        if result.error is not None:
            lane.fail(result.error)
        else:
            lane.reply(result.value or "")

    @staticmethod
    def _printer(lane: ReplyLane) -> Callable[..., None]:
        def script_print(*values: Any, sep: str = " ") -> None:
            lane.output(sep.join(str(value) for value in values))

        return script_print

    # ------------------------------------------------------------------
    # RunJs / RunFile
    # ------------------------------------------------------------------

    def run_js(self, script: str, client_bus: str | None = None, client_path: str | None = None) -> None:
        """Compile a script and start it.

        Compile errors are reported before this returns; the script itself
        runs as a task and replies when it completes.
        """
        call = RemoteCall(script=script, client_bus=client_bus, client_path=client_path)
        lane = self._open_lane(call)
        debug(f"[RunJs] {len(call.script)} chars, caller={call.client_bus}")
        try:
            entry = self.executor.compile(call.script, {"app": self.app})
        except ScriptCompileError as exc:
            self._deliver(lane, RpcResult(error=str(exc)))
            return
        self._tasks.spawn(self._execute(entry, lane), name="script")

    async def _execute(self, entry: ScriptEntry, lane: ReplyLane) -> None:
        """Run a compiled script and deliver its outcome.

        A returned awaitable is awaited until it settles to a plain value.
        Anything the script raises, ``SystemExit`` and ``KeyboardInterrupt``
        included, is reported as a script error; only cancellation of the
        task itself propagates.
        """
        try:
            value = await entry(self._printer(lane))
            while inspect.isawaitable(value):
                value = await value
        except asyncio.CancelledError:
            raise
        except BaseException as exc:
            failure = ScriptRuntimeError(describe_exception(exc))
            debug(f"Script failed: {failure}")
            self._deliver(lane, RpcResult(error=str(failure)))
            return
        self._deliver(lane, RpcResult(value=str(value)))

    def run_file(self, path: str, client_bus: str | None = None, client_path: str | None = None) -> None:
        """Read a script file off the loop, then run it like :meth:`run_js`.

        A leading ``#!`` line is ignored. A file that cannot be read is
        logged and gets no reply.
        """
        self._tasks.spawn(self._run_file(path, client_bus, client_path), name=f"run-file:{path}")

    async def _run_file(self, path: str, client_bus: str | None, client_path: str | None) -> None:
        try:
            source = await read_text_async(path)
        except (OSError, UnicodeDecodeError) as exc:
            error(f"Unable to read script file {path}: {exc}")
            return
        self.run_js(strip_shebang(source), client_bus, client_path)

    # ------------------------------------------------------------------
    # RunPromise (deprecated)
    # ------------------------------------------------------------------

    def run_promise(
        self, script: str, client_bus: str | None = None, client_path: str | None = None
    ) -> None:
        """Run a script that settles its reply through ``resolve``/``reject``.

        The script's return value is ignored. Compile errors and exceptions
        raised before it returns count as a rejection.
        """
        warn("RunPromise is deprecated, use RunJs instead")
        call = RemoteCall(script=script, client_bus=client_bus, client_path=client_path)
        lane = self._open_lane(call)
        settled: asyncio.Future[RpcResult] = asyncio.get_running_loop().create_future()

        def resolve(value: Any = None) -> None:
            if not settled.done():
                settled.set_result(RpcResult(value=str(value)))

        def reject(reason: Any = None) -> None:
            if settled.done():
                return
            text = describe_exception(reason) if isinstance(reason, BaseException) else str(reason)
            settled.set_result(RpcResult(error=text))

        capabilities = {"app": self.app, "print": self._printer(lane)}
        try:
            entry = self.executor.compile_promise(call.script, capabilities)
        except ScriptCompileError as exc:
            reject(str(exc))
        else:
            try:
                entry(resolve, reject)
            except BaseException as exc:
                reject(exc)

        self._tasks.spawn(self._settle(settled, lane), name="promise")

    async def _settle(self, settled: asyncio.Future[RpcResult], lane: ReplyLane) -> None:
        self._deliver(lane, await settled)

    # ------------------------------------------------------------------
    # Window control and process control
    # ------------------------------------------------------------------

    def toggle_window(self, name: str) -> str:
        """Toggle a window and describe its new logical visibility."""
        result = self.app.toggle_window(name)
        if not result.ok:
            return str(UnknownWindow(name))
        return "true" if result.visible else "false"

    def inspector(self) -> None:
        self.app.inspector()

    def quit(self) -> None:
        """Schedule shutdown so the caller's reply is written first."""
        asyncio.get_running_loop().call_soon(self.app.quit)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def cancel_all(self) -> int:
        """Cancel running scripts and reply deliveries."""
        return self._tasks.cancel_all()

    async def join(self) -> None:
        """Wait for every running script and reply delivery to finish."""
        await self._tasks.join()
