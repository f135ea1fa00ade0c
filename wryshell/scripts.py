"""Script compilation for remote execution.

Scripts arrive as source text over the bus and run inside the shell
process with the shell's privileges. The executor is a narrow, swappable
capability: source text plus named capabilities in, an async entry point
(or a structured compile error) out.

Script conventions
------------------
``RunJs`` scripts are the body of ``async def <script>(print)``:
top-level ``await`` and ``return`` are allowed, and a script consisting of
a single expression statement without a trailing ``;`` returns that
expression's value, so ``1 + 1`` replies ``2``.

``RunPromise`` scripts are the body of ``def <script>(resolve, reject)``
and settle the reply by calling one of the two.
"""

from __future__ import annotations

import ast

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol, cast

from .exceptions import ScriptCompileError


SCRIPT_FILENAME = "<wryshell-script>"

_ENTRY_NAME = "__wryshell_script__"
_ASYNC_TEMPLATE = f"async def {_ENTRY_NAME}(print):\n    pass\n"
_PROMISE_TEMPLATE = f"def {_ENTRY_NAME}(resolve, reject):\n    pass\n"

PrintFunc = Callable[..., None]
ScriptEntry = Callable[[PrintFunc], Awaitable[Any]]
PromiseEntry = Callable[[Callable[..., None], Callable[..., None]], Any]


class ScriptExecutor(Protocol):
    """Turns script text into callables."""

    def compile(self, source: str, capabilities: Mapping[str, Any]) -> ScriptEntry:
        """Compile an async script.

        Raises
        ------
        ScriptCompileError
            If the source does not compile.
        """
        ...

    def compile_promise(self, source: str, capabilities: Mapping[str, Any]) -> PromiseEntry:
        """Compile a legacy resolve/reject script.

        Raises
        ------
        ScriptCompileError
            If the source does not compile.
        """
        ...


def is_single_expression(source: str, statements: list[ast.stmt]) -> bool:
    """Whether a script is one expression whose value should be returned."""
    return (
        len(statements) == 1
        and isinstance(statements[0], ast.Expr)
        and not source.rstrip().endswith(";")
    )


def strip_shebang(source: str) -> str:
    """Blank out a leading ``#!`` line, keeping line numbers intact."""
    if not source.startswith("#!"):
        return source
    _, newline, rest = source.partition("\n")
    return newline + rest


def describe_exception(exc: BaseException) -> str:
    """Format an exception the way it is shown to callers: ``Type: message``."""
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


class PythonScriptExecutor:
    """Runs scripts as Python inside the shell process.

    The script body is spliced into a function template at the AST level,
    so source lines keep their own line numbers in tracebacks and no
    re-indentation of the text is needed.
    """

    def _parse(self, source: str) -> list[ast.stmt]:
        try:
            return ast.parse(source, filename=SCRIPT_FILENAME, mode="exec").body
        except (SyntaxError, ValueError) as exc:
            raise _compile_error(exc) from exc

    def _build(
        self, template: str, statements: list[ast.stmt], capabilities: Mapping[str, Any]
    ) -> Callable[..., Any]:
        module = ast.parse(template)
        function = cast("ast.FunctionDef | ast.AsyncFunctionDef", module.body[0])
        if statements:
            function.body = statements
        ast.fix_missing_locations(module)

        try:
            code = compile(module, SCRIPT_FILENAME, "exec")
        except (SyntaxError, ValueError) as exc:
            raise _compile_error(exc) from exc

        namespace: dict[str, Any] = dict(capabilities)
        namespace["__name__"] = _ENTRY_NAME
        exec(code, namespace)  # noqa: S102  # pylint: disable=exec-used
        entry: Callable[..., Any] = namespace[_ENTRY_NAME]
        return entry

    def compile(self, source: str, capabilities: Mapping[str, Any]) -> ScriptEntry:
        statements = self._parse(source)
        if is_single_expression(source, statements):
            expr = cast("ast.Expr", statements[0])
            statements = [ast.copy_location(ast.Return(value=expr.value), expr)]
        return self._build(_ASYNC_TEMPLATE, statements, capabilities)

    def compile_promise(self, source: str, capabilities: Mapping[str, Any]) -> PromiseEntry:
        return self._build(_PROMISE_TEMPLATE, self._parse(source), capabilities)


def _compile_error(exc: SyntaxError | ValueError) -> ScriptCompileError:
    lineno = exc.lineno if isinstance(exc, SyntaxError) else None
    message = exc.msg if isinstance(exc, SyntaxError) and exc.msg else str(exc)
    return ScriptCompileError(f"{type(exc).__name__}: {message}", lineno=lineno)
