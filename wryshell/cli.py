"""Command-line interface: shell daemon, remote client and settings tools."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

from pathlib import Path
from typing import TYPE_CHECKING

from .config import _find_config_files, _user_config_home
from .exceptions import ScriptError, WryShellException


if TYPE_CHECKING:
    from .client import RemoteClient
    from .config import ShellSettings


CLIENT_ACTIONS = ("run_js", "run_file", "run_promise", "toggle_window", "inspector", "quit")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Parser for the ``wryshell`` command.
    """
    parser = argparse.ArgumentParser(
        prog="wryshell",
        description="Desktop shell controller. Without an action it starts the shell.",
    )
    parser.add_argument("--bus", "-b", type=str, help="Bus name of the shell instance")
    parser.add_argument(
        "--config", "-c", type=str, help="Configuration module (default: <config_dir>/config.py)"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    actions = parser.add_mutually_exclusive_group()
    actions.add_argument("--run-js", "-r", type=str, metavar="SCRIPT", help="Run a script in the running shell")
    actions.add_argument("--run-file", "-f", type=str, metavar="FILE", help="Run a script file in the running shell")
    actions.add_argument(
        "--run-promise",
        type=str,
        metavar="SCRIPT",
        help="Run a resolve/reject script in the running shell (deprecated)",
    )
    actions.add_argument("--toggle-window", "-t", type=str, metavar="NAME", help="Toggle a window")
    actions.add_argument("--inspector", "-i", action="store_true", help="Open the inspector")
    actions.add_argument("--quit", "-q", action="store_true", help="Quit the running shell")

    subparsers = parser.add_subparsers(dest="command", metavar="{config,init}")

    settings_cmd = subparsers.add_parser("config", help="Show or export process settings")
    view = settings_cmd.add_mutually_exclusive_group()
    view.add_argument("--show", action="store_true", help="Print the effective settings (default)")
    view.add_argument("--toml", action="store_true", help="Print the settings as TOML")
    view.add_argument("--env", action="store_true", help="Print the settings as export lines")
    view.add_argument("--sources", action="store_true", help="List settings files and whether they exist")
    settings_cmd.add_argument("--output", "-o", metavar="FILE", help="Write to FILE instead of stdout")

    init_cmd = subparsers.add_parser("init", help="Write a starter wryshell.toml")
    init_cmd.add_argument("--force", action="store_true", help="Replace an existing file")
    init_cmd.add_argument(
        "--path", "-p", default="wryshell.toml", help="Where to write the file (default: wryshell.toml)"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch to the daemon, the client or a subcommand.

    Returns
    -------
    int
        Exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "config":
        return handle_config(args)
    if args.command == "init":
        return handle_init(args)

    from .config import get_settings
    from .log import configure, enable_debug

    settings = get_settings()
    configure(settings.log.level, settings.log.format)
    if args.verbose:
        enable_debug()

    if any(getattr(args, action) not in (None, False) for action in CLIENT_ACTIONS):
        return handle_client(args, settings)
    return handle_daemon(args, settings)


def handle_daemon(args: argparse.Namespace, settings: ShellSettings) -> int:
    """Start the shell and serve until it quits.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.
    settings : ShellSettings
        Process settings.

    Returns
    -------
    int
        Exit code.
    """
    from .app import Shell

    async def serve() -> int:
        shell = Shell(settings=settings)
        if args.config:
            config = Path(args.config).expanduser().resolve()
            shell.setup(bus_name=args.bus, config_dir=config.parent, config_entry=config.name)
        else:
            shell.setup(bus_name=args.bus)
        return await shell.run()

    try:
        return asyncio.run(serve())
    except KeyboardInterrupt:
        return 0


def handle_client(args: argparse.Namespace, settings: ShellSettings) -> int:
    """Forward one action to the running shell.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.
    settings : ShellSettings
        Process settings.

    Returns
    -------
    int
        Exit code.
    """
    from .client import RemoteClient

    client = RemoteClient(bus_name=args.bus, settings=settings)
    try:
        output = asyncio.run(_dispatch(client, args))
    except ScriptError as e:
        print(e, file=sys.stderr)
        return 1
    except WryShellException as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130

    if output is not None:
        print(output)
    return 0


async def _dispatch(client: RemoteClient, args: argparse.Namespace) -> str | None:
    if args.run_js is not None:
        return await client.run_js(args.run_js)
    if args.run_file is not None:
        return await client.run_file(args.run_file)
    if args.run_promise is not None:
        return await client.run_promise(args.run_promise)
    if args.toggle_window is not None:
        return await client.toggle_window(args.toggle_window)
    if args.inspector:
        await client.inspector()
        return None
    await client.quit()
    return None


def handle_config(args: argparse.Namespace) -> int:
    """Print or write the effective settings.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    from .config import ShellSettings

    if args.sources:
        return show_config_sources()

    settings = ShellSettings()

    if args.toml:
        output = settings.to_toml()
    elif args.env:
        output = settings.to_env()
    else:
        output = settings.show()

    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        print(f"Settings written to {args.output}")
    else:
        print(output)

    return 0


def handle_init(args: argparse.Namespace) -> int:
    """Write a starter wryshell.toml.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    from .config import ShellSettings

    path = Path(args.path)

    if path.exists() and not args.force:
        print(f"Error: {path} already exists. Use --force to overwrite.", file=sys.stderr)
        return 1

    settings = ShellSettings()
    toml_content = settings.to_toml()

    header = """# wryshell settings file
#
# Environment variables can override any setting:
#   WRYSHELL__BUS_NAME="io.github.wryshell"
#   WRYSHELL_LOG__LEVEL=DEBUG
#   WRYSHELL_TIMEOUT__RESPONSE=10.0
#   WRYSHELL_WINDOW__RESCHEDULE_POLICY=ignore
#
# Use nested keys with __ (double underscore) delimiter.

"""
    path.write_text(header + toml_content, encoding="utf-8")
    print(f"Created {path}")

    return 0


def show_config_sources() -> int:
    """Show settings file sources and their status.

    Returns
    -------
    int
        Exit code.
    """
    found = {path.resolve() for path in _find_config_files()}
    sources = [
        ("pyproject.toml [tool.wryshell]", Path("pyproject.toml")),
        ("./wryshell.toml", Path("wryshell.toml")),
        ("User settings", _user_config_home() / "wryshell" / "settings.toml"),
    ]
    env_file = os.environ.get("WRYSHELL_CONFIG_FILE")
    if env_file:
        sources.append(("$WRYSHELL_CONFIG_FILE", Path(env_file)))

    print("Settings sources (in order of precedence):\n")
    print(f"{'Source':<40} {'Status':<15} {'Path'}")
    print("-" * 80)
    print(f"{'Built-in defaults':<40} {'✓ Active':<15}")

    for name, path in sources:
        status = "✓ Found" if path.resolve() in found else "✗ Not found"
        print(f"{name:<40} {status:<15} {path}")

    env_vars = [k for k in os.environ if k.startswith("WRYSHELL_") and k != "WRYSHELL_CONFIG_FILE"]
    if env_vars:
        status = f"✓ {len(env_vars)} vars"
        path_display = ", ".join(env_vars[:3])
        if len(env_vars) > 3:
            path_display += "..."
    else:
        status = "✗ No vars"
        path_display = ""
    print(f"{'Environment variables':<40} {status:<15} {path_display}")

    print("\nNote: Later sources override earlier ones.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
