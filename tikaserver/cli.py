#!/usr/bin/env python3
"""
tikaserver CLI - download and run Apache Tika servers.

Usage:
    tikaserver versions
    tikaserver download --version 1.14 --path tika.jar
    tikaserver verify --version 1.14 tika.jar
    tikaserver run --jar tika.jar --port 9998
    tikaserver --config tika.yaml run
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from tikaserver import __version__
from tikaserver.checksum import ChecksumStatus, validate
from tikaserver.config import Settings, load
from tikaserver.context import background, with_cancel, with_timeout
from tikaserver.download import download_server
from tikaserver.exceptions import TikaError
from tikaserver.server import Server
from tikaserver.versions import MD5S, download_url, expected_md5, supported_versions

lg = logging.getLogger("tikaserver")

# Exit codes
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def _setup_logging(level: str) -> None:
    handler = RichHandler(
        console=Console(stderr=True), show_path=False, rich_tracebacks=True
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tikaserver", description="Download and run Apache Tika servers"
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"tikaserver {__version__}"
    )
    parser.add_argument("-c", "--config", help="YAML config file")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        help="log level (default: from config, else info)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("versions", help="list supported server versions")

    p = sub.add_parser("download", help="download and verify a server jar")
    p.add_argument("--version", dest="tika_version", help="server version")
    p.add_argument("--path", help="destination file")
    p.add_argument("--repository", help="artifact repository base URL")
    p.add_argument("--timeout", type=float, help="seconds before giving up")

    p = sub.add_parser("verify", help="check a local jar against its checksum")
    p.add_argument("--version", dest="tika_version", help="server version")
    p.add_argument("path", help="jar to verify")

    p = sub.add_parser("run", help="start a server and wait for Ctrl+C")
    p.add_argument("--jar", help="server jar")
    p.add_argument("--port", help="port to listen on")
    p.add_argument("--java", help="java executable")
    p.add_argument("--timeout", type=float, help="startup timeout in seconds")

    return parser


def _cmd_versions(settings: Settings, args: argparse.Namespace, out: Console) -> int:
    table = Table(title="Supported Tika server versions")
    table.add_column("Version")
    table.add_column("MD5")
    table.add_column("URL")
    for v in supported_versions():
        table.add_row(v.value, MD5S[v], download_url(v, settings.download.repository))
    out.print(table)
    return EXIT_OK


def _cmd_download(settings: Settings, args: argparse.Namespace, out: Console) -> int:
    dl = settings.download
    if args.tika_version:
        dl.version = args.tika_version
    if args.path:
        dl.path = args.path
    version, path = dl.version, dl.target()

    ctx = with_cancel(background())
    if args.timeout is not None:
        ctx = with_timeout(ctx, args.timeout)
    with ctx:
        download_server(
            ctx, version, path, repository=args.repository or dl.repository
        )
    out.print(f"[green]{path}[/green] verified ({expected_md5(version)})")
    return EXIT_OK


def _cmd_verify(settings: Settings, args: argparse.Namespace, out: Console) -> int:
    version = args.tika_version or settings.download.version
    result = validate(args.path, expected_md5(version))
    if result.status is ChecksumStatus.UNREADABLE:
        out.print(f"[red]{args.path}: cannot read file[/red]")
    elif result.status is ChecksumStatus.MISMATCH:
        out.print(
            f"[red]{args.path}: md5 {result.actual} != {result.expected}[/red]"
        )
    else:
        out.print(f"[green]{args.path}: ok[/green] ({result.actual})")
    return EXIT_OK if result.ok else EXIT_ERROR


def _cmd_run(settings: Settings, args: argparse.Namespace, out: Console) -> int:
    cfg = settings.server
    server = Server(
        args.jar or cfg.jar, args.port or cfg.port, java=args.java or cfg.java
    )
    running = server.start(
        background(),
        interval=cfg.poll_interval,
        shutdown_timeout=cfg.shutdown_timeout,
        startup_timeout=args.timeout if args.timeout is not None else cfg.startup_timeout,
        lg=lg,
    )
    out.print(f"tika server running at [bold]{server.url}[/bold] (pid {running.pid})")
    try:
        while running.running:
            running.context.wait(1.0)
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    finally:
        running.stop()

    out.print(f"[red]tika server exited with code {running.returncode}[/red]")
    out.print(running.output(), markup=False, highlight=False)
    return EXIT_ERROR


_COMMANDS = {
    "versions": _cmd_versions,
    "download": _cmd_download,
    "verify": _cmd_verify,
    "run": _cmd_run,
}


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the tikaserver CLI."""
    args = _build_parser().parse_args(argv)
    out = Console()
    try:
        settings = load(args.config)
        _setup_logging(args.log_level or settings.logging.level)
        return _COMMANDS[args.command](settings, args, out)
    except TikaError as e:
        lg.error(str(e))
        return EXIT_ERROR
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
