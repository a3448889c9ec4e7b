"""Command-line interface for gh-dl.

Usage:
    gh-dl esote torvalds
    gh-dl -t 30m -x esote/big-repo esote
    gh-dl -a -s myorg myuser/some-private-repo

Environment Variables (can be set in .env file):
    GITHUB_TOKEN  - Token for --auth (prompted for when unset)
    GHDL_API_URL  - REST API root (default: https://api.github.com)
"""

import argparse
import asyncio
import getpass
import logging
import sys
import tarfile
from pathlib import Path
from typing import List, Optional

from ghdl import __version__
from ghdl.config import (
    ArchiverConfig,
    DEFAULT_COMPRESSION,
    api_url_from_environment,
    default_archive_name,
    load_environment,
    normalize_names,
    parse_duration,
    parse_exclusions,
    token_from_environment,
)
from ghdl.crawler.orchestrator import ArchiveOrchestrator
from ghdl.exceptions import GhdlError
from ghdl.messages import MessageSink, Verbosity, configure_logging

logger = logging.getLogger("ghdl")


def _duration(value: str) -> Optional[float]:
    try:
        return parse_duration(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gh-dl",
        description="Clone every repository of GitHub users or organizations into one .tar.gz",
    )
    parser.add_argument(
        "names",
        nargs="+",
        metavar="NAME",
        help="account name, or OWNER/REPO for a single repository",
    )
    parser.add_argument(
        "-l",
        "--level",
        type=int,
        default=DEFAULT_COMPRESSION,
        help="gzip compression level, -1 (default) or 0-9",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-q", "--quiet", action="store_true", help="only report errors")
    verbosity.add_argument("-v", "--verbose", action="store_true", help="report every repository")
    parser.add_argument(
        "-s",
        "--submodules",
        action="store_true",
        help="recursively fetch submodules",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=_duration,
        default="10m",
        help='git clone timeout, e.g. 10m or 1h30m; "0" for none (default: 10m)',
    )
    parser.add_argument(
        "-a",
        "--auth",
        action="store_true",
        help="use a GitHub token to include private repositories",
    )
    parser.add_argument(
        "-x",
        "--exclude",
        default="",
        help="comma-separated OWNER/REPO names to skip",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="archive path (default: gh-dl-<unix time>.tar.gz)",
    )
    parser.add_argument(
        "-d",
        "--delay",
        type=float,
        default=0.25,
        help="seconds between starting two tasks (default: 0.25)",
    )
    parser.add_argument(
        "-c",
        "--concurrency",
        type=int,
        default=16,
        help="number of parallel git clones (default: 16)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def read_token() -> str:
    """Token from the environment, otherwise prompt without echo."""
    token = token_from_environment()
    if token:
        return token
    return getpass.getpass("GitHub token: ").strip()


def config_from_args(args: argparse.Namespace) -> ArchiverConfig:
    token = read_token() if args.auth else None
    return ArchiverConfig(
        output_path=args.output or default_archive_name(),
        compression_level=args.level,
        clone_timeout_seconds=args.timeout,
        recurse_submodules=args.submodules,
        authenticated=args.auth,
        github_token=token,
        excluded=parse_exclusions(args.exclude),
        launch_delay=args.delay,
        page_delay=args.delay,
        max_concurrent_downloads=args.concurrency,
        api_base_url=api_url_from_environment(),
    )


def main(argv: Optional[List[str]] = None) -> int:
    load_environment()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.quiet:
        verbosity = Verbosity.QUIET
    elif args.verbose:
        verbosity = Verbosity.VERBOSE
    else:
        verbosity = Verbosity.NORMAL
    configure_logging(verbosity)

    names = normalize_names(args.names)
    if not names:
        parser.error("no names specified")

    try:
        config = config_from_args(args)
    except ValueError as exc:
        parser.error(str(exc))

    orchestrator = ArchiveOrchestrator(config, MessageSink(verbosity))
    try:
        summary = asyncio.run(orchestrator.run(names))
    except KeyboardInterrupt:
        logger.error("interrupted")
        return 130
    except (GhdlError, OSError, tarfile.TarError) as exc:
        logger.error("%s", exc)
        return 1

    if summary.failed:
        logger.info("%d of %d repositories could not be downloaded", summary.failed, summary.discovered)
    return 0


if __name__ == "__main__":
    sys.exit(main())
