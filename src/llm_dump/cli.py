"""
dump: collect text for an LLM context window.

Overview
--------
Recursively dumps text files from directories, respecting `.gitignore` and
custom ignore rules, and optionally appends the text of web pages (through
the Exa contents API) and the history of tmux panes. Everything is written
to stdout as XML-like tags (default) or Markdown fences; diagnostics go to
stderr.

When no directory, URL or pane is given, the current directory is dumped.

Usage
-----
Run `dump --help` for full options. Common examples:
    - Current directory, Go files at any depth, with a tree:
        dump -g '*.go' -g '**/*.go' --tree

    - Two roots and a page, as Markdown:
        dump -d src -d docs -u https://example.com -o md

    - Paths only, no content:
        dump -l -e py -e toml

    - Last 200 lines of every pane in the current tmux window:
        dump -p all --pane-lines 200

Environment
-----------
    EXA_API_KEY    required for URL fetching (a `.env` file is honoured)
"""

from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING

from pydantic import ValidationError

from llm_dump import __version__
from llm_dump.collector import collect
from llm_dump.config import DEFAULT_TIMEOUT, DEFAULT_XML_TAG
from llm_dump.exceptions import DumpError
from llm_dump.logging import logger, setup_logging
from llm_dump.settings import Settings, load_api_key

if TYPE_CHECKING:
    from collections.abc import Sequence


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="dump",
        description=(
            "Recursively dump text files, web pages and tmux panes for LLM consumption. "
            "Defaults to the current directory when no source is given."
        ),
    )
    p.add_argument("paths", nargs="*", metavar="DIR", help="Directories to scan.")
    p.add_argument("-d", "--dir", dest="dirs", action="append", default=[], help="Directory to scan (repeatable).")
    p.add_argument("-g", "--glob", dest="globs", action="append", default=[], help="Glob to include (repeatable).")
    p.add_argument(
        "-e",
        "--ext",
        dest="extensions",
        action="append",
        default=[],
        help="Extension to include, e.g. py (repeatable). Combined with globs using OR.",
    )
    p.add_argument(
        "-i",
        "--ignore",
        action="append",
        default=[],
        help="Gitignore-style pattern to ignore (repeatable).",
    )
    p.add_argument("-f", "--filter", default="", help="Skip lines matching this regex.")

    p.add_argument("-u", "--url", dest="urls", action="append", default=[], help="URL to fetch (repeatable).")
    p.add_argument(
        "--live",
        action="store_true",
        help="Fetch the most recent content of URLs (livecrawl=always instead of fallback).",
    )
    p.add_argument(
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT,
        help=f"Timeout in seconds for each URL (default {DEFAULT_TIMEOUT}).",
    )

    p.add_argument("-p", "--pane", dest="panes", action="append", default=[], help="tmux pane: current, all or a target.")
    p.add_argument("--pane-lines", type=int, default=0, help="History lines per pane, 0 for the whole scrollback.")

    p.add_argument("-o", "--out-fmt", default="xml", choices=["xml", "md"], help="Output format (default xml).")
    p.add_argument("--xml-tag", default=DEFAULT_XML_TAG, help=f"XML tag for files (default {DEFAULT_XML_TAG}).")
    p.add_argument("-l", "--list", dest="list_only", action="store_true", help="List file paths only.")
    p.add_argument("-t", "--tree", action="store_true", help="Print a directory tree before each root's files.")
    p.add_argument("--log-file", default="", help="Write diagnostics to this file instead of stderr.")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse command-line arguments into Settings.

    Args:
        argv (Sequence[str] | None): arguments, `sys.argv[1:]` when None

    Raises:
        ValidationError: if a value is out of range

    Returns:
        Settings: the invocation configuration
    """
    args = vars(build_parser().parse_args(argv))
    args["dirs"] = [*args["dirs"], *args.pop("paths")]
    args["api_key"] = load_api_key() if args["urls"] else ""
    return Settings(**args)


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = parse_args(argv)
    except ValidationError as e:
        logger.error("invalid arguments", error=str(e))
        return 1
    if settings.log_file:
        setup_logging(settings.log_file)

    try:
        collect(settings, sys.stdout)
    except DumpError as e:
        logger.error("dump failed", error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
