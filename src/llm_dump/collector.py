"""Fan out over directories, panes and URLs, then write one ordered stream.

Every source group runs concurrently. Output is grouped by kind: directory
results as they complete, then panes, then URLs, the last two in submission
order.
"""

from __future__ import annotations

import sys
import time
from functools import partial
from typing import TYPE_CHECKING, TextIO

from pydantic import BaseModel, ConfigDict

from llm_dump.exceptions import MissingAPIKeyError, NoPanesCapturedError
from llm_dump.file_manipulation import (
    PatternFilter,
    build_ignore_set,
    compile_ignore_patterns,
    compile_line_filter,
    resolve_root,
    walk_directory,
)
from llm_dump.logging import logger
from llm_dump.output_construction import render, render_paths, render_tree
from llm_dump.pool import BoundedPool
from llm_dump.tmux_capture import capture_pool, collect_panes, resolve_selectors
from llm_dump.web_fetch import collect_items, fetch_pool

if TYPE_CHECKING:
    import re
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from llm_dump.config import CollectionResult
    from llm_dump.settings import Settings


class CollectionSummary(BaseModel):
    """Counts of what one invocation wrote."""

    model_config = ConfigDict(frozen=True)

    directories: int = 0
    files: int = 0
    panes: int = 0
    urls: int = 0


def scan_root(
    root: Path,
    *,
    ignore: Sequence[str],
    pattern_filter: PatternFilter,
    line_filter: re.Pattern[str] | None,
    tree: bool,
    list_only: bool,
) -> CollectionResult:
    """Build the ignore rules of one root and walk it.

    Raises:
        OSError: if the root `.gitignore` cannot be read
    """
    ignore_set = build_ignore_set(root, ignore)
    return walk_directory(
        root,
        ignore_set,
        pattern_filter,
        line_filter,
        build_tree_enabled=tree,
        list_only=list_only,
    )


def write_result(out: TextIO, result: CollectionResult, settings: Settings) -> int:
    """Write one root's tree then its files; return how many files were written."""
    if result.tree is not None:
        out.write(render_tree(result.tree, settings.out_fmt))
    if settings.list_only:
        out.write(render_paths(result.paths_only))
        return len(result.paths_only)
    for item in result.items:
        out.write(render(item, settings.out_fmt, settings.xml_tag))
    return len(result.items)


def collect(
    settings: Settings,
    out: TextIO | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> CollectionSummary:
    """Run one invocation and write the rendered stream to `out`.

    Every precondition is checked before any task starts, so a failed
    precondition writes nothing.

    Args:
        settings (Settings): the invocation configuration
        out (TextIO | None): content stream, stdout by default
        sleep (Callable[[float], None]): sleep used for URL rate limiting

    Raises:
        InvalidRegexError: if the line filter does not compile
        InvalidPatternError: if a glob or ignore pattern is malformed
        PathResolutionError: if a root cannot be made absolute
        MissingAPIKeyError: if URLs are requested without an API key
        ToolNotFoundError: if panes are requested without tmux
        NoPanesCapturedError: if panes were the only source and none was captured

    Returns:
        CollectionSummary: what was written
    """
    stream = out if out is not None else sys.stdout

    line_filter = compile_line_filter(settings.filter)
    pattern_filter = PatternFilter.compile(settings.globs, settings.extensions)
    compile_ignore_patterns(settings.ignore)
    roots = [resolve_root(d) for d in settings.sources()]

    fetch_urls = bool(settings.urls) and not settings.list_only
    capture = bool(settings.panes) and not settings.list_only
    if fetch_urls and not settings.api_key:
        raise MissingAPIKeyError()
    pane_ids: list[str] = []
    if capture:
        pane_ids, _ = resolve_selectors(settings.panes)

    scan = partial(
        scan_root,
        ignore=settings.ignore,
        pattern_filter=pattern_filter,
        line_filter=line_filter,
        tree=settings.tree,
        list_only=settings.list_only,
    )
    dir_pool = BoundedPool(scan, roots, len(roots), name="dir").start()
    pane_pool = capture_pool(pane_ids, settings.pane_lines, line_filter).start()
    url_pool = fetch_pool(
        settings.urls if fetch_urls else [],
        settings.api_key,
        live_crawl=settings.live,
        timeout=settings.timeout,
        sleep=sleep,
    ).start()

    directories = files = 0
    for outcome in dir_pool.as_completed():
        if outcome.error is not None:
            logger.warning("failed to scan directory", dir=str(outcome.item), error=str(outcome.error))
            continue
        if outcome.value is not None:
            directories += 1
            files += write_result(stream, outcome.value, settings)

    panes = 0
    for pane in collect_panes(pane_pool):
        stream.write(render(pane, settings.out_fmt, settings.xml_tag))
        panes += 1

    urls = 0
    for item in collect_items(url_pool):
        stream.write(render(item, settings.out_fmt, settings.xml_tag))
        urls += 1
    stream.flush()

    if capture and not settings.dirs and not settings.urls and panes == 0:
        raise NoPanesCapturedError()
    return CollectionSummary(directories=directories, files=files, panes=panes, urls=urls)
