"""Resolve tmux pane selectors and capture pane history."""

from __future__ import annotations

import os
import subprocess  # noqa: S404
from shutil import which
from typing import TYPE_CHECKING

from llm_dump.config import PANE_POOL_CAP, PaneItem
from llm_dump.exceptions import DumpError, TmuxCommandError, ToolNotFoundError
from llm_dump.file_manipulation import filter_lines
from llm_dump.logging import logger
from llm_dump.pool import BoundedPool

if TYPE_CHECKING:
    import re
    from collections.abc import Iterator, Sequence

TMUX = "tmux"
SELECTOR_CURRENT = "current"
SELECTOR_ALL = "all"
_META_FORMAT = "#{session_name}\t#{window_index}\t#{pane_index}"


def ensure_tmux() -> str:
    """Locate the tmux binary.

    Raises:
        ToolNotFoundError: if tmux is not on PATH

    Returns:
        str: the path of the tmux binary
    """
    path = which(TMUX)
    if path is None:
        raise ToolNotFoundError(tool=TMUX)
    return path


def run_tmux(args: Sequence[str]) -> str:
    """Run one tmux command and return its stdout.

    Args:
        args (Sequence[str]): arguments after `tmux`

    Raises:
        TmuxCommandError: if tmux exits with a non-zero status or cannot start

    Returns:
        str: the command output
    """
    command = [TMUX, *args]
    try:
        out = subprocess.run(  # noqa: S603
            command,
            text=True,
            capture_output=True,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        raise TmuxCommandError(
            command=" ".join(command),
            returncode=e.returncode,
            stdout=e.stdout or "",
            stderr=e.stderr or "",
        ) from e
    except OSError as e:
        raise TmuxCommandError(command=" ".join(command), returncode=-1, stderr=str(e)) from e
    return out.stdout


def current_pane() -> str:
    """Return the id of the pane this process runs in."""
    target = os.environ.get("TMUX_PANE", "")
    args = ["display-message", "-p"]
    if target:
        args.extend(["-t", target])
    return run_tmux([*args, "#{pane_id}"]).strip()


def window_panes() -> list[str]:
    """Return the pane ids of the current window of the current session."""
    return [line.strip() for line in run_tmux(["list-panes", "-F", "#{pane_id}"]).splitlines() if line.strip()]


def target_pane(target: str) -> str:
    """Ask tmux which pane an explicit target designates."""
    return run_tmux(["display-message", "-p", "-t", target, "#{pane_id}"]).strip()


def resolve_selectors(selectors: Sequence[str]) -> tuple[list[str], list[DumpError]]:
    """Turn pane selectors into unique pane ids, keeping first-seen order.

    `current` is the invoking pane, `all` every pane of the current window,
    anything else a tmux target passed through as is.

    Args:
        selectors (Sequence[str]): the selectors

    Raises:
        ToolNotFoundError: if tmux is not available, before any selector is tried

    Returns:
        tuple[list[str], list[DumpError]]: the pane ids and one error per failed selector
    """
    ensure_tmux()
    pane_ids: list[str] = []
    errors: list[DumpError] = []
    seen: set[str] = set()
    for selector in selectors:
        try:
            if selector == SELECTOR_CURRENT:
                found = [current_pane()]
            elif selector == SELECTOR_ALL:
                found = window_panes()
            else:
                found = [target_pane(selector)]
        except TmuxCommandError as e:
            logger.warning("pane selector failed", selector=selector, error=str(e))
            errors.append(e)
            continue
        for pane_id in found:
            if pane_id and pane_id not in seen:
                seen.add(pane_id)
                pane_ids.append(pane_id)
    return pane_ids, errors


def normalize_capture(text: str, max_lines: int = 0) -> str:
    """Trim trailing blank lines, keep the last `max_lines` lines and end with one newline.

    Args:
        text (str): raw capture-pane output
        max_lines (int): lines to keep, 0 for all

    Returns:
        str: the normalized text
    """
    lines = text.rstrip("\n").split("\n")
    if max_lines > 0:
        lines = lines[-max_lines:]
    return "\n".join(lines) + "\n"


def capture_pane(pane_id: str, max_lines: int = 0, line_filter: re.Pattern[str] | None = None) -> PaneItem:
    """Capture one pane with its session, window and pane index.

    Args:
        pane_id (str): the tmux pane id
        max_lines (int): trailing history lines, 0 for the whole scrollback
        line_filter (re.Pattern[str] | None): lines to drop

    Raises:
        TmuxCommandError: if the metadata or capture command fails

    Returns:
        PaneItem: the captured pane
    """
    meta = run_tmux(["display-message", "-p", "-t", pane_id, _META_FORMAT]).rstrip("\n")
    try:
        session, window, pane = meta.split("\t")
        window_index, pane_index = int(window), int(pane)
    except ValueError as e:
        raise TmuxCommandError(
            command=f"tmux display-message -t {pane_id}",
            stdout=meta,
            message="Unexpected pane metadata.",
        ) from e

    start = f"-{max_lines}" if max_lines > 0 else "-"
    raw = run_tmux(["capture-pane", "-p", "-J", "-t", pane_id, "-S", start])
    content = filter_lines(normalize_capture(raw, max_lines), line_filter)
    return PaneItem(
        path=f"tmux:{session}:{window_index}.{pane_index}",
        content=content,
        pane_id=pane_id,
        session=session,
        window=window_index,
        pane=pane_index,
    )


def capture_pool(
    pane_ids: Sequence[str],
    max_lines: int = 0,
    line_filter: re.Pattern[str] | None = None,
) -> BoundedPool[str, PaneItem]:
    """Prepare the capture pool, sized `min(PANE_POOL_CAP, len(pane_ids))`, without starting it."""

    def work(pane_id: str) -> PaneItem:
        return capture_pane(pane_id, max_lines, line_filter)

    return BoundedPool(work, pane_ids, PANE_POOL_CAP, name="pane")


def collect_panes(pool: BoundedPool[str, PaneItem]) -> Iterator[PaneItem]:
    """Drain a capture pool in submission order, logging panes that failed."""
    for outcome in pool.in_order():
        if outcome.error is not None:
            logger.warning("pane capture failed", pane=outcome.item, error=str(outcome.error))
            continue
        if outcome.value is not None:
            yield outcome.value


def capture_all(
    pane_ids: Sequence[str],
    max_lines: int = 0,
    line_filter: re.Pattern[str] | None = None,
) -> Iterator[PaneItem]:
    """Capture every pane concurrently; a failing pane is logged and skipped."""
    yield from collect_panes(capture_pool(pane_ids, max_lines, line_filter))
