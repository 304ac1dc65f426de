from __future__ import annotations

import io
import os
import posixpath
import re
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO

import pathspec

from llm_dump.config import (
    GITIGNORE_FILE,
    IMPLICIT_IGNORES,
    SNIFF_BYTES,
    CollectionResult,
    Item,
    SkippedEntry,
    SkipReason,
    TextClass,
    TreeNode,
)
from llm_dump.exceptions import InvalidPatternError, InvalidRegexError, PathResolutionError
from llm_dump.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Raises:
        ValueError: if path is not under root.

    Returns:
        str: the relative path from root to path, with POSIX separators.
    """
    return str(path.relative_to(root)).replace("\\", "/")


def file_extension(name: str) -> str:
    """Return the lower-cased extension of a base name, without its dot.

    Everything after the last dot counts, so `.bashrc` has extension `bashrc`
    and `Makefile` has none.

    Args:
        name (str): a file base name

    Returns:
        str: the extension, or "" when the name has no dot
    """
    _, dot, ext = name.rpartition(".")
    return ext.lower() if dot else ""


def is_regular_file(path: Path) -> bool:
    """Check if a file is regular.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is regular, False otherwise.
    """
    try:
        st = path.stat()
        return stat.S_ISREG(st.st_mode)
    except OSError:
        return False


def classify(path: Path) -> TextClass:
    """Sniff the first bytes of a file to decide whether it is text.

    A file is binary when it cannot be opened, when the sample contains a NUL
    byte or when the sample is not valid UTF-8. The sample is checked on its
    own, so a multi-byte character cut by the 512-byte boundary makes it
    invalid. Empty files are text.

    Args:
        path (Path): the file to classify

    Returns:
        TextClass: TEXT or BINARY
    """
    if not is_regular_file(path):
        return TextClass.BINARY
    try:
        with path.open("rb") as f:
            chunk = f.read(SNIFF_BYTES)
    except OSError:
        return TextClass.BINARY
    if b"\x00" in chunk:
        return TextClass.BINARY
    try:
        chunk.decode("utf-8")
    except UnicodeDecodeError:
        return TextClass.BINARY
    return TextClass.TEXT


def is_text_file(path: Path) -> bool:
    """Shortcut for `classify(path) is TextClass.TEXT`."""
    return classify(path) is TextClass.TEXT


# ------------------------------ Ignore rules --------------------------------


class IgnoreSet:
    """Compiled gitignore rules for one root directory."""

    def __init__(self, spec: pathspec.GitIgnoreSpec) -> None:
        self._spec = spec

    def matches(self, rel_path: str, *, is_dir: bool = False) -> bool:
        """Check a path relative to the root against the rules.

        Args:
            rel_path (str): POSIX path relative to the root
            is_dir (bool): whether the entry is a directory, so that
                directory-only rules such as `build/` apply

        Returns:
            bool: True when the entry is ignored
        """
        rel = rel_path.replace("\\", "/")
        if is_dir and not rel.endswith("/"):
            rel += "/"
        return self._spec.match_file(rel)


def compile_ignore_patterns(lines: Iterable[str]) -> pathspec.GitIgnoreSpec:
    """Compile gitignore lines, mapping syntax errors to InvalidPatternError.

    Args:
        lines (Iterable[str]): gitignore lines, comments and blanks allowed

    Raises:
        InvalidPatternError: if a line is not a valid gitignore pattern

    Returns:
        pathspec.GitIgnoreSpec: the compiled rules
    """
    try:
        return pathspec.GitIgnoreSpec.from_lines(list(lines))
    except (ValueError, TypeError) as e:
        raise InvalidPatternError(pattern=str(e), message="Invalid ignore pattern.") from e


def build_ignore_set(root: Path, extra_patterns: Sequence[str]) -> IgnoreSet:
    """Build the ignore rules of a root: its `.gitignore`, extra patterns, then implicit ones.

    Only the `.gitignore` at the root is read; nested ones are not merged.
    Later rules override earlier ones, so the implicit `.git` and
    `.gitignore` entries cannot be re-included.

    Args:
        root (Path): the root directory
        extra_patterns (Sequence[str]): caller-supplied gitignore-style patterns

    Raises:
        OSError: if the `.gitignore` exists but cannot be read
        InvalidPatternError: if a pattern does not compile

    Returns:
        IgnoreSet: the compiled rules
    """
    lines: list[str] = []
    gitignore = root / GITIGNORE_FILE
    if gitignore.is_file():
        lines.extend(gitignore.read_text(encoding="utf-8", errors="replace").splitlines())
    lines.extend(extra_patterns)
    lines.extend(IMPLICIT_IGNORES)
    return IgnoreSet(compile_ignore_patterns(lines))


# ------------------------------ Pattern filter ------------------------------


def normalize_globs(globs: Sequence[str]) -> list[str]:
    """Normalize a sequence of path glob patterns.

    Normalize a sequence of glob patterns by stripping whitespace and
    replacing backslashes with forward slashes.

    Args:
        globs (Sequence[str]): the glob patterns to normalize

    Returns:
        list[str]: the normalized glob patterns
    """
    out: list[str] = []
    for g in globs:
        g2 = (g or "").strip()
        if not g2:
            continue
        out.append(g2.replace("\\", "/"))
    return out


def _check_brackets(pattern: str) -> None:
    idx = pattern.find("[")
    while idx != -1:
        j = idx + 1
        if j < len(pattern) and pattern[j] == "!":
            j += 1
        if j < len(pattern) and pattern[j] == "]":
            j += 1
        close = pattern.find("]", j)
        if close == -1:
            raise InvalidPatternError(pattern=pattern, message="Unclosed '[' in glob pattern.")
        idx = pattern.find("[", close + 1)


def expand_braces(pattern: str) -> list[str]:
    """Expand `{a,b}` alternatives into plain glob patterns.

    Args:
        pattern (str): a glob that may contain (nested) brace groups

    Raises:
        InvalidPatternError: if braces are unbalanced

    Returns:
        list[str]: one pattern per alternative, in order
    """
    start = pattern.find("{")
    if start == -1:
        if "}" in pattern:
            raise InvalidPatternError(pattern=pattern, message="Unbalanced '}' in glob pattern.")
        return [pattern]
    depth = 0
    options: list[str] = []
    last = start + 1
    for idx in range(start, len(pattern)):
        char = pattern[idx]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                options.append(pattern[last:idx])
                head, tail = pattern[:start], pattern[idx + 1 :]
                return [out for opt in options for out in expand_braces(head + opt + tail)]
        elif char == "," and depth == 1:
            options.append(pattern[last:idx])
            last = idx + 1
    raise InvalidPatternError(pattern=pattern, message="Unclosed '{' in glob pattern.")


def translate_glob(pattern: str) -> str:
    """Translate a brace-free glob into a regex over `/`-separated paths.

    `*` and `?` never match `/`; `**` matches any run of characters,
    separators included. Character classes follow fnmatch: `[!...]` negates.

    Args:
        pattern (str): the glob, braces already expanded

    Returns:
        str: a regex anchored at both ends
    """
    out: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        char = pattern[i]
        i += 1
        if char == "*":
            if i < n and pattern[i] == "*":
                while i < n and pattern[i] == "*":
                    i += 1
                out.append(".*")
            else:
                out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            j = i
            if j < n and pattern[j] == "!":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            j = pattern.find("]", j)
            if j == -1:
                out.append("\\[")
                continue
            stuff = re.sub(r"([&~|\[\\])", r"\\\1", pattern[i:j])
            i = j + 1
            if stuff.startswith("!"):
                stuff = "^" + stuff[1:]
            elif stuff.startswith("^"):
                stuff = "\\" + stuff
            out.append(f"[{stuff}]")
        else:
            out.append(re.escape(char))
    return rf"(?s:{''.join(out)})\Z"


def compile_globs(patterns: Sequence[str]) -> tuple[re.Pattern[str], ...]:
    """Compile inclusion globs once for the whole invocation.

    Globs use shell syntax plus `{a,b}` alternatives and are matched against
    the POSIX path relative to the scanned root: `*.go` selects only top-level
    files, `**/*.go` files in any subdirectory.

    Args:
        patterns (Sequence[str]): the glob patterns

    Raises:
        InvalidPatternError: if any pattern is malformed

    Returns:
        tuple[re.Pattern[str], ...]: the compiled matchers
    """
    compiled: list[re.Pattern[str]] = []
    for pattern in normalize_globs(patterns):
        try:
            _check_brackets(pattern)
            expanded = expand_braces(pattern)
        except InvalidPatternError as e:
            raise InvalidPatternError(pattern=pattern, message=e.message) from e
        compiled.extend(re.compile(translate_glob(p)) for p in expanded)
    return tuple(compiled)


def match_any_glob(rel: str, globs: Sequence[re.Pattern[str]]) -> bool:
    """Check if a relative path matches any of the compiled glob patterns.

    Args:
        rel (str): the relative path to check
        globs (Sequence[re.Pattern[str]]): the compiled patterns to match against

    Returns:
        bool: True if `rel` matches any pattern in `globs`, False otherwise
    """
    return any(g.match(rel) for g in globs)


def accept(
    rel: str,
    extension: str,
    globs: Sequence[re.Pattern[str]],
    extensions: frozenset[str],
) -> bool:
    """Decide whether a file passes the inclusion filter.

    With no globs and no extensions every file is accepted. Otherwise a file
    is accepted when any glob matches OR its extension is listed; the two
    kinds are never combined with AND.

    Args:
        rel (str): POSIX path relative to the root
        extension (str): lower-cased extension without its dot
        globs (Sequence[re.Pattern[str]]): compiled inclusion globs
        extensions (frozenset[str]): accepted extensions, "" for none

    Returns:
        bool: True when the file is included
    """
    if not globs and not extensions:
        return True
    return match_any_glob(rel, globs) or extension in extensions


@dataclass(frozen=True)
class PatternFilter:
    """Compiled glob and extension filter shared read-only by every root."""

    globs: tuple[re.Pattern[str], ...] = ()
    extensions: frozenset[str] = frozenset()

    @classmethod
    def compile(cls, globs: Sequence[str], extensions: Sequence[str]) -> PatternFilter:
        exts = frozenset(e.strip().lstrip(".").lower() for e in extensions)
        return cls(globs=compile_globs(globs), extensions=exts)

    def accept(self, rel: str) -> bool:
        return accept(rel, file_extension(posixpath.basename(rel)), self.globs, self.extensions)


# ------------------------------ Line filter ---------------------------------


def compile_line_filter(expression: str) -> re.Pattern[str] | None:
    """Compile the line-exclusion regex.

    Args:
        expression (str): the regex, or "" for no filtering

    Raises:
        InvalidRegexError: if the expression does not compile

    Returns:
        re.Pattern[str] | None: the compiled regex, or None when empty
    """
    if not expression:
        return None
    try:
        return re.compile(expression)
    except re.error as e:
        raise InvalidRegexError(expression=expression, message=f"Invalid line filter regex: {e}.") from e


def _drop_matching(lines: Iterable[str], line_filter: re.Pattern[str]) -> str:
    out = io.StringIO()
    for raw in lines:
        line = raw.removesuffix("\n").removesuffix("\r")
        if line_filter.search(line):
            continue
        out.write(line)
        out.write("\n")
    return out.getvalue()


def read_filtered(stream: BinaryIO, line_filter: re.Pattern[str] | None) -> str:
    """Read a binary stream as text, dropping lines matched by the filter.

    Without a filter the content is decoded whole, so line endings are kept
    as they are. With a filter every kept line is re-terminated by a single
    newline. Line length is unbounded. Only the head of a file is checked by
    the classifier; invalid UTF-8 further in is decoded as U+FFFD rather
    than copied byte for byte.

    Args:
        stream (BinaryIO): the stream to read
        line_filter (re.Pattern[str] | None): lines to drop

    Returns:
        str: the content
    """
    if line_filter is None:
        return stream.read().decode("utf-8", errors="replace")
    return _drop_matching((raw.decode("utf-8", errors="replace") for raw in stream), line_filter)


def filter_lines(text: str, line_filter: re.Pattern[str] | None) -> str:
    """Apply the line filter to already-decoded text.

    Args:
        text (str): the content
        line_filter (re.Pattern[str] | None): lines to drop

    Returns:
        str: the filtered content, or `text` unchanged without a filter
    """
    if line_filter is None:
        return text
    return _drop_matching(io.StringIO(text), line_filter)


def read_file_content(path: Path, line_filter: re.Pattern[str] | None) -> str:
    """Read a file through the line filter.

    Args:
        path (Path): the file to read
        line_filter (re.Pattern[str] | None): lines to drop

    Raises:
        OSError: if the file cannot be read

    Returns:
        str: the content
    """
    with path.open("rb") as f:
        return read_filtered(f, line_filter)


# ------------------------------ Tree ----------------------------------------


def build_tree(root_name: str, rel_paths: Sequence[str]) -> TreeNode | None:
    """Build a directory tree from accepted file paths.

    Directories only appear when they hold at least one accepted file.
    Children keep the order in which their first path was seen.

    Args:
        root_name (str): the base name of the scanned root
        rel_paths (Sequence[str]): accepted paths relative to the root, using POSIX separators

    Returns:
        TreeNode | None: the root node, or None when nothing was accepted
    """
    rels = [p.strip("/").replace("\\", "/") for p in rel_paths if p.strip("/")]
    if not rels:
        return None
    trie: dict[str, Any] = {}
    for rp in rels:
        cur = trie
        parts = rp.split("/")
        for part in parts[:-1]:
            cur = cur.setdefault(part, {})
        cur.setdefault(parts[-1], None)

    def freeze(name: str, full_path: str, node: dict[str, Any] | None) -> TreeNode:
        if node is None:
            return TreeNode(name=name, full_path=full_path, is_directory=False)
        children = tuple(freeze(k, posixpath.join(full_path, k), v) for k, v in node.items())
        return TreeNode(name=name, full_path=full_path, is_directory=True, children=children)

    return freeze(root_name, root_name, trie)


# ------------------------------ Walker --------------------------------------


def resolve_root(directory: str | Path) -> Path:
    """Resolve a root to an absolute path without following symlinks.

    Args:
        directory (str | Path): the root as given by the caller

    Raises:
        PathResolutionError: if no absolute path can be computed

    Returns:
        Path: the absolute root
    """
    try:
        return Path(os.path.abspath(directory))  # noqa: PTH100
    except OSError as e:
        raise PathResolutionError(folder=Path(directory), message=f"Unable to resolve directory: {e}.") from e


def _scan_sorted(directory: Path) -> list[os.DirEntry[str]]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda entry: entry.name)


def walk_directory(
    root: str | Path,
    ignore_set: IgnoreSet,
    pattern_filter: PatternFilter,
    line_filter: re.Pattern[str] | None = None,
    *,
    build_tree_enabled: bool = False,
    list_only: bool = False,
) -> CollectionResult:
    """Collect the accepted text files under one root.

    Entries are visited depth-first in lexicographic order. Ignored
    directories are pruned without being entered. Directories are never
    classified or filtered themselves. Per-entry errors never abort the walk:
    the entry is skipped and its reason recorded.

    Args:
        root (str | Path): the root directory
        ignore_set (IgnoreSet): ignore rules of this root
        pattern_filter (PatternFilter): shared inclusion filter
        line_filter (re.Pattern[str] | None): lines to drop from file content
        build_tree_enabled (bool): also build the tree of accepted files
        list_only (bool): record display paths instead of reading content

    Raises:
        PathResolutionError: if the root cannot be made absolute

    Returns:
        CollectionResult: the tree, items or paths, and skipped entries
    """
    base = resolve_root(root)
    parent = base.name
    log = logger.bind(root=str(base))

    items: list[Item] = []
    paths: list[str] = []
    accepted: list[str] = []
    skipped: list[SkippedEntry] = []

    def skip(rel: str, reason: SkipReason) -> None:
        skipped.append(SkippedEntry(path=rel, reason=reason))

    def visit(directory: Path) -> None:
        try:
            entries = _scan_sorted(directory)
        except OSError as e:
            log.warning("directory unreadable", path=str(directory), error=str(e))
            skip(str(directory), SkipReason.UNREADABLE)
            return
        for entry in entries:
            path = Path(entry.path)
            try:
                rel = relpath(path, base)
            except ValueError:
                skip(str(path), SkipReason.UNRESOLVABLE)
                continue
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False

            if ignore_set.matches(rel, is_dir=is_dir):
                skip(rel, SkipReason.IGNORED)
                continue
            if is_dir:
                visit(path)
                continue
            if classify(path) is TextClass.BINARY:
                skip(rel, SkipReason.BINARY)
                continue
            if not pattern_filter.accept(rel):
                skip(rel, SkipReason.FILTERED)
                continue

            display = posixpath.join(parent, rel)
            if list_only:
                paths.append(display)
            else:
                try:
                    content = read_file_content(path, line_filter)
                except OSError as e:
                    log.warning("file unreadable", path=display, error=str(e))
                    skip(rel, SkipReason.UNREADABLE)
                    continue
                items.append(Item(path=display, content=content))
            accepted.append(rel)

    if base.is_dir():
        visit(base)
    else:
        log.warning("not a directory, skipping", path=str(base))
        skip(str(base), SkipReason.UNREADABLE)

    return CollectionResult(
        root=str(base),
        tree=build_tree(parent, accepted) if build_tree_enabled else None,
        items=tuple(items),
        paths_only=tuple(paths),
        skipped=tuple(skipped),
    )
