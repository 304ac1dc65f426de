from __future__ import annotations

from pathlib import Path

import pytest

from llm_dump.config import CollectionResult, OutputFormat, SkipReason
from llm_dump.file_manipulation import (
    PatternFilter,
    build_ignore_set,
    compile_line_filter,
    walk_directory,
)
from llm_dump.output_construction import render


def _walk(
    root: Path,
    *,
    globs: list[str] | None = None,
    extensions: list[str] | None = None,
    ignore: list[str] | None = None,
    line_filter: str = "",
    build_tree_enabled: bool = False,
    list_only: bool = False,
) -> CollectionResult:
    return walk_directory(
        root,
        build_ignore_set(root, ignore or []),
        PatternFilter.compile(globs or [], extensions or []),
        compile_line_filter(line_filter),
        build_tree_enabled=build_tree_enabled,
        list_only=list_only,
    )


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    root.mkdir()
    (root / "a.go").write_text("package main\n", encoding="utf-8")
    (root / ".gitignore").write_text("*.log\n", encoding="utf-8")
    (root / "b.log").write_text("noise\n", encoding="utf-8")
    return root


@pytest.mark.unit
def test_gitignored_file_is_left_out(project: Path) -> None:
    result = _walk(project)

    assert [item.path for item in result.items] == ["proj/a.go"]
    rendered = "".join(render(item, OutputFormat.XML) for item in result.items)
    assert rendered == "<file path='proj/a.go'>\npackage main\n</file>\n"
    assert "b.log" not in rendered


@pytest.mark.unit
def test_skip_reasons_are_recorded(project: Path) -> None:
    (project / "blob.bin").write_bytes(b"\x00\x01\x02")
    (project / "notes.md").write_text("# notes\n", encoding="utf-8")

    result = _walk(project, extensions=["go"])

    reasons = {entry.path: entry.reason for entry in result.skipped}
    assert reasons == {
        ".gitignore": SkipReason.IGNORED,
        "b.log": SkipReason.IGNORED,
        "blob.bin": SkipReason.BINARY,
        "notes.md": SkipReason.FILTERED,
    }


@pytest.mark.unit
def test_ignored_directory_is_pruned_even_if_glob_matches(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / "node_modules" / "lib" / "index.js").write_text("x\n", encoding="utf-8")
    (root / "app.js").write_text("y\n", encoding="utf-8")

    result = _walk(root, globs=["**/*.js", "*.js"], ignore=["node_modules/"])

    assert [item.path for item in result.items] == ["repo/app.js"]
    skipped = [entry.path for entry in result.skipped]
    assert skipped == ["node_modules"]


@pytest.mark.unit
def test_git_metadata_is_never_visited(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    (root / ".git").mkdir(parents=True)
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    (root / "main.py").write_text("print()\n", encoding="utf-8")

    result = _walk(root)

    assert [item.path for item in result.items] == ["repo/main.py"]


@pytest.mark.unit
def test_binary_file_is_excluded_without_filters(tmp_path: Path) -> None:
    root = tmp_path / "r"
    root.mkdir()
    (root / "text.txt").write_text("hello\n", encoding="utf-8")
    (root / "data.bin").write_bytes(b"abc\x00def")

    result = _walk(root)

    assert [item.path for item in result.items] == ["r/text.txt"]


@pytest.mark.unit
def test_traversal_is_depth_first_lexicographic(tmp_path: Path) -> None:
    root = tmp_path / "r"
    (root / "b").mkdir(parents=True)
    (root / "a.txt").write_text("1\n", encoding="utf-8")
    (root / "b" / "z.txt").write_text("2\n", encoding="utf-8")
    (root / "c.txt").write_text("3\n", encoding="utf-8")
    (root / "b" / "a.txt").write_text("4\n", encoding="utf-8")

    result = _walk(root)

    assert [item.path for item in result.items] == ["r/a.txt", "r/b/a.txt", "r/b/z.txt", "r/c.txt"]


@pytest.mark.unit
def test_list_only_records_paths_without_content(tmp_path: Path) -> None:
    root = tmp_path / "r"
    root.mkdir()
    for name in ("x.py", "y.py", "z.py"):
        (root / name).write_text("pass\n", encoding="utf-8")
    (root / "ignored.py").write_text("pass\n", encoding="utf-8")

    result = _walk(root, ignore=["ignored.py"], list_only=True)

    assert result.paths_only == ("r/x.py", "r/y.py", "r/z.py")
    assert result.items == ()


@pytest.mark.unit
def test_line_filter_is_applied_to_file_content(tmp_path: Path) -> None:
    root = tmp_path / "r"
    root.mkdir()
    (root / "f.txt").write_text("keep\nDROPME\nkeep2\n", encoding="utf-8")

    result = _walk(root, line_filter="DROPME")

    assert result.items[0].content == "keep\nkeep2\n"


@pytest.mark.unit
def test_tree_prunes_directories_without_accepted_files(tmp_path: Path) -> None:
    root = tmp_path / "r"
    (root / "src").mkdir(parents=True)
    (root / "assets").mkdir()
    (root / "logs").mkdir()
    (root / "src" / "main.go").write_text("package main\n", encoding="utf-8")
    (root / "assets" / "logo.png").write_bytes(b"\x89PNG\x00")
    (root / "logs" / "run.log").write_text("x\n", encoding="utf-8")

    result = _walk(root, ignore=["*.log"], build_tree_enabled=True)

    assert result.tree is not None
    assert [child.name for child in result.tree.children] == ["src"]
    assert result.tree.children[0].children[0].name == "main.go"


@pytest.mark.unit
def test_walking_twice_is_identical(project: Path) -> None:
    (project / "sub").mkdir()
    (project / "sub" / "c.go").write_text("package sub\n", encoding="utf-8")

    first = _walk(project, build_tree_enabled=True)
    second = _walk(project, build_tree_enabled=True)

    assert first == second


@pytest.mark.unit
def test_missing_root_yields_empty_result(tmp_path: Path) -> None:
    result = _walk(tmp_path / "absent")

    assert result.items == ()
    assert result.skipped[0].reason is SkipReason.UNREADABLE
