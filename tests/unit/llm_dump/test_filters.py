from pathlib import Path

import pytest

from llm_dump.exceptions import InvalidPatternError
from llm_dump.file_manipulation import (
    PatternFilter,
    accept,
    build_ignore_set,
    compile_globs,
    expand_braces,
    normalize_globs,
    translate_glob,
)


@pytest.mark.unit
def test_normalize_globs_strips_and_normalizes() -> None:
    globs = ["  src/**/*.py ", "\\tests\\*.py", ""]

    assert normalize_globs(globs) == ["src/**/*.py", "/tests/*.py"]


@pytest.mark.unit
def test_empty_filter_accepts_everything() -> None:
    assert accept("anything/at/all.bin", "bin", (), frozenset())
    assert PatternFilter().accept("Makefile")


@pytest.mark.unit
def test_glob_or_extension_is_enough() -> None:
    pattern_filter = PatternFilter.compile(["docs/*.md"], ["go"])

    assert pattern_filter.accept("docs/intro.md")
    assert pattern_filter.accept("cmd/main.go")
    assert not pattern_filter.accept("cmd/main.py")


@pytest.mark.unit
def test_multiple_globs_are_ored() -> None:
    pattern_filter = PatternFilter.compile(["*.toml", "src/*.py"], [])

    assert pattern_filter.accept("pyproject.toml")
    assert pattern_filter.accept("src/app.py")
    assert not pattern_filter.accept("README.md")


@pytest.mark.unit
def test_single_star_stays_within_one_directory() -> None:
    top_level = PatternFilter.compile(["*.go"], [])
    any_depth = PatternFilter.compile(["**/*.go"], [])

    assert top_level.accept("a.go")
    assert not top_level.accept("sub/b.go")
    assert any_depth.accept("sub/b.go")
    assert any_depth.accept("sub/deeper/c.go")


@pytest.mark.unit
def test_question_mark_does_not_match_separator() -> None:
    pattern_filter = PatternFilter.compile(["a?b"], [])

    assert pattern_filter.accept("axb")
    assert not pattern_filter.accept("a/b")


@pytest.mark.unit
@pytest.mark.parametrize(
    ("pattern", "expected"),
    [
        ("*.go", r"(?s:[^/]*\.go)\Z"),
        ("src/**", r"(?s:src/.*)\Z"),
        ("[!a]?", r"(?s:[^a][^/])\Z"),
    ],
)
def test_translate_glob(pattern: str, expected: str) -> None:
    assert translate_glob(pattern) == expected


@pytest.mark.unit
def test_extension_filter_is_case_insensitive_and_dot_tolerant() -> None:
    pattern_filter = PatternFilter.compile([], [".PY"])

    assert pattern_filter.accept("src/App.PY")
    assert pattern_filter.extensions == frozenset({"py"})


@pytest.mark.unit
def test_empty_extension_selects_extensionless_files() -> None:
    pattern_filter = PatternFilter.compile([], [""])

    assert pattern_filter.accept("Makefile")
    assert pattern_filter.accept("bin/run")
    assert not pattern_filter.accept("main.go")


@pytest.mark.unit
def test_expand_braces() -> None:
    assert expand_braces("*.{go,py}") == ["*.go", "*.py"]
    assert expand_braces("{a,b{c,d}}.txt") == ["a.txt", "bc.txt", "bd.txt"]
    assert expand_braces("plain.txt") == ["plain.txt"]


@pytest.mark.unit
@pytest.mark.parametrize("pattern", ["[abc", "*.{go,py", "a}b", "src/[!"])
def test_compile_globs_rejects_malformed_patterns(pattern: str) -> None:
    with pytest.raises(InvalidPatternError) as exc_info:
        compile_globs([pattern])

    assert exc_info.value.pattern == pattern


@pytest.mark.unit
def test_compile_globs_accepts_character_classes() -> None:
    globs = compile_globs(["file[0-9].txt", "[]]x"])

    assert globs[0].match("file7.txt")
    assert globs[1].match("]x")


@pytest.mark.unit
def test_ignore_set_reads_root_gitignore(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("*.log\nbuild/\n!keep.log\n", encoding="utf-8")

    ignore_set = build_ignore_set(tmp_path, [])

    assert ignore_set.matches("b.log")
    assert ignore_set.matches("deep/c.log")
    assert not ignore_set.matches("keep.log")
    assert ignore_set.matches("build", is_dir=True)
    assert not ignore_set.matches("build")
    assert not ignore_set.matches("a.go")


@pytest.mark.unit
def test_ignore_set_always_excludes_git_metadata(tmp_path: Path) -> None:
    ignore_set = build_ignore_set(tmp_path, [])

    assert ignore_set.matches(".git", is_dir=True)
    assert ignore_set.matches(".gitignore")
    assert ignore_set.matches("sub/.gitignore")


@pytest.mark.unit
def test_implicit_ignores_cannot_be_negated(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("!.gitignore\n", encoding="utf-8")

    ignore_set = build_ignore_set(tmp_path, [])

    assert ignore_set.matches(".gitignore")


@pytest.mark.unit
def test_extra_patterns_override_gitignore(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("*.md\n", encoding="utf-8")

    ignore_set = build_ignore_set(tmp_path, ["!README.md", "vendor"])

    assert not ignore_set.matches("README.md")
    assert ignore_set.matches("CHANGES.md")
    assert ignore_set.matches("vendor", is_dir=True)
