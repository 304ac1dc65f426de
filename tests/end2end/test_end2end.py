from pathlib import Path

import pytest

from llm_dump import cli


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    (root / "a.go").write_text("package main\n", encoding="utf-8")
    (root / ".gitignore").write_text("*.log\n", encoding="utf-8")
    (root / "b.log").write_text("noise\n", encoding="utf-8")
    return root


def test_end_to_end_xml_dump_respects_gitignore(repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main([str(repo)])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert out == "<file path='repo/a.go'>\npackage main\n</file>\n"
    assert "b.log" not in out


def test_end_to_end_list_only_prints_bare_paths(repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (repo / "cmd").mkdir()
    (repo / "cmd" / "main.go").write_text("package cmd\n", encoding="utf-8")
    (repo / "go.mod").write_text("module repo\n", encoding="utf-8")

    exit_code = cli.main(["-l", "-d", str(repo)])

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == ["repo/a.go", "repo/cmd/main.go", "repo/go.mod"]


def test_end_to_end_binary_files_are_skipped(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = tmp_path / "mixed"
    root.mkdir()
    (root / "notes.txt").write_text("hello\n", encoding="utf-8")
    (root / "image.bin").write_bytes(b"PNG\x00\x01\x02")

    exit_code = cli.main([str(root)])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "mixed/notes.txt" in out
    assert "image.bin" not in out


def test_end_to_end_markdown_with_tree_and_filter(repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (repo / "a.go").write_text("package main\n// generated\nfunc main() {}\n", encoding="utf-8")

    exit_code = cli.main([str(repo), "-o", "md", "--tree", "-e", "go", "-f", "^// "])

    assert exit_code == 0
    assert capsys.readouterr().out == (
        "```tree\nrepo\n└── a.go\n```\n```repo/a.go\npackage main\nfunc main() {}\n```\n"
    )


def test_end_to_end_custom_xml_tag(repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main([str(repo), "--xml-tag", "source"])

    assert exit_code == 0
    assert capsys.readouterr().out == "<source path='repo/a.go'>\npackage main\n</source>\n"
