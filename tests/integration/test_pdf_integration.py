from __future__ import annotations

import shutil
import subprocess  # noqa: S404
from pathlib import Path

import pytest

from repo2pdf.config import FileEntry, Theme
from repo2pdf.conversion import convert_to_pdf
from repo2pdf.exceptions import DocumentWriteError, InvalidSourceError, NoEligibleFilesError
from repo2pdf.output_construction import build_pdf
from repo2pdf.pdf_writer import PdfDocumentWriter
from repo2pdf.settings import RenderOptions, Settings

needs_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def _git(cwd: Path, *args: str) -> None:
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)  # noqa: S603, S607


def _make_repo(root: Path) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "app.py").write_text('print("hi")\n', encoding="utf-8")
    _git(root, "init", "--quiet")
    _git(root, "config", "user.email", "alice@example.com")
    _git(root, "config", "user.name", "Alice")
    _git(root, "add", "app.py")
    _git(root, "commit", "--quiet", "-m", "Add app")
    return root


@pytest.mark.integration
def test_real_pdf_is_written(tmp_path: Path) -> None:
    src = tmp_path / "src"
    src.mkdir()
    entries = []
    for name, text in {
        "a.py": "def f():\n    return 'é → ∞'\n" + "x = 1  # " + "long " * 60 + "\n",
        "b.js": "/* multi\nline */\nconst t = `tab\there`;\n",
    }.items():
        path = src / name
        path.write_text(text, encoding="utf-8")
        entries.append(FileEntry(path=path, rel=name))
    output = tmp_path / "out.pdf"
    options = RenderOptions(theme=Theme.DARK, show_line_numbers=True)

    state = build_pdf(output, entries, options, source_label="src")

    data = output.read_bytes()
    assert data.startswith(b"%PDF")
    assert b"%%EOF" in data[-64:]
    assert state.processed == 2


@pytest.mark.integration
def test_writer_does_not_emit_blank_pages(tmp_path: Path) -> None:
    writer = PdfDocumentWriter(tmp_path / "out.pdf")
    writer.new_page()
    writer.new_page()
    writer.write_text("hello")
    writer.release()
    writer.release()
    writer.new_page()
    writer.write_code_line([("x" * 400, "#000000")], prefix="1 ")
    writer.close()

    assert writer.page_count == 2


@pytest.mark.integration
def test_unwritable_destination(tmp_path: Path) -> None:
    with pytest.raises(DocumentWriteError):
        PdfDocumentWriter(tmp_path / "missing" / "out.pdf")


@pytest.mark.integration
def test_convert_respects_gitignore(tmp_path: Path, recorded_writers) -> None:
    repo = tmp_path / "repo"
    (repo / "build").mkdir(parents=True)
    (repo / ".gitignore").write_text("build/\n", encoding="utf-8")
    (repo / "build" / "out.js").write_text("var a = 1;\n", encoding="utf-8")
    (repo / "index.js").write_text("var b = 2;\n", encoding="utf-8")

    convert_to_pdf(Settings(source=str(repo), output=tmp_path / "out.pdf"))

    (writer,) = recorded_writers
    assert [text for text, _ in writer.links()] == ["index.js"]
    assert writer.closed is True


@pytest.mark.integration
def test_convert_rejects_missing_source(tmp_path: Path) -> None:
    with pytest.raises(InvalidSourceError):
        convert_to_pdf(Settings(source=str(tmp_path / "nope"), output=tmp_path / "out.pdf"))


@pytest.mark.integration
def test_convert_without_files_writes_nothing(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "image.png").write_bytes(b"\x89PNG")
    output = tmp_path / "out.pdf"

    with pytest.raises(NoEligibleFilesError):
        convert_to_pdf(Settings(source=str(repo), output=output))

    assert not output.exists()


@pytest.mark.integration
@needs_git
def test_convert_with_history_and_commit_info(tmp_path: Path, recorded_writers) -> None:
    repo = _make_repo(tmp_path / "repo")

    convert_to_pdf(
        Settings(source=str(repo), output=tmp_path / "out.pdf", git_history=True, commit_info=True),
    )

    (writer,) = recorded_writers
    texts = writer.texts()
    assert "Git Commit History" in texts
    assert "Message: Add app" in texts
    assert "Author: Alice" in texts


@pytest.mark.integration
def test_history_outside_repository_is_skipped(tmp_path: Path, recorded_writers) -> None:
    repo = tmp_path / "plain"
    repo.mkdir()
    (repo / "a.py").write_text("x = 1\n", encoding="utf-8")

    convert_to_pdf(Settings(source=str(repo), output=tmp_path / "out.pdf", git_history=True))

    (writer,) = recorded_writers
    assert "Git Commit History" not in writer.texts()
    assert writer.closed is True


@pytest.mark.integration
@needs_git
def test_convert_clones_git_url(tmp_path: Path, recorded_writers) -> None:
    work = _make_repo(tmp_path / "work")
    bare = tmp_path / "origin.git"
    _git(tmp_path, "clone", "--quiet", "--bare", str(work), str(bare))

    convert_to_pdf(Settings(source=str(bare), output=tmp_path / "out.pdf"))

    (writer,) = recorded_writers
    assert [text for text, _ in writer.links()] == ["app.py"]
    assert f"Source: {bare}" in writer.texts()
