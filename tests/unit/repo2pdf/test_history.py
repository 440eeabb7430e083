from __future__ import annotations

from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from repo2pdf.exceptions import CloneError, GitCommandError, NotAGitRepositoryError
from repo2pdf.history import GitHistoryProvider, clone_repository, is_git_url, parse_log, run_git

LOG = (
    "abc123\x1f2024-03-01T10:00:00+01:00\x1fAlice\x1fAdd parser\x1e\n"
    "def456\x1f2024-02-01T09:00:00+00:00\x1fBob\x1fInitial commit: hello\x1e"
)


def _git_error(stderr: str = "fatal: boom") -> GitCommandError:
    return GitCommandError(command="git log", returncode=128, stdout="", stderr=stderr)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("https://github.com/user/project.git", True),
        ("git@github.com:user/project.git", True),
        ("ssh://git@host/team/project.git/", True),
        ("./project", False),
        ("https://github.com/user/project", False),
    ],
)
def test_is_git_url(source: str, expected: bool) -> None:
    assert is_git_url(source) is expected


@pytest.mark.unit
def test_parse_log() -> None:
    records = parse_log(LOG)

    assert [r.hash for r in records] == ["abc123", "def456"]
    assert records[0].author == "Alice"
    assert records[0].date.utcoffset() is not None
    assert records[1].message == "Initial commit: hello"
    assert parse_log("") == []


@pytest.mark.unit
def test_run_git_raises_on_failure(mocker: MockerFixture, tmp_path: Path) -> None:
    completed = mocker.Mock(returncode=1, stdout="", stderr="fatal: not a git repository\n")
    mocker.patch("repo2pdf.history.subprocess.run", return_value=completed)

    with pytest.raises(GitCommandError) as excinfo:
        run_git(["status"], cwd=tmp_path)

    assert excinfo.value.returncode == 1
    assert excinfo.value.stderr == "fatal: not a git repository"


@pytest.mark.unit
def test_run_git_missing_binary(mocker: MockerFixture, tmp_path: Path) -> None:
    mocker.patch("repo2pdf.history.subprocess.run", side_effect=FileNotFoundError("git"))

    with pytest.raises(GitCommandError) as excinfo:
        run_git(["status"], cwd=tmp_path)

    assert excinfo.value.returncode == 127


@pytest.mark.unit
def test_history_reads_log(mocker: MockerFixture, tmp_path: Path) -> None:
    run = mocker.patch("repo2pdf.history.run_git", side_effect=["true\n", LOG])

    records = GitHistoryProvider(tmp_path, max_count=5).history()

    assert len(records) == 2
    log_args = run.call_args_list[1].args[0]
    assert log_args[0] == "log"
    assert "--max-count=5" in log_args


@pytest.mark.unit
def test_history_outside_repository(mocker: MockerFixture, tmp_path: Path) -> None:
    mocker.patch("repo2pdf.history.run_git", side_effect=_git_error("fatal: not a git repository"))

    with pytest.raises(NotAGitRepositoryError):
        GitHistoryProvider(tmp_path).history()


@pytest.mark.unit
def test_file_info(mocker: MockerFixture, tmp_path: Path) -> None:
    mocker.patch("repo2pdf.history.run_git", return_value=LOG.split("\x1e")[0] + "\x1e")

    info = GitHistoryProvider(tmp_path).file_info(tmp_path / "a.py")

    assert info is not None
    assert info.author == "Alice"
    assert info.message == "Add parser"


@pytest.mark.unit
def test_file_info_unavailable(mocker: MockerFixture, tmp_path: Path) -> None:
    mocker.patch("repo2pdf.history.run_git", side_effect=_git_error())
    provider = GitHistoryProvider(tmp_path)

    assert provider.file_info(tmp_path / "a.py") is None

    mocker.patch("repo2pdf.history.run_git", return_value="")
    assert provider.file_info(tmp_path / "a.py") is None


@pytest.mark.unit
def test_clone_failure(mocker: MockerFixture, tmp_path: Path) -> None:
    mocker.patch("repo2pdf.history.run_git", side_effect=_git_error("fatal: repository not found"))

    with pytest.raises(CloneError) as excinfo:
        clone_repository("https://example.invalid/x.git", tmp_path / "repo")

    assert excinfo.value.reason == "fatal: repository not found"
    assert "could not be cloned" in str(excinfo.value)
