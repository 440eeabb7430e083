from __future__ import annotations

import re
import subprocess  # noqa: S404
from datetime import datetime
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from repo2pdf.exceptions import CloneError, GitCommandError, NotAGitRepositoryError
from repo2pdf.logging import logger

GIT_URL_PATTERN = re.compile(r"^(https?://|git@|ssh://)?[\w.@:/\-~]+\.git/?$")

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = f"%H{_FIELD_SEP}%aI{_FIELD_SEP}%an{_FIELD_SEP}%s{_RECORD_SEP}"


class CommitRecord(BaseModel):
    """One entry of the repository history section."""

    model_config = ConfigDict(frozen=True)

    hash: str = Field(..., description="Full commit hash")
    date: datetime = Field(..., description="Author date")
    author: str = Field(..., description="Author name")
    message: str = Field(..., description="Commit subject")


class FileCommitInfo(BaseModel):
    """Last commit touching a file."""

    model_config = ConfigDict(frozen=True)

    last_modified: datetime
    author: str
    message: str


class HistoryProvider(Protocol):
    """Source of commit metadata for the document."""

    def history(self) -> list[CommitRecord]: ...

    def file_info(self, path: Path) -> FileCommitInfo | None: ...


def is_git_url(source: str) -> bool:
    """Check whether ``source`` looks like a Git repository URL (``....git``)."""
    return bool(GIT_URL_PATTERN.match(source.strip()))


def run_git(args: list[str], cwd: Path) -> str:
    """Run a git command and return its stdout.

    Args:
        args (list[str]): git arguments, without the leading ``git``
        cwd (Path): working directory

    Raises:
        GitCommandError: if git is missing or exits with a non-zero status.

    Returns:
        str: the command's standard output
    """
    command = ["git", *args]
    try:
        out = subprocess.run(  # noqa: S603
            command,
            cwd=str(cwd),
            text=True,
            capture_output=True,
            check=False,
        )
    except OSError as e:
        raise GitCommandError(command=" ".join(command), returncode=127, stdout="", stderr=str(e)) from e
    if out.returncode != 0:
        raise GitCommandError(
            command=" ".join(command),
            returncode=out.returncode,
            stdout=out.stdout,
            stderr=out.stderr.strip(),
        )
    return out.stdout


def parse_log(output: str) -> list[CommitRecord]:
    """Parse ``git log`` output produced with the record/field separator format."""
    records: list[CommitRecord] = []
    for raw in output.split(_RECORD_SEP):
        raw = raw.strip("\n")  # noqa: PLW2901
        if not raw:
            continue
        commit_hash, date, author, message = raw.split(_FIELD_SEP, 3)
        records.append(CommitRecord(hash=commit_hash, date=date, author=author, message=message))
    return records


def clone_repository(url: str, target: Path) -> Path:
    """Clone ``url`` into ``target`` and return the working directory.

    Raises:
        CloneError: if git cannot clone the repository.
    """
    target.mkdir(parents=True, exist_ok=True)
    try:
        run_git(["clone", "--quiet", url, str(target)], cwd=target.parent)
    except GitCommandError as e:
        raise CloneError(url=url, reason=e.stderr) from e
    logger.info("repository_cloned", url=url, target=str(target))
    return target


class GitHistoryProvider:
    """Read commit history from the Git repository containing ``root``."""

    def __init__(self, root: Path, *, max_count: int | None = None) -> None:
        self.root = root
        self.max_count = max_count

    def ensure_repository(self) -> None:
        """Raise NotAGitRepositoryError unless ``root`` is inside a work tree."""
        try:
            run_git(["rev-parse", "--is-inside-work-tree"], cwd=self.root)
        except GitCommandError as e:
            raise NotAGitRepositoryError(folder=self.root) from e

    def history(self) -> list[CommitRecord]:
        """Return the repository log, newest first.

        Raises:
            NotAGitRepositoryError: if ``root`` is not inside a Git work tree.
            GitCommandError: if ``git log`` fails (e.g. no commits yet).
        """
        self.ensure_repository()
        args = ["log", f"--pretty=format:{_LOG_FORMAT}"]
        if self.max_count:
            args.append(f"--max-count={self.max_count}")
        return parse_log(run_git(args, cwd=self.root))

    def file_info(self, path: Path) -> FileCommitInfo | None:
        """Return the last commit touching ``path``, or None when unavailable."""
        try:
            output = run_git(
                ["log", "--max-count=1", f"--pretty=format:{_LOG_FORMAT}", "--", str(path)],
                cwd=self.root,
            )
        except GitCommandError as e:
            logger.warning("file_history_unavailable", path=str(path), error=e.stderr)
            return None
        records = parse_log(output)
        if not records:
            return None
        last = records[0]
        return FileCommitInfo(last_modified=last.date, author=last.author, message=last.message)
