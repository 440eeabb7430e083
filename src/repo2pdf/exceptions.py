from dataclasses import dataclass, fields
from pathlib import Path


@dataclass(frozen=True)
class Repo2PdfError(Exception):
    """Base exception for errors in the repo2pdf package."""

    def __str__(self) -> str:
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        message = values.pop("message", type(self).__name__)
        values.pop("stdout", None)
        detail = ", ".join(f"{k}={v}" for k, v in values.items() if v not in ("", None))
        return f"{message} ({detail})" if detail else str(message)


@dataclass(frozen=True)
class GitCommandError(Repo2PdfError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True)
class NotAGitRepositoryError(Repo2PdfError):
    """Raised when the specified directory is not a Git repository."""

    folder: Path
    message: str = "The specified directory is not a Git repository."


@dataclass(frozen=True)
class CloneError(Repo2PdfError):
    """Raised when a remote repository cannot be cloned."""

    url: str
    reason: str
    message: str = "The repository could not be cloned."


@dataclass(frozen=True)
class HistoryUnavailableError(Repo2PdfError):
    """Raised when the commit history was requested but cannot be produced."""

    folder: Path | None
    reason: str
    message: str = "The commit history could not be read."


@dataclass(frozen=True)
class InvalidSourceError(Repo2PdfError):
    """Raised when the source is neither a directory nor a Git URL."""

    source: str
    message: str = "The source is neither a directory nor a Git repository URL."


@dataclass(frozen=True)
class NoEligibleFilesError(Repo2PdfError):
    """Raised when filtering leaves nothing to render."""

    root: Path
    message: str = "No eligible files after filtering. Check the extension and exclude filters."


@dataclass(frozen=True)
class DocumentWriteError(Repo2PdfError):
    """Raised when the output document cannot be opened or written."""

    destination: Path
    reason: str
    message: str = "The output document could not be written."


@dataclass(frozen=True)
class FontError(Repo2PdfError):
    """Raised when a TrueType font file cannot be loaded."""

    path: Path
    reason: str
    message: str = "The font could not be loaded."
