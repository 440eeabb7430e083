from __future__ import annotations

import io
import math
import os
import stat
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import pathspec
from pydantic import BaseModel, ConfigDict, Field

from repo2pdf.config import (
    BINARY_EXTENSIONS,
    BINARY_SNIFF_BYTES,
    DEFAULT_EXCLUDES,
    IGNORE_FILE_NAME,
    MAX_ELIGIBLE_FILE_SIZE,
    READ_CHUNK_SIZE,
    FileEntry,
    normalize_extension,
)
from repo2pdf.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from repo2pdf.settings import RenderOptions

SIZE_EXCEEDED_PLACEHOLDER = (
    "// This file was skipped because it exceeds the size limit.\n"
    "// File size: {size}\n"
    "// Maximum allowed size: {limit}"
)
READ_ERROR_PLACEHOLDER = "// This file could not be read: {error}"

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


class FileMetadata(BaseModel):
    """Filesystem metadata shown in a file section."""

    model_config = ConfigDict(frozen=True)

    size: int = Field(..., ge=0, description="File size in bytes")
    modified: datetime | None = Field(default=None, description="Last modification time")


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def format_file_size(num_bytes: int) -> str:
    """Format a byte count with a binary unit, e.g. ``2 MB`` or ``976.56 KB``."""
    if num_bytes <= 0:
        return "0 Bytes"
    exponent = min(int(math.floor(math.log(num_bytes, 1024))), len(_SIZE_UNITS) - 1)
    value = num_bytes / 1024**exponent
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[exponent]}"


def is_hidden(rel: str) -> bool:
    """Check if any segment of a relative path is a dotfile or dot-directory."""
    return any(part.startswith(".") for part in rel.split("/") if part)


def is_binary_file(path: Path, nbytes: int = BINARY_SNIFF_BYTES) -> bool:
    """Read the first ``nbytes`` and report whether they contain a zero byte.

    Raises:
        OSError: if the file cannot be opened or read.
    """
    with path.open("rb") as f:
        chunk = f.read(nbytes)
    return b"\0" in chunk


def expand_segment_wildcards(pattern: str) -> str:
    """Let a lone ``*`` in a path-like ignore pattern reach into subdirectories.

    Patterns without an inner separator already match at any depth, so only
    patterns such as ``src/*.js`` or ``/docs/*`` are rewritten (``src/**/*.js``
    and ``/docs/**``). ``**`` segments are left alone.

    Args:
        pattern (str): a single gitignore pattern

    Returns:
        str: the rewritten pattern
    """
    negated = pattern.startswith("!")
    body = pattern[1:] if negated else pattern
    if "*" not in body or "/" not in body.rstrip("/"):
        return pattern
    trailing = "/" if body.endswith("/") else ""
    segments = body.rstrip("/").split("/")
    out: list[str] = []
    for seg in segments:
        if seg == "*":
            out.append("**")
        elif "*" in seg and "**" not in seg:
            out.append(f"**/{seg}")
        else:
            out.append(seg)
    return ("!" if negated else "") + "/".join(out) + trailing


def read_ignore_file(root: Path) -> list[str]:
    """Read the project's ignore file, returning its rule lines.

    A missing file yields an empty rule set; an unreadable one is logged and
    also yields an empty rule set.

    Args:
        root (Path): the scanned root directory

    Returns:
        list[str]: the ignore patterns with comments and blank lines removed
    """
    ignore_file = root / IGNORE_FILE_NAME
    if not ignore_file.is_file():
        return []
    try:
        lines = ignore_file.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as e:
        logger.warning("ignore_file_unreadable", path=str(ignore_file), error=str(e))
        return []
    out: list[str] = []
    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        out.append(expand_segment_wildcards(stripped))
    return out


def build_ignore_spec(root: Path, extra_patterns: Iterable[str] = ()) -> pathspec.PathSpec:
    """Compile the built-in excludes, caller excludes and the ignore file into one matcher.

    Args:
        root (Path): the scanned root directory
        extra_patterns (Iterable[str]): caller supplied gitignore-style patterns

    Returns:
        pathspec.PathSpec: the compiled matcher
    """
    extras = [p.strip().replace("\\", "/") for p in extra_patterns if p and p.strip()]
    lines = [*DEFAULT_EXCLUDES, *sorted(extras), *read_ignore_file(root)]
    return pathspec.GitIgnoreSpec.from_lines(lines)


class PathFilter:
    """Decide whether a candidate file under ``root`` qualifies for rendering.

    The predicate only reads filesystem state (stat and the first KiB of the
    file), so calling it twice on an unchanged file gives the same answer.
    """

    def __init__(
        self,
        root: Path,
        options: RenderOptions,
        ignore_spec: pathspec.PathSpec | None = None,
    ) -> None:
        self.root = root
        self.extension_filter = options.extension_filter
        self.ignore_spec = ignore_spec or build_ignore_spec(root, options.exclude_patterns)

    def is_ignored(self, rel: str, *, is_dir: bool = False) -> bool:
        """Check a relative POSIX path against the compiled ignore rules."""
        return self.ignore_spec.match_file(f"{rel}/" if is_dir else rel)

    def can_descend(self, directory: Path) -> bool:
        """Check whether the walk should enter ``directory``."""
        rel = relpath(directory, self.root)
        if is_hidden(rel) or directory.is_symlink():
            return False
        return not self.is_ignored(rel, is_dir=True)

    def eligible(self, path: Path) -> bool:
        """Apply the inclusion rules to ``path``; errors count as "not eligible".

        Args:
            path (Path): absolute path of the candidate file

        Returns:
            bool: True if the file should be rendered
        """
        try:
            rel = path.relative_to(self.root).as_posix()
        except ValueError:
            return False
        if is_hidden(rel):
            return False
        if self.is_ignored(rel):
            return False
        ext = normalize_extension(path.suffix)
        if ext in BINARY_EXTENSIONS:
            return False
        if self.extension_filter is not None and ext not in self.extension_filter:
            return False
        try:
            st = path.lstat()
            if not stat.S_ISREG(st.st_mode):
                return False
            if st.st_size > MAX_ELIGIBLE_FILE_SIZE:
                return False
            return not is_binary_file(path)
        except OSError as e:
            logger.warning("path_check_failed", path=rel, error=str(e))
            return False


def walk_candidates(root: Path, path_filter: PathFilter) -> Iterator[Path]:
    """Walk ``root`` without following links, pruning directories the filter rejects.

    Args:
        root (Path): the directory to walk
        path_filter (PathFilter): decides which directories are entered

    Yields:
        Path: every non-hidden file found, in walk order
    """

    def on_error(err: OSError) -> None:
        logger.warning("directory_unreadable", path=str(err.filename), error=err.strerror)

    for current, dirs, files in os.walk(root, onerror=on_error, followlinks=False):
        base = Path(current)
        dirs[:] = sorted(d for d in dirs if path_filter.can_descend(base / d))
        for name in sorted(files):
            if not name.startswith("."):
                yield base / name


def collect_files(
    root: Path,
    options: RenderOptions,
    *,
    path_filter: PathFilter | None = None,
    max_workers: int | None = None,
) -> list[FileEntry]:
    """Collect the files under ``root`` that survive the path filter.

    Eligibility checks run concurrently; the result is always sorted by relative
    path, so the order does not depend on which check finished first.

    Args:
        root (Path): the directory to scan
        options (RenderOptions): exclude patterns and extension filter
        path_filter (PathFilter | None): a prebuilt filter, mostly for tests
        max_workers (int | None): thread pool size, executor default when None

    Returns:
        list[FileEntry]: the eligible files, possibly empty
    """
    root = Path(root).resolve()
    pf = path_filter or PathFilter(root, options)
    candidates = list(walk_candidates(root, pf))
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        verdicts = list(pool.map(pf.eligible, candidates))
    entries = [
        FileEntry(path=path, rel=relpath(path, root))
        for path, ok in zip(candidates, verdicts, strict=True)
        if ok
    ]
    logger.info("files_collected", root=str(root), candidates=len(candidates), eligible=len(entries))
    return sorted(entries, key=lambda e: e.rel)


def load_content(path: Path, max_size_bytes: int) -> str:
    """Load a file as UTF-8 text, streaming it in fixed-size chunks.

    Files above ``max_size_bytes`` are never read: a placeholder naming both sizes
    is returned instead. Read errors also produce a placeholder.

    Args:
        path (Path): the file to read
        max_size_bytes (int): the per-file render cap

    Returns:
        str: the file text or a placeholder
    """
    try:
        size = path.stat().st_size
        if size > max_size_bytes:
            return SIZE_EXCEEDED_PLACEHOLDER.format(
                size=format_file_size(size),
                limit=format_file_size(max_size_bytes),
            )
        buf = io.StringIO()
        with path.open("r", encoding="utf-8", errors="replace") as f:
            for chunk in iter(lambda: f.read(READ_CHUNK_SIZE), ""):
                buf.write(chunk)
        return buf.getvalue()
    except OSError as e:
        logger.warning("file_unreadable", path=str(path), error=str(e))
        return READ_ERROR_PLACEHOLDER.format(error=e)


def file_metadata(path: Path) -> FileMetadata:
    """Stat a file for its metadata block; a failed stat yields an empty record."""
    try:
        st = path.stat()
    except OSError as e:
        logger.warning("file_stat_failed", path=str(path), error=str(e))
        return FileMetadata(size=0)
    return FileMetadata(size=st.st_size, modified=datetime.fromtimestamp(st.st_mtime).astimezone())

