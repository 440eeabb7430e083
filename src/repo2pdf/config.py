from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field

MAX_ELIGIBLE_FILE_SIZE = 10 * 1024 * 1024
BINARY_SNIFF_BYTES = 1024
READ_CHUNK_SIZE = 1024 * 1024
BATCH_SIZE = 10
DEFAULT_MAX_FILE_SIZE_KIB = 1000
IGNORE_FILE_NAME = ".gitignore"


class Theme(StrEnum):
    """Color theme of the generated document."""

    LIGHT = auto()
    DARK = auto()


class ColorClass(StrEnum):
    """Semantic category of a highlighted token.

    The set is closed: every highlighter category is folded into one of these,
    anything unrecognized becomes ``PLAIN``.
    """

    KEYWORD = auto()
    STRING = auto()
    COMMENT = auto()
    NUMBER = auto()
    FUNCTION = auto()
    CLASS = auto()
    BUILTIN = auto()
    LITERAL = auto()
    VARIABLE = auto()
    OPERATOR = auto()
    PUNCTUATION = auto()
    PLAIN = auto()


# Extension (lowercase, no dot) -> Pygments lexer name.
EXT2LANG: dict[str, str] = {
    "bash": "bash",
    "c": "c",
    "cc": "cpp",
    "cfg": "ini",
    "cpp": "cpp",
    "cs": "csharp",
    "css": "css",
    "go": "go",
    "h": "c",
    "hpp": "cpp",
    "htm": "html",
    "html": "html",
    "ini": "ini",
    "java": "java",
    "js": "javascript",
    "json": "json",
    "jsx": "javascript",
    "kt": "kotlin",
    "md": "markdown",
    "mjs": "javascript",
    "php": "php",
    "py": "python",
    "rb": "ruby",
    "rs": "rust",
    "scss": "scss",
    "sh": "bash",
    "sql": "sql",
    "swift": "swift",
    "toml": "toml",
    "ts": "typescript",
    "tsx": "typescript",
    "xml": "xml",
    "yaml": "yaml",
    "yml": "yaml",
    "zsh": "bash",
}

# gitignore syntax, compiled together with the project's ignore file.
DEFAULT_EXCLUDES: tuple[str, ...] = (
    # version control
    ".git/",
    ".gitattributes",
    ".svn/",
    ".hg/",
    # dependencies, builds and caches
    "node_modules/",
    ".venv/",
    "venv/",
    "__pycache__/",
    ".mypy_cache/",
    ".ruff_cache/",
    ".pytest_cache/",
    ".tox/",
    "dist/",
    "build/",
    "out/",
    ".cache/",
    ".next/",
    ".nuxt/",
    "coverage/",
    ".nyc_output/",
    ".coverage",
    ".eslintcache",
    "*.tsbuildinfo",
    "*.pyc",
    # lockfiles
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "poetry.lock",
    "uv.lock",
    "Cargo.lock",
    # environment and editor files
    ".env",
    ".DS_Store",
    ".idea/",
    ".vscode/",
    ".project",
    ".classpath",
    ".settings/",
    ".vs/",
    "*.sublime-*",
    "*.iml",
    ".dockerignore",
    "Thumbs.db",
    "thumbs.db",
    # logs and temporary files
    "*.log",
    "*.tmp",
    "*.temp",
    "*.swp",
)

# Checked case-insensitively against the file suffix.
BINARY_EXTENSIONS: frozenset[str] = frozenset({
    "avi",
    "bmp",
    "eot",
    "flv",
    "gif",
    "ico",
    "jpeg",
    "jpg",
    "mov",
    "mp3",
    "mp4",
    "pdf",
    "png",
    "svg",
    "ttf",
    "webp",
    "wmv",
    "woff",
    "woff2",
})


def normalize_extension(ext: str) -> str:
    """Lowercase an extension and drop its leading dot(s)."""
    return ext.strip().lstrip(".").lower()


def language_for_extension(ext: str) -> str:
    """Map a file extension to a highlighter language name.

    Unknown extensions are returned as-is so the highlighter can try them as a
    lexer name before falling back to auto-detection.

    Args:
        ext (str): the extension, with or without the leading dot

    Returns:
        str: the language name, or "" when the extension is empty
    """
    key = normalize_extension(ext)
    return EXT2LANG.get(key, key)


class FileEntry(BaseModel):
    """A file selected for rendering.

    Attributes:
        path: Absolute path to the file on disk.
        rel: Path relative to the scanned root, with POSIX separators.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to the scanned root")

    @computed_field
    @property
    def extension(self) -> str:
        """Lowercase extension without the leading dot."""
        return normalize_extension(self.path.suffix)

    @computed_field
    @property
    def language(self) -> str:
        """Language hint handed to the tokenizer."""
        return language_for_extension(self.extension)
