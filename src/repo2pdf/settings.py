from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from repo2pdf.config import DEFAULT_MAX_FILE_SIZE_KIB, Theme, normalize_extension

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "REPO2PDF_"


class RenderOptions(BaseModel):
    """Options that shape the rendered document; fixed for the whole run."""

    model_config = ConfigDict(frozen=True)

    theme: Theme = Field(default=Theme.LIGHT, description="Color theme.")
    show_line_numbers: bool = Field(default=False, description="Prefix each line with its number.")
    include_metadata: bool = Field(default=True, description="Show size and last-modified per file.")
    include_commit_info: bool = Field(default=False, description="Show the last commit per file.")
    include_history: bool = Field(default=False, description="Add a repository history section.")
    max_file_size_bytes: int = Field(
        default=DEFAULT_MAX_FILE_SIZE_KIB * 1024,
        ge=0,
        description="Files above are replaced by a placeholder.",
    )
    exclude_patterns: frozenset[str] = Field(default_factory=frozenset, description="Extra gitignore patterns.")
    extension_filter: frozenset[str] | None = Field(
        default=None,
        description="Lowercase extensions to keep; None keeps all.",
    )
    strict_history: bool = Field(
        default=False,
        description="Fail the run when the requested history cannot be read.",
    )

    @field_validator("extension_filter")
    @classmethod
    def _normalize_extensions(cls, value: frozenset[str] | None) -> frozenset[str] | None:
        if value is None:
            return None
        return frozenset(normalize_extension(v) for v in value if normalize_extension(v))


def split_csv(value: str) -> list[str]:
    """Split a comma separated option value, dropping blanks."""
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class Settings(BaseModel):
    """Configuration settings for a repo2pdf run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    source: str = Field(..., description="Local directory or Git repository URL.")
    output: Path = Field(..., description="Output PDF path.")
    theme: Theme = Field(default=Theme.LIGHT, description="PDF theme (light/dark).")
    lang_filter: str = Field(default="", description="Comma list of extensions to include.")
    line_numbers: bool = Field(default=False, description="Show line numbers.")
    git_history: bool = Field(default=False, description="Include Git commit history.")
    metadata: bool = Field(default=True, description="Show file size and last modified date.")
    commit_info: bool = Field(default=False, description="Show last commit and author per file.")
    exclude: str = Field(default="", description="Comma list of patterns to exclude.")
    max_size: int = Field(default=DEFAULT_MAX_FILE_SIZE_KIB, ge=0, description="Maximum file size (KiB).")
    progress: bool = Field(default=False, description="Show progress indicator.")
    lang: str = Field(default="en", description="Document language (en/tr).")
    log_file: str = Field(default="", description="Log file path.")
    strict_history: bool = Field(default=False, description="Fail when the history cannot be read.")
    font: Path | None = Field(default=None, description="TrueType font for titles, labels and headings.")
    bold_font: Path | None = Field(default=None, description="Bold TrueType font used with `font`.")
    mono_font: Path | None = Field(default=None, description="TrueType font for code.")

    def render_options(self) -> RenderOptions:
        """Derive the immutable render options for this run."""
        extensions = split_csv(self.lang_filter)
        return RenderOptions(
            theme=self.theme,
            show_line_numbers=self.line_numbers,
            include_metadata=self.metadata,
            include_commit_info=self.commit_info,
            include_history=self.git_history,
            max_file_size_bytes=self.max_size * 1024,
            exclude_patterns=frozenset(split_csv(self.exclude)),
            extension_filter=frozenset(extensions) if extensions else None,
            strict_history=self.strict_history,
        )


def env_defaults(env_file: str | None = None) -> dict[str, str]:
    """Collect ``REPO2PDF_*`` overrides from a ``.env`` file and the process environment.

    Process variables win over the ``.env`` file. Keys are returned lowercased and
    without the prefix, ready to be used as argparse defaults.

    Args:
        env_file (str | None): the dotenv file to read; defaults to the one found from cwd

    Returns:
        dict[str, str]: option name to raw string value
    """
    path = ENV_FILE if env_file is None else env_file
    merged: dict[str, str | None] = dict(dotenv_values(path)) if path else {}
    merged.update(os.environ)
    return {
        key[len(ENV_PREFIX) :].lower(): value
        for key, value in merged.items()
        if key.startswith(ENV_PREFIX) and value is not None
    }
