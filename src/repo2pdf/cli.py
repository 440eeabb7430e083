"""
repo2pdf: render a repository or a local directory as a syntax-highlighted PDF.

Overview
--------
The source is either a local directory or a Git repository URL (cloned to a
temporary directory). Files are selected with the repository's ``.gitignore``,
a built-in exclusion list and optional extension/pattern filters, then rendered
into one PDF with a title page, a linked table of contents, an optional commit
history and one section per file.

Defaults for every option can be set with ``REPO2PDF_*`` variables, in the
environment or in a ``.env`` file found from the current directory.

Usage
-----
Run ``repo2pdf --help`` for full options. Common examples:
    - Local directory, dark theme, line numbers:
        repo2pdf ./my-project out.pdf --theme dark --line-numbers

    - Remote repository, Python and Markdown only, with history:
        repo2pdf https://github.com/user/project.git out.pdf -l py,md -g

    - Turkish labels, log to a file:
        repo2pdf . out.pdf --lang tr --log-file repo2pdf.log
"""

from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING

from repo2pdf import __version__
from repo2pdf.config import Theme
from repo2pdf.conversion import convert_to_pdf
from repo2pdf.exceptions import Repo2PdfError
from repo2pdf.i18n import SUPPORTED_LOCALES, Translator
from repo2pdf.logging import logger, setup_logging
from repo2pdf.progress import ConsoleProgressSink, NullProgressSink
from repo2pdf.settings import ENV_PREFIX, Settings, env_defaults

if TYPE_CHECKING:
    from collections.abc import Sequence

_TRUE = {"1", "true", "yes", "on"}


def _size_kib(value: str) -> int:
    """Parse a non-negative size in KiB."""
    try:
        size = int(value)
    except ValueError:
        size = -1
    if size < 0:
        msg = f"invalid size in KiB: {value!r}"
        raise argparse.ArgumentTypeError(msg)
    return size


def _coerce_defaults(raw: dict[str, str]) -> dict[str, object]:
    """Convert ``REPO2PDF_*`` string values to argparse defaults.

    Raises:
        ValueError: if a value cannot be converted; the message names the variable.
    """
    flags = {"line_numbers", "git_history", "commit_info", "progress", "strict_history"}
    out: dict[str, object] = {}
    for key, value in raw.items():
        if key in flags:
            out[key] = value.strip().lower() in _TRUE
        elif key == "no_metadata":
            out["metadata"] = value.strip().lower() not in _TRUE
        elif key == "max_size":
            try:
                out[key] = _size_kib(value)
            except argparse.ArgumentTypeError as e:
                msg = f"{ENV_PREFIX}MAX_SIZE: {e}"
                raise ValueError(msg) from e
        elif key in {"font", "bold_font", "mono_font"}:
            out[key] = value or None
        elif key in {"theme", "lang_filter", "exclude", "lang", "log_file"}:
            out[key] = value
    return out


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = argparse.ArgumentParser(
        prog="repo2pdf",
        description=Translator().t("cli.description"),
    )
    p.add_argument("source", type=str, help="Local directory or Git repository URL.")
    p.add_argument("output", type=str, help="Output PDF path.")
    p.add_argument(
        "-t",
        "--theme",
        type=str,
        choices=[t.value for t in Theme],
        default=Theme.LIGHT.value,
        help="PDF color theme.",
    )
    p.add_argument(
        "-l",
        "--lang-filter",
        type=str,
        default="",
        help="Comma separated extensions to include (e.g. py,js,md).",
    )
    p.add_argument("-n", "--line-numbers", action="store_true", help="Show line numbers.")
    p.add_argument("-g", "--git-history", action="store_true", help="Include the Git commit history.")
    p.add_argument(
        "--no-metadata",
        dest="metadata",
        action="store_false",
        help="Hide file size and last modified date.",
    )
    p.add_argument("-c", "--commit-info", action="store_true", help="Show the last commit and author per file.")
    p.add_argument(
        "-e",
        "--exclude",
        type=str,
        default="",
        help="Comma separated gitignore-style patterns to exclude.",
    )
    p.add_argument("-s", "--max-size", type=_size_kib, default=1000, help="Maximum rendered file size in KiB.")
    p.add_argument("-p", "--progress", action="store_true", help="Show a progress line on stderr.")
    p.add_argument("--lang", type=str, choices=list(SUPPORTED_LOCALES), default="en", help="Document language.")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    p.add_argument(
        "--strict-history",
        action="store_true",
        help="Fail when the requested Git history cannot be read.",
    )
    p.add_argument("--font", type=str, default=None, help="TrueType font for titles, labels and headings.")
    p.add_argument("--bold-font", type=str, default=None, help="Bold TrueType font used with --font.")
    p.add_argument("--mono-font", type=str, default=None, help="TrueType font used for code.")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    try:
        p.set_defaults(**_coerce_defaults(env_defaults()))
    except ValueError as e:
        p.error(str(e))
    ns = p.parse_args(argv)
    return Settings(**vars(ns))


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    translator = Translator(settings.lang)
    sink = ConsoleProgressSink(translator) if settings.progress else NullProgressSink()
    if settings.progress:
        print(translator.t("cli.messages.starting", source=settings.source), file=sys.stderr)
    logger.info("run_started", source=settings.source, output=str(settings.output))

    try:
        convert_to_pdf(settings, sink=sink, translator=translator)
    except Repo2PdfError as e:
        logger.error("run_failed", error=type(e).__name__, detail=str(e))
        print(translator.t("cli.messages.error", message=str(e)), file=sys.stderr)
        return 1

    print(translator.t("cli.messages.success", output=settings.output))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
