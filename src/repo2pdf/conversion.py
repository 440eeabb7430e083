from __future__ import annotations

import tempfile
from contextlib import ExitStack
from pathlib import Path
from typing import TYPE_CHECKING

from repo2pdf.exceptions import InvalidSourceError, NoEligibleFilesError
from repo2pdf.file_manipulation import collect_files
from repo2pdf.history import GitHistoryProvider, clone_repository, is_git_url
from repo2pdf.i18n import Translator
from repo2pdf.logging import logger
from repo2pdf.output_construction import build_pdf
from repo2pdf.progress import NullProgressSink, RenderContext

if TYPE_CHECKING:
    from repo2pdf.progress import ProgressSink, ProgressState
    from repo2pdf.settings import Settings


def resolve_source(source: str, stack: ExitStack) -> tuple[Path, str]:
    """Turn the source argument into a local working directory.

    Git URLs are cloned into a temporary directory owned by ``stack``.

    Args:
        source (str): a local directory or a Git repository URL
        stack (ExitStack): receives the temporary clone directory

    Raises:
        InvalidSourceError: if ``source`` is neither a directory nor a Git URL.
        CloneError: if the repository cannot be cloned.

    Returns:
        tuple[Path, str]: the working directory and the label for the title page
    """
    if is_git_url(source):
        scratch = Path(stack.enter_context(tempfile.TemporaryDirectory(prefix="repo2pdf-")))
        return clone_repository(source, scratch / "repo"), source
    folder = Path(source).expanduser()
    if not folder.is_dir():
        raise InvalidSourceError(source=source)
    folder = folder.resolve()
    return folder, folder.name


def convert_to_pdf(
    settings: Settings,
    *,
    sink: ProgressSink | None = None,
    translator: Translator | None = None,
) -> ProgressState:
    """Render the configured source to the configured PDF.

    Args:
        settings (Settings): the run configuration
        sink (ProgressSink | None): progress receiver; silent when None
        translator (Translator | None): label catalog; built from ``settings.lang`` when None

    Raises:
        NoEligibleFilesError: if nothing survives filtering; no output is created.

    Returns:
        ProgressState: the final progress
    """
    options = settings.render_options()
    context = RenderContext(
        translator=translator or Translator(settings.lang),
        sink=sink or NullProgressSink(),
    )
    with ExitStack() as stack:
        working_dir, label = resolve_source(settings.source, stack)
        logger.info("conversion_started", source=settings.source, working_dir=str(working_dir))
        entries = collect_files(working_dir, options)
        if not entries:
            raise NoEligibleFilesError(root=working_dir)
        provider = None
        if options.include_history or options.include_commit_info:
            provider = GitHistoryProvider(working_dir)
        state = build_pdf(
            settings.output,
            entries,
            options,
            source_label=label,
            context=context,
            history_provider=provider,
            text_font=settings.font,
            bold_font=settings.bold_font,
            mono_font=settings.mono_font,
        )
    logger.info("conversion_finished", output=str(settings.output), files=state.processed)
    return state
