from __future__ import annotations

from datetime import datetime
from functools import partial
from itertools import batched
from typing import TYPE_CHECKING

from repo2pdf.config import BATCH_SIZE
from repo2pdf.exceptions import DocumentWriteError, HistoryUnavailableError, Repo2PdfError
from repo2pdf.file_manipulation import file_metadata, format_file_size, load_content
from repo2pdf.logging import logger
from repo2pdf.pdf_writer import PdfDocumentWriter
from repo2pdf.progress import ProgressState, RenderContext
from repo2pdf.tokenizer import color_for, count_lines, tokenize

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence
    from pathlib import Path

    from repo2pdf.config import FileEntry
    from repo2pdf.history import CommitRecord, HistoryProvider
    from repo2pdf.pdf_writer import DocumentWriter
    from repo2pdf.settings import RenderOptions
    from repo2pdf.tokenizer import Line

    ReadFn = Callable[[Path], str]
    TokenizeFn = Callable[[str, str | None], Iterator[Line]]

TITLE_SIZE = 24
SUBTITLE_SIZE = 16
SECTION_SIZE = 20
HEADING_SIZE = 16
BODY_SIZE = 10


def anchor_for(index: int) -> str:
    """Name of the PDF destination of the ``index``-th file section."""
    return f"file-{index}"


def number_prefix(number: int, width: int) -> str:
    return f"{number:>{width}} "


class DocumentAssembler:
    """Drive a DocumentWriter through the sections of the document.

    Sections come in a fixed order: title, table of contents, optional history,
    then one section per file. Files are rendered in batches; after each batch the
    writer is asked to release finished pages and the progress sink is notified.
    """

    def __init__(
        self,
        writer: DocumentWriter,
        options: RenderOptions,
        *,
        context: RenderContext,
        read_file: ReadFn,
        tokenize: TokenizeFn = tokenize,
        history_provider: HistoryProvider | None = None,
        batch_size: int = BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            msg = f"batch_size must be positive, got {batch_size}"
            raise ValueError(msg)
        self.writer = writer
        self.options = options
        self.context = context
        self.read_file = read_file
        self.tokenize = tokenize
        self.history_provider = history_provider
        self.batch_size = batch_size

    def t(self, key: str, **params: object) -> str:
        return self.context.translator.t(key, **params)

    def assemble(self, entries: Sequence[FileEntry], *, source_label: str) -> ProgressState:
        """Write the whole document for ``entries``.

        Args:
            entries (Sequence[FileEntry]): the files, already in document order
            source_label (str): how the source is named on the title page

        Raises:
            HistoryUnavailableError: if history is required (strict) but cannot be read.

        Returns:
            ProgressState: the final progress, with every file processed
        """
        progress = ProgressState(total=len(entries))
        self.context.progress = progress

        self.write_title(source_label)
        self.write_table_of_contents(entries)
        if self.options.include_history:
            self.write_history()

        index = 0
        for batch in batched(entries, self.batch_size):
            for entry in batch:
                progress.start_file(entry.rel)
                self.write_file_section(entry, anchor_for(index))
                index += 1
                progress.advance()
                self.context.sink.file_done(progress)
            self.writer.release()
            self.context.sink.batch_done(progress)

        logger.info("document_assembled", files=progress.processed)
        return progress

    def write_title(self, source_label: str) -> None:
        w = self.writer
        w.new_page()
        w.write_text(self.t("pdf.title"), size=TITLE_SIZE, bold=True, centered=True)
        w.space(2)
        w.write_text(f"{self.t('pdf.metadata.source')}: {source_label}", size=SUBTITLE_SIZE, centered=True)
        w.space()
        generated = self.context.format_datetime(datetime.now().astimezone())
        w.write_text(f"{self.t('pdf.metadata.generated')}: {generated}", size=BODY_SIZE, centered=True)

    def write_table_of_contents(self, entries: Sequence[FileEntry]) -> None:
        w = self.writer
        w.new_page()
        w.write_text(self.t("pdf.tableOfContents"), size=SECTION_SIZE, bold=True, centered=True)
        w.space()
        for index, entry in enumerate(entries):
            w.write_link(entry.rel, anchor_for(index))

    def _read_history(self) -> list[CommitRecord] | None:
        if self.history_provider is None:
            if self.options.strict_history:
                raise HistoryUnavailableError(folder=None, reason="no history provider")
            logger.warning("history_skipped", reason="no history provider")
            return None
        try:
            return self.history_provider.history()
        except Repo2PdfError as e:
            folder = getattr(self.history_provider, "root", None)
            if self.options.strict_history:
                raise HistoryUnavailableError(folder=folder, reason=str(e)) from e
            logger.warning("history_skipped", folder=str(folder), error=str(e))
            return None

    def write_history(self) -> None:
        """Write the repository history section, or nothing when it is unavailable."""
        commits = self._read_history()
        if commits is None:
            return
        w = self.writer
        w.new_page()
        w.write_text(self.t("pdf.gitHistory"), size=SECTION_SIZE, bold=True, centered=True)
        w.space()
        for commit in commits:
            w.write_text(f"{self.t('pdf.metadata.commit')}: {commit.hash}", size=BODY_SIZE)
            w.write_text(f"{self.t('pdf.metadata.author')}: {commit.author}", size=BODY_SIZE)
            w.write_text(
                f"{self.t('pdf.metadata.date')}: {self.context.format_datetime(commit.date)}",
                size=BODY_SIZE,
            )
            w.write_text(f"{self.t('pdf.metadata.message')}: {commit.message}", size=BODY_SIZE)
            w.space()
        w.release()

    def write_file_section(self, entry: FileEntry, anchor: str) -> None:
        """Write the heading, optional metadata and the highlighted body of one file."""
        w = self.writer
        w.new_page()
        w.write_heading(entry.rel, anchor=anchor, size=HEADING_SIZE)

        if self.options.include_metadata:
            meta = file_metadata(entry.path)
            w.write_text(f"{self.t('pdf.metadata.size')}: {format_file_size(meta.size)}", size=BODY_SIZE)
            if meta.modified is not None:
                modified = self.context.format_datetime(meta.modified)
                w.write_text(f"{self.t('pdf.metadata.lastModified')}: {modified}", size=BODY_SIZE)
            w.space()

        if self.options.include_commit_info and self.history_provider is not None:
            info = self.history_provider.file_info(entry.path)
            if info is not None:
                when = self.context.format_datetime(info.last_modified)
                w.write_text(f"{self.t('pdf.metadata.lastCommit')}: {when}", size=BODY_SIZE)
                w.write_text(f"{self.t('pdf.metadata.author')}: {info.author}", size=BODY_SIZE)
                w.write_text(f"{self.t('pdf.metadata.message')}: {info.message}", size=BODY_SIZE)
                w.space()

        text = self.read_file(entry.path)
        width = len(str(count_lines(text)))
        theme = self.options.theme
        for number, line in enumerate(self.tokenize(text, entry.language or None), start=1):
            runs = [(token.text, color_for(token.color_class, theme)) for token in line]
            prefix = number_prefix(number, width) if self.options.show_line_numbers else ""
            w.write_code_line(runs, prefix=prefix)


def build_pdf(
    destination: Path,
    entries: Sequence[FileEntry],
    options: RenderOptions,
    *,
    source_label: str,
    context: RenderContext | None = None,
    history_provider: HistoryProvider | None = None,
    read_file: ReadFn | None = None,
    tokenize_fn: TokenizeFn = tokenize,
    text_font: Path | None = None,
    bold_font: Path | None = None,
    mono_font: Path | None = None,
) -> ProgressState:
    """Render ``entries`` to a PDF file at ``destination``.

    Args:
        destination (Path): the output file
        entries (Sequence[FileEntry]): the files to render, in order
        options (RenderOptions): render options
        source_label (str): the source name printed on the title page
        context (RenderContext | None): locale and progress sink
        history_provider (HistoryProvider | None): commit metadata source
        read_file (ReadFn | None): content loader; defaults to the size-capped loader
        tokenize_fn (TokenizeFn): the tokenizer
        text_font (Path | None): optional TrueType font for text; a system font is looked up otherwise
        bold_font (Path | None): optional bold companion of ``text_font``
        mono_font (Path | None): optional TrueType font for code

    Raises:
        DocumentWriteError: if the destination cannot be written.
        FontError: if a given font file cannot be loaded.

    Returns:
        ProgressState: the final progress
    """
    context = context or RenderContext()
    if read_file is None:
        read_file = partial(load_content, max_size_bytes=options.max_file_size_bytes)
    writer = PdfDocumentWriter(
        destination,
        theme=options.theme,
        title=context.translator.t("pdf.title"),
        text_font=text_font,
        bold_font=bold_font,
        mono_font=mono_font,
    )
    assembler = DocumentAssembler(
        writer,
        options,
        context=context,
        read_file=read_file,
        tokenize=tokenize_fn,
        history_provider=history_provider,
    )
    try:
        state = assembler.assemble(entries, source_label=source_label)
    except OSError as e:
        writer.abort()
        raise DocumentWriteError(destination=destination, reason=str(e)) from e
    except Exception:
        writer.abort()
        raise
    writer.close()
    return state
