"""Page-level PDF output on top of the reportlab canvas.

The writer owns the page cursor: callers hand it styled text and it decides when
a page is full. Lines are wrapped with reportlab's own helpers; code lines are
cut at the monospace column limit.

Text is drawn with TrueType fonts when one is given or found on the system, so
labels such as ``İçindekiler`` keep their letters. Without one the built-in
Type 1 fonts are used and characters outside cp1252 become ``?``.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from repo2pdf.config import ColorClass, Theme
from repo2pdf.exceptions import DocumentWriteError, FontError
from repo2pdf.logging import logger
from repo2pdf.tokenizer import THEME_BACKGROUND, color_for

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import BinaryIO

StyledRun = tuple[str, str]

LINE_NUMBER_COLOR = "#808080"
TAB_WIDTH = 4

BUILTIN_FONTS = {"regular": "Helvetica", "bold": "Helvetica-Bold", "mono": "Courier"}

# (regular, bold) pairs with Latin Extended coverage, first match wins.
SYSTEM_TEXT_FONTS: tuple[tuple[str, str], ...] = (
    ("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
    ("/usr/share/fonts/dejavu-sans-fonts/DejaVuSans.ttf", "/usr/share/fonts/dejavu-sans-fonts/DejaVuSans-Bold.ttf"),
    ("/usr/share/fonts/TTF/DejaVuSans.ttf", "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf"),
    ("/usr/share/fonts/truetype/noto/NotoSans-Regular.ttf", "/usr/share/fonts/truetype/noto/NotoSans-Bold.ttf"),
    ("/System/Library/Fonts/Supplemental/Arial.ttf", "/System/Library/Fonts/Supplemental/Arial Bold.ttf"),
    ("C:/Windows/Fonts/arial.ttf", "C:/Windows/Fonts/arialbd.ttf"),
)

SYSTEM_MONO_FONTS: tuple[str, ...] = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/dejavu-sans-mono-fonts/DejaVuSansMono.ttf",
    "/usr/share/fonts/TTF/DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/noto/NotoSansMono-Regular.ttf",
    "C:/Windows/Fonts/consola.ttf",
)


def find_system_text_fonts() -> tuple[Path, Path] | None:
    """Return the first installed ``(regular, bold)`` text font pair, if any.

    A missing bold face falls back to the regular one.
    """
    for regular, bold in SYSTEM_TEXT_FONTS:
        if Path(regular).is_file():
            return Path(regular), Path(bold) if Path(bold).is_file() else Path(regular)
    return None


def find_system_mono_font() -> Path | None:
    """Return the first installed monospace font, if any."""
    return next((Path(p) for p in SYSTEM_MONO_FONTS if Path(p).is_file()), None)


def layout_code_runs(
    runs: Sequence[StyledRun],
    columns: int,
    *,
    tab_width: int = TAB_WIDTH,
) -> list[list[StyledRun]]:
    """Expand tabs and cut one source line into rows of at most ``columns`` characters.

    Tab stops are counted from the start of the line, across run boundaries.

    Args:
        runs: ``(text, color)`` pairs of a single line
        columns: characters per row
        tab_width: distance between tab stops

    Returns:
        list[list[StyledRun]]: the rows; an empty line gives one empty row
    """
    rows: list[list[StyledRun]] = [[]]
    used = 0
    column = 0
    for text, color in runs:
        chars: list[str] = []
        for char in text:
            if char == "\t":
                width = tab_width - column % tab_width
                chars.append(" " * width)
                column += width
            else:
                chars.append(char)
                column += 1
        pending = "".join(chars)
        while pending:
            if used == columns:
                rows.append([])
                used = 0
            piece = pending[: columns - used]
            rows[-1].append((piece, color))
            used += len(piece)
            pending = pending[len(piece) :]
    return rows


class DocumentWriter(Protocol):
    """What the assembler needs from an output document."""

    def new_page(self) -> None: ...

    def write_text(self, text: str, *, size: float = 10, bold: bool = False, centered: bool = False) -> None: ...

    def write_heading(self, text: str, *, anchor: str | None = None, size: float = 16) -> None: ...

    def write_link(self, text: str, anchor: str, *, size: float = 12) -> None: ...

    def write_code_line(self, runs: Sequence[StyledRun], *, prefix: str = "") -> None: ...

    def space(self, lines: float = 1) -> None: ...

    def release(self) -> None: ...




class PdfDocumentWriter:
    """DocumentWriter producing a PDF file with reportlab.

    The output file is opened immediately so an unwritable destination fails
    before any rendering work. Nothing is written to it until :meth:`close`.

    Fonts given explicitly must load; fonts picked up from the system are skipped
    with a warning when reportlab cannot read them.
    """

    def __init__(
        self,
        destination: Path,
        *,
        theme: Theme = Theme.LIGHT,
        title: str = "",
        author: str = "repo2pdf",
        text_font: Path | None = None,
        bold_font: Path | None = None,
        mono_font: Path | None = None,
        system_fonts: bool = True,
        margin: float = 50,
        code_font_size: float = 8,
    ) -> None:
        self.destination = destination
        self.fonts = dict(BUILTIN_FONTS)
        self.unicode_text = False
        self.unicode_mono = False
        self._load_fonts(text_font, bold_font, mono_font, system_fonts=system_fonts)
        try:
            self._stream: BinaryIO = destination.open("wb")
        except OSError as e:
            raise DocumentWriteError(destination=destination, reason=str(e)) from e
        self._canvas = canvas.Canvas(self._stream, pagesize=A4, pageCompression=1)
        self._canvas.setTitle(title)
        self._canvas.setAuthor(author)
        self.width, self.height = A4
        self.margin = margin
        self.code_font_size = code_font_size
        self.text_color = color_for(ColorClass.PLAIN, theme)
        self.background = THEME_BACKGROUND[theme]
        self._page_open = False
        self._dirty = False
        self._y = 0.0
        self.page_count = 0

    # fonts

    def _register(self, role: str, path: Path, *, required: bool) -> bool:
        name = f"Repo2Pdf-{role}"
        try:
            pdfmetrics.registerFont(TTFont(name, str(path)))
        except (OSError, TTFError) as e:
            if required:
                raise FontError(path=path, reason=str(e)) from e
            logger.warning("font_skipped", path=str(path), error=str(e))
            return False
        self.fonts[role] = name
        return True

    def _load_fonts(
        self,
        text_font: Path | None,
        bold_font: Path | None,
        mono_font: Path | None,
        *,
        system_fonts: bool,
    ) -> None:
        if text_font is not None:
            self._register("regular", text_font, required=True)
            self._register("bold", bold_font or text_font, required=True)
            self.unicode_text = True
        elif system_fonts and (found := find_system_text_fonts()) is not None:
            regular, bold = found
            if self._register("regular", regular, required=False) and self._register("bold", bold, required=False):
                self.unicode_text = True
            else:
                self.fonts.update(regular=BUILTIN_FONTS["regular"], bold=BUILTIN_FONTS["bold"])

        if mono_font is not None:
            self.unicode_mono = self._register("mono", mono_font, required=True)
        elif system_fonts and (found_mono := find_system_mono_font()) is not None:
            self.unicode_mono = self._register("mono", found_mono, required=False)
        logger.debug("fonts_selected", **self.fonts)

    # page state

    def _begin_page(self) -> None:
        if self._page_open:
            return
        if self.background.upper() != "#FFFFFF":
            self._canvas.setFillColor(HexColor(self.background))
            self._canvas.rect(0, 0, self.width, self.height, stroke=0, fill=1)
        self._y = self.height - self.margin
        self._page_open = True
        self._dirty = False
        self.page_count += 1

    def _end_page(self) -> None:
        if self._page_open:
            self._canvas.showPage()
            self._page_open = False
            self._dirty = False

    def _ensure_room(self, height: float) -> None:
        self._begin_page()
        if self._y - height < self.margin and self._dirty:
            self._end_page()
            self._begin_page()

    def _next_line(self, leading: float) -> float:
        self._ensure_room(leading)
        self._y -= leading
        self._dirty = True
        return self._y

    @staticmethod
    def _latin(text: str) -> str:
        # Built-in Type 1 fonts only cover cp1252.
        return text.encode("cp1252", errors="replace").decode("cp1252")

    def _display(self, text: str) -> str:
        return text if self.unicode_text else self._latin(text)

    def new_page(self) -> None:
        """Start a new page unless the current one is still blank."""
        if self._page_open and self._dirty:
            self._end_page()
        self._begin_page()

    def space(self, lines: float = 1) -> None:
        self._begin_page()
        self._y -= 12 * lines

    # text

    def write_text(self, text: str, *, size: float = 10, bold: bool = False, centered: bool = False) -> None:
        font = self.fonts["bold" if bold else "regular"]
        leading = size * 1.3
        for line in simpleSplit(self._display(text), font, size, self.width - 2 * self.margin) or [""]:
            y = self._next_line(leading)
            self._canvas.setFont(font, size)
            self._canvas.setFillColor(HexColor(self.text_color))
            if centered:
                self._canvas.drawCentredString(self.width / 2, y, line)
            else:
                self._canvas.drawString(self.margin, y, line)

    def write_heading(self, text: str, *, anchor: str | None = None, size: float = 16) -> None:
        """Write a centered bold heading, optionally as a link target and outline entry."""
        self._ensure_room(size * 1.3)
        if anchor:
            self._canvas.bookmarkPage(anchor, fit="XYZ", left=0, top=self._y + size)
            self._canvas.addOutlineEntry(self._display(text), anchor, level=0)
        self.write_text(text, size=size, bold=True, centered=True)
        self.space(0.5)

    def write_link(self, text: str, anchor: str, *, size: float = 12) -> None:
        """Write underlined text that jumps to the destination named ``anchor``."""
        font = self.fonts["regular"]
        leading = size * 1.3
        for line in simpleSplit(self._display(text), font, size, self.width - 2 * self.margin) or [""]:
            y = self._next_line(leading)
            line_width = pdfmetrics.stringWidth(line, font, size)
            self._canvas.setFont(font, size)
            self._canvas.setFillColor(HexColor(self.text_color))
            self._canvas.setStrokeColor(HexColor(self.text_color))
            self._canvas.drawString(self.margin, y, line)
            self._canvas.line(self.margin, y - 1.5, self.margin + line_width, y - 1.5)
            self._canvas.linkAbsolute(
                "",
                anchor,
                Rect=(self.margin, y - 3, self.margin + line_width, y + size),
                thickness=0,
            )

    def write_code_line(self, runs: Sequence[StyledRun], *, prefix: str = "") -> None:
        """Write one source line as colored runs, continuing on extra rows when too wide.

        Args:
            runs: ``(text, hex color)`` pairs in display order
            prefix: line-number gutter; continuation rows get a blank gutter
        """
        font = self.fonts["mono"]
        size = self.code_font_size
        leading = size * 1.25
        column_width = pdfmetrics.stringWidth("M", font, size)
        columns = max(1, int((self.width - 2 * self.margin) // column_width) - len(prefix))

        if not self.unicode_mono:
            runs = [(self._latin(text), color) for text, color in runs]
        rows = layout_code_runs(runs, columns)

        gutter = " " * len(prefix)
        for index, row in enumerate(rows):
            y = self._next_line(leading)
            text_object = self._canvas.beginText(self.margin, y)
            text_object.setFont(font, size)
            if prefix:
                text_object.setFillColor(HexColor(LINE_NUMBER_COLOR))
                text_object.textOut(prefix if index == 0 else gutter)
            for text, color in row:
                text_object.setFillColor(HexColor(color))
                text_object.textOut(text)
            self._canvas.drawText(text_object)

    # lifecycle

    def release(self) -> None:
        """Finish the current page so its content is serialized and not held as drawing state."""
        if self._page_open and self._dirty:
            self._end_page()

    def close(self) -> None:
        """Save the document and close the output file.

        Raises:
            DocumentWriteError: if the PDF cannot be written.
        """
        try:
            if not self.page_count:
                self._begin_page()
            if self._page_open:
                self._end_page()
            self._canvas.save()
        except OSError as e:
            raise DocumentWriteError(destination=self.destination, reason=str(e)) from e
        finally:
            self._stream.close()
        logger.info("document_written", path=str(self.destination), pages=self.page_count)

    def abort(self) -> None:
        """Close the output file without saving and remove it."""
        self._stream.close()
        self.destination.unlink(missing_ok=True)
