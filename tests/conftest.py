from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from pytest_mock import MockerFixture


class RecordingWriter:
    """In-memory DocumentWriter keeping every call as an event tuple."""

    def __init__(self, destination: Path | None = None, **kwargs: Any) -> None:
        self.destination = destination
        self.kwargs = kwargs
        self.events: list[tuple[Any, ...]] = []
        self.closed = False
        self.aborted = False

    def new_page(self) -> None:
        self.events.append(("new_page",))

    def write_text(self, text: str, *, size: float = 10, bold: bool = False, centered: bool = False) -> None:
        self.events.append(("text", text))

    def write_heading(self, text: str, *, anchor: str | None = None, size: float = 16) -> None:
        self.events.append(("heading", text, anchor))

    def write_link(self, text: str, anchor: str, *, size: float = 12) -> None:
        self.events.append(("link", text, anchor))

    def write_code_line(self, runs: Sequence[tuple[str, str]], *, prefix: str = "") -> None:
        self.events.append(("code", list(runs), prefix))

    def space(self, lines: float = 1) -> None:
        self.events.append(("space",))

    def release(self) -> None:
        self.events.append(("release",))

    def close(self) -> None:
        self.closed = True

    def abort(self) -> None:
        self.aborted = True

    # views

    def texts(self) -> list[str]:
        return [e[1] for e in self.events if e[0] == "text"]

    def links(self) -> list[tuple[str, str]]:
        return [(e[1], e[2]) for e in self.events if e[0] == "link"]

    def headings(self) -> list[tuple[str, str | None]]:
        return [(e[1], e[2]) for e in self.events if e[0] == "heading"]

    def sections(self) -> dict[str, list[tuple[list[tuple[str, str]], str]]]:
        """Code lines grouped under the file heading they follow."""
        out: dict[str, list[tuple[list[tuple[str, str]], str]]] = {}
        current: str | None = None
        for event in self.events:
            if event[0] == "heading":
                current = event[1]
                out[current] = []
            elif event[0] == "code" and current is not None:
                out[current].append((event[1], event[2]))
        return out


@pytest.fixture
def recording_writer() -> RecordingWriter:
    return RecordingWriter()


@pytest.fixture
def recorded_writers(mocker: MockerFixture) -> list[RecordingWriter]:
    """Replace the PDF writer used by ``build_pdf``; collects the writers it creates."""
    writers: list[RecordingWriter] = []

    def factory(destination: Path, **kwargs: Any) -> RecordingWriter:
        writer = RecordingWriter(destination, **kwargs)
        writers.append(writer)
        return writer

    mocker.patch("repo2pdf.output_construction.PdfDocumentWriter", side_effect=factory)
    return writers
