from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, TextIO

from repo2pdf.i18n import Translator

if TYPE_CHECKING:
    from datetime import datetime


@dataclass
class ProgressState:
    """How far the assembler has got; only the assembler mutates it."""

    total: int
    processed: int = 0
    current_path: str = ""

    def start_file(self, rel: str) -> None:
        self.current_path = rel

    def advance(self, count: int = 1) -> None:
        """Mark ``count`` more files as done.

        Raises:
            ValueError: if ``count`` is negative or the total would be exceeded.
        """
        if count < 0 or self.processed + count > self.total:
            msg = f"cannot advance progress by {count} from {self.processed}/{self.total}"
            raise ValueError(msg)
        self.processed += count

    @property
    def percent(self) -> int:
        if not self.total:
            return 100
        return round(self.processed * 100 / self.total)


class ProgressSink(Protocol):
    """Receiver of progress notifications."""

    def file_done(self, state: ProgressState) -> None: ...

    def batch_done(self, state: ProgressState) -> None: ...


class NullProgressSink:
    """Sink that ignores every notification."""

    def file_done(self, state: ProgressState) -> None:
        pass

    def batch_done(self, state: ProgressState) -> None:
        pass


class ConsoleProgressSink:
    """Single-line console progress, rewritten in place with a carriage return."""

    def __init__(self, translator: Translator, stream: TextIO | None = None) -> None:
        self.translator = translator
        self.stream = stream or sys.stderr

    def _write(self, state: ProgressState) -> None:
        line = self.translator.t(
            "cli.messages.processing",
            percent=state.percent,
            current=state.processed,
            total=state.total,
        )
        if state.current_path:
            line = f"{line} | {state.current_path}"
        self.stream.write(f"\r\x1b[2K{line}")
        self.stream.flush()

    def file_done(self, state: ProgressState) -> None:
        self._write(state)

    def batch_done(self, state: ProgressState) -> None:
        self._write(state)
        if state.processed == state.total:
            self.stream.write("\n")
            self.stream.flush()


@dataclass
class RenderContext:
    """Per-run state handed to the assembler instead of process-wide globals."""

    translator: Translator = field(default_factory=Translator)
    sink: ProgressSink = field(default_factory=NullProgressSink)
    progress: ProgressState = field(default_factory=lambda: ProgressState(total=0))

    def format_datetime(self, value: datetime) -> str:
        """Render a timestamp for the document in the active locale's convention."""
        if self.translator.locale == "tr":
            return value.strftime("%d.%m.%Y %H:%M:%S")
        return value.strftime("%m/%d/%Y, %I:%M:%S %p")
