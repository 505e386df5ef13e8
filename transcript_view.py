"""Transcript panel: renders final and interim words with confidence colours."""

from __future__ import annotations

from html import escape
from typing import Iterable

from models import TranscriptSegment
from transcript import confidence_tier

try:
    from PySide6.QtGui import QTextCursor
    from PySide6.QtWidgets import QTextBrowser
except Exception:  # pragma: no cover
    QTextCursor = None  # type: ignore
    QTextBrowser = object  # type: ignore

TIER_COLOURS = {
    "high": ("#dcfce7", "#166534"),
    "medium": ("#fef9c3", "#854d0e"),
    "low": ("#ffedd5", "#9a3412"),
    "very_low": ("#fee2e2", "#991b1b"),
}


def segments_to_html(segments: Iterable[TranscriptSegment]) -> str:
    parts = []
    for segment in segments:
        if segment.speaker_label is not None:
            colour = "#6b7280" if segment.interim else "#1d4ed8"
            parts.append(
                f'<br><b style="color:{colour}; font-size:small">'
                f"Speaker {segment.speaker_label}:</b><br>"
            )
        background, foreground = TIER_COLOURS[confidence_tier(segment.word.confidence)]
        style = f"background:{background}; color:{foreground};"
        if segment.interim:
            style += " font-style:italic;"
        parts.append(f'<span style="{style}">{escape(segment.word.text)}</span> ')
    return "".join(parts)


def changes_to_html(changes: Iterable[tuple[str, bool]]) -> str:
    return " ".join(
        f"<b>{escape(word)}</b>" if changed else escape(word) for word, changed in changes
    )


class TranscriptView(QTextBrowser):
    def __init__(self, placeholder: str = "Press Start to begin.") -> None:
        if QTextCursor is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setReadOnly(True)
        self.setMinimumHeight(300)
        self._placeholder = placeholder
        self.show_placeholder()

    def set_placeholder(self, text: str) -> None:
        self._placeholder = text

    def show_placeholder(self) -> None:
        self.setHtml(f'<i style="color:#6b7280">{escape(self._placeholder)}</i>')

    def set_segments(self, segments: list[TranscriptSegment]) -> None:
        """Render the transcript and keep the newest words in view."""
        if not segments:
            self.show_placeholder()
            return
        self.setHtml(segments_to_html(segments))
        self.moveCursor(QTextCursor.End)
        self.ensureCursorVisible()
