from __future__ import annotations

from models import TranscriptSegment, Word
from transcript_view import TIER_COLOURS, changes_to_html, segments_to_html


def test_final_word_uses_confidence_colour() -> None:
    html = segments_to_html([TranscriptSegment(Word("Hello", 0.95), interim=False)])

    background, foreground = TIER_COLOURS["high"]
    assert f"background:{background}; color:{foreground};" in html
    assert "italic" not in html
    assert ">Hello</span>" in html


def test_interim_word_is_italic_and_escaped() -> None:
    html = segments_to_html([TranscriptSegment(Word("<b>", 0.3), interim=True)])

    assert "font-style:italic" in html
    assert TIER_COLOURS["very_low"][0] in html
    assert "&lt;b&gt;" in html


def test_speaker_label_is_rendered_once_per_change() -> None:
    segments = [
        TranscriptSegment(Word("hi", 0.9, 0), interim=False, speaker_label=0),
        TranscriptSegment(Word("there", 0.9, 0), interim=False),
        TranscriptSegment(Word("yes", 0.9, 1), interim=True, speaker_label=1),
    ]

    html = segments_to_html(segments)

    assert html.count("Speaker 0:") == 1
    assert html.count("Speaker 1:") == 1


def test_changes_are_bolded() -> None:
    html = changes_to_html([("the", False), ("red", True), ("fox", False)])

    assert html == "the <b>red</b> fox"
