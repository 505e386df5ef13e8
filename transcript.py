"""Transcript state reducer.

``reduce_transcript`` folds connection events into a ``TranscriptState``:
interim batches replace each other, final batches are appended and always
clear the pending interim batch. Everything here is pure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from models import ConnectionEvent, EventKind, RawWord, TranscriptSegment, Word


@dataclass(frozen=True)
class TranscriptState:
    final_words: tuple[Word, ...] = ()
    interim_words: tuple[Word, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.final_words and not self.interim_words


def to_word(raw: RawWord) -> Word:
    return Word(
        text=raw.punctuated_word or raw.word or "",
        confidence=raw.confidence or 0.0,
        speaker=raw.speaker,
    )


def reduce_transcript(state: TranscriptState, event: ConnectionEvent) -> TranscriptState:
    if event.kind != EventKind.TRANSCRIPT.value:
        return state
    words = tuple(to_word(raw) for raw in event.words)
    if event.is_final:
        return TranscriptState(final_words=state.final_words + words, interim_words=())
    return TranscriptState(final_words=state.final_words, interim_words=words)


def transcript_text(words: Iterable[Word]) -> str:
    return " ".join(word.text for word in words if word.text)


def confidence_tier(confidence: float) -> str:
    if confidence > 0.9:
        return "high"
    if confidence > 0.7:
        return "medium"
    if confidence > 0.5:
        return "low"
    return "very_low"


def _labelled(
    words: Sequence[Word],
    interim: bool,
    diarize: bool,
    seam_speaker: Optional[int] = None,
) -> list[TranscriptSegment]:
    segments = []
    last_speaker: Optional[int] = None
    for index, word in enumerate(words):
        show = diarize and word.speaker is not None and word.speaker != last_speaker
        # The first interim word continues the last final word's speaker.
        if show and index == 0 and interim and word.speaker == seam_speaker:
            show = False
        last_speaker = word.speaker
        label = word.speaker if show else None
        segments.append(TranscriptSegment(word=word, interim=interim, speaker_label=label))
    return segments


def speaker_segments(state: TranscriptState, diarize: bool) -> list[TranscriptSegment]:
    """Final words then interim words, each carrying the speaker label to show before it.

    Labels are tracked separately for the two runs. The interim run's first label is
    dropped when it repeats the speaker of the last final word.
    """
    seam_speaker = state.final_words[-1].speaker if state.final_words else None
    return _labelled(state.final_words, False, diarize) + _labelled(
        state.interim_words, True, diarize, seam_speaker
    )
