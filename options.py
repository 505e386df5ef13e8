"""Selectable model/language presets for the live transcription backend."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from models import SessionConfig


@dataclass(frozen=True)
class TranscriptionOption:
    key: str
    label: str
    model: str
    language: str
    filler_words: bool = False

    def to_config(self, diarize: bool = False) -> SessionConfig:
        return SessionConfig(
            model=self.model,
            language=self.language,
            filler_words=self.filler_words,
            diarize=diarize,
        )


TRANSCRIPTION_OPTIONS: tuple[TranscriptionOption, ...] = (
    TranscriptionOption("nova3-en-fw", "English (Nova-3) + Filler Words", "nova-3", "en", True),
    TranscriptionOption("nova3-en", "English (Nova-3)", "nova-3", "en"),
    TranscriptionOption(
        "nova3-multi", "Multi (Nova-3) (EN,ES,FR,DE,IT,PT,NL,HI,JA,RU)", "nova-3", "multi"
    ),
    TranscriptionOption("nova2-bg", "Bulgarian (Nova-2)", "nova-2", "bg"),
    TranscriptionOption("nova2-ca", "Catalan (Nova-2)", "nova-2", "ca"),
    TranscriptionOption("nova2-zh", "Chinese (Mandarin, Simplified) (Nova-2)", "nova-2", "zh"),
    TranscriptionOption("nova2-zh-TW", "Chinese (Mandarin, Traditional) (Nova-2)", "nova-2", "zh-TW"),
    TranscriptionOption("nova2-zh-HK", "Chinese (Cantonese, Traditional) (Nova-2)", "nova-2", "zh-HK"),
    TranscriptionOption("nova2-cs", "Czech (Nova-2)", "nova-2", "cs"),
    TranscriptionOption("nova2-da", "Danish (Nova-2)", "nova-2", "da"),
    TranscriptionOption("nova2-nl", "Dutch (Nova-2)", "nova-2", "nl"),
    TranscriptionOption("nova2-en", "English (Nova-2)", "nova-2", "en"),
    TranscriptionOption("nova2-en-fw", "English (Nova-2) + Filler Words", "nova-2", "en", True),
    TranscriptionOption("nova2-et", "Estonian (Nova-2)", "nova-2", "et"),
    TranscriptionOption("nova2-fi", "Finnish (Nova-2)", "nova-2", "fi"),
    TranscriptionOption("nova2-nl-BE", "Flemish (Nova-2)", "nova-2", "nl-BE"),
    TranscriptionOption("nova2-fr", "French (Nova-2)", "nova-2", "fr"),
    TranscriptionOption("nova2-de", "German (Nova-2)", "nova-2", "de"),
    TranscriptionOption("nova2-de-CH", "German (Switzerland) (Nova-2)", "nova-2", "de-CH"),
    TranscriptionOption("nova2-el", "Greek (Nova-2)", "nova-2", "el"),
    TranscriptionOption("nova2-hi", "Hindi (Nova-2)", "nova-2", "hi"),
    TranscriptionOption("nova2-hu", "Hungarian (Nova-2)", "nova-2", "hu"),
    TranscriptionOption("nova2-id", "Indonesian (Nova-2)", "nova-2", "id"),
    TranscriptionOption("nova2-it", "Italian (Nova-2)", "nova-2", "it"),
    TranscriptionOption("nova2-ja", "Japanese (Nova-2)", "nova-2", "ja"),
    TranscriptionOption("nova2-ko", "Korean (Nova-2)", "nova-2", "ko"),
    TranscriptionOption("nova2-lv", "Latvian (Nova-2)", "nova-2", "lv"),
    TranscriptionOption("nova2-lt", "Lithuanian (Nova-2)", "nova-2", "lt"),
    TranscriptionOption("nova2-ms", "Malay (Nova-2)", "nova-2", "ms"),
    TranscriptionOption("nova2-no", "Norwegian (Nova-2)", "nova-2", "no"),
    TranscriptionOption("nova2-pl", "Polish (Nova-2)", "nova-2", "pl"),
    TranscriptionOption("nova2-pt", "Portuguese (Nova-2)", "nova-2", "pt"),
    TranscriptionOption("nova2-ro", "Romanian (Nova-2)", "nova-2", "ro"),
    TranscriptionOption("nova2-ru", "Russian (Nova-2)", "nova-2", "ru"),
    TranscriptionOption("nova2-sk", "Slovak (Nova-2)", "nova-2", "sk"),
    TranscriptionOption("nova2-es", "Spanish (Nova-2)", "nova-2", "es"),
    TranscriptionOption("nova2-sv", "Swedish (Nova-2)", "nova-2", "sv"),
    TranscriptionOption("nova2-th", "Thai (Nova-2)", "nova-2", "th"),
    TranscriptionOption("nova2-tr", "Turkish (Nova-2)", "nova-2", "tr"),
    TranscriptionOption("nova2-uk", "Ukrainian (Nova-2)", "nova-2", "uk"),
    TranscriptionOption("nova2-vi", "Vietnamese (Nova-2)", "nova-2", "vi"),
)

DEFAULT_OPTION_KEY = TRANSCRIPTION_OPTIONS[0].key


def find_option(key: str) -> Optional[TranscriptionOption]:
    for option in TRANSCRIPTION_OPTIONS:
        if option.key == key:
            return option
    return None
