"""Application entrypoint."""

from __future__ import annotations

import logging
import os
import sys
import threading

from clipboard import ClipboardCopyService
from config import JsonConfigStore
from deepgram_connection import DeepgramTranscriber
from errors import TextFixError
from interfaces import KeyProvider
from key_client import DEEPGRAM_KEY_ENV, GEMINI_KEY_ENV, EnvKeyProvider, HttpKeyProvider
from models import FixResult, SessionStatus, UserMessage
from options import TRANSCRIPTION_OPTIONS
from recorder import SoundDeviceRecorder
from session_controller import SessionController
from text_fixer import fix_with_key_provider
from transcript import TranscriptState
from transcript_view import TranscriptView, changes_to_html

try:
    from PySide6.QtCore import QObject, Signal
    from PySide6.QtWidgets import (
        QApplication,
        QCheckBox,
        QComboBox,
        QHBoxLayout,
        QLabel,
        QLineEdit,
        QPushButton,
        QVBoxLayout,
        QWidget,
    )
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)

MESSAGE_COLOURS = {"error": "#dc2626", "success": "#16a34a", "info": "#4b5563"}

PLACEHOLDERS = {
    SessionStatus.KEY_PENDING: "Initializing...",
    SessionStatus.KEY_UNAVAILABLE: "API Key not configured. Check setup.",
    SessionStatus.LISTENING: "Listening for speech...",
}


def setup_logging() -> None:
    level = os.environ.get("LIVE_SCRIBE_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _key_provider(url: str, env_variable: str) -> KeyProvider:
    if url:
        return HttpKeyProvider(url)
    return EnvKeyProvider(env_variable)


class UIBridge(QObject):
    status_signal = Signal(str, str)  # from_state, to_state
    transcript_signal = Signal()
    message_signal = Signal(str, str)  # kind, text
    fix_signal = Signal(object)  # FixResult or error text


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.config_store = JsonConfigStore()
        self.copy_service = ClipboardCopyService()
        self.correction_keys = _key_provider(
            self.config_store.get_correction_key_url(), GEMINI_KEY_ENV
        )
        self.ui = UIBridge()
        self.ui.status_signal.connect(self._on_status_ui)
        self.ui.transcript_signal.connect(self._on_transcript_ui)
        self.ui.message_signal.connect(self._on_message_ui)
        self.ui.fix_signal.connect(self._on_fix_ui)

        self.controller = SessionController(
            capture=SoundDeviceRecorder(),
            transcriber=DeepgramTranscriber(),
            key_provider=_key_provider(
                self.config_store.get_transcription_key_url(), DEEPGRAM_KEY_ENV
            ),
            option_key=self.config_store.get_option_key(),
            diarize=self.config_store.get_diarization(),
            on_status_change=self._on_status_change,
            on_transcript=self._on_transcript,
            on_message=self._on_message,
        )
        self.window = self._build_window()
        self._refresh_controls()

    def _build_window(self) -> QWidget:
        window = QWidget()
        window.setWindowTitle("Live Scribe")
        window.resize(820, 640)

        self.option_box = QComboBox()
        for option in TRANSCRIPTION_OPTIONS:
            self.option_box.addItem(option.label, option.key)
        self.option_box.setCurrentIndex(
            self.option_box.findData(self.controller.selected_option.key)
        )
        self.option_box.currentIndexChanged.connect(self._on_option_changed)

        self.diarize_box = QCheckBox("Enable Speaker Diarization")
        self.diarize_box.setChecked(self.controller.diarize)
        self.diarize_box.toggled.connect(self._on_diarization_toggled)

        self.toggle_button = QPushButton("Start")
        self.toggle_button.clicked.connect(self.controller.toggle)
        self.retry_key_button = QPushButton("Retry API Key")
        self.retry_key_button.clicked.connect(self._retry_api_key)

        self.status_label = QLabel("")
        self.view = TranscriptView(PLACEHOLDERS[SessionStatus.KEY_PENDING])

        self.prompt_edit = QLineEdit(self.config_store.get_fix_prompt())
        self.prompt_edit.setPlaceholderText("e.g., Fix grammar and clarity...")
        self.fix_button = QPushButton("Fix Transcript with AI")
        self.fix_button.clicked.connect(self._fix_transcript)
        self.copy_button = QPushButton("Copy")
        self.copy_button.clicked.connect(self._copy_transcript)
        self.fix_label = QLabel("")
        self.fix_label.setWordWrap(True)

        controls = QHBoxLayout()
        controls.addWidget(self.option_box, 1)
        controls.addWidget(self.diarize_box)
        controls.addWidget(self.toggle_button)
        controls.addWidget(self.retry_key_button)

        fixing = QHBoxLayout()
        fixing.addWidget(QLabel("AI Fixing Prompt:"))
        fixing.addWidget(self.prompt_edit, 1)
        fixing.addWidget(self.fix_button)
        fixing.addWidget(self.copy_button)

        layout = QVBoxLayout()
        layout.addLayout(controls)
        layout.addWidget(self.status_label)
        layout.addWidget(self.view, 1)
        layout.addLayout(fixing)
        layout.addWidget(self.fix_label)
        window.setLayout(layout)
        return window

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_status_change(self, from_state: SessionStatus, to_state: SessionStatus) -> None:
        self.ui.status_signal.emit(from_state.value, to_state.value)

    def _on_transcript(self, state: TranscriptState) -> None:
        self.ui.transcript_signal.emit()

    def _on_message(self, message: UserMessage) -> None:
        self.ui.message_signal.emit(message.kind, message.text)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_status_ui(self, from_state: str, to_state: str) -> None:
        self._refresh_controls()
        placeholder = PLACEHOLDERS.get(SessionStatus(to_state), "Press Start to begin.")
        self.view.set_placeholder(placeholder)
        if self.controller.transcript.is_empty:
            self.view.show_placeholder()

    def _on_transcript_ui(self) -> None:
        self.view.set_segments(self.controller.segments())
        self._refresh_controls()

    def _on_message_ui(self, kind: str, text: str) -> None:
        self.status_label.setText(text)
        self.status_label.setStyleSheet(f"color: {MESSAGE_COLOURS.get(kind, '#4b5563')};")

    def _on_fix_ui(self, result: object) -> None:
        self.fix_button.setEnabled(True)
        self.fix_button.setText("Fix Transcript with AI")
        if isinstance(result, FixResult):
            self.fix_label.setText(changes_to_html(result.changes))
        else:
            self.fix_label.setText(f'<span style="color:#dc2626">Error: {result}</span>')

    def _refresh_controls(self) -> None:
        status = self.controller.status
        idle_like = status in (
            SessionStatus.IDLE,
            SessionStatus.KEY_PENDING,
            SessionStatus.KEY_UNAVAILABLE,
        )
        self.option_box.setEnabled(idle_like)
        self.diarize_box.setEnabled(idle_like)
        self.toggle_button.setEnabled(self.controller.can_start or self.controller.can_stop)
        self.toggle_button.setText("Stop" if self.controller.can_stop else "Start")
        self.retry_key_button.setVisible(self.controller.can_retry_key)
        has_text = bool(self.controller.final_text())
        self.copy_button.setEnabled(has_text)
        self.fix_button.setEnabled(has_text and self.fix_button.text() != "Fixing...")

    def _on_option_changed(self, index: int) -> None:
        key = self.option_box.itemData(index)
        if self.controller.set_selected_option(key):
            self.config_store.set_option_key(key)

    def _on_diarization_toggled(self, enabled: bool) -> None:
        if self.controller.set_diarization(enabled):
            self.config_store.set_diarization(enabled)
            self.view.set_segments(self.controller.segments())

    def _retry_api_key(self) -> None:
        self.retry_key_button.setVisible(False)
        threading.Thread(target=self.controller.load_api_key, daemon=True).start()

    def _copy_transcript(self) -> None:
        result = self.copy_service.copy_text(self.controller.final_text())
        if result.success:
            self._on_message_ui("success", "Transcript copied to clipboard.")
        else:
            self._on_message_ui("error", f"Copy failed: {result.reason}")

    def _fix_transcript(self) -> None:
        text = self.controller.final_text()
        prompt = self.prompt_edit.text()
        self.config_store.set_fix_prompt(prompt)
        self.fix_button.setEnabled(False)
        self.fix_button.setText("Fixing...")
        # Network round trip; keep it off the Qt main thread.
        threading.Thread(target=self._run_fix, args=(text, prompt), daemon=True).start()

    def _run_fix(self, text: str, prompt: str) -> None:
        try:
            result = fix_with_key_provider(self.correction_keys, text, prompt)
        except TextFixError as exc:
            logger.error(f"Transcript correction failed: {exc}")
            self.ui.fix_signal.emit(str(exc))
            return
        self.ui.fix_signal.emit(result)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.window.show()
        threading.Thread(target=self.controller.load_api_key, daemon=True).start()
        self.app.aboutToQuit.connect(self.controller.shutdown)
        return self.app.exec()


def main() -> int:
    setup_logging()
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
