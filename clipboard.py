"""Copy the transcript to the system clipboard."""

from __future__ import annotations

import logging

from models import CopyResult

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

logger = logging.getLogger(__name__)


class ClipboardCopyService:
    def copy_text(self, text: str) -> CopyResult:
        if not text.strip():
            return CopyResult(success=False, reason="empty text")
        if pyperclip is None:
            return CopyResult(success=False, reason="clipboard dependency missing")
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as exc:
            logger.error(f"Clipboard copy failed: {exc}")
            return CopyResult(success=False, reason=str(exc))
        return CopyResult(success=True, reason="ok")
