"""
In-process text document host for the line terminator engine.

TextDocument plays the part of an editor's text buffer: it provides
snapshots, an atomic edit sink and load/save/close lifecycle events.
DocumentInfo is the per-view binding that keeps a document's label in sync
with the shared AnalysisCache.
"""

import enum
import logging
import os
import shutil
import threading
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

from analysis_cache import AnalysisCache, Subscription
from linebreaks import (
    AnalysisResult,
    HighlightLevel,
    LineSenseError,
    LineTerminatorKind,
    LineTerminatorOccurrence,
    ReplacementOperation,
    apply_operations,
    classify,
    highlight_for,
    plan_repair,
    scan_terminators,
)

logger = logging.getLogger("LineSense.document")


class EditRejectedError(LineSenseError):
    """Raised when an edit transaction cannot be applied; nothing was changed."""


class StaleSnapshotError(EditRejectedError):
    """Raised when edits were planned against an older version of the document."""


class DocumentEvent(enum.Enum):
    LOADED = "loaded"
    SAVED = "saved"
    CLOSED = "closed"


class Snapshot(NamedTuple):
    text: str
    version: int


FALLBACK_ENCODING = "latin-1"


def read_text(file_path: str) -> Tuple[str, str]:
    """Read a file without newline translation, returning (content, encoding)."""
    try:
        with open(file_path, "r", newline="", encoding="utf-8") as f:
            return f.read(), "utf-8"
    except UnicodeDecodeError:
        # latin-1 accepts any byte sequence
        logger.warning(
            "UTF-8 decoding failed for %s, falling back to %s", file_path, FALLBACK_ENCODING
        )
        with open(file_path, "r", newline="", encoding=FALLBACK_ENCODING) as f:
            return f.read(), FALLBACK_ENCODING


def write_text(file_path: str, content: str, encoding: str) -> None:
    """Write content with a .bak backup that is restored if the write fails."""
    temp_backup = file_path + ".bak"
    has_backup = False
    if os.path.exists(file_path):
        try:
            shutil.copy2(file_path, temp_backup)
            has_backup = True
        except OSError as e:
            logger.warning("Could not create backup of %s: %s", file_path, str(e))

    try:
        with open(file_path, "w", newline="", encoding=encoding) as f:
            f.write(content)
    except Exception:
        if has_backup:
            try:
                shutil.copy2(temp_backup, file_path)
                os.remove(temp_backup)
                logger.info(
                    "Restored original file from backup after write error: %s",
                    file_path,
                )
            except OSError as restore_err:
                logger.error(
                    "Failed to restore from backup for %s: %s",
                    file_path,
                    str(restore_err),
                )
        raise

    if has_backup and os.path.exists(temp_backup):
        os.remove(temp_backup)


class TextDocument:
    def __init__(self, path: str, text: str = "", encoding: str = "utf-8") -> None:
        self.path = path
        self.encoding = encoding
        self._text = text
        self._version = 0
        self._closed = False
        self._listeners: List[Callable[["TextDocument", DocumentEvent], None]] = []
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: str) -> "TextDocument":
        document = cls(path)
        document.reload()
        return document

    @property
    def text(self) -> str:
        return self._text

    @property
    def version(self) -> int:
        return self._version

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def recognize_nel(self) -> bool:
        """False when the text came through the single-byte fallback, where 0x85 is not NEL."""
        return self.encoding != FALLBACK_ENCODING

    def add_listener(self, listener: Callable[["TextDocument", DocumentEvent], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[["TextDocument", DocumentEvent], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _fire(self, event: DocumentEvent) -> None:
        logger.debug("%s: %s", self.path, event.value)
        for listener in list(self._listeners):
            listener(self, event)

    def snapshot(self) -> Snapshot:
        with self._lock:
            return Snapshot(self._text, self._version)

    def terminators(self, snapshot: Optional[Snapshot] = None) -> List[LineTerminatorOccurrence]:
        if snapshot is None:
            snapshot = self.snapshot()
        return list(scan_terminators(snapshot.text, self.recognize_nel))

    def reload(self) -> None:
        content, encoding = read_text(self.path)
        with self._lock:
            self._text = content
            self.encoding = encoding
            self._version += 1
        self._fire(DocumentEvent.LOADED)

    def save(self) -> None:
        snapshot = self.snapshot()
        write_text(self.path, snapshot.text, self.encoding)
        self._fire(DocumentEvent.SAVED)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._fire(DocumentEvent.CLOSED)

    def apply_edits(
        self, operations: Sequence[ReplacementOperation], expected_version: int
    ) -> int:
        """
        Apply replacement operations as one transaction and return the new version.

        Operations must be in strictly descending start_offset order, must not
        overlap, and must target the snapshot identified by expected_version.
        """
        with self._lock:
            if expected_version != self._version:
                raise StaleSnapshotError(
                    f"{self.path}: edits planned against version {expected_version}, "
                    f"document is at version {self._version}"
                )
            previous_start = None
            for op in operations:
                end = op.start_offset + op.remove_length
                if op.start_offset < 0 or end > len(self._text):
                    raise EditRejectedError(
                        f"{self.path}: span {op.start_offset}..{end} is out of bounds"
                    )
                if previous_start is not None and op.start_offset >= previous_start:
                    raise EditRejectedError(
                        f"{self.path}: edits must be in descending offset order"
                    )
                if previous_start is not None and end > previous_start:
                    raise EditRejectedError(
                        f"{self.path}: span {op.start_offset}..{end} overlaps a later edit"
                    )
                previous_start = op.start_offset
            if not operations:
                return self._version
            self._text = apply_operations(self._text, operations)
            self._version += 1
            return self._version


class DocumentInfo:
    """Line terminator status for one view of a document."""

    def __init__(
        self,
        document: TextDocument,
        cache: AnalysisCache,
        preferred: LineTerminatorKind = LineTerminatorKind.CRLF,
    ) -> None:
        self.document = document
        self.cache = cache
        self.preferred = preferred
        self.line_break_name = ""
        self.highlight = HighlightLevel.NONE
        self._subscription: Optional[Subscription] = None

        document.add_listener(self._on_document_event)
        cell = cache.get_or_create(document.path)
        self._subscription = cell.subscribe(self._on_analysis, replay=True)

    def _on_analysis(self, result: Optional[AnalysisResult]) -> None:
        if result is None:
            self.line_break_name = ""
            self.highlight = HighlightLevel.NONE
            return
        self.line_break_name = result.display_label
        self.highlight = highlight_for(result, self.preferred)

    def _on_document_event(self, document: TextDocument, event: DocumentEvent) -> None:
        if event in (DocumentEvent.LOADED, DocumentEvent.SAVED):
            self.refresh()
        elif event is DocumentEvent.CLOSED:
            self.dispose()

    def refresh(self) -> AnalysisResult:
        result = classify(self.document.terminators())
        self.cache.publish(self.document.path, result)
        return result

    def on_focus(self) -> None:
        if self.line_break_name == "":
            self.refresh()

    def repair_line_breaks(
        self,
        target: LineTerminatorKind = LineTerminatorKind.CRLF,
        confirm: Optional[Callable[[TextDocument, LineTerminatorKind], bool]] = None,
    ) -> int:
        """
        Rewrite every terminator to target in a single edit.

        Returns the number of terminators replaced. Nothing is edited when the
        document is already uniformly target or when confirm declines.
        """
        if self.line_break_name == target.label:
            return 0
        if confirm is not None and not confirm(self.document, target):
            logger.debug("Repair of %s declined", self.document.path)
            return 0

        snapshot = self.document.snapshot()
        operations = plan_repair(self.document.terminators(snapshot), target)
        if not operations:
            return 0
        self.document.apply_edits(operations, snapshot.version)
        logger.info(
            "Converted %d line break(s) to %s in %s",
            len(operations),
            target.label,
            self.document.path,
        )
        self.refresh()
        return len(operations)

    def dispose(self) -> None:
        self.document.remove_listener(self._on_document_event)
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None
