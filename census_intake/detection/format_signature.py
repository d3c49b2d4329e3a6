"""Classify a file into a source kind from its name, media type and leading bytes."""

import logging
from pathlib import PurePath
from typing import Optional

from census_intake.constants import SourceKind
from census_intake.utils.scoring_config import DEFAULT_SCORING, ScoringConfig

logger = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS = {".xlsx", ".xlsm", ".xls", ".ods"}
DELIMITED_EXTENSIONS = {".csv", ".tsv"}
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tif", ".tiff", ".webp"}
TEXT_EXTENSIONS = {".txt", ".text", ".dat", ".prn"}

DELIMITED_MEDIA_TYPES = {"text/csv", "text/tab-separated-values", "application/csv"}

BYTE_SIGNATURES = [
    (b"PK\x03\x04", SourceKind.TABULAR_SPREADSHEET),
    (bytes.fromhex("D0CF11E0A1B11AE1"), SourceKind.TABULAR_SPREADSHEET),
    (b"%PDF", SourceKind.PORTABLE_DOCUMENT),
    (bytes.fromhex("89504E47"), SourceKind.RASTER_IMAGE),
    (bytes.fromhex("FFD8FF"), SourceKind.RASTER_IMAGE),
    (b"GIF8", SourceKind.RASTER_IMAGE),
    (b"II*\x00", SourceKind.RASTER_IMAGE),
    (b"MM\x00*", SourceKind.RASTER_IMAGE),
]

CANDIDATE_DELIMITERS = (",", ";", "\t", "|")


class FormatSignatureDetector:
    """Cheap, non-failing file kind classification."""

    def __init__(self, scoring: ScoringConfig = DEFAULT_SCORING, text_window: int = 1024):
        self.scoring = scoring
        self.text_window = text_window

    def detect(
        self,
        file_name: Optional[str],
        media_type: Optional[str] = None,
        head: Optional[bytes] = None,
    ) -> SourceKind:
        """
        Detect the source kind. Never raises; returns UNKNOWN when inconclusive.

        Args:
            file_name: Original file name
            media_type: Declared media type
            head: Leading bytes of the file

        Returns:
            SourceKind
        """
        kind = self.from_hints(file_name or "", (media_type or "").lower())
        if kind is None:
            kind = self.from_signature(head or b"")
        if kind is None:
            kind = self.from_text(head or b"")
        kind = kind or SourceKind.UNKNOWN
        logger.debug(f"Detected {kind.value} for '{file_name}' ({media_type})")
        return kind

    def from_hints(self, file_name: str, media_type: str) -> Optional[SourceKind]:
        extension = PurePath(file_name).suffix.lower()
        if extension in SPREADSHEET_EXTENSIONS or "spreadsheet" in media_type or "excel" in media_type:
            return SourceKind.TABULAR_SPREADSHEET
        if extension == ".pdf" or media_type == "application/pdf":
            return SourceKind.PORTABLE_DOCUMENT
        if extension in DELIMITED_EXTENSIONS or media_type in DELIMITED_MEDIA_TYPES:
            return SourceKind.DELIMITED_TEXT
        if extension in IMAGE_EXTENSIONS or media_type.startswith("image/"):
            return SourceKind.RASTER_IMAGE
        if extension in TEXT_EXTENSIONS or media_type.startswith("text/"):
            return SourceKind.PLAIN_TEXT
        return None

    def from_signature(self, head: bytes) -> Optional[SourceKind]:
        for signature, kind in BYTE_SIGNATURES:
            if head.startswith(signature):
                return kind
        return None

    def from_text(self, head: bytes) -> Optional[SourceKind]:
        window = head[: self.text_window]
        if not window:
            return None
        text = window.decode("utf-8", errors="replace")

        lines = [line for line in text.splitlines()[:5] if line.strip()]
        if len(lines) >= 2:
            density = max(
                sum(line.count(d) for line in lines) / len(lines) for d in CANDIDATE_DELIMITERS
            )
            if density >= self.scoring.delimiter_density:
                return SourceKind.DELIMITED_TEXT

        printable = sum(1 for ch in text if (ch.isprintable() and ch != "\ufffd") or ch in "\r\n\t")
        if printable / len(text) > self.scoring.printable_ratio:
            return SourceKind.PLAIN_TEXT
        return None
