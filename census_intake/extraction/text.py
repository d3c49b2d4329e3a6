"""Plain text extraction: one row per line, cells split on tabs or wide spacing."""

import re
from typing import List, Optional

from census_intake.extraction.base import ExtractionResult, GridExtractor
from census_intake.models.grid import RawGrid

_CELL_SEPARATOR = re.compile(r"\t+|\s{2,}")


def decode_text(content: bytes) -> str:
    """Decode with utf-8 (BOM aware), falling back to latin-1 for legacy exports."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def split_text_line(line: str) -> List[Optional[str]]:
    stripped = line.strip()
    if not stripped:
        return []
    return [cell.strip() for cell in _CELL_SEPARATOR.split(stripped)]


def grid_from_text(text: str) -> RawGrid:
    """Blank lines are kept as empty rows so table segmentation still works."""
    return RawGrid.from_rows(split_text_line(line) for line in text.splitlines())


class PlainTextExtractor(GridExtractor):
    def extract(self, content: bytes, file_name: str = "") -> ExtractionResult:
        text = decode_text(content)
        grid = grid_from_text(text)
        return ExtractionResult(
            grid=grid,
            text=text,
            method=f"Plain text split on tabs and wide spacing ({grid.row_count} lines)",
        )
