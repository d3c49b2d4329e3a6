"""Delimited text (CSV/TSV) extraction with pandas."""

import csv
import io
import logging

import pandas as pd

from census_intake.exceptions import ExtractionError
from census_intake.extraction.base import ExtractionResult, GridExtractor
from census_intake.extraction.text import decode_text
from census_intake.models.grid import RawGrid

logger = logging.getLogger(__name__)

CANDIDATE_DELIMITERS = (",", ";", "\t", "|")
DELIMITER_NAMES = {",": "comma", ";": "semicolon", "\t": "tab", "|": "pipe"}


def sniff_delimiter(text: str, window: int = 1000) -> str:
    """Most frequent candidate delimiter in the leading window; comma on ties."""
    head = text[:window]
    counts = {d: head.count(d) for d in CANDIDATE_DELIMITERS}
    best = max(CANDIDATE_DELIMITERS, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


def _field_count(line: str, delimiter: str) -> int:
    return line.count(delimiter) + 1


class DelimitedTextExtractor(GridExtractor):
    def extract(self, content: bytes, file_name: str = "") -> ExtractionResult:
        text = decode_text(content)
        if not text.strip():
            return ExtractionResult(grid=RawGrid(), method="Delimited text (empty file)")

        delimiter = sniff_delimiter(text)
        width = max(_field_count(line, delimiter) for line in text.splitlines() or [""])
        try:
            df = pd.read_csv(
                io.StringIO(text),
                sep=delimiter,
                header=None,
                names=list(range(width)),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=False,
                engine="python",
            )
        except (pd.errors.ParserError, csv.Error, ValueError) as e:
            raise ExtractionError(f"Failed to parse delimited file '{file_name}': {e}") from e

        grid = RawGrid.from_dataframe(df)
        logger.debug(f"Parsed '{file_name}' with {DELIMITER_NAMES[delimiter]} delimiter: {grid.row_count} rows")
        return ExtractionResult(
            grid=grid,
            method=f"Delimited text ({DELIMITER_NAMES[delimiter]}-separated, {grid.row_count} rows)",
        )
