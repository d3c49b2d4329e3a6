"""Estimate structural characteristics of an extracted grid and pick a processing strategy."""

import logging
from statistics import mean
from typing import Optional, Sequence

from census_intake.constants import ERROR_MARKERS, CellKind, SourceKind
from census_intake.models.grid import Cell, RawGrid, Row, cell_kind, cell_text, is_empty_row, parse_amount
from census_intake.models.processed import FormatAssessment, FormatCharacteristics, ProcessingStrategy
from census_intake.structure.patterns import CURP_PATTERN, RFC_PATTERN, parse_date
from census_intake.utils.scoring_config import DEFAULT_SCORING, ScoringConfig
from census_intake.utils.text import any_keyword

logger = logging.getLogger(__name__)

HEADER_KEYWORDS = ("nombre", "name", "rfc", "curp", "fecha", "date", "sueldo", "salario", "salary", "codigo")

QUALITY_SCORES = {"high": 0.9, "medium": 0.6, "low": 0.2}
DELIMITED_QUALITY_SCORES = {"high": 0.9, "medium": 0.7, "low": 0.3}

STRATEGIES = {
    "structured_spreadsheet": ProcessingStrategy(
        method="structured_spreadsheet_processing",
        priority=10,
        challenges=[],
        suggestions=["Map columns directly against the standard field catalogue"],
    ),
    "unstructured_spreadsheet": ProcessingStrategy(
        method="intelligent_spreadsheet_parsing",
        priority=6,
        challenges=["Irregular layout", "Headers may not be on the first row", "Possible embedded tables"],
        suggestions=["Segment tables on blank rows", "Confirm header rows with the client"],
    ),
    "delimited_table": ProcessingStrategy(
        method="delimited_parsing",
        priority=9,
        challenges=["Delimiter and encoding must be inferred"],
        suggestions=["Verify the detected delimiter", "Check accented characters survived decoding"],
    ),
    "pdf_table": ProcessingStrategy(
        method="pdf_table_extraction",
        priority=8,
        challenges=["Column boundaries are inferred from spacing", "Tables may span pages"],
        suggestions=["Ask for the original spreadsheet if available", "Review every mapped column"],
    ),
    "pdf_text": ProcessingStrategy(
        method="pdf_text_parsing",
        priority=5,
        challenges=["No tabular structure detected", "Records must be recovered from free text"],
        suggestions=["Request a spreadsheet export", "Validate record counts manually"],
    ),
    "image_table": ProcessingStrategy(
        method="ocr_table_extraction",
        priority=4,
        challenges=["OCR errors in names and identifiers", "Digits may be misread"],
        suggestions=["Request a digital copy", "Validate identifiers and salaries manually"],
    ),
    "free_text": ProcessingStrategy(
        method="text_pattern_extraction",
        priority=2,
        challenges=["Fields are separated by spacing only"],
        suggestions=["Request a delimited export"],
    ),
    "unknown": ProcessingStrategy(
        method="manual_analysis",
        priority=1,
        challenges=["File kind not recognized"],
        suggestions=["Ask the client for a spreadsheet or CSV file"],
    ),
}


class FormatCharacteristicsClassifier:
    """Advisory format characterization. Its output never drives the mapping."""

    def __init__(self, scoring: ScoringConfig = DEFAULT_SCORING):
        self.scoring = scoring

    def classify(
        self,
        grid: RawGrid,
        source_kind: SourceKind,
        text: Optional[str] = None,
        low_fidelity: bool = False,
        confidence_ceiling: float = 1.0,
    ) -> FormatAssessment:
        characteristics = self.characteristics(grid)
        primary, confidence = self._primary_format(source_kind, grid, characteristics)
        if low_fidelity:
            confidence = min(confidence, confidence_ceiling)

        strategy = STRATEGIES[primary]
        assessment = FormatAssessment(
            primary_format=primary,
            confidence=round(confidence, 4),
            characteristics=characteristics,
            strategy=ProcessingStrategy(
                method=strategy.method,
                priority=strategy.priority,
                challenges=list(strategy.challenges),
                suggestions=list(strategy.suggestions),
            ),
        )
        logger.info(
            f"Format {primary} (confidence {assessment.confidence:.2f}, "
            f"strategy {strategy.method}, ~{characteristics.estimated_records} records)"
        )
        return assessment

    def characteristics(self, grid: RawGrid) -> FormatCharacteristics:
        rows = grid.non_empty_rows()
        return FormatCharacteristics(
            has_headers=self.detect_headers(rows[0]) if rows else False,
            structural_consistency=self.structural_consistency(rows),
            data_quality=self.data_quality(rows, grid.width),
            has_multiple_tables=self.has_multiple_tables(grid),
            estimated_records=self.estimate_record_count(rows, grid.width),
        )

    def detect_headers(self, first_row: Row) -> bool:
        cells = [c for c in first_row if c is not None]
        if not cells:
            return False
        score = 0.0
        for cell in cells:
            if cell_kind(cell) != CellKind.TEXT:
                continue
            if parse_amount(cell) is None:
                score += 1
            if any_keyword(HEADER_KEYWORDS, cell):
                score += 2
            if cell[:1].isupper():
                score += 0.5
        return score >= len(first_row) * self.scoring.header_width_ratio

    def structural_consistency(self, rows: Sequence[Row]) -> float:
        if not rows:
            return 0.0
        expected = len(rows[0])
        rest = rows[1:]
        if not rest:
            return 1.0
        consistent = sum(1 for r in rest if abs(len(r) - expected) <= 1)
        return consistent / len(rest)

    def data_quality(self, rows: Sequence[Row], width: int) -> str:
        sample = list(rows[: self.scoring.quality_sample_rows])
        if not sample or width == 0:
            return "low"
        total = len(sample) * width
        filled = [c for r in sample for c in r if c is not None]
        fill_rate = len(filled) / total
        errors = sum(1 for c in filled if any(m in cell_text(c).upper() for m in ERROR_MARKERS))
        error_rate = errors / len(filled) if filled else 0.0

        if fill_rate > 0.8 and error_rate < 0.05:
            return "high"
        if fill_rate > 0.5 and error_rate < 0.15:
            return "medium"
        return "low"

    def has_multiple_tables(self, grid: RawGrid) -> bool:
        if grid.row_count < self.scoring.multiple_table_min_rows:
            return False
        run = 0
        seen_data = False
        for row in grid.rows:
            if is_empty_row(row):
                run += 1
                continue
            if seen_data and run >= self.scoring.multiple_table_empty_rows:
                return True
            seen_data = True
            run = 0
        return False

    def estimate_record_count(self, rows: Sequence[Row], width: int) -> int:
        if width == 0:
            return 0
        record_rows = sum(
            1 for r in rows
            if sum(1 for c in r if self._looks_like_data(c)) / width >= self.scoring.record_row_ratio
        )
        return max(record_rows - 1, 0)

    def _looks_like_data(self, cell: Cell) -> bool:
        if cell is None:
            return False
        if parse_amount(cell) is not None or parse_date(cell) is not None:
            return True
        text = cell_text(cell).upper()
        return bool(RFC_PATTERN.match(text) or CURP_PATTERN.match(text))

    def _primary_format(self, kind: SourceKind, grid: RawGrid, ch: FormatCharacteristics):
        tabular_rows = sum(1 for r in grid.non_empty_rows() if sum(1 for c in r if c is not None) >= 3)

        if kind == SourceKind.TABULAR_SPREADSHEET:
            structured = ch.structural_consistency > 0.8 and ch.has_headers and ch.data_quality != "low"
            confidence = mean([
                ch.structural_consistency,
                0.9 if ch.has_headers else 0.3,
                QUALITY_SCORES[ch.data_quality],
            ])
            return ("structured_spreadsheet" if structured else "unstructured_spreadsheet"), confidence
        if kind == SourceKind.DELIMITED_TEXT:
            confidence = mean([
                ch.structural_consistency,
                0.9 if ch.has_headers else 0.6,
                DELIMITED_QUALITY_SCORES[ch.data_quality],
            ])
            return "delimited_table", confidence
        if kind == SourceKind.PORTABLE_DOCUMENT:
            if tabular_rows >= 3:
                return "pdf_table", 0.8 if ch.has_headers else 0.6
            return "pdf_text", 0.3
        if kind == SourceKind.RASTER_IMAGE:
            return "image_table", 0.6 if tabular_rows >= 3 else 0.3
        if kind == SourceKind.PLAIN_TEXT:
            if tabular_rows >= 3 and ch.structural_consistency > 0.8:
                return "free_text", 0.5
            return "free_text", 0.4 if tabular_rows else 0.2
        return "unknown", 0.1
