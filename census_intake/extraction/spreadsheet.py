"""Spreadsheet (XLSX, XLS, ODS) extraction with pandas; openpyxl, xlrd and odfpy do the reading."""

import io
import logging
import zipfile
from typing import Dict

import pandas as pd
from xlrd import XLRDError
from xlrd.compdoc import CompDocError

from census_intake.exceptions import ExtractionError
from census_intake.extraction.base import ExtractionResult, GridExtractor
from census_intake.models.grid import RawGrid, cell_text
from census_intake.structure.patterns import (
    RFC_PATTERN,
    validate_date,
    validate_person_name,
    validate_salary,
)

logger = logging.getLogger(__name__)


def employee_data_score(grid: RawGrid) -> int:
    """Count cells that look like census data (names, RFCs, salaries, dates)."""
    score = 0
    for row in grid.rows:
        for cell in row:
            if cell is None:
                continue
            if validate_person_name(cell) or validate_salary(cell) or validate_date(cell):
                score += 1
            elif RFC_PATTERN.match(cell_text(cell).upper()):
                score += 2
    return score


class SpreadsheetExtractor(GridExtractor):
    """Reads every sheet and keeps the one that looks most like employee data."""

    def extract(self, content: bytes, file_name: str = "") -> ExtractionResult:
        try:
            sheets: Dict[str, pd.DataFrame] = pd.read_excel(
                io.BytesIO(content), sheet_name=None, header=None, dtype=object
            )
        except (ValueError, OSError, KeyError, ImportError, zipfile.BadZipFile, XLRDError, CompDocError) as e:
            raise ExtractionError(f"Failed to read spreadsheet '{file_name}': {e}") from e

        if not sheets:
            return ExtractionResult(grid=RawGrid(), method="Spreadsheet with no sheets")

        best_name = None
        best_grid = RawGrid()
        best_score = -1
        for name, df in sheets.items():
            grid = RawGrid.from_dataframe(df)
            score = employee_data_score(grid)
            logger.debug(f"Sheet '{name}' of '{file_name}': {grid.row_count} rows, score {score}")
            if score > best_score:
                best_name, best_grid, best_score = name, grid, score

        return ExtractionResult(
            grid=best_grid,
            method=f"Spreadsheet sheet '{best_name}' ({len(sheets)} sheet(s) read)",
        )
