"""Raw grid of extracted cells."""

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from census_intake.constants import CellKind

Cell = Union[str, int, float, date, datetime, None]
Row = Tuple[Cell, ...]

_AMOUNT_JUNK = re.compile(r"[\s$,]")


def normalize_cell(value: Any) -> Cell:
    """
    Coerce an extractor value into the closed cell variant.

    pandas NaN/NaT and blank strings become None, Timestamps become datetimes,
    numpy scalars become Python scalars and strings are stripped.
    """
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        return value.to_pydatetime()
    if isinstance(value, (datetime, date)):
        return value
    if hasattr(value, "item") and not isinstance(value, (int, float)):
        # numpy scalar
        return normalize_cell(value.item())
    if isinstance(value, float):
        if math.isnan(value):
            return None
        return float(value)
    if isinstance(value, int):
        return value
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    text = str(value).strip()
    return text or None


def cell_kind(value: Cell) -> CellKind:
    if value is None:
        return CellKind.EMPTY
    if isinstance(value, str):
        return CellKind.TEXT
    if isinstance(value, (datetime, date)):
        return CellKind.DATE
    if isinstance(value, (int, float)):
        return CellKind.NUMBER
    raise TypeError(f"Unsupported cell value: {type(value).__name__}")


def cell_text(value: Cell) -> str:
    """Render a cell as text for pattern matching and display."""
    kind = cell_kind(value)
    if kind == CellKind.EMPTY:
        return ""
    if kind == CellKind.TEXT:
        return value
    if kind == CellKind.DATE:
        if isinstance(value, datetime):
            if value.hour == 0 and value.minute == 0 and value.second == 0:
                return value.date().isoformat()
            return value.isoformat(sep=" ")
        return value.isoformat()
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return format(value, "f").rstrip("0").rstrip(".")
    return str(value)


def parse_amount(value: Cell) -> Optional[float]:
    """Parse a number, accepting "$25,000.00" style text. Returns None if not numeric."""
    kind = cell_kind(value)
    if kind == CellKind.NUMBER:
        return float(value)
    if kind != CellKind.TEXT:
        return None
    cleaned = _AMOUNT_JUNK.sub("", value)
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def is_empty_row(row: Sequence[Cell]) -> bool:
    return all(cell is None for cell in row)


def _trim(row: Iterable[Any]) -> Row:
    cells: List[Cell] = [normalize_cell(v) for v in row]
    while cells and cells[-1] is None:
        cells.pop()
    return tuple(cells)


@dataclass(frozen=True)
class RawGrid:
    """Immutable rows of extracted cells."""

    rows: Tuple[Row, ...] = ()

    @classmethod
    def from_rows(cls, rows: Iterable[Iterable[Any]]) -> "RawGrid":
        return cls(rows=tuple(_trim(row) for row in rows))

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "RawGrid":
        """Build a grid from a headerless DataFrame (``header=None`` reads)."""
        return cls.from_rows(df.itertuples(index=False, name=None))

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def width(self) -> int:
        return max((len(r) for r in self.rows), default=0)

    @property
    def is_empty(self) -> bool:
        return all(is_empty_row(r) for r in self.rows)

    def non_empty_rows(self) -> List[Row]:
        return [r for r in self.rows if not is_empty_row(r)]

    def cell(self, row: int, column: int) -> Cell:
        if row >= len(self.rows) or column >= len(self.rows[row]):
            return None
        return self.rows[row][column]

    def to_lists(self) -> List[List[Any]]:
        """JSON friendly rows (dates rendered as ISO text)."""
        return [[v if cell_kind(v) in (CellKind.TEXT, CellKind.NUMBER) else (cell_text(v) or None) for v in r]
                for r in self.rows]

    def __len__(self) -> int:
        return len(self.rows)
