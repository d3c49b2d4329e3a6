"""Data models for structural analysis output."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from census_intake.constants import AnomalyKind, DetectedType, SemanticType, TablePurpose
from census_intake.models.grid import Cell, Row, cell_text


@dataclass
class DetectedColumn:
    """A typed, confidence-scored column of a detected table."""

    index: int
    header: str
    detected_type: DetectedType
    confidence: float
    sample_values: List[Cell] = field(default_factory=list)
    quality_issues: List[str] = field(default_factory=list)
    suggested_field_name: str = ""
    semantic_type: Optional[SemanticType] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "header": self.header,
            "detected_type": self.detected_type.value,
            "semantic_type": self.semantic_type.value if self.semantic_type else None,
            "confidence": self.confidence,
            "sample_values": [cell_text(v) for v in self.sample_values],
            "quality_issues": list(self.quality_issues),
            "suggested_field_name": self.suggested_field_name,
        }


@dataclass
class DetectedTable:
    """A logical table segmented out of the raw grid."""

    index: int
    name: str
    confidence: float
    columns: List[DetectedColumn]
    row_count: int
    preview: List[Row]
    data_rows: List[Row]
    start_row: int
    header_row_index: int
    purpose: TablePurpose = TablePurpose.OTHER
    purpose_scores: Dict[str, float] = field(default_factory=dict)

    def column(self, index: int) -> Optional[DetectedColumn]:
        for col in self.columns:
            if col.index == index:
                return col
        return None

    def column_values(self, index: int) -> List[Cell]:
        """All data values of a column, empties included."""
        return [row[index] if index < len(row) else None for row in self.data_rows]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "confidence": self.confidence,
            "purpose": self.purpose.value,
            "purpose_scores": dict(self.purpose_scores),
            "row_count": self.row_count,
            "start_row": self.start_row,
            "header_row_index": self.header_row_index,
            "columns": [c.to_dict() for c in self.columns],
            "preview": [[cell_text(v) for v in row] for row in self.preview],
        }


@dataclass
class StructuralAnomaly:
    """Structural issue recorded as data and surfaced through questions."""

    kind: AnomalyKind
    message: str
    table_index: int
    column_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "table_index": self.table_index,
            "column_index": self.column_index,
        }


@dataclass
class StructureAnalysis:
    tables: List[DetectedTable]
    overall_confidence: float
    anomalies: List[StructuralAnomaly] = field(default_factory=list)

    def table(self, index: int) -> Optional[DetectedTable]:
        for t in self.tables:
            if t.index == index:
                return t
        return None

    def anomaly_messages(self) -> List[str]:
        return [a.message for a in self.anomalies]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tables": [t.to_dict() for t in self.tables],
            "overall_confidence": self.overall_confidence,
            "anomalies": self.anomaly_messages(),
        }
