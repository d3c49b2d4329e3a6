"""Data models for column-to-standard-field mapping."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from census_intake.constants import AmbiguityKind, TablePurpose


@dataclass
class ColumnClassification:
    """Scores of one column against every catalogue field."""

    column_index: int
    header: str
    best_field: Optional[str]
    confidence: float
    scores: List[Tuple[str, float]] = field(default_factory=list)
    """Candidate fields ranked by score; equal scores keep catalogue order."""

    def score_for(self, field_name: str) -> float:
        for name, score in self.scores:
            if name == field_name:
                return score
        return 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column_index": self.column_index,
            "header": self.header,
            "best_field": self.best_field,
            "confidence": self.confidence,
            "scores": [{"field": n, "score": s} for n, s in self.scores],
        }


@dataclass
class StandardFieldMapping:
    field_name: str
    display_name: str
    required: bool
    priority: int
    mapped_columns: List[int] = field(default_factory=list)
    mapped_headers: List[str] = field(default_factory=list)
    confidence: float = 0.0
    alternatives: List[int] = field(default_factory=list)
    acknowledged_missing: bool = False

    @property
    def is_mapped(self) -> bool:
        return bool(self.mapped_columns)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field_name": self.field_name,
            "display_name": self.display_name,
            "required": self.required,
            "priority": self.priority,
            "mapped_columns": list(self.mapped_columns),
            "mapped_headers": list(self.mapped_headers),
            "confidence": self.confidence,
            "alternatives": list(self.alternatives),
            "acknowledged_missing": self.acknowledged_missing,
        }


@dataclass
class AmbiguousMapping:
    """Unresolved column/field pairing that needs a human decision."""

    kind: AmbiguityKind
    purpose: TablePurpose
    columns: List[int]
    fields: List[str]
    requires_human_input: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "purpose": self.purpose.value,
            "columns": list(self.columns),
            "fields": list(self.fields),
            "requires_human_input": self.requires_human_input,
        }


@dataclass
class PurposeMapping:
    """Mapping of the authoritative table for one record purpose.

    ``assignments`` (column index -> field name or None) is the source of truth;
    field mappings, ambiguities and confidence are derived from it by the mapper.
    """

    purpose: TablePurpose
    table_index: int
    table_name: str
    context: TablePurpose
    classifications: List[ColumnClassification]
    assignments: Dict[int, Optional[str]]
    field_mappings: Dict[str, StandardFieldMapping] = field(default_factory=dict)
    ambiguities: List[AmbiguousMapping] = field(default_factory=list)
    unmapped_columns: List[int] = field(default_factory=list)
    confirmed_columns: List[int] = field(default_factory=list)
    acknowledged_missing: List[str] = field(default_factory=list)
    overall_confidence: float = 0.0

    def classification(self, column_index: int) -> Optional[ColumnClassification]:
        for c in self.classifications:
            if c.column_index == column_index:
                return c
        return None

    def header(self, column_index: int) -> str:
        c = self.classification(column_index)
        return c.header if c else f"Columna {column_index + 1}"

    def required_fields(self) -> List[StandardFieldMapping]:
        return [m for m in self.field_mappings.values() if m.required]

    def missing_required(self) -> List[StandardFieldMapping]:
        return [m for m in self.required_fields() if not m.is_mapped and not m.acknowledged_missing]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "purpose": self.purpose.value,
            "table_index": self.table_index,
            "table_name": self.table_name,
            "context": self.context.value,
            "classifications": [c.to_dict() for c in self.classifications],
            "assignments": {str(k): v for k, v in sorted(self.assignments.items())},
            "field_mappings": {k: v.to_dict() for k, v in self.field_mappings.items()},
            "ambiguities": [a.to_dict() for a in self.ambiguities],
            "unmapped_columns": list(self.unmapped_columns),
            "confirmed_columns": list(self.confirmed_columns),
            "acknowledged_missing": list(self.acknowledged_missing),
            "overall_confidence": self.overall_confidence,
        }


@dataclass
class CensusMappingResult:
    purposes: Dict[TablePurpose, PurposeMapping] = field(default_factory=dict)
    overall_confidence: float = 0.0
    table_interpretation_required: bool = False
    candidate_table_index: Optional[int] = None

    def get(self, purpose: TablePurpose) -> Optional[PurposeMapping]:
        return self.purposes.get(purpose)

    def all_ambiguities(self) -> List[AmbiguousMapping]:
        return [a for pm in self.purposes.values() for a in pm.ambiguities]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "purposes": {p.value: pm.to_dict() for p, pm in self.purposes.items()},
            "overall_confidence": self.overall_confidence,
            "table_interpretation_required": self.table_interpretation_required,
            "candidate_table_index": self.candidate_table_index,
        }
