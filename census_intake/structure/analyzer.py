"""Structural analysis: table segmentation, header detection and column typing."""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from census_intake.constants import (
    SEMANTIC_TO_DETECTED,
    AnomalyKind,
    CellKind,
    DetectedType,
    SemanticType,
    TablePurpose,
)
from census_intake.exceptions import EmptyGridError
from census_intake.models.grid import Cell, RawGrid, Row, cell_kind, cell_text, is_empty_row, parse_amount
from census_intake.models.structure import (
    DetectedColumn,
    DetectedTable,
    StructuralAnomaly,
    StructureAnalysis,
)
from census_intake.structure.patterns import (
    SEMANTIC_TYPES,
    SemanticTypeDefinition,
    match_fraction,
    matches_any,
    validate_date,
    validator_for,
)
from census_intake.utils.scoring_config import DEFAULT_SCORING, ScoringConfig
from census_intake.utils.text import any_keyword, keyword_in

logger = logging.getLogger(__name__)

HEADER_KEYWORDS = (
    "nombre", "name", "rfc", "curp", "nss", "fecha", "date", "sueldo", "salario", "salary",
    "codigo", "clave", "employee", "empleado", "sexo", "genero", "gender", "puesto",
    "departamento", "ingreso", "nacimiento", "baja",
)

# (keywords, weight) groups; each group counts once per header
ACTIVE_SIGNALS: List[Tuple[Tuple[str, ...], float]] = [
    (("activo", "activos", "active"), 3.0),
    (("ingreso", "hire", "alta"), 2.0),
    (("sueldo", "salario", "salary"), 1.0),
]
TERMINATION_SIGNALS: List[Tuple[Tuple[str, ...], float]] = [
    (("baja", "termination"), 3.0),
    (("terminacion", "salida"), 3.0),
    (("causa", "reason", "motivo"), 2.0),
    (("prima", "indemnizacion", "finiquito"), 2.0),
]

# (required header keywords, all must match) -> suggested field
FIELD_NAME_HINTS: List[Tuple[Tuple[str, ...], str]] = [
    (("fecha", "nacimiento"), "birth_date"),
    (("fecha", "ingreso"), "hire_date"),
    (("fecha", "alta"), "hire_date"),
    (("fecha", "baja"), "termination_date"),
    (("fecha", "terminacion"), "termination_date"),
    (("causa",), "termination_cause"),
    (("sueldo", "integrado"), "integrated_salary"),
    (("salario", "integrado"), "integrated_salary"),
    (("sueldo",), "base_salary"),
    (("salario",), "base_salary"),
    (("salary",), "base_salary"),
    (("rfc",), "rfc"),
    (("curp",), "curp"),
    (("nss",), "nss"),
    (("imss",), "nss"),
    (("sexo",), "gender"),
    (("genero",), "gender"),
    (("puesto",), "position"),
    (("departamento",), "department"),
    (("nombre",), "employee_name"),
    (("name",), "employee_name"),
    (("codigo",), "employee_code"),
    (("clave",), "employee_code"),
    (("numero empleado",), "employee_code"),
]


def stride_sample(values: Sequence[Cell], limit: int) -> List[Cell]:
    """Evenly strided subsample of at most ``limit`` values, order preserved."""
    if len(values) <= limit:
        return list(values)
    step = len(values) / limit
    return [values[int(i * step)] for i in range(limit)]


def suggest_field_name(header: str, detected_type: DetectedType) -> str:
    for keywords, field_name in FIELD_NAME_HINTS:
        if all(keyword_in(k, header) for k in keywords):
            return field_name
    return f"{detected_type.value}_field"


def employee_likeness(table: DetectedTable) -> float:
    """Fraction of core census signals (name, date, salary, identifier) present in a table."""
    types = {c.detected_type for c in table.columns if c.confidence > 0}
    signals = [DetectedType.NAME, DetectedType.DATE, DetectedType.NUMBER, DetectedType.IDENTIFIER]
    return sum(1 for s in signals if s in types) / len(signals)


class StructureAnalyzer:
    """Convert a raw grid into typed, confidence-scored tables."""

    def __init__(self, scoring: ScoringConfig = DEFAULT_SCORING):
        self.scoring = scoring

    def analyze(self, grid: Optional[RawGrid], confidence_ceiling: float = 1.0) -> StructureAnalysis:
        """
        Analyze a grid.

        Args:
            grid: Extracted grid
            confidence_ceiling: Upper bound for column confidences (lowered for
                low-fidelity extraction such as PDF or OCR)

        Returns:
            StructureAnalysis with tables, anomalies and overall confidence

        Raises:
            EmptyGridError: If the grid is absent or has no non-empty rows
        """
        if grid is None or grid.row_count == 0:
            raise EmptyGridError("No grid was extracted from the file")
        if grid.is_empty:
            raise EmptyGridError("Extracted grid contains only empty rows")

        segments = self.segment_tables(grid)
        tables: List[DetectedTable] = []
        used_names: Dict[str, int] = {}
        for index, (start_row, rows) in enumerate(segments):
            table = self._analyze_table(index, start_row, rows, confidence_ceiling)
            count = used_names.get(table.name, 0) + 1
            used_names[table.name] = count
            if count > 1:
                table.name = f"{table.name} ({count})"
            tables.append(table)

        anomalies: List[StructuralAnomaly] = []
        for table in tables:
            anomalies.extend(self.detect_anomalies(table))

        overall = sum(t.confidence for t in tables) / len(tables)
        logger.info(
            f"Structure analysis found {len(tables)} table(s), "
            f"{len(anomalies)} anomalies, confidence {overall:.2f}"
        )
        return StructureAnalysis(tables=tables, overall_confidence=overall, anomalies=anomalies)

    def segment_tables(self, grid: RawGrid) -> List[Tuple[int, List[Row]]]:
        """
        Split the grid on runs of consecutive empty rows.

        Returns:
            List of (first row index, non-empty rows) per table
        """
        segments: List[Tuple[int, List[Row]]] = []
        current: List[Row] = []
        start = 0
        empty_run = 0

        for i, row in enumerate(grid.rows):
            if is_empty_row(row):
                empty_run += 1
                if empty_run >= self.scoring.empty_rows_to_split and current:
                    segments.append((start, current))
                    current = []
                continue
            if not current:
                start = i
            current.append(row)
            empty_run = 0

        if current:
            segments.append((start, current))
        if not segments:
            segments.append((0, [r for r in grid.rows]))
        return segments

    def score_header_row(self, row: Row) -> float:
        score = 0.0
        for cell in row:
            if cell_kind(cell) != CellKind.TEXT:
                continue
            if len(cell) > 2 and parse_amount(cell) is None:
                score += 1
            if cell[0].isupper():
                score += 1
            if " " in cell:
                score += 0.5
            if any_keyword(HEADER_KEYWORDS, cell):
                score += 2
        return score

    def detect_header_row(self, rows: Sequence[Row]) -> Optional[int]:
        """Index of the header row within the table, or None for headerless tables."""
        best_index: Optional[int] = None
        best_score = 0.0
        for i, row in enumerate(rows[: self.scoring.header_search_rows]):
            score = self.score_header_row(row)
            if score > best_score:
                best_index, best_score = i, score
        return best_index

    def analyze_column(
        self, index: int, header: str, values: Sequence[Cell], confidence_ceiling: float = 1.0
    ) -> DetectedColumn:
        non_empty = [v for v in values if v is not None]
        if not non_empty:
            return DetectedColumn(
                index=index,
                header=header,
                detected_type=DetectedType.UNKNOWN,
                confidence=0.0,
                quality_issues=["column is empty"],
                suggested_field_name=suggest_field_name(header, DetectedType.UNKNOWN),
            )

        sample = stride_sample(non_empty, self.scoring.max_sample_values)
        best: Optional[SemanticTypeDefinition] = None
        best_score = 0.0
        for definition in SEMANTIC_TYPES:
            score = self.score_semantic_type(definition, header, sample)
            if best is None or score > best_score:
                best, best_score = definition, score

        if best_score <= 0:
            detected_type = self._fallback_type(sample)
            semantic: Optional[SemanticType] = None
        else:
            semantic = best.semantic_type
            detected_type = SEMANTIC_TO_DETECTED[semantic]

        confidence = min(best_score, 1.0, confidence_ceiling)
        return DetectedColumn(
            index=index,
            header=header,
            detected_type=detected_type,
            semantic_type=semantic,
            confidence=confidence,
            sample_values=sample,
            quality_issues=self.quality_issues(detected_type, values),
            suggested_field_name=suggest_field_name(header, detected_type),
        )

    def score_semantic_type(
        self, definition: SemanticTypeDefinition, header: str, sample: Sequence[Cell]
    ) -> float:
        checked = list(sample[: self.scoring.pattern_sample_size])
        validator = validator_for(definition.validator)
        name_score = 1.0 if any_keyword(definition.keywords, header) else 0.0
        pattern_score = match_fraction(checked, lambda v: matches_any(definition.patterns, v))
        validator_score = match_fraction(checked, lambda v: validator(v, self.scoring))
        return (
            self.scoring.type_name_weight * name_score
            + self.scoring.type_pattern_weight * pattern_score
            + self.scoring.type_validator_weight * validator_score
        )

    def quality_issues(self, detected_type: DetectedType, values: Sequence[Cell]) -> List[str]:
        issues: List[str] = []
        non_empty = [v for v in values if v is not None]
        if values:
            missing_rate = 1 - len(non_empty) / len(values)
            if missing_rate > self.scoring.missing_rate_threshold:
                issues.append(f"{round(missing_rate * 100)}% missing")
        if not non_empty:
            return issues

        if detected_type == DetectedType.NUMBER:
            bad = sum(1 for v in non_empty if parse_amount(v) is None)
            if bad:
                issues.append(f"{bad} non-numeric values in numeric column")
        elif detected_type == DetectedType.NAME:
            short = sum(1 for v in non_empty if len(cell_text(v)) < self.scoring.short_name_length)
            if short / len(non_empty) > self.scoring.short_name_rate_threshold:
                issues.append(f"{short} implausibly short names")
        elif detected_type == DetectedType.DATE:
            bad = sum(1 for v in non_empty if not validate_date(v))
            if bad:
                issues.append(f"{bad} unparseable dates")
        elif detected_type == DetectedType.IDENTIFIER:
            texts = [cell_text(v) for v in non_empty]
            duplicates = len(texts) - len(set(texts))
            if duplicates:
                issues.append(f"{duplicates} duplicate identifiers")
        return issues

    def classify_purpose(self, columns: Sequence[DetectedColumn]) -> Tuple[TablePurpose, Dict[str, float]]:
        active = 0.0
        termination = 0.0
        for column in columns:
            for keywords, weight in ACTIVE_SIGNALS:
                if any_keyword(keywords, column.header):
                    active += weight
            for keywords, weight in TERMINATION_SIGNALS:
                if any_keyword(keywords, column.header):
                    termination += weight

        scores = {TablePurpose.ACTIVE_PERSONNEL.value: active, TablePurpose.TERMINATIONS.value: termination}
        if termination > active and termination > self.scoring.termination_purpose_threshold:
            return TablePurpose.TERMINATIONS, scores
        if active > self.scoring.active_purpose_threshold:
            return TablePurpose.ACTIVE_PERSONNEL, scores
        return TablePurpose.OTHER, scores

    def detect_anomalies(self, table: DetectedTable) -> List[StructuralAnomaly]:
        anomalies: List[StructuralAnomaly] = []
        if table.row_count < self.scoring.min_table_rows:
            anomalies.append(StructuralAnomaly(
                kind=AnomalyKind.SMALL_TABLE,
                message=f"Table '{table.name}' has only {table.row_count} data rows",
                table_index=table.index,
            ))
        if not table.columns or all(c.detected_type == DetectedType.UNKNOWN for c in table.columns):
            anomalies.append(StructuralAnomaly(
                kind=AnomalyKind.NO_IDENTIFIABLE_COLUMNS,
                message=f"Table '{table.name}' has no identifiable columns",
                table_index=table.index,
            ))
            return anomalies
        for column in table.columns:
            if column.confidence < self.scoring.low_column_confidence:
                anomalies.append(StructuralAnomaly(
                    kind=AnomalyKind.LOW_CONFIDENCE_COLUMN,
                    message=(
                        f"Column '{column.header}' in table '{table.name}' has low confidence "
                        f"({column.confidence:.0%})"
                    ),
                    table_index=table.index,
                    column_index=column.index,
                ))
        return anomalies

    def _analyze_table(
        self, index: int, start_row: int, rows: List[Row], confidence_ceiling: float
    ) -> DetectedTable:
        header_index = self.detect_header_row(rows)
        if header_index is None:
            header_row: Row = ()
            data = rows
        else:
            header_row = rows[header_index]
            data = rows[header_index + 1:]

        width = max([len(header_row)] + [len(r) for r in data])
        data_rows: List[Row] = [tuple(r) + (None,) * (width - len(r)) for r in data]

        columns: List[DetectedColumn] = []
        for c in range(width):
            header_cell = header_row[c] if c < len(header_row) else None
            header = cell_text(header_cell) or f"Columna {c + 1}"
            values = [r[c] for r in data_rows]
            columns.append(self.analyze_column(c, header, values, confidence_ceiling))

        purpose, purpose_scores = self.classify_purpose(columns)
        confidence = sum(c.confidence for c in columns) / len(columns) if columns else 0.0

        table = DetectedTable(
            index=index,
            name=self._table_name(index, purpose, columns),
            confidence=confidence,
            columns=columns,
            row_count=len(data_rows),
            preview=data_rows[: self.scoring.preview_rows],
            data_rows=data_rows,
            start_row=start_row,
            header_row_index=start_row + header_index if header_index is not None else -1,
            purpose=purpose,
            purpose_scores=purpose_scores,
        )
        logger.debug(
            f"Table {index} '{table.name}': {len(columns)} columns, {table.row_count} rows, "
            f"purpose={purpose.value}, confidence={confidence:.2f}"
        )
        return table

    def _table_name(self, index: int, purpose: TablePurpose, columns: Sequence[DetectedColumn]) -> str:
        if purpose == TablePurpose.ACTIVE_PERSONNEL:
            return "Empleados Activos"
        if purpose == TablePurpose.TERMINATIONS:
            return "Terminaciones"
        if any(c.semantic_type == SemanticType.SALARY for c in columns):
            return "Nómina"
        return f"Datos {index + 1}"

    def _fallback_type(self, sample: Sequence[Cell]) -> DetectedType:
        kinds = [cell_kind(v) for v in sample]
        if all(k == CellKind.NUMBER for k in kinds):
            return DetectedType.NUMBER
        if all(k == CellKind.DATE for k in kinds):
            return DetectedType.DATE
        return DetectedType.TEXT
