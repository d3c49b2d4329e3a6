"""Aggregate column classifications into standard field mappings."""

import logging
from typing import Any, Dict, List, Optional

from census_intake.constants import AmbiguityKind, TablePurpose
from census_intake.mapping.catalogue import FieldCatalogue, get_default_catalogue
from census_intake.mapping.classifier import ColumnFieldClassifier, shares_keyword
from census_intake.models.mapping import (
    AmbiguousMapping,
    CensusMappingResult,
    PurposeMapping,
    StandardFieldMapping,
)
from census_intake.models.structure import DetectedTable, StructureAnalysis
from census_intake.structure.analyzer import employee_likeness
from census_intake.utils.scoring_config import DEFAULT_SCORING, ScoringConfig

logger = logging.getLogger(__name__)


class ColumnMapper:
    """Map detected tables onto the standard field catalogue."""

    def __init__(
        self,
        catalogue: Optional[FieldCatalogue] = None,
        scoring: ScoringConfig = DEFAULT_SCORING,
        classifier: Optional[ColumnFieldClassifier] = None,
    ):
        self.catalogue = catalogue or get_default_catalogue()
        self.scoring = scoring
        self.classifier = classifier or ColumnFieldClassifier(self.catalogue, scoring)

    def map_structure(self, structure: StructureAnalysis) -> CensusMappingResult:
        """
        Select the authoritative table per purpose and map it.

        The highest-confidence table wins for each purpose. Without an
        active-personnel table, the best unclassified table that looks like
        employee data is mapped as active personnel.

        Args:
            structure: Output of StructureAnalyzer

        Returns:
            CensusMappingResult keyed by purpose
        """
        result = CensusMappingResult()

        active = self._best_table(structure, TablePurpose.ACTIVE_PERSONNEL)
        if active is None:
            candidates = [
                t for t in structure.tables
                if t.purpose == TablePurpose.OTHER
                and employee_likeness(t) > self.scoring.employee_likeness_threshold
            ]
            if candidates:
                active = max(candidates, key=lambda t: t.confidence)
                logger.info(
                    f"No active-personnel table detected; mapping '{active.name}' as active personnel"
                )
        if active is not None:
            result.purposes[TablePurpose.ACTIVE_PERSONNEL] = self.map_table(
                active, TablePurpose.ACTIVE_PERSONNEL
            )

        terminations = self._best_table(structure, TablePurpose.TERMINATIONS)
        if terminations is not None:
            result.purposes[TablePurpose.TERMINATIONS] = self.map_table(
                terminations, TablePurpose.TERMINATIONS
            )

        if not result.purposes and structure.tables:
            result.table_interpretation_required = True
            result.candidate_table_index = max(structure.tables, key=lambda t: t.confidence).index
            logger.warning("No table could be assigned a record purpose")

        self.update_overall_confidence(result)
        return result

    def map_table(self, table: DetectedTable, purpose: TablePurpose) -> PurposeMapping:
        classifications = [
            self.classifier.classify(column, purpose, table.purpose) for column in table.columns
        ]
        mapping = PurposeMapping(
            purpose=purpose,
            table_index=table.index,
            table_name=table.name,
            context=table.purpose,
            classifications=classifications,
            assignments={c.column_index: c.best_field for c in classifications},
        )
        self.rebuild(mapping)
        logger.info(
            f"Mapped table '{table.name}' as {purpose.value}: "
            f"{sum(1 for m in mapping.field_mappings.values() if m.is_mapped)} fields mapped, "
            f"{len(mapping.ambiguities)} ambiguities, confidence {mapping.overall_confidence:.2f}"
        )
        return mapping

    def rebuild(self, mapping: PurposeMapping) -> PurposeMapping:
        """Recompute field mappings, ambiguities and confidence from the column assignments."""
        definitions = self.catalogue.fields_for(mapping.purpose)
        cutoff = self.scoring.required_priority_cutoff
        confirmed = set(mapping.confirmed_columns)

        field_mappings: Dict[str, StandardFieldMapping] = {}
        for definition in definitions:
            columns = sorted(i for i, f in mapping.assignments.items() if f == definition.name)
            confidences = [self._column_confidence(mapping, i, confirmed) for i in columns]
            near_misses = [
                c for c in mapping.classifications
                if c.column_index not in columns
                and c.score_for(definition.name) >= self.scoring.near_miss_threshold
            ]
            near_misses.sort(key=lambda c: -c.score_for(definition.name))
            field_mappings[definition.name] = StandardFieldMapping(
                field_name=definition.name,
                display_name=definition.display_name,
                required=definition.is_required(cutoff),
                priority=definition.priority,
                mapped_columns=columns,
                mapped_headers=[mapping.header(i) for i in columns],
                confidence=max(confidences) if confidences else 0.0,
                alternatives=[c.column_index for c in near_misses[: self.scoring.max_alternatives]],
                acknowledged_missing=definition.name in mapping.acknowledged_missing,
            )
        mapping.field_mappings = field_mappings
        mapping.ambiguities = self.detect_ambiguities(mapping)
        mapping.unmapped_columns = sorted(i for i, f in mapping.assignments.items() if f is None)
        mapping.overall_confidence = self.rollup_confidence(mapping)
        return mapping

    def detect_ambiguities(self, mapping: PurposeMapping) -> List[AmbiguousMapping]:
        ambiguities: List[AmbiguousMapping] = []
        for field_mapping in mapping.field_mappings.values():
            if len(field_mapping.mapped_columns) > 1:
                ambiguities.append(AmbiguousMapping(
                    kind=AmbiguityKind.FIELD_CONFLICT,
                    purpose=mapping.purpose,
                    columns=list(field_mapping.mapped_columns),
                    fields=[field_mapping.field_name],
                ))

        confirmed = set(mapping.confirmed_columns)
        for classification in mapping.classifications:
            if classification.column_index in confirmed or len(classification.scores) < 2:
                continue
            top_field, top_score = classification.scores[0]
            if top_score >= self.scoring.ambiguity_threshold:
                continue
            second = self.catalogue.get(mapping.purpose, classification.scores[1][0])
            if second is None or not shares_keyword(classification.header, second):
                continue
            plausible = [top_field] + [
                name for name, _ in classification.scores[1:]
                if shares_keyword(classification.header, self.catalogue.get(mapping.purpose, name))
            ]
            ambiguities.append(AmbiguousMapping(
                kind=AmbiguityKind.COLUMN_AMBIGUITY,
                purpose=mapping.purpose,
                columns=[classification.column_index],
                fields=plausible,
            ))
        return ambiguities

    def rollup_confidence(self, mapping: PurposeMapping) -> float:
        """0.7 x mean column confidence + 0.3 x share of required fields that are mapped."""
        confirmed = set(mapping.confirmed_columns)
        confidences = [
            self._column_confidence(mapping, c.column_index, confirmed) for c in mapping.classifications
        ]
        mean_confidence = sum(confidences) / len(confidences) if confidences else 0.0
        required = mapping.required_fields()
        coverage = (
            sum(1 for m in required if m.is_mapped) / len(required) if required else 1.0
        )
        return round(
            self.scoring.column_confidence_weight * mean_confidence
            + self.scoring.required_coverage_weight * coverage,
            4,
        )

    def update_overall_confidence(self, result: CensusMappingResult) -> None:
        mappings = list(result.purposes.values())
        result.overall_confidence = (
            round(sum(m.overall_confidence for m in mappings) / len(mappings), 4) if mappings else 0.0
        )

    # Human decisions -------------------------------------------------------

    def assign_column(self, mapping: PurposeMapping, column_index: int, field_name: Optional[str]) -> None:
        """
        Record a human assignment of a column to a field (or to no field).

        Unconfirmed columns that the machine had mapped to the same field are
        released, so the human choice is the only column for that field.
        """
        if mapping.classification(column_index) is None:
            raise ValueError(f"Column {column_index} is not part of table '{mapping.table_name}'")
        if field_name is not None and self.catalogue.get(mapping.purpose, field_name) is None:
            raise ValueError(f"Unknown field '{field_name}' for {mapping.purpose.value}")

        confirmed = set(mapping.confirmed_columns)
        if field_name is not None:
            for other, assigned in list(mapping.assignments.items()):
                if other != column_index and assigned == field_name and other not in confirmed:
                    mapping.assignments[other] = None
            if field_name in mapping.acknowledged_missing:
                mapping.acknowledged_missing.remove(field_name)
        mapping.assignments[column_index] = field_name
        if column_index not in confirmed:
            mapping.confirmed_columns.append(column_index)
        self.rebuild(mapping)

    def resolve_field_conflict(self, mapping: PurposeMapping, field_name: str, chosen: Optional[int]) -> None:
        """Keep only ``chosen`` on a contested field; None releases every contender."""
        contenders = [i for i, f in mapping.assignments.items() if f == field_name]
        for column_index in contenders:
            if column_index != chosen:
                mapping.assignments[column_index] = None
                if column_index not in mapping.confirmed_columns:
                    mapping.confirmed_columns.append(column_index)
        if chosen is not None:
            self.assign_column(mapping, chosen, field_name)
        else:
            self.rebuild(mapping)

    def acknowledge_missing(self, mapping: PurposeMapping, field_name: str) -> None:
        if field_name not in mapping.acknowledged_missing:
            mapping.acknowledged_missing.append(field_name)
        self.rebuild(mapping)

    # Row conversion --------------------------------------------------------

    def convert_rows(self, table: DetectedTable, mapping: PurposeMapping) -> List[Dict[str, Any]]:
        """
        Convert data rows into records keyed by standard field and original header.

        Unmapped columns are kept under their header so they stay visible for review.
        Repeated headers get a " (2)", " (3)" suffix so no column is dropped.
        """
        keys = self.column_keys(table)
        records: List[Dict[str, Any]] = []
        for row in table.data_rows:
            record: Dict[str, Any] = {}
            for column in table.columns:
                value = row[column.index] if column.index < len(row) else None
                field_name = mapping.assignments.get(column.index)
                if field_name:
                    record.setdefault(field_name, value)
                record[keys[column.index]] = value
            records.append(record)
        return records

    def column_keys(self, table: DetectedTable) -> Dict[int, str]:
        """Record key per column index: the header, suffixed when it repeats or names a field."""
        taken = {d.name for d in self.catalogue.fields_for(TablePurpose.ACTIVE_PERSONNEL)}
        taken |= {d.name for d in self.catalogue.fields_for(TablePurpose.TERMINATIONS)}
        keys: Dict[int, str] = {}
        for column in table.columns:
            key = column.header
            n = 2
            while key in taken:
                key = f"{column.header} ({n})"
                n += 1
            taken.add(key)
            keys[column.index] = key
        return keys

    def _best_table(self, structure: StructureAnalysis, purpose: TablePurpose) -> Optional[DetectedTable]:
        tables = [t for t in structure.tables if t.purpose == purpose]
        if not tables:
            return None
        return max(tables, key=lambda t: t.confidence)

    def _column_confidence(self, mapping: PurposeMapping, column_index: int, confirmed: set) -> float:
        if column_index in confirmed and mapping.assignments.get(column_index):
            return 1.0
        classification = mapping.classification(column_index)
        return classification.confidence if classification else 0.0
