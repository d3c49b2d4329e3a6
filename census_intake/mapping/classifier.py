"""Per-column scoring against the standard field catalogue."""

from typing import List, Tuple

from census_intake.constants import TablePurpose
from census_intake.mapping.catalogue import FieldCatalogue, FieldDefinition, get_default_catalogue
from census_intake.models.mapping import ColumnClassification
from census_intake.models.structure import DetectedColumn
from census_intake.structure.patterns import match_fraction, validator_for
from census_intake.utils.scoring_config import DEFAULT_SCORING, ScoringConfig
from census_intake.utils.text import compact, significant_words, words


def _contains(outer: str, inner: str, inner_words: List[str]) -> bool:
    # short tokens such as "id" or "nss" only count as whole words
    if not inner or inner not in outer:
        return False
    return len(inner) >= 4 or inner in inner_words


def field_vocabulary(definition: FieldDefinition) -> set:
    vocabulary = significant_words(definition.name.replace("_", " "))
    for synonym in definition.synonyms:
        vocabulary |= significant_words(synonym.replace("_", " "))
    return vocabulary


def shares_keyword(header: str, definition: FieldDefinition) -> bool:
    return bool(significant_words(header) & field_vocabulary(definition))


class ColumnFieldClassifier:
    """Score detected columns against candidate standard fields."""

    def __init__(self, catalogue: FieldCatalogue = None, scoring: ScoringConfig = DEFAULT_SCORING):
        self.catalogue = catalogue or get_default_catalogue()
        self.scoring = scoring

    def name_similarity(self, header: str, definition: FieldDefinition) -> float:
        header_compact = compact(header)
        if not header_compact:
            return 0.0
        header_words = words(header)
        header_significant = significant_words(header)

        best = 0.0
        for candidate in (definition.name,) + tuple(definition.synonyms):
            candidate_compact = compact(candidate)
            candidate_words = words(candidate)
            if header_compact == candidate_compact:
                return self.scoring.exact_match_score
            if _contains(header_compact, candidate_compact, header_words) or _contains(
                candidate_compact, header_compact, candidate_words
            ):
                best = max(best, self.scoring.containment_score)
            elif header_significant & significant_words(candidate):
                best = max(best, self.scoring.shared_word_score)
        return best

    def type_compatibility(self, column: DetectedColumn, definition: FieldDefinition) -> float:
        if column.detected_type == definition.data_type:
            return self.scoring.type_match_score
        return self.scoring.type_mismatch_score

    def content_score(self, column: DetectedColumn, definition: FieldDefinition) -> float:
        validator = validator_for(definition.validator)
        return match_fraction(column.sample_values, lambda v: validator(v, self.scoring))

    def context_score(
        self, definition: FieldDefinition, purpose: TablePurpose, context: TablePurpose
    ) -> float:
        if context == TablePurpose.OTHER or context != purpose:
            return self.scoring.neutral_context_score
        if definition.expected:
            return self.scoring.expected_context_score
        return self.scoring.unexpected_context_score

    def score(
        self,
        column: DetectedColumn,
        definition: FieldDefinition,
        purpose: TablePurpose,
        context: TablePurpose,
    ) -> float:
        total = (
            self.scoring.name_similarity_weight * self.name_similarity(column.header, definition)
            + self.scoring.type_compatibility_weight * self.type_compatibility(column, definition)
            + self.scoring.content_weight * self.content_score(column, definition)
            + self.scoring.context_weight * self.context_score(definition, purpose, context)
        )
        return round(min(total, 1.0), 4)

    def classify(
        self, column: DetectedColumn, purpose: TablePurpose, context: TablePurpose
    ) -> ColumnClassification:
        """
        Score a column against every field of the purpose's catalogue.

        The highest score wins; equal scores keep catalogue declaration order.
        A best score under the mapping floor leaves the column unmapped.
        """
        scored: List[Tuple[str, float]] = [
            (definition.name, self.score(column, definition, purpose, context))
            for definition in self.catalogue.fields_for(purpose)
        ]
        # sorted() is stable, so ties stay in declaration order
        ranked = sorted(scored, key=lambda item: -item[1])
        best_name, best_score = ranked[0] if ranked else (None, 0.0)
        if column.confidence <= 0 and not column.sample_values:
            best_name = None
        elif best_score < self.scoring.mapping_floor:
            best_name = None

        return ColumnClassification(
            column_index=column.index,
            header=column.header,
            best_field=best_name,
            confidence=best_score,
            scores=ranked,
        )
