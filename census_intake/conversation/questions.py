"""Question generation for the disambiguation conversation."""

import dataclasses
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set

from census_intake.config import ConversationConfig
from census_intake.constants import (
    SEVERITY_ORDER,
    AmbiguityKind,
    AnswerAction,
    QuestionCategory,
    QuestionKind,
    Severity,
    SourceKind,
    TablePurpose,
)
from census_intake.models.conversation import ConversationalQuestion, QuestionOption
from census_intake.models.grid import cell_text
from census_intake.models.mapping import AmbiguousMapping, CensusMappingResult, PurposeMapping
from census_intake.models.processed import FormatAssessment
from census_intake.models.structure import DetectedTable, StructuralAnomaly, StructureAnalysis

logger = logging.getLogger(__name__)

CATEGORY_ORDER = {
    QuestionCategory.FORMAT_CONFIRMATION: 0,
    QuestionCategory.COLUMN_MAPPING: 1,
    QuestionCategory.DATA_VALIDATION: 2,
    QuestionCategory.CONFIRMATION: 3,
}

MAPPING_KINDS = {
    QuestionKind.FIELD_CONFLICT,
    QuestionKind.COLUMN_AMBIGUITY,
    QuestionKind.MISSING_REQUIRED_FIELD,
}

FORMAT_LABELS = {
    "structured_spreadsheet": "a spreadsheet with a single clean table",
    "unstructured_spreadsheet": "a spreadsheet with an irregular layout",
    "delimited_table": "a delimited text file (CSV)",
    "pdf_table": "a PDF document containing tables",
    "pdf_text": "a PDF document with free text",
    "image_table": "a scanned image of a table",
    "free_text": "a plain text file",
    "unknown": "an unrecognized file",
}

PURPOSE_LABELS = {
    TablePurpose.ACTIVE_PERSONNEL: "active personnel",
    TablePurpose.TERMINATIONS: "terminations",
    TablePurpose.OTHER: "unclassified data",
}


def sort_questions(questions: Iterable[ConversationalQuestion]) -> List[ConversationalQuestion]:
    """Severity first, then pipeline category, then issue order."""
    return sorted(
        questions,
        key=lambda q: (SEVERITY_ORDER[q.severity], CATEGORY_ORDER[q.category], q.sequence),
    )


def subject_key(question: ConversationalQuestion) -> tuple:
    """What a mapping question is about; two questions with the same key ask the same thing."""
    return (question.kind, question.purpose, question.field_name, tuple(question.columns))


class QuestionLedger:
    """Hands out unique question ids and issue order within one session."""

    def __init__(self):
        self._ids: Set[str] = set()
        self._sequence = 0

    def issue(self, question: ConversationalQuestion) -> ConversationalQuestion:
        base = question.id
        candidate = base
        suffix = 2
        while candidate in self._ids:
            candidate = f"{base}_{suffix}"
            suffix += 1
        self._ids.add(candidate)
        self._sequence += 1
        return dataclasses.replace(question, id=candidate, sequence=self._sequence)

    def reserve(self, questions: Iterable[ConversationalQuestion]) -> None:
        """Register questions issued elsewhere (e.g. by the pipeline)."""
        for q in questions:
            self._ids.add(q.id)
            self._sequence = max(self._sequence, q.sequence)


class QuestionGenerator:
    """Turn unresolved mapping state into a short, ordered set of questions."""

    def __init__(self, config: Optional[ConversationConfig] = None):
        self.config = config or ConversationConfig()

    # Initial questions -----------------------------------------------------

    def initial_questions(
        self,
        source_kind: SourceKind,
        assessment: FormatAssessment,
        structure: StructureAnalysis,
        mapping: CensusMappingResult,
        ledger: Optional[QuestionLedger] = None,
    ) -> List[ConversationalQuestion]:
        ledger = ledger or QuestionLedger()
        questions: List[ConversationalQuestion] = []

        if assessment.confidence < self.config.format_confirmation_threshold:
            questions.append(self.format_confirmation_question(source_kind, assessment, structure))
        if mapping.table_interpretation_required:
            questions.append(self.table_interpretation_question(structure, mapping))
        for purpose_mapping in mapping.purposes.values():
            table = structure.table(purpose_mapping.table_index)
            questions.extend(self.mapping_questions(purpose_mapping, table))
        if structure.anomalies:
            questions.append(self.anomalies_review_question(structure, mapping))

        issued = [ledger.issue(q) for q in questions]
        logger.info(
            f"Generated {len(issued)} initial question(s), "
            f"{sum(1 for q in issued if q.is_critical)} critical"
        )
        return sort_questions(issued)

    def format_confirmation_question(
        self, source_kind: SourceKind, assessment: FormatAssessment, structure: StructureAnalysis
    ) -> ConversationalQuestion:
        label = FORMAT_LABELS.get(assessment.primary_format, assessment.primary_format)
        sample: List[str] = []
        if structure.tables:
            table = structure.tables[0]
            sample.append(" | ".join(c.header for c in table.columns))
            sample.extend(" | ".join(cell_text(v) for v in row) for row in table.preview[:2])
        return self._question(
            id="format_confirmation",
            kind=QuestionKind.FORMAT_CONFIRMATION,
            category=QuestionCategory.FORMAT_CONFIRMATION,
            severity=Severity.CRITICAL,
            prompt=f"This file looks like {label}. Is that correct?",
            rationale=(
                f"Format confidence is {assessment.confidence:.0%}, below the "
                f"{self.config.format_confirmation_threshold:.0%} needed to continue without confirmation."
            ),
            options=[
                QuestionOption("confirm", "Yes, that is correct", AnswerAction.ACCEPT_SUGGESTION),
                QuestionOption("wrong", "No, this is wrong", AnswerAction.REQUEST_CLARIFICATION),
            ],
            sample_data=sample,
        )

    def table_interpretation_question(
        self, structure: StructureAnalysis, mapping: CensusMappingResult
    ) -> ConversationalQuestion:
        table = structure.table(mapping.candidate_table_index) if mapping.candidate_table_index is not None else None
        name = table.name if table else "the file"
        sample = [" | ".join(c.header for c in table.columns)] if table else []
        return self._question(
            id="table_interpretation",
            kind=QuestionKind.TABLE_INTERPRETATION,
            category=QuestionCategory.COLUMN_MAPPING,
            severity=Severity.CRITICAL,
            prompt=f"No employee table was recognized. What does '{name}' contain?",
            rationale="None of the detected tables looks like active personnel or terminations.",
            options=[
                QuestionOption(
                    "as_active", "Active personnel", AnswerAction.ACCEPT_SUGGESTION,
                    value=TablePurpose.ACTIVE_PERSONNEL.value,
                ),
                QuestionOption(
                    "as_terminations", "Terminations", AnswerAction.MANUAL_OVERRIDE,
                    value=TablePurpose.TERMINATIONS.value,
                ),
                QuestionOption("no_data", "This file has no usable census data", AnswerAction.REJECT),
            ],
            sample_data=sample,
            columns=(table.index,) if table else (),
        )

    def mapping_questions(
        self, mapping: PurposeMapping, table: Optional[DetectedTable]
    ) -> List[ConversationalQuestion]:
        """Questions for every ambiguity and missing required field of one purpose."""
        questions: List[ConversationalQuestion] = []
        for ambiguity in mapping.ambiguities:
            if ambiguity.kind == AmbiguityKind.FIELD_CONFLICT:
                questions.append(self.field_conflict_question(mapping, ambiguity, table))
            else:
                questions.append(self.column_ambiguity_question(mapping, ambiguity, table))
        for field_mapping in mapping.missing_required():
            questions.append(self.missing_field_question(mapping, field_mapping.field_name, table))
        return questions

    def field_conflict_question(
        self, mapping: PurposeMapping, ambiguity: AmbiguousMapping, table: Optional[DetectedTable]
    ) -> ConversationalQuestion:
        field_name = ambiguity.fields[0]
        display = mapping.field_mappings[field_name].display_name
        ranked = sorted(
            ambiguity.columns,
            key=lambda i: -mapping.classification(i).score_for(field_name),
        )
        options = []
        for position, column_index in enumerate(ranked):
            score = mapping.classification(column_index).score_for(field_name)
            options.append(QuestionOption(
                f"column_{column_index}",
                f"{mapping.header(column_index)} ({score:.0%})",
                AnswerAction.ACCEPT_SUGGESTION if position == 0 else AnswerAction.MANUAL_OVERRIDE,
                value=str(column_index),
            ))
        headers = ", ".join(f"'{mapping.header(i)}'" for i in ranked)
        return self._question(
            id=f"field_conflict_{mapping.purpose.value}_{field_name}",
            kind=QuestionKind.FIELD_CONFLICT,
            category=QuestionCategory.COLUMN_MAPPING,
            severity=Severity.RECOMMENDED,
            prompt=f"Columns {headers} all look like {display} ({field_name}). Which one should be used?",
            rationale=f"{len(ranked)} columns claim the same standard field in '{mapping.table_name}'.",
            options=self._bounded(options, [
                QuestionOption("skip", "Skip this column (use none of them)", AnswerAction.SKIP),
            ]),
            sample_data=[self._column_sample_line(table, i, mapping.header(i)) for i in ranked],
            purpose=mapping.purpose.value,
            field_name=field_name,
            columns=tuple(ambiguity.columns),
        )

    def column_ambiguity_question(
        self, mapping: PurposeMapping, ambiguity: AmbiguousMapping, table: Optional[DetectedTable]
    ) -> ConversationalQuestion:
        column_index = ambiguity.columns[0]
        classification = mapping.classification(column_index)
        options = []
        for position, field_name in enumerate(ambiguity.fields):
            display = mapping.field_mappings[field_name].display_name
            options.append(QuestionOption(
                f"field_{field_name}",
                f"{display} ({classification.score_for(field_name):.0%})",
                AnswerAction.ACCEPT_SUGGESTION if position == 0 else AnswerAction.MANUAL_OVERRIDE,
                value=field_name,
            ))
        return self._question(
            id=f"column_ambiguity_{mapping.purpose.value}_{column_index}",
            kind=QuestionKind.COLUMN_AMBIGUITY,
            category=QuestionCategory.COLUMN_MAPPING,
            severity=Severity.RECOMMENDED,
            prompt=f"What does column '{classification.header}' contain?",
            rationale=(
                f"Best match scored {classification.confidence:.0%}; "
                f"{len(ambiguity.fields)} fields are plausible."
            ),
            options=self._bounded(options, [
                QuestionOption("omit", "Omit this column", AnswerAction.SKIP),
            ]),
            sample_data=self._column_samples(table, column_index),
            purpose=mapping.purpose.value,
            columns=(column_index,),
        )

    def missing_field_question(
        self, mapping: PurposeMapping, field_name: str, table: Optional[DetectedTable]
    ) -> ConversationalQuestion:
        field_mapping = mapping.field_mappings[field_name]
        options = [
            QuestionOption(
                f"column_{i}",
                f"{mapping.header(i)} ({mapping.classification(i).score_for(field_name):.0%})",
                AnswerAction.MANUAL_OVERRIDE,
                value=str(i),
            )
            for i in field_mapping.alternatives
        ]
        return self._question(
            id=f"missing_{mapping.purpose.value}_{field_name}",
            kind=QuestionKind.MISSING_REQUIRED_FIELD,
            category=QuestionCategory.COLUMN_MAPPING,
            severity=Severity.CRITICAL,
            prompt=(
                f"Missing required field: {field_name} ({field_mapping.display_name}). "
                f"Which column of '{mapping.table_name}' contains it?"
            ),
            rationale=(
                f"{field_mapping.display_name} is required for {PURPOSE_LABELS[mapping.purpose]} "
                "records and no column matched it with enough confidence."
            ),
            options=self._bounded(options, [
                QuestionOption("other_column", "Another column (type its name)", AnswerAction.MANUAL_OVERRIDE),
                QuestionOption("not_available", "Not available in this file", AnswerAction.SKIP),
            ]),
            sample_data=[self._column_sample_line(table, i, mapping.header(i)) for i in field_mapping.alternatives],
            purpose=mapping.purpose.value,
            field_name=field_name,
        )

    def anomalies_review_question(
        self, structure: StructureAnalysis, mapping: CensusMappingResult
    ) -> ConversationalQuestion:
        critical = any(self.anomaly_affects_required_field(a, mapping) for a in structure.anomalies)
        count = len(structure.anomalies)
        return self._question(
            id="anomalies_review",
            kind=QuestionKind.ANOMALIES_REVIEW,
            category=QuestionCategory.DATA_VALIDATION,
            severity=Severity.CRITICAL if critical else Severity.OPTIONAL,
            prompt=f"{count} structural anomal{'y was' if count == 1 else 'ies were'} found. Review them?",
            rationale="Small tables and low-confidence columns may indicate extraction problems.",
            options=[
                QuestionOption("review", "Review each one", AnswerAction.REQUEST_CLARIFICATION),
                QuestionOption("proceed", "Proceed as-is", AnswerAction.ACCEPT_SUGGESTION),
            ],
            sample_data=structure.anomaly_messages(),
        )

    # Follow-ups ------------------------------------------------------------

    def anomaly_questions(
        self, parent: ConversationalQuestion, structure: StructureAnalysis, mapping: CensusMappingResult
    ) -> List[ConversationalQuestion]:
        questions = []
        for number, anomaly in enumerate(structure.anomalies, start=1):
            table = structure.table(anomaly.table_index)
            sample = []
            if table is not None and anomaly.column_index is not None:
                sample = self._column_samples(table, anomaly.column_index)
            questions.append(self._question(
                id=f"anomaly_{number}",
                kind=QuestionKind.ANOMALY,
                category=QuestionCategory.DATA_VALIDATION,
                severity=(
                    Severity.CRITICAL if self.anomaly_affects_required_field(anomaly, mapping)
                    else Severity.OPTIONAL
                ),
                prompt=anomaly.message,
                rationale=f"Anomaly {number} of {len(structure.anomalies)} ({anomaly.kind.value}).",
                options=[
                    QuestionOption("correct", "Provide a correction", AnswerAction.MANUAL_OVERRIDE),
                    QuestionOption("ignore", "Ignore", AnswerAction.SKIP),
                ],
                sample_data=sample,
                columns=(anomaly.column_index,) if anomaly.column_index is not None else (),
                parent_id=parent.id,
            ))
        return questions

    def format_specification_question(self, parent: ConversationalQuestion) -> ConversationalQuestion:
        options = [
            QuestionOption(f"format_{key}", FORMAT_LABELS[key].capitalize(), AnswerAction.MANUAL_OVERRIDE, value=key)
            for key in ("structured_spreadsheet", "unstructured_spreadsheet", "delimited_table", "pdf_table", "image_table")
        ]
        options.append(QuestionOption("other", "Something else", AnswerAction.REQUEST_CLARIFICATION))
        return self._question(
            id="format_manual_specification",
            kind=QuestionKind.FORMAT_MANUAL_SPECIFICATION,
            category=QuestionCategory.FORMAT_CONFIRMATION,
            severity=Severity.CRITICAL,
            prompt="What kind of file is this?",
            rationale="The detected format was rejected.",
            options=options,
            parent_id=parent.id,
        )

    def clarification_question(self, parent: ConversationalQuestion) -> ConversationalQuestion:
        return self._question(
            id=f"clarification_{parent.id}",
            kind=QuestionKind.CLARIFICATION,
            category=parent.category,
            severity=Severity.RECOMMENDED,
            prompt=f"Please describe what is wrong: {parent.prompt}",
            rationale="A clarification was requested.",
            options=[
                QuestionOption("describe", "Describe the correction", AnswerAction.MANUAL_OVERRIDE),
                QuestionOption("keep", "Keep the current interpretation", AnswerAction.ACCEPT_SUGGESTION),
            ],
            sample_data=parent.sample_data,
            purpose=parent.purpose,
            field_name=parent.field_name,
            columns=parent.columns,
            parent_id=parent.id,
        )

    def manual_override_question(self, parent: ConversationalQuestion, reason: str = "") -> ConversationalQuestion:
        return self._question(
            id=f"manual_override_{parent.id}",
            kind=QuestionKind.MANUAL_OVERRIDE,
            category=parent.category,
            severity=Severity.CRITICAL,
            prompt=f"Manual specification required: {parent.prompt}",
            rationale=reason or "A manual override was chosen without a value.",
            options=[
                QuestionOption("specify", "Specify the value", AnswerAction.MANUAL_OVERRIDE),
                QuestionOption("skip", "Skip this item", AnswerAction.SKIP),
            ],
            sample_data=parent.sample_data,
            purpose=parent.purpose,
            field_name=parent.field_name,
            columns=parent.columns,
            parent_id=parent.id,
        )

    def data_validation_question(
        self,
        parent: ConversationalQuestion,
        mapping: PurposeMapping,
        table: Optional[DetectedTable],
        column_index: int,
        field_name: str,
    ) -> ConversationalQuestion:
        display = mapping.field_mappings[field_name].display_name
        header = mapping.header(column_index)
        return self._question(
            id=f"data_validation_{parent.id}",
            kind=QuestionKind.DATA_VALIDATION,
            category=QuestionCategory.DATA_VALIDATION,
            severity=Severity.RECOMMENDED,
            prompt=f"Do these values from '{header}' look like {display}?",
            rationale="Sanity check of a confirmed mapping.",
            options=[
                QuestionOption("looks_right", "Yes, they look right", AnswerAction.ACCEPT_SUGGESTION),
                QuestionOption("looks_wrong", "No, something is off", AnswerAction.REQUEST_CLARIFICATION),
            ],
            sample_data=self._column_samples(table, column_index),
            purpose=mapping.purpose.value,
            field_name=field_name,
            columns=(column_index,),
            parent_id=parent.id,
        )

    def final_confirmation_question(self, summary: str) -> ConversationalQuestion:
        return self._question(
            id="final_confirmation",
            kind=QuestionKind.FINAL_CONFIRMATION,
            category=QuestionCategory.CONFIRMATION,
            severity=Severity.CRITICAL,
            prompt="All required questions are resolved. Proceed with this mapping?",
            rationale=summary,
            options=[
                QuestionOption("proceed", "Proceed", AnswerAction.ACCEPT_SUGGESTION),
                QuestionOption("review", "Review before proceeding", AnswerAction.REQUEST_CLARIFICATION),
            ],
        )

    # Helpers ---------------------------------------------------------------

    def anomaly_affects_required_field(self, anomaly: StructuralAnomaly, mapping: CensusMappingResult) -> bool:
        if anomaly.column_index is None:
            return False
        for purpose_mapping in mapping.purposes.values():
            if purpose_mapping.table_index != anomaly.table_index:
                continue
            field_name = purpose_mapping.assignments.get(anomaly.column_index)
            field_mapping = purpose_mapping.field_mappings.get(field_name) if field_name else None
            if field_mapping is not None and field_mapping.required:
                return True
        return False

    def validation_summary(
        self,
        file_name: str,
        resolved: Dict[Severity, int],
        record_counts: Dict[str, int],
        pending_optional: int,
    ) -> str:
        severity_text = ", ".join(f"{s.value}: {resolved.get(s, 0)}" for s in Severity)
        if record_counts:
            records_text = ", ".join(f"{purpose}: {n}" for purpose, n in record_counts.items())
        else:
            records_text = "none"
        return (
            f"Validation of '{file_name}' complete. "
            f"Resolved {sum(resolved.values())} question(s) ({severity_text}). "
            f"Records: {records_text}. "
            f"Unanswered non-critical questions: {pending_optional}."
        )

    def _question(self, **kwargs) -> ConversationalQuestion:
        kwargs["options"] = tuple(kwargs["options"])
        kwargs["sample_data"] = tuple(kwargs.get("sample_data") or ())[: self.config.max_sample_rows]
        return ConversationalQuestion(**kwargs)

    def _bounded(self, options: List[QuestionOption], tail: List[QuestionOption]) -> List[QuestionOption]:
        room = max(self.config.max_question_options - len(tail), 0)
        return options[:room] + tail

    def _column_samples(self, table: Optional[DetectedTable], column_index: int) -> List[str]:
        if table is None:
            return []
        column = table.column(column_index)
        if column is None:
            return []
        return [cell_text(v) for v in column.sample_values[: self.config.max_sample_rows]]

    def _column_sample_line(self, table: Optional[DetectedTable], column_index: int, header: str) -> str:
        values = self._column_samples(table, column_index)[:3]
        return f"{header}: {', '.join(values)}" if values else header
