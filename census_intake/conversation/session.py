"""Conversation session: question/answer loop over the step state machine."""

import copy
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from census_intake.config import ConversationConfig
from census_intake.constants import (
    AnswerAction,
    ConversationStep,
    QuestionKind,
    Severity,
    TablePurpose,
)
from census_intake.conversation.questions import (
    MAPPING_KINDS,
    QuestionGenerator,
    QuestionLedger,
    sort_questions,
    subject_key,
)
from census_intake.conversation.state_machine import (
    can_advance,
    next_step,
    validate_step_transition,
)
from census_intake.exceptions import ConversationError, SessionFinalizedError
from census_intake.mapping.mapper import ColumnMapper
from census_intake.models.conversation import (
    Answer,
    AnswerOutcome,
    AnswerRecord,
    ConversationalQuestion,
    NormalizedDataset,
)
from census_intake.models.mapping import CensusMappingResult, PurposeMapping
from census_intake.models.processed import ProcessedFileData
from census_intake.utils.text import fold

logger = logging.getLogger(__name__)


class ConversationSession:
    """
    Drives the disambiguation conversation for one processed file.

    Questions are never mutated once issued; answering a question removes it
    from the pending set and may issue new questions with new ids. The session
    works on its own copy of the mapping so the processed file stays untouched.

    ``format_override`` records the format a user named after rejecting the
    detected one. It is advisory metadata for operators, reported in
    ``to_dict``; extraction and mapping do not read it.
    """

    def __init__(
        self,
        session_id: str,
        client_id: str,
        file_name: str,
        processed: ProcessedFileData,
        generator: Optional[QuestionGenerator] = None,
        mapper: Optional[ColumnMapper] = None,
        config: Optional[ConversationConfig] = None,
    ):
        self.session_id = session_id
        self.client_id = client_id
        self.file_name = file_name
        self.processed = processed
        self.config = config or ConversationConfig()
        self.generator = generator or QuestionGenerator(self.config)
        self.mapper = mapper or ColumnMapper()

        self.mapping: CensusMappingResult = copy.deepcopy(processed.mapping)
        self.step: str = ConversationStep.FORMAT_CONFIRMATION
        self.answers: Dict[str, AnswerRecord] = {}
        self.pending: Dict[str, ConversationalQuestion] = {}
        self.history: List[ConversationalQuestion] = []
        self.retired: List[str] = []
        self.notes: List[str] = []
        self.final_approval = False
        self.rejected = False
        self.format_override: Optional[str] = None
        self.dataset: Optional[NormalizedDataset] = None
        self.created_at = datetime.now()
        self.last_activity = self.created_at

        self._ledger = QuestionLedger()

    # Lifecycle -------------------------------------------------------------

    def start(self) -> List[ConversationalQuestion]:
        """Load the initial questions and move through every step they don't block."""
        self._ledger.reserve(self.processed.questions)
        for question in self.processed.questions:
            self.pending[question.id] = question
            self.history.append(question)
        self._reconcile_mapping_questions()
        self.advance()
        logger.info(
            f"Session {self.session_id} started for '{self.file_name}' "
            f"with {len(self.pending)} pending question(s), step={self.step}"
        )
        return self.pending_questions()

    def advance(self) -> None:
        """Advance through the steps while no CRITICAL question blocks the current one."""
        while can_advance(self.step, self.pending.values()):
            new_step = next_step(self.step)
            validate_step_transition(self.step, new_step)
            logger.debug(f"Session {self.session_id}: {self.step} -> {new_step}")
            self.step = new_step
            if new_step == ConversationStep.FINAL_CONFIRMATION:
                self._enter_final_confirmation()
            elif new_step == ConversationStep.COMPLETE and not self.rejected:
                self.final_approval = True

    @property
    def is_complete(self) -> bool:
        return not any(q.is_critical for q in self.pending.values())

    def pending_questions(self) -> List[ConversationalQuestion]:
        return sort_questions(self.pending.values())

    # Answers ---------------------------------------------------------------

    def apply_answer(self, question_id: str, answer: Answer) -> AnswerOutcome:
        """
        Apply one answer.

        Answers for unknown or already answered questions, or naming an option
        the question does not offer, are rejected without any state change.

        Raises:
            SessionFinalizedError: If the session has already been finalized
        """
        if self.dataset is not None:
            raise SessionFinalizedError(f"Session {self.session_id} is already finalized")

        question = self.pending.get(question_id)
        if question is None:
            reason = (
                f"Question '{question_id}' was already answered"
                if question_id in self.answers
                else f"Unknown question '{question_id}'"
            )
            return self._rejected(reason)
        option = question.option(answer.option_id)
        if option is None:
            return self._rejected(
                f"Option '{answer.option_id}' is not valid for question '{question_id}'"
            )

        value = answer.value if answer.value not in (None, "") else option.value
        self.answers[question_id] = AnswerRecord(
            question_id=question_id,
            question_kind=question.kind,
            severity=question.severity,
            option_id=option.id,
            action=option.action,
            value=value,
            note=answer.note,
        )
        del self.pending[question_id]
        self.last_activity = datetime.now()

        follow_ups = self._dispatch(question, option.action, value)
        issued = [self._issue(q) for q in follow_ups]
        issued.extend(self._reconcile_mapping_questions())
        self.advance()

        logger.info(
            f"Session {self.session_id}: answered {question_id} with {option.action.value}; "
            f"{len(issued)} new question(s), {len(self.pending)} pending, step={self.step}"
        )
        return AnswerOutcome(
            accepted=True,
            next_questions=self.pending_questions(),
            is_complete=self.is_complete,
        )

    def _rejected(self, reason: str) -> AnswerOutcome:
        logger.warning(f"Session {self.session_id}: answer rejected: {reason}")
        return AnswerOutcome(
            accepted=False,
            next_questions=self.pending_questions(),
            is_complete=self.is_complete,
            reason=reason,
        )

    def _dispatch(
        self, question: ConversationalQuestion, action: AnswerAction, value: Optional[str]
    ) -> List[ConversationalQuestion]:
        """Apply an answer to the session state and return the follow-up questions it seeds."""
        kind = question.kind

        if kind == QuestionKind.MANUAL_OVERRIDE:
            parent = self._find(question.parent_id)
            if parent is None:
                raise ConversationError(f"Parent question '{question.parent_id}' not found")
            if action == AnswerAction.SKIP:
                return self._dispatch(parent, AnswerAction.SKIP, None)
            return self._dispatch(parent, AnswerAction.MANUAL_OVERRIDE, value)

        if kind == QuestionKind.FORMAT_CONFIRMATION:
            if action == AnswerAction.REQUEST_CLARIFICATION:
                return [self.generator.format_specification_question(question)]
            return []

        if kind == QuestionKind.FORMAT_MANUAL_SPECIFICATION:
            if action == AnswerAction.MANUAL_OVERRIDE:
                if not value:
                    return [self.generator.manual_override_question(question, "No format was given.")]
                self.format_override = value
                return []
            if action == AnswerAction.REQUEST_CLARIFICATION:
                return [self.generator.clarification_question(question)]
            return []

        if kind == QuestionKind.TABLE_INTERPRETATION:
            return self._apply_table_interpretation(question, action, value)

        if kind in MAPPING_KINDS:
            return self._apply_mapping_answer(question, action, value)

        if kind == QuestionKind.ANOMALIES_REVIEW:
            if action == AnswerAction.REQUEST_CLARIFICATION:
                return self.generator.anomaly_questions(question, self.processed.structure, self.mapping)
            return []

        if kind == QuestionKind.FINAL_CONFIRMATION:
            if action == AnswerAction.ACCEPT_SUGGESTION:
                self.final_approval = True
                return []
            if action == AnswerAction.REQUEST_CLARIFICATION:
                summary = self.generator.validation_summary(
                    self.file_name, self._resolved_counts(), self._record_counts(), self._pending_optional()
                )
                return [
                    self.generator.clarification_question(question),
                    self.generator.final_confirmation_question(summary),
                ]
            return []

        # anomaly, clarification and data validation questions
        if action == AnswerAction.MANUAL_OVERRIDE:
            if not value:
                return [self.generator.manual_override_question(question)]
            self.notes.append(f"{question.id}: {value}")
            return []
        if action == AnswerAction.REQUEST_CLARIFICATION:
            return [self.generator.clarification_question(question)]
        return []

    def _apply_table_interpretation(
        self, question: ConversationalQuestion, action: AnswerAction, value: Optional[str]
    ) -> List[ConversationalQuestion]:
        if action in (AnswerAction.REJECT, AnswerAction.SKIP):
            self.rejected = True
            self.notes.append("File marked as containing no usable census data")
            return []
        try:
            purpose = TablePurpose(value) if value else None
        except ValueError:
            purpose = None
        if purpose is None or purpose == TablePurpose.OTHER or not question.columns:
            return [self.generator.manual_override_question(question, "No record purpose was given.")]
        table = self.processed.structure.table(question.columns[0])
        if table is None:
            raise ConversationError(f"Table {question.columns[0]} not found")
        self.mapping.purposes[purpose] = self.mapper.map_table(table, purpose)
        self.mapping.table_interpretation_required = False
        self.mapper.update_overall_confidence(self.mapping)
        return []

    def _apply_mapping_answer(
        self, question: ConversationalQuestion, action: AnswerAction, value: Optional[str]
    ) -> List[ConversationalQuestion]:
        purpose_mapping = self._purpose_mapping(question)
        if purpose_mapping is None:
            raise ConversationError(f"No mapping for purpose '{question.purpose}'")
        kind = question.kind

        if action == AnswerAction.REQUEST_CLARIFICATION:
            return [self.generator.clarification_question(question)]

        if action in (AnswerAction.SKIP, AnswerAction.REJECT):
            if kind == QuestionKind.FIELD_CONFLICT:
                self.mapper.resolve_field_conflict(purpose_mapping, question.field_name, None)
            elif kind == QuestionKind.COLUMN_AMBIGUITY:
                self.mapper.assign_column(purpose_mapping, question.columns[0], None)
            else:
                self.mapper.acknowledge_missing(purpose_mapping, question.field_name)
            self.mapper.update_overall_confidence(self.mapping)
            return []

        if kind == QuestionKind.COLUMN_AMBIGUITY:
            column_index = question.columns[0]
            field_name = self._resolve_field(purpose_mapping, value)
            if field_name is None:
                return [self.generator.manual_override_question(
                    question, f"'{value}' is not a known field." if value else ""
                )]
            self.mapper.assign_column(purpose_mapping, column_index, field_name)
        else:
            field_name = question.field_name
            column_index = self._resolve_column(purpose_mapping, value)
            if column_index is None:
                return [self.generator.manual_override_question(
                    question, f"No column matches '{value}'." if value else ""
                )]
            if kind == QuestionKind.FIELD_CONFLICT:
                self.mapper.resolve_field_conflict(purpose_mapping, field_name, column_index)
            else:
                self.mapper.assign_column(purpose_mapping, column_index, field_name)
        self.mapper.update_overall_confidence(self.mapping)

        table = self.processed.structure.table(purpose_mapping.table_index)
        return [self.generator.data_validation_question(
            question, purpose_mapping, table, column_index, field_name
        )]

    # Reconciliation --------------------------------------------------------

    def _reconcile_mapping_questions(self) -> List[ConversationalQuestion]:
        """
        Keep mapping questions in line with the current mapping.

        Pending questions whose subject no longer exists are retired; unresolved
        subjects without a pending question or pending manual override get a new one.
        """
        desired: Dict[tuple, ConversationalQuestion] = {}
        for purpose_mapping in self.mapping.purposes.values():
            table = self.processed.structure.table(purpose_mapping.table_index)
            for question in self.generator.mapping_questions(purpose_mapping, table):
                desired[subject_key(question)] = question

        covered: Set[tuple] = set()
        for question in list(self.pending.values()):
            if question.kind in MAPPING_KINDS:
                key = subject_key(question)
                if key in desired:
                    covered.add(key)
                else:
                    del self.pending[question.id]
                    self.retired.append(question.id)
                    logger.debug(f"Session {self.session_id}: retired {question.id}")
            elif question.kind == QuestionKind.MANUAL_OVERRIDE:
                parent = self._find(question.parent_id)
                if parent is None or parent.kind not in MAPPING_KINDS:
                    continue
                if subject_key(parent) in desired:
                    covered.add(subject_key(parent))
                else:
                    del self.pending[question.id]
                    self.retired.append(question.id)

        return [self._issue(q) for key, q in desired.items() if key not in covered]

    # Finalization ----------------------------------------------------------

    def finalize(self) -> NormalizedDataset:
        """Build the normalized dataset. Only valid once no CRITICAL question is pending."""
        if not self.is_complete:
            raise ConversationError(
                f"Session {self.session_id} still has pending critical questions"
            )
        if self.dataset is not None:
            return self.dataset

        records: Dict[str, List[Dict[str, Any]]] = {}
        confirmed: Dict[str, Dict[str, List[str]]] = {}
        if not self.rejected:
            for purpose, purpose_mapping in self.mapping.purposes.items():
                table = self.processed.structure.table(purpose_mapping.table_index)
                records[purpose.value] = self.mapper.convert_rows(table, purpose_mapping) if table else []
                confirmed[purpose.value] = {
                    name: list(m.mapped_headers)
                    for name, m in purpose_mapping.field_mappings.items()
                    if m.is_mapped
                }

        resolved = self._resolved_counts()
        summary = self.generator.validation_summary(
            self.file_name, resolved, {p: len(r) for p, r in records.items()}, self._pending_optional()
        )
        self.dataset = NormalizedDataset(
            records=records,
            mapping=confirmed,
            answer_history=list(self.answers.values()),
            validation_summary=summary,
            severity_counts={s.value: n for s, n in resolved.items()},
            final_approval=self.final_approval,
        )
        logger.info(f"Session {self.session_id} finalized: {summary}")
        return self.dataset

    # Helpers ---------------------------------------------------------------

    def _enter_final_confirmation(self) -> None:
        if not self.config.require_final_confirmation or self.final_approval or self.rejected:
            return
        summary = self.generator.validation_summary(
            self.file_name, self._resolved_counts(), self._record_counts(), self._pending_optional()
        )
        self._issue(self.generator.final_confirmation_question(summary))

    def _issue(self, question: ConversationalQuestion) -> ConversationalQuestion:
        issued = self._ledger.issue(question)
        self.pending[issued.id] = issued
        self.history.append(issued)
        return issued

    def _find(self, question_id: Optional[str]) -> Optional[ConversationalQuestion]:
        for question in self.history:
            if question.id == question_id:
                return question
        return None

    def _purpose_mapping(self, question: ConversationalQuestion) -> Optional[PurposeMapping]:
        try:
            return self.mapping.get(TablePurpose(question.purpose))
        except ValueError:
            return None

    def _resolve_column(self, mapping: PurposeMapping, value: Optional[str]) -> Optional[int]:
        """A column index given as its number or its header text."""
        if value is None or not str(value).strip():
            return None
        text = str(value).strip()
        if text.isdigit() and mapping.classification(int(text)) is not None:
            return int(text)
        for classification in mapping.classifications:
            if fold(classification.header) == fold(text):
                return classification.column_index
        return None

    def _resolve_field(self, mapping: PurposeMapping, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        if value in mapping.field_mappings:
            return value
        for name, field_mapping in mapping.field_mappings.items():
            if fold(field_mapping.display_name) == fold(value):
                return name
        return None

    def _resolved_counts(self) -> Dict[Severity, int]:
        counts = {s: 0 for s in Severity}
        for record in self.answers.values():
            counts[record.severity] += 1
        return counts

    def _record_counts(self) -> Dict[str, int]:
        if self.rejected:
            return {}
        return {
            purpose.value: self.processed.structure.table(m.table_index).row_count
            for purpose, m in self.mapping.purposes.items()
            if self.processed.structure.table(m.table_index) is not None
        }

    def _pending_optional(self) -> int:
        return sum(1 for q in self.pending.values() if not q.is_critical)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "client_id": self.client_id,
            "file_name": self.file_name,
            "step": self.step,
            "is_complete": self.is_complete,
            "pending_questions": [q.to_dict() for q in self.pending_questions()],
            "answered": [a.to_dict() for a in self.answers.values()],
            "mapping": self.mapping.to_dict(),
            "final_approval": self.final_approval,
            "dataset": self.dataset.to_dict() if self.dataset else None,
            "format_override": self.format_override,
            "notes": list(self.notes),
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
        }
