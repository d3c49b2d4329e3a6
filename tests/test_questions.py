from census_intake.config import ConversationConfig
from census_intake.constants import (
    AnswerAction,
    QuestionCategory,
    QuestionKind,
    Severity,
    SourceKind,
    TablePurpose,
)
from census_intake.conversation.questions import QuestionGenerator, QuestionLedger, sort_questions
from census_intake.mapping.mapper import ColumnMapper
from census_intake.models.conversation import ConversationalQuestion, QuestionOption
from census_intake.models.grid import RawGrid
from census_intake.structure.analyzer import StructureAnalyzer

from conftest import census_rows


def _q(qid, severity, category=QuestionCategory.COLUMN_MAPPING, sequence=0):
    return ConversationalQuestion(
        id=qid,
        kind=QuestionKind.CLARIFICATION,
        category=category,
        severity=severity,
        prompt=qid,
        rationale="",
        options=(QuestionOption("ok", "Ok", AnswerAction.ACCEPT_SUGGESTION),),
        sequence=sequence,
    )


def test_ledger_suffixes_repeated_ids():
    ledger = QuestionLedger()
    first = ledger.issue(_q("missing_x", Severity.CRITICAL))
    second = ledger.issue(_q("missing_x", Severity.CRITICAL))
    third = ledger.issue(_q("missing_x", Severity.CRITICAL))
    assert [first.id, second.id, third.id] == ["missing_x", "missing_x_2", "missing_x_3"]
    assert [first.sequence, second.sequence, third.sequence] == [1, 2, 3]


def test_sort_by_severity_then_category_then_issue_order():
    questions = [
        _q("optional", Severity.OPTIONAL, sequence=1),
        _q("validation", Severity.CRITICAL, QuestionCategory.DATA_VALIDATION, sequence=2),
        _q("mapping_late", Severity.CRITICAL, sequence=4),
        _q("mapping_early", Severity.CRITICAL, sequence=3),
        _q("format", Severity.CRITICAL, QuestionCategory.FORMAT_CONFIRMATION, sequence=5),
        _q("recommended", Severity.RECOMMENDED, sequence=0),
    ]
    assert [q.id for q in sort_questions(questions)] == [
        "format", "mapping_early", "mapping_late", "validation", "recommended", "optional",
    ]


def test_missing_required_field_question(census_grid):
    structure = StructureAnalyzer().analyze(census_grid)
    mapping = ColumnMapper().map_structure(structure)
    generator = QuestionGenerator()
    pm = mapping.get(TablePurpose.ACTIVE_PERSONNEL)

    questions = generator.mapping_questions(pm, structure.tables[0])

    assert len(questions) == 1
    question = questions[0]
    assert question.id == "missing_active_personnel_hire_date"
    assert question.severity == Severity.CRITICAL
    assert "Missing required field: hire_date" in question.prompt
    assert [o.id for o in question.options] == ["column_1", "other_column", "not_available"]
    assert question.option("column_1").value == "1"
    assert question.option("not_available").action == AnswerAction.SKIP


def test_field_conflict_question_lists_each_column(conflict_grid):
    structure = StructureAnalyzer().analyze(conflict_grid)
    mapping = ColumnMapper().map_structure(structure)
    pm = mapping.get(TablePurpose.ACTIVE_PERSONNEL)

    questions = QuestionGenerator().mapping_questions(pm, structure.tables[0])

    assert [q.id for q in questions] == ["field_conflict_active_personnel_employee_code"]
    question = questions[0]
    assert question.severity == Severity.RECOMMENDED
    assert question.columns == (1, 2)
    assert [o.id for o in question.options] == ["column_1", "column_2", "skip"]
    assert question.option("column_1").action == AnswerAction.ACCEPT_SUGGESTION
    assert question.option("column_2").action == AnswerAction.MANUAL_OVERRIDE
    assert len(question.sample_data) == 2


def test_format_confirmation_below_threshold(census_grid, pipeline):
    processed = pipeline.process_grid(census_grid)
    generator = QuestionGenerator(ConversationConfig(format_confirmation_threshold=0.99))
    questions = generator.initial_questions(
        SourceKind.TABULAR_SPREADSHEET, processed.format_assessment, processed.structure, processed.mapping
    )
    assert questions[0].id == "format_confirmation"
    assert questions[0].severity == Severity.CRITICAL
    assert [o.action for o in questions[0].options] == [
        AnswerAction.ACCEPT_SUGGESTION,
        AnswerAction.REQUEST_CLARIFICATION,
    ]


def test_anomaly_review_is_optional_unless_required_field_affected():
    rows = census_rows(3)
    structure = StructureAnalyzer().analyze(RawGrid.from_rows(rows))
    mapping = ColumnMapper().map_structure(structure)
    generator = QuestionGenerator()

    review = generator.anomalies_review_question(structure, mapping)
    assert review.severity == Severity.OPTIONAL

    expanded = generator.anomaly_questions(review, structure, mapping)
    assert [q.id for q in expanded] == ["anomaly_1"]
    assert expanded[0].parent_id == "anomalies_review"


def test_options_are_bounded():
    generator = QuestionGenerator(ConversationConfig(max_question_options=3))
    options = [QuestionOption(f"o{i}", str(i), AnswerAction.MANUAL_OVERRIDE) for i in range(6)]
    tail = [QuestionOption("skip", "Skip", AnswerAction.SKIP)]
    bounded = generator._bounded(options, tail)
    assert [o.id for o in bounded] == ["o0", "o1", "skip"]


def test_validation_summary_counts():
    summary = QuestionGenerator().validation_summary(
        "plantilla.csv", {Severity.CRITICAL: 1, Severity.RECOMMENDED: 2}, {"active_personnel": 10}, 1
    )
    assert "Resolved 3 question(s)" in summary
    assert "critical: 1" in summary
    assert "optional: 0" in summary
    assert "active_personnel: 10" in summary
