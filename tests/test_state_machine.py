import pytest

from census_intake.constants import (
    AnswerAction,
    ConversationStep,
    QuestionCategory,
    Severity,
)
from census_intake.conversation.state_machine import (
    STEP_ORDER,
    blocking_questions,
    can_advance,
    next_step,
    step_for_category,
    validate_step_transition,
)
from census_intake.exceptions import InvalidStateTransitionError
from census_intake.models.conversation import ConversationalQuestion, QuestionOption


def _question(qid, category, severity):
    return ConversationalQuestion(
        id=qid,
        kind="anomaly",
        category=category,
        severity=severity,
        prompt=qid,
        rationale="",
        options=(QuestionOption("ok", "Ok", AnswerAction.ACCEPT_SUGGESTION),),
    )


def test_steps_follow_declared_order():
    step = ConversationStep.FORMAT_CONFIRMATION
    visited = [step]
    while next_step(step) is not None:
        validate_step_transition(step, next_step(step))
        step = next_step(step)
        visited.append(step)
    assert visited == STEP_ORDER


@pytest.mark.parametrize("current,new", [
    (ConversationStep.FORMAT_CONFIRMATION, ConversationStep.COMPLETE),
    (ConversationStep.DATA_VALIDATION, ConversationStep.COLUMN_MAPPING),
    (ConversationStep.COMPLETE, ConversationStep.FORMAT_CONFIRMATION),
    ("unknown_step", ConversationStep.COMPLETE),
])
def test_invalid_transitions_raise(current, new):
    with pytest.raises(InvalidStateTransitionError):
        validate_step_transition(current, new)


def test_step_for_category():
    assert step_for_category(QuestionCategory.COLUMN_MAPPING) == ConversationStep.COLUMN_MAPPING
    assert step_for_category(QuestionCategory.CONFIRMATION) == ConversationStep.FINAL_CONFIRMATION


def test_only_critical_questions_block():
    optional = _question("q1", QuestionCategory.COLUMN_MAPPING, Severity.OPTIONAL)
    critical = _question("q2", QuestionCategory.COLUMN_MAPPING, Severity.CRITICAL)
    assert can_advance(ConversationStep.COLUMN_MAPPING, [optional]) is True
    assert can_advance(ConversationStep.COLUMN_MAPPING, [optional, critical]) is False


def test_critical_questions_of_later_steps_do_not_block_earlier_steps():
    later = _question("q1", QuestionCategory.DATA_VALIDATION, Severity.CRITICAL)
    assert can_advance(ConversationStep.FORMAT_CONFIRMATION, [later]) is True
    assert blocking_questions(ConversationStep.DATA_VALIDATION, [later]) == [later]


def test_earlier_critical_questions_still_block():
    earlier = _question("q1", QuestionCategory.COLUMN_MAPPING, Severity.CRITICAL)
    assert can_advance(ConversationStep.DATA_VALIDATION, [earlier]) is False


def test_complete_never_advances():
    assert can_advance(ConversationStep.COMPLETE, []) is False
