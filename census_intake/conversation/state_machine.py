"""Conversation step state machine."""

from typing import Dict, Iterable, List, Optional, Set

from census_intake.constants import ConversationStep, QuestionCategory
from census_intake.exceptions import InvalidStateTransitionError
from census_intake.models.conversation import ConversationalQuestion

STEP_ORDER: List[str] = [
    ConversationStep.FORMAT_CONFIRMATION,
    ConversationStep.COLUMN_MAPPING,
    ConversationStep.DATA_VALIDATION,
    ConversationStep.FINAL_CONFIRMATION,
    ConversationStep.COMPLETE,
]

# Valid step transitions
VALID_STEP_TRANSITIONS: Dict[str, Set[str]] = {
    ConversationStep.FORMAT_CONFIRMATION: {ConversationStep.COLUMN_MAPPING},
    ConversationStep.COLUMN_MAPPING: {ConversationStep.DATA_VALIDATION},
    ConversationStep.DATA_VALIDATION: {ConversationStep.FINAL_CONFIRMATION},
    ConversationStep.FINAL_CONFIRMATION: {ConversationStep.COMPLETE},
    ConversationStep.COMPLETE: set(),  # Terminal state
}

# Question categories attributed to each step
STEP_CATEGORIES: Dict[str, Set[QuestionCategory]] = {
    ConversationStep.FORMAT_CONFIRMATION: {QuestionCategory.FORMAT_CONFIRMATION},
    ConversationStep.COLUMN_MAPPING: {QuestionCategory.COLUMN_MAPPING},
    ConversationStep.DATA_VALIDATION: {QuestionCategory.DATA_VALIDATION},
    ConversationStep.FINAL_CONFIRMATION: {QuestionCategory.CONFIRMATION},
    ConversationStep.COMPLETE: set(),
}


def validate_step_transition(current_step: str, new_step: str) -> None:
    """
    Validate that a step transition is allowed.

    Args:
        current_step: Current conversation step
        new_step: Desired next step

    Raises:
        InvalidStateTransitionError: If transition is not allowed
    """
    allowed = VALID_STEP_TRANSITIONS.get(current_step)
    if allowed is None:
        raise InvalidStateTransitionError(f"Unknown conversation step: {current_step}")
    if new_step not in allowed:
        raise InvalidStateTransitionError(
            f"Invalid step transition: {current_step} -> {new_step}. "
            f"Allowed: {sorted(allowed) if allowed else 'none (terminal)'}"
        )


def next_step(current_step: str) -> Optional[str]:
    allowed = VALID_STEP_TRANSITIONS.get(current_step) or set()
    return next(iter(allowed), None)


def step_for_category(category: QuestionCategory) -> str:
    for step, categories in STEP_CATEGORIES.items():
        if category in categories:
            return step
    raise InvalidStateTransitionError(f"No step handles question category {category.value}")


def blocking_questions(step: str, pending: Iterable[ConversationalQuestion]) -> List[ConversationalQuestion]:
    """Pending CRITICAL questions attributed to ``step`` or to any step before it."""
    if step not in STEP_ORDER:
        raise InvalidStateTransitionError(f"Unknown conversation step: {step}")
    categories: Set[QuestionCategory] = set()
    for earlier in STEP_ORDER[: STEP_ORDER.index(step) + 1]:
        categories |= STEP_CATEGORIES[earlier]
    return [q for q in pending if q.is_critical and q.category in categories]


def can_advance(step: str, pending: Iterable[ConversationalQuestion]) -> bool:
    return step != ConversationStep.COMPLETE and not blocking_questions(step, pending)
