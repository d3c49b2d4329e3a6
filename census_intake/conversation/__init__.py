"""Question/answer conversation that resolves mapping gaps."""

from census_intake.conversation.questions import QuestionGenerator, QuestionLedger, sort_questions
from census_intake.conversation.service import ConversationService
from census_intake.conversation.session import ConversationSession
from census_intake.conversation.store import SessionStore

__all__ = [
    "ConversationService",
    "ConversationSession",
    "QuestionGenerator",
    "QuestionLedger",
    "SessionStore",
    "sort_questions",
]
