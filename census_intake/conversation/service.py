"""Conversation service: start sessions and route answers to them."""

import logging
import uuid
from typing import Any, Dict, Optional

from census_intake.config import ConversationConfig
from census_intake.constants import DEFAULT_SESSION_ID_PREFIX
from census_intake.conversation.questions import QuestionGenerator
from census_intake.conversation.session import ConversationSession
from census_intake.conversation.store import SessionStore
from census_intake.mapping.mapper import ColumnMapper
from census_intake.models.conversation import Answer, AnswerOutcome
from census_intake.models.processed import ProcessedFileData

logger = logging.getLogger(__name__)


class ConversationService:
    """Owns the session lifecycle on top of an injected SessionStore."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        generator: Optional[QuestionGenerator] = None,
        mapper: Optional[ColumnMapper] = None,
        config: Optional[ConversationConfig] = None,
    ):
        self.config = config or ConversationConfig()
        self.store = store or SessionStore(self.config.session_idle_timeout_seconds)
        self.generator = generator or QuestionGenerator(self.config)
        self.mapper = mapper or ColumnMapper()

    def start_session(
        self, client_id: str, file_name: str, processed: ProcessedFileData
    ) -> ConversationSession:
        """
        Start a conversation for a processed file.

        A file that needs no critical answers is finalized immediately and the
        session is never stored. Sessions idle past the
        timeout are expired first.
        """
        self.store.expire_idle()
        session = ConversationSession(
            session_id=f"{DEFAULT_SESSION_ID_PREFIX}{uuid.uuid4().hex}",
            client_id=client_id,
            file_name=file_name,
            processed=processed,
            generator=self.generator,
            mapper=self.mapper,
            config=self.config,
        )
        session.start()
        if session.is_complete:
            session.finalize()
            logger.info(f"Session {session.session_id} needed no critical answers and was finalized")
        else:
            self.store.add(session)
        return session

    def process_answer(self, session_id: str, question_id: str, answer: Answer) -> AnswerOutcome:
        """
        Apply an answer under the session lock.

        Raises:
            SessionNotFoundError: If the session does not exist or has expired
        """
        with self.store.lock(session_id) as session:
            outcome = session.apply_answer(question_id, answer)
            if outcome.accepted and outcome.is_complete:
                outcome.finalized_dataset = session.finalize()
                self.store.remove(session_id)
        return outcome

    def get_session(self, session_id: str) -> ConversationSession:
        return self.store.get(session_id)

    def snapshot(self, session_id: str) -> Dict[str, Any]:
        """
        Serialized session state, taken under the session lock.

        Raises:
            SessionNotFoundError: If the session does not exist or has expired
        """
        with self.store.lock(session_id) as session:
            return session.to_dict()

    def expire_idle_sessions(self) -> int:
        return len(self.store.expire_idle())
