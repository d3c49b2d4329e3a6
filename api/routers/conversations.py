"""Conversations API router."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from api.dependencies import get_conversation_service, get_file_service
from api.models.requests import AnswerRequest, StartSessionRequest
from api.models.responses import AnswerResponse, SessionResponse
from api.services.file_service import ProcessedFileService
from census_intake.conversation.service import ConversationService
from census_intake.models.conversation import Answer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["conversations"])


def _session_response(state: Dict[str, Any]) -> SessionResponse:
    return SessionResponse(
        session_id=state["session_id"],
        client_id=state["client_id"],
        file_name=state["file_name"],
        step=state["step"],
        is_complete=state["is_complete"],
        pending_questions=state["pending_questions"],
        answered=len(state["answered"]),
        final_approval=state["final_approval"],
        finalized_dataset=state["dataset"],
    )


@router.post("/conversations", response_model=SessionResponse)
def start_conversation(
    request: StartSessionRequest,
    file_service: ProcessedFileService = Depends(get_file_service),
    conversation_service: ConversationService = Depends(get_conversation_service),
):
    """
    Start a conversation over a processed file.

    A file without critical questions is finalized right away and the
    response carries the finalized dataset.
    """
    processed = file_service.get(request.file_id)
    session = conversation_service.start_session(request.client_id, processed.file.name, processed)
    return _session_response(session.to_dict())


@router.get("/conversations/{session_id}", response_model=SessionResponse)
def get_conversation(
    session_id: str,
    conversation_service: ConversationService = Depends(get_conversation_service),
):
    """Get the current state of an active conversation."""
    return _session_response(conversation_service.snapshot(session_id))


@router.post("/conversations/{session_id}/answers", response_model=AnswerResponse)
def answer_question(
    session_id: str,
    request: AnswerRequest,
    conversation_service: ConversationService = Depends(get_conversation_service),
):
    """
    Answer one pending question.

    Answers for unknown or already answered questions are not applied;
    the response has accepted=false and a reason.
    """
    outcome = conversation_service.process_answer(
        session_id,
        request.question_id,
        Answer(option_id=request.option_id, value=request.value, note=request.note),
    )
    return AnswerResponse(**outcome.to_dict())
