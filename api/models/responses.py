"""Pydantic response models for the census intake API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class QuestionOptionInfo(BaseModel):
    id: str
    label: str
    action: str
    value: Optional[str] = None
    description: str = ""


class QuestionInfo(BaseModel):
    """A conversational question."""

    id: str
    kind: str
    category: str
    severity: str
    prompt: str
    rationale: str
    options: List[QuestionOptionInfo]
    sample_data: List[str]
    purpose: Optional[str] = None
    field_name: Optional[str] = None
    columns: List[int] = []
    parent_id: Optional[str] = None


class ProcessedFileResponse(BaseModel):
    """Response model for an uploaded and processed file."""

    file_id: str
    file_name: str
    source_kind: str
    format: Dict[str, Any]
    tables: List[Dict[str, Any]]
    mapping: Dict[str, Any]
    anomalies: List[str]
    metadata: Dict[str, Any]
    questions: List[QuestionInfo]


class SessionResponse(BaseModel):
    """Response model for a conversation session."""

    session_id: str
    client_id: str
    file_name: str
    step: str
    is_complete: bool
    pending_questions: List[QuestionInfo]
    answered: int
    final_approval: bool
    finalized_dataset: Optional[Dict[str, Any]] = None


class AnswerResponse(BaseModel):
    """Response model for an answer submission."""

    accepted: bool
    reason: Optional[str] = None
    next_questions: List[QuestionInfo]
    is_complete: bool
    finalized_dataset: Optional[Dict[str, Any]] = None
