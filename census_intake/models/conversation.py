"""Data models for the disambiguation conversation."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from census_intake.constants import AnswerAction, QuestionCategory, Severity


@dataclass(frozen=True)
class QuestionOption:
    id: str
    label: str
    action: AnswerAction
    value: Optional[str] = None
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "action": self.action.value,
            "value": self.value,
            "description": self.description,
        }


@dataclass(frozen=True)
class ConversationalQuestion:
    """A question issued to the user. Never mutated once issued."""

    id: str
    kind: str
    category: QuestionCategory
    severity: Severity
    prompt: str
    rationale: str
    options: Tuple[QuestionOption, ...]
    sample_data: Tuple[str, ...] = ()
    purpose: Optional[str] = None
    field_name: Optional[str] = None
    columns: Tuple[int, ...] = ()
    parent_id: Optional[str] = None
    sequence: int = 0

    def option(self, option_id: str) -> Optional[QuestionOption]:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None

    @property
    def is_critical(self) -> bool:
        return self.severity == Severity.CRITICAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "category": self.category.value,
            "severity": self.severity.value,
            "prompt": self.prompt,
            "rationale": self.rationale,
            "options": [o.to_dict() for o in self.options],
            "sample_data": list(self.sample_data),
            "purpose": self.purpose,
            "field_name": self.field_name,
            "columns": list(self.columns),
            "parent_id": self.parent_id,
        }


@dataclass(frozen=True)
class Answer:
    option_id: str
    value: Optional[str] = None
    note: Optional[str] = None


@dataclass
class AnswerRecord:
    question_id: str
    question_kind: str
    severity: Severity
    option_id: str
    action: AnswerAction
    value: Optional[str] = None
    note: Optional[str] = None
    answered_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "question_kind": self.question_kind,
            "severity": self.severity.value,
            "option_id": self.option_id,
            "action": self.action.value,
            "value": self.value,
            "note": self.note,
            "answered_at": self.answered_at.isoformat(),
        }


@dataclass
class NormalizedDataset:
    """Finalized output of a completed conversation."""

    records: Dict[str, List[Dict[str, Any]]]
    mapping: Dict[str, Dict[str, List[str]]]
    answer_history: List[AnswerRecord]
    validation_summary: str
    severity_counts: Dict[str, int]
    final_approval: bool = False

    def to_dataframe(self, purpose: str) -> pd.DataFrame:
        """Records of one purpose as a DataFrame (empty when the purpose is absent)."""
        return pd.DataFrame(self.records.get(purpose, []))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records": self.records,
            "mapping": self.mapping,
            "answer_history": [a.to_dict() for a in self.answer_history],
            "validation_summary": self.validation_summary,
            "severity_counts": dict(self.severity_counts),
            "final_approval": self.final_approval,
        }


@dataclass
class AnswerOutcome:
    accepted: bool
    next_questions: List[ConversationalQuestion] = field(default_factory=list)
    is_complete: bool = False
    finalized_dataset: Optional[NormalizedDataset] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "reason": self.reason,
            "next_questions": [q.to_dict() for q in self.next_questions],
            "is_complete": self.is_complete,
            "finalized_dataset": self.finalized_dataset.to_dict() if self.finalized_dataset else None,
        }
