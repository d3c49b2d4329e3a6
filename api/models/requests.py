"""Pydantic request models for the census intake API."""

import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator

_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_.:-]+$")


class StartSessionRequest(BaseModel):
    """Request model for starting a conversation over a processed file."""

    client_id: str = Field(..., min_length=1, max_length=255, description="Client identifier")
    file_id: str = Field(..., min_length=1, description="Id returned by POST /files")

    @field_validator("client_id", "file_id")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        """Validate identifier format."""
        v = v.strip()
        if not _ID_PATTERN.match(v):
            raise ValueError("identifiers can only contain alphanumeric characters, underscore, hyphen, colon, and dot")
        return v


class AnswerRequest(BaseModel):
    """Request model for answering one pending question."""

    question_id: str = Field(..., min_length=1, description="Id of the pending question")
    option_id: str = Field(..., min_length=1, description="Id of the chosen option")
    value: Optional[str] = Field(None, max_length=500, description="Free value (column header or index, field name, ...)")
    note: Optional[str] = Field(None, max_length=2000, description="Optional note kept in the answer history")

    @field_validator("value", "note")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank strings as absent."""
        if v is None:
            return None
        v = v.strip()
        return v or None
