"""Request, response and payload schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field

DEFAULT_GRADING_SYSTEM = "5 ballik sistema (1-5)"
DEFAULT_CRITERIA = (
    "1. Mavzuning ochib berilishi\n"
    "2. Grammatik xatolar\n"
    "3. Manbalardan foydalanish\n"
    "4. Kreativ yondashuv"
)


class EvaluationStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class StudentInfo(BaseModel):
    first_name: str = ""
    last_name: str = ""
    group: str = ""
    subject: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def is_complete(self) -> bool:
        return all(value.strip() for value in (self.first_name, self.last_name, self.group, self.subject))


class StudentInfoUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    group: str | None = None
    subject: str | None = None


class GradingConfig(BaseModel):
    grading_system: str = DEFAULT_GRADING_SYSTEM
    criteria: str = DEFAULT_CRITERIA


class GradingConfigUpdate(BaseModel):
    grading_system: str | None = None
    criteria: str | None = None


class TextPayload(BaseModel):
    """Document content extracted or decoded to plain text."""

    kind: Literal["text"] = "text"
    content: str


class BinaryPayload(BaseModel):
    """Opaque document bytes, base64 encoded, forwarded with their media type."""

    kind: Literal["binary"] = "binary"
    data: str
    mime_type: str


IngestedDocument = Annotated[TextPayload | BinaryPayload, Field(discriminator="kind")]


class EvaluationResult(BaseModel):
    score: str = ""
    summary: str = ""
    details: str = ""
    status: EvaluationStatus = EvaluationStatus.IDLE
    error: str | None = None


class SessionRead(BaseModel):
    id: str
    created_at: datetime
    student: StudentInfo
    grading: GradingConfig
    file_name: str | None
    document_kind: Literal["text", "binary"] | None
    result: EvaluationResult
