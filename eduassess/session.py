"""Evaluation session state and the in-process session store.

A session owns the form state (student, grading configuration, selected
document) and the evaluation result. Every file selection, evaluation and
reset bumps ``generation``; a file read or service response that settles
under an older generation is dropped, so the newest user action always wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from fastapi import UploadFile

from eduassess.ai.gemini import EvaluationClient, EvaluationServiceError
from eduassess.pipeline.extract import extract
from eduassess.pipeline.ingest import DocumentExtractionError, ingest
from eduassess.pipeline.prompt import compose
from eduassess.schemas import (
    EvaluationResult,
    EvaluationStatus,
    GradingConfig,
    GradingConfigUpdate,
    IngestedDocument,
    StudentInfo,
    StudentInfoUpdate,
)
from eduassess.settings import settings

logger = logging.getLogger(__name__)

VALIDATION_ERROR_MESSAGE = "Iltimos, barcha maydonlarni to'ldiring va faylni yuklang."
SUBMISSION_ERROR_MESSAGE = "Baholash jarayonida xatolik yuz berdi. Qayta urinib ko'ring."


def utcnow() -> datetime:
    """Return timezone-aware UTC now timestamp."""
    return datetime.now(timezone.utc)


class EvaluationSession:
    def __init__(self, session_id: str | None = None, created_at: datetime | None = None) -> None:
        self.id = session_id or uuid4().hex
        self.created_at = created_at or utcnow()
        self.student = StudentInfo()
        self.grading = GradingConfig()
        self.file_name: str | None = None
        self.document: IngestedDocument | None = None
        self.result = EvaluationResult()
        self.generation = 0

    def _next_generation(self) -> int:
        self.generation += 1
        return self.generation

    def _is_stale(self, generation: int, stage: str) -> bool:
        if generation == self.generation:
            return False
        logger.info(
            "session discarded stale result",
            extra={"session_id": self.id, "stage": stage, "generation": generation, "current_generation": self.generation},
        )
        return True

    def _fail(self, message: str) -> EvaluationResult:
        self.result = self.result.model_copy(update={"status": EvaluationStatus.ERROR, "error": message})
        return self.result

    def update_student(self, update: StudentInfoUpdate) -> None:
        self.student = self.student.model_copy(update=update.model_dump(exclude_none=True))

    def update_grading(self, update: GradingConfigUpdate) -> None:
        self.grading = self.grading.model_copy(update=update.model_dump(exclude_none=True))

    def is_ready(self) -> bool:
        return self.student.is_complete() and self.document is not None

    async def select_file(self, upload: UploadFile) -> EvaluationResult:
        """Replace the selected document with ``upload``."""
        generation = self._next_generation()
        self.file_name = upload.filename
        self.document = None
        self.result = EvaluationResult()

        try:
            document = await ingest(upload)
        except DocumentExtractionError as exc:
            if self._is_stale(generation, "ingest"):
                return self.result
            logger.warning(
                "session document extraction failed",
                extra={"session_id": self.id, "stage": "ingest", "upload_filename": upload.filename},
                exc_info=exc,
            )
            return self._fail(exc.message)

        if not self._is_stale(generation, "ingest"):
            self.document = document
        return self.result

    async def evaluate(self, client: EvaluationClient) -> EvaluationResult:
        if not self.is_ready():
            self._next_generation()
            logger.info("session evaluation rejected: incomplete form", extra={"session_id": self.id, "stage": "validate"})
            return self._fail(VALIDATION_ERROR_MESSAGE)

        generation = self._next_generation()
        self.result = EvaluationResult(status=EvaluationStatus.LOADING)
        request = compose(self.student, self.grading, self.document)

        try:
            raw_text = await client.submit(request)
        except EvaluationServiceError as exc:
            if self._is_stale(generation, "submit"):
                return self.result
            logger.warning(
                "session evaluation failed",
                extra={"session_id": self.id, "stage": "submit", "generation": generation, "status_code": exc.status_code},
                exc_info=exc,
            )
            return self._fail(SUBMISSION_ERROR_MESSAGE)

        if self._is_stale(generation, "submit"):
            return self.result

        extracted = extract(raw_text)
        self.result = EvaluationResult(
            score=extracted.score,
            summary=extracted.summary,
            details=extracted.details,
            status=EvaluationStatus.SUCCESS,
        )
        logger.info(
            "session evaluation complete",
            extra={"session_id": self.id, "stage": "extract", "generation": generation, "score": extracted.score},
        )
        return self.result

    def reset(self) -> None:
        """Clear student, file and result; an in-flight response is ignored when it lands."""
        self._next_generation()
        self.student = StudentInfo()
        self.file_name = None
        self.document = None
        self.result = EvaluationResult()


class SessionStore:
    """Sessions held in process memory; nothing survives a restart.

    Sessions older than ``ttl_seconds`` are dropped, and once ``max_sessions``
    is reached the oldest session makes room for a new one.
    """

    def __init__(
        self,
        max_sessions: int = 200,
        ttl_seconds: int = 6 * 3600,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._sessions: dict[str, EvaluationSession] = {}
        self._max_sessions = max_sessions
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def __len__(self) -> int:
        return len(self._sessions)

    def _is_expired(self, session: EvaluationSession, now: datetime) -> bool:
        return now - session.created_at >= self._ttl

    def _evict(self, now: datetime) -> None:
        expired = [session_id for session_id, session in self._sessions.items() if self._is_expired(session, now)]
        for session_id in expired:
            del self._sessions[session_id]
        # Insertion order is creation order.
        while self._sessions and len(self._sessions) >= self._max_sessions:
            oldest_id = next(iter(self._sessions))
            del self._sessions[oldest_id]
            expired.append(oldest_id)
        if expired:
            logger.info("session store evicted sessions", extra={"stage": "evict", "evicted": len(expired)})

    def create(self) -> EvaluationSession:
        now = self._clock()
        self._evict(now)
        session = EvaluationSession(created_at=now)
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> EvaluationSession | None:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if self._is_expired(session, self._clock()):
            del self._sessions[session_id]
            return None
        return session

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None


def _new_store() -> SessionStore:
    return SessionStore(max_sessions=settings.max_sessions, ttl_seconds=settings.session_ttl_seconds)


_store = _new_store()


async def get_session_store() -> SessionStore:
    return _store


def reset_session_store() -> None:
    global _store
    _store = _new_store()
