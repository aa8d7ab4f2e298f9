from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from io import BytesIO
from types import SimpleNamespace

import httpx
import pytest
from docx import Document
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from fastapi import UploadFile
from starlette.datastructures import Headers

from eduassess.ai.gemini import (
    MOCK_RESPONSE_TEXT,
    EvaluationServiceError,
    GeminiConfig,
    GeminiEvaluationClient,
)
from eduassess.pipeline.ingest import DOCX_MIME_TYPE, WORD_EXTRACTION_ERROR_MESSAGE
from eduassess.pipeline.prompt import EvaluationRequest
from eduassess.schemas import EvaluationStatus, GradingConfigUpdate, StudentInfoUpdate
from eduassess.session import (
    SUBMISSION_ERROR_MESSAGE,
    VALIDATION_ERROR_MESSAGE,
    EvaluationSession,
    SessionStore,
)


class RecordingClient:
    def __init__(self, response: str = MOCK_RESPONSE_TEXT, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[EvaluationRequest] = []

    async def submit(self, request: EvaluationRequest) -> str:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


class GatedClient:
    """Holds every submission until the test releases it."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def submit(self, request: EvaluationRequest) -> str:
        self.started.set()
        await self.release.wait()
        return "**Umumiy ball:** 2\n**Xulosa:** Eski javob"


def make_upload(data: bytes, content_type: str, filename: str = "work.txt") -> UploadFile:
    return UploadFile(file=BytesIO(data), filename=filename, headers=Headers({"content-type": content_type}))


def make_docx_with_bad_grid_span() -> bytes:
    document = Document()
    cell = document.add_table(rows=1, cols=1).rows[0].cells[0]
    cell.text = "Manba"
    span = OxmlElement("w:gridSpan")
    span.set(qn("w:val"), "x")
    cell._tc.get_or_add_tcPr().append(span)
    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _complete_student() -> StudentInfoUpdate:
    return StudentInfoUpdate(first_name="Ali", last_name="Valiyev", group="301-guruh", subject="Fizika")


def _ready_session() -> EvaluationSession:
    session = EvaluationSession()
    session.update_student(_complete_student())
    asyncio.run(session.select_file(make_upload(b"Ish matni", "text/plain")))
    return session


def test_new_session_starts_idle_with_default_grading() -> None:
    session = EvaluationSession()

    assert session.result.status == EvaluationStatus.IDLE
    assert session.grading.grading_system == "5 ballik sistema (1-5)"
    assert session.grading.criteria.startswith("1. Mavzuning ochib berilishi")


def test_evaluate_success_populates_result() -> None:
    session = _ready_session()
    client = RecordingClient()

    result = asyncio.run(session.evaluate(client))

    assert result.status == EvaluationStatus.SUCCESS
    assert result.score == "4"
    assert result.summary == "Mavzu yaxshi ochib berilgan, lekin manbalar yetarli emas."
    assert result.details == MOCK_RESPONSE_TEXT
    assert result.error is None
    assert len(client.requests) == 1
    assert "Fan: Fizika" in client.requests[0].instruction


@pytest.mark.parametrize("missing_field", ["first_name", "last_name", "group", "subject"])
def test_evaluate_with_missing_student_field_never_calls_service(missing_field: str) -> None:
    session = _ready_session()
    session.student = session.student.model_copy(update={missing_field: "  "})
    client = RecordingClient()

    result = asyncio.run(session.evaluate(client))

    assert result.status == EvaluationStatus.ERROR
    assert result.error == VALIDATION_ERROR_MESSAGE
    assert client.requests == []


def test_evaluate_without_document_is_validation_error() -> None:
    session = EvaluationSession()
    session.update_student(_complete_student())
    client = RecordingClient()

    result = asyncio.run(session.evaluate(client))

    assert result.status == EvaluationStatus.ERROR
    assert client.requests == []


def test_invalid_docx_sets_error_and_blocks_evaluation() -> None:
    session = EvaluationSession()
    session.update_student(_complete_student())

    asyncio.run(session.select_file(make_upload(b"garbage", DOCX_MIME_TYPE, "work.docx")))

    assert session.result.status == EvaluationStatus.ERROR
    assert session.result.error == WORD_EXTRACTION_ERROR_MESSAGE
    assert session.document is None
    assert session.file_name == "work.docx"

    client = RecordingClient()
    asyncio.run(session.evaluate(client))
    assert client.requests == []


def test_docx_that_opens_but_is_corrupt_sets_error() -> None:
    session = EvaluationSession()
    session.update_student(_complete_student())

    asyncio.run(session.select_file(make_upload(make_docx_with_bad_grid_span(), DOCX_MIME_TYPE, "corrupt.docx")))

    assert session.result.status == EvaluationStatus.ERROR
    assert session.result.error == WORD_EXTRACTION_ERROR_MESSAGE
    assert session.document is None


def test_service_error_is_generic_and_retry_recovers() -> None:
    session = _ready_session()
    failing = RecordingClient(error=EvaluationServiceError(status_code=403, body="denied", message="forbidden"))

    result = asyncio.run(session.evaluate(failing))

    assert result.status == EvaluationStatus.ERROR
    assert result.error == SUBMISSION_ERROR_MESSAGE

    result = asyncio.run(session.evaluate(RecordingClient()))
    assert result.status == EvaluationStatus.SUCCESS


def test_gemini_transport_failure_never_leaves_session_loading() -> None:
    class InvalidUrlModels:
        async def generate_content(self, **kwargs):
            raise httpx.InvalidURL("Invalid URL 'gemini'")

    sdk = SimpleNamespace(aio=SimpleNamespace(models=InvalidUrlModels()))
    client = GeminiEvaluationClient(GeminiConfig(api_key="secret", base_url="gemini"), client=sdk)
    session = _ready_session()

    result = asyncio.run(session.evaluate(client))

    assert result.status == EvaluationStatus.ERROR
    assert result.error == SUBMISSION_ERROR_MESSAGE


def test_empty_response_is_success_with_sentinels() -> None:
    session = _ready_session()

    result = asyncio.run(session.evaluate(RecordingClient(response="")))

    assert result.status == EvaluationStatus.SUCCESS
    assert result.score == "Baholanmagan"
    assert result.summary == "Xulosa mavjud emas"
    assert result.details == ""


def test_new_file_selection_resets_result_to_idle() -> None:
    session = _ready_session()
    asyncio.run(session.evaluate(RecordingClient()))

    asyncio.run(session.select_file(make_upload(b"%PDF-1.4", "application/pdf", "new.pdf")))

    assert session.result.status == EvaluationStatus.IDLE
    assert session.result.score == ""
    assert session.file_name == "new.pdf"
    assert session.document.kind == "binary"


@pytest.mark.parametrize("final_state", ["success", "error"])
def test_reset_from_settled_state_clears_everything(final_state: str) -> None:
    session = _ready_session()
    if final_state == "success":
        asyncio.run(session.evaluate(RecordingClient()))
    else:
        asyncio.run(session.evaluate(RecordingClient(error=EvaluationServiceError(None, "", "boom"))))
    session.update_grading(GradingConfigUpdate(criteria="1. Faqat bitta mezon"))

    session.reset()

    assert session.result.status == EvaluationStatus.IDLE
    assert session.result.score == session.result.summary == session.result.details == ""
    assert session.result.error is None
    assert session.student.first_name == session.student.last_name == ""
    assert session.student.group == session.student.subject == ""
    assert session.file_name is None
    assert session.document is None
    assert session.grading.criteria == "1. Faqat bitta mezon"


def test_reset_while_loading_discards_late_response() -> None:
    session = _ready_session()
    client = GatedClient()

    async def scenario() -> None:
        task = asyncio.create_task(session.evaluate(client))
        await client.started.wait()
        assert session.result.status == EvaluationStatus.LOADING

        session.reset()
        assert session.result.status == EvaluationStatus.IDLE

        client.release.set()
        await task

    asyncio.run(scenario())

    assert session.result.status == EvaluationStatus.IDLE
    assert session.result.score == ""


def test_newer_evaluation_wins_over_older_in_flight_one() -> None:
    session = _ready_session()
    slow = GatedClient()
    fast = RecordingClient(response="**Umumiy ball:** 5\n**Xulosa:** Yangi javob")

    async def scenario() -> None:
        first = asyncio.create_task(session.evaluate(slow))
        await slow.started.wait()
        await session.evaluate(fast)
        slow.release.set()
        await first

    asyncio.run(scenario())

    assert session.result.status == EvaluationStatus.SUCCESS
    assert session.result.score == "5"
    assert session.result.summary == "Yangi javob"


def test_partial_student_update_keeps_other_fields() -> None:
    session = EvaluationSession()
    session.update_student(_complete_student())

    session.update_student(StudentInfoUpdate(group="302-guruh"))

    assert session.student.first_name == "Ali"
    assert session.student.group == "302-guruh"


def test_session_store_create_get_delete() -> None:
    store = SessionStore()
    session = store.create()

    assert store.get(session.id) is session
    assert store.delete(session.id) is True
    assert store.get(session.id) is None
    assert store.delete(session.id) is False


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


def test_session_store_expires_sessions_after_ttl() -> None:
    clock = FakeClock()
    store = SessionStore(max_sessions=10, ttl_seconds=60, clock=clock)
    old = store.create()

    clock.advance(30)
    assert store.get(old.id) is old

    clock.advance(30)
    assert store.get(old.id) is None
    assert len(store) == 0


def test_session_store_create_drops_expired_sessions() -> None:
    clock = FakeClock()
    store = SessionStore(max_sessions=10, ttl_seconds=60, clock=clock)
    store.create()
    store.create()

    clock.advance(61)
    fresh = store.create()

    assert len(store) == 1
    assert store.get(fresh.id) is fresh


def test_session_store_evicts_oldest_when_full() -> None:
    store = SessionStore(max_sessions=2, ttl_seconds=3600, clock=FakeClock())
    first = store.create()
    second = store.create()

    third = store.create()

    assert len(store) == 2
    assert store.get(first.id) is None
    assert store.get(second.id) is second
    assert store.get(third.id) is third
