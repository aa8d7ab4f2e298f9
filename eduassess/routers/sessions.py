"""Evaluation session endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from eduassess.ai.gemini import EvaluationClient, get_evaluation_client
from eduassess.schemas import GradingConfigUpdate, SessionRead, StudentInfoUpdate
from eduassess.session import EvaluationSession, SessionStore, get_session_store

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _get_or_404(session_id: str, store: SessionStore) -> EvaluationSession:
    session = store.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _to_read(session: EvaluationSession) -> SessionRead:
    return SessionRead(
        id=session.id,
        created_at=session.created_at,
        student=session.student,
        grading=session.grading,
        file_name=session.file_name,
        document_kind=session.document.kind if session.document else None,
        result=session.result,
    )


@router.post("", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
async def create_session(store: SessionStore = Depends(get_session_store)) -> SessionRead:
    return _to_read(store.create())


@router.get("/{session_id}", response_model=SessionRead)
async def get_session(session_id: str, store: SessionStore = Depends(get_session_store)) -> SessionRead:
    return _to_read(_get_or_404(session_id, store))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str, store: SessionStore = Depends(get_session_store)) -> Response:
    if not store.delete(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{session_id}/student", response_model=SessionRead)
async def update_student(
    session_id: str,
    payload: StudentInfoUpdate,
    store: SessionStore = Depends(get_session_store),
) -> SessionRead:
    session = _get_or_404(session_id, store)
    session.update_student(payload)
    return _to_read(session)


@router.put("/{session_id}/grading", response_model=SessionRead)
async def update_grading(
    session_id: str,
    payload: GradingConfigUpdate,
    store: SessionStore = Depends(get_session_store),
) -> SessionRead:
    session = _get_or_404(session_id, store)
    session.update_grading(payload)
    return _to_read(session)


@router.post("/{session_id}/file", response_model=SessionRead)
async def select_file(
    session_id: str,
    file: UploadFile = File(...),
    store: SessionStore = Depends(get_session_store),
) -> SessionRead:
    session = _get_or_404(session_id, store)
    await session.select_file(file)
    return _to_read(session)


@router.post("/{session_id}/evaluate", response_model=SessionRead)
async def evaluate(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
    client: EvaluationClient = Depends(get_evaluation_client),
) -> SessionRead:
    session = _get_or_404(session_id, store)
    await session.evaluate(client)
    return _to_read(session)


@router.post("/{session_id}/reset", response_model=SessionRead)
async def reset_session(session_id: str, store: SessionStore = Depends(get_session_store)) -> SessionRead:
    session = _get_or_404(session_id, store)
    session.reset()
    return _to_read(session)
