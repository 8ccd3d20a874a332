"""Wizard endpoints: one session per user, advanced step by step."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, File, Request, Response, UploadFile, status

from profile_uplift.api.schemas import (
    AnalyzeIn,
    AnswersIn,
    ChatRefineIn,
    EnhanceOut,
    ProgressOut,
    QuestionView,
    RefineIn,
    SessionView,
)
from profile_uplift.domain.questionnaire import QUESTIONS, Answers
from profile_uplift.services.profile import PhotoFile

if TYPE_CHECKING:
    from profile_uplift.containers import AppContainer
    from profile_uplift.domain.profile import ProfileSession
    from profile_uplift.services.archive import Download

router = APIRouter(prefix="/api", tags=["wizard"])


def _container(request: Request) -> AppContainer:
    return request.app.state.container


def _view(request: Request, session: ProfileSession) -> SessionView:
    limit = _container(request).settings.max_chat_refinements
    return SessionView.from_session(session, limit)


def _attachment(download: Download) -> Response:
    return Response(
        content=download.data,
        media_type=download.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{download.filename}"'
        },
    )


@router.get("/questions")
async def list_questions() -> list[QuestionView]:
    """Questionnaire shown before the photo upload."""
    return [QuestionView.from_question(question) for question in QUESTIONS]


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(request: Request) -> SessionView:
    session = _container(request).profile_service.create_session()
    return _view(request, session)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, request: Request) -> SessionView:
    session = _container(request).profile_service.get_session(session_id)
    return _view(request, session)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def reset_session(session_id: str, request: Request) -> Response:
    """Start over; the old session is discarded."""
    _container(request).profile_service.reset(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/sessions/{session_id}/answers")
async def submit_answers(
    session_id: str, payload: AnswersIn, request: Request
) -> SessionView:
    session = _container(request).profile_service.submit_answers(
        session_id, Answers(values=payload.answers)
    )
    return _view(request, session)


@router.post("/sessions/{session_id}/photos")
async def upload_photos(
    session_id: str,
    request: Request,
    files: Annotated[list[UploadFile], File()],
) -> SessionView:
    photo_files = []
    for upload in files:
        photo_files.append(
            PhotoFile(
                filename=upload.filename or "photo",
                content_type=upload.content_type or "",
                data=await upload.read(),
            )
        )
    session = _container(request).profile_service.add_photos(session_id, photo_files)
    return _view(request, session)


@router.delete("/sessions/{session_id}/photos/{photo_id}")
async def remove_photo(session_id: str, photo_id: str, request: Request) -> SessionView:
    session = _container(request).profile_service.remove_photo(session_id, photo_id)
    return _view(request, session)


@router.post("/sessions/{session_id}/analyze")
async def analyze(
    session_id: str, request: Request, payload: AnalyzeIn | None = None
) -> SessionView:
    """Pick the best photos and draft a bio."""
    provider = payload.provider if payload else None
    session = await _container(request).profile_service.analyze(session_id, provider)
    return _view(request, session)


@router.get("/sessions/{session_id}/progress")
async def analysis_progress(session_id: str, request: Request) -> ProgressOut:
    service = _container(request).profile_service
    service.get_session(session_id)
    return ProgressOut(progress=service.analysis_progress(session_id))


@router.post("/sessions/{session_id}/bio/refine")
async def refine_bio(session_id: str, payload: RefineIn, request: Request) -> SessionView:
    session = await _container(request).profile_service.refine_bio(
        session_id,
        payload.settings,
        tone=payload.tone,
        force_change=payload.force_change,
    )
    return _view(request, session)


@router.post("/sessions/{session_id}/bio/chat")
async def chat_refine(
    session_id: str, payload: ChatRefineIn, request: Request
) -> SessionView:
    session = await _container(request).profile_service.chat_refine(
        session_id, payload.feedback
    )
    return _view(request, session)


@router.post("/sessions/{session_id}/enhance")
async def enhance(session_id: str, request: Request) -> EnhanceOut:
    """Enhance selected photos; individual failures are reported, not raised."""
    session, report = await _container(request).profile_service.enhance(session_id)
    return EnhanceOut(
        session=_view(request, session),
        enhanced=report.enhanced,
        failed=report.failed,
        errors=report.errors,
    )


@router.get("/sessions/{session_id}/photos/{photo_id}/download")
async def download_photo(session_id: str, photo_id: str, request: Request) -> Response:
    download = await _container(request).profile_service.download_photo(
        session_id, photo_id
    )
    return _attachment(download)


@router.get("/sessions/{session_id}/archive")
async def download_archive(session_id: str, request: Request) -> Response:
    download = await _container(request).profile_service.download_archive(session_id)
    return _attachment(download)
