"""Wizard orchestration: questionnaire, photos, analysis, bio and downloads."""

import asyncio
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field

from profile_uplift.app_logging import log_operation_failure
from profile_uplift.domain.errors import (
    AnalysisTimeoutError,
    ArchiveError,
    InputValidationError,
    SessionNotFoundError,
    UpliftError,
)
from profile_uplift.domain.gateway import Provider
from profile_uplift.domain.images import UploadedImage
from profile_uplift.domain.profile import (
    ProfileSession,
    SelectedPhoto,
    SelectionResult,
    WizardStep,
)
from profile_uplift.domain.questionnaire import (
    QUESTIONS_BY_ID,
    Answers,
    RefinementSettings,
)
from profile_uplift.services.archive import ArchiveService, Download
from profile_uplift.services.bio import BioService
from profile_uplift.services.enhancement import EnhancementReport, EnhancementService
from profile_uplift.services.selection import PhotoSelectionService
from profile_uplift.services.sessions import SessionStore

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhotoFile:
    """A file as received from the upload form."""

    filename: str
    content_type: str
    data: bytes


@dataclass
class ProfileService:
    """Drives one user's session through the wizard steps."""

    store: SessionStore
    selection: PhotoSelectionService
    bio: BioService
    enhancement: EnhancementService
    archive: ArchiveService
    max_upload_photos: int = 30
    min_upload_photos: int = 1
    analysis_watchdog_seconds: float = 180.0
    _progress: dict[str, float] = field(default_factory=dict, init=False)

    def create_session(self) -> ProfileSession:
        session = ProfileSession(id=uuid.uuid4().hex, step=WizardStep.QUESTIONNAIRE)
        self.store.save(session)
        return session

    def get_session(self, session_id: str) -> ProfileSession:
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def reset(self, session_id: str) -> None:
        self.store.delete(session_id)
        self._progress.pop(session_id, None)

    def submit_answers(self, session_id: str, answers: Answers) -> ProfileSession:
        session = self.get_session(session_id)
        unknown = sorted(set(answers.values) - set(QUESTIONS_BY_ID))
        if unknown:
            raise InputValidationError(
                "Unknown questions in answers.", detail={"unknown": unknown}
            )
        missing = answers.missing_required()
        if missing:
            raise InputValidationError(
                "Please answer all required questions.", detail={"missing": missing}
            )
        return self._save(
            session.evolve(answers=answers, step=WizardStep.PHOTO_UPLOAD, last_error=None)
        )

    def add_photos(self, session_id: str, files: Sequence[PhotoFile]) -> ProfileSession:
        session = self.get_session(session_id)
        empty = [item.filename for item in files if not item.data]
        if empty:
            raise InputValidationError(
                "Some photos are empty. If they live in cloud storage, download "
                "them to your device first.",
                detail={"files": empty},
            )
        total = len(session.photos) + len(files)
        if total > self.max_upload_photos:
            raise InputValidationError(
                f"You can upload up to {self.max_upload_photos} photos.",
                detail={"count": total},
            )
        added = tuple(
            UploadedImage(
                id=uuid.uuid4().hex,
                data=item.data,
                declared_type=item.content_type,
                filename=item.filename,
            )
            for item in files
        )
        return self._save(session.evolve(photos=session.photos + added))

    def remove_photo(self, session_id: str, photo_id: str) -> ProfileSession:
        session = self.get_session(session_id)
        if session.photo(photo_id) is None:
            raise InputValidationError("Photo not found.", detail={"photo_id": photo_id})
        photos = tuple(photo for photo in session.photos if photo.id != photo_id)
        return self._save(session.evolve(photos=photos))

    def analysis_progress(self, session_id: str) -> float | None:
        return self._progress.get(session_id)

    async def analyze(
        self, session_id: str, provider: Provider | None = None
    ) -> ProfileSession:
        """Select the best photos and draft a first bio.

        Selection failures, including the watchdog firing, send the user back
        to the upload step. A bio failure still shows the selected photos.
        """
        session = self.get_session(session_id)
        if session.answers.missing_required():
            raise InputValidationError("Please complete the questionnaire first.")
        if len(session.photos) < self.min_upload_photos:
            raise InputValidationError(
                f"Please upload at least {self.min_upload_photos} photo."
            )
        self._progress[session_id] = 0.0

        def track(value: float) -> None:
            self._progress[session_id] = value

        try:
            results = await asyncio.wait_for(
                self.selection.select(
                    session.photos,
                    user_gender=session.answers.get("gender"),
                    target_gender=session.answers.get("target_gender"),
                    provider=provider,
                    on_progress=track,
                ),
                timeout=self.analysis_watchdog_seconds,
            )
        except TimeoutError as exc:
            error = AnalysisTimeoutError(self.analysis_watchdog_seconds)
            self._back_to_upload(session, "Photo analysis", error)
            raise error from exc
        except UpliftError as exc:
            self._back_to_upload(session, "Photo analysis", exc)
            raise
        finally:
            self._progress.pop(session_id, None)

        selected = self._selected_photos(session, results)
        try:
            draft = await self.bio.generate(session.answers)
        except UpliftError as exc:
            log_operation_failure(_logger, "Bio generation", exc)
            return self._save(
                session.evolve(
                    step=WizardStep.PRELIMINARY_RESULTS,
                    selected=selected,
                    bio=None,
                    last_error=exc.message,
                )
            )
        return self._save(
            session.evolve(
                step=WizardStep.PRELIMINARY_RESULTS,
                selected=selected,
                bio=draft,
                last_error=None,
            )
        )

    async def refine_bio(
        self,
        session_id: str,
        settings: RefinementSettings,
        *,
        tone: str | None = None,
        force_change: bool = False,
    ) -> ProfileSession:
        """Regenerate the bio from settings and an optional tone; photos are kept."""
        session = self._require_results(session_id)
        draft = await self.bio.generate(
            session.answers,
            tone=tone,
            refinement=settings,
            previous=session.bio,
            force_change=force_change,
        )
        return self._save(
            session.evolve(bio=draft, step=WizardStep.FINAL_RESULTS, last_error=None)
        )

    async def chat_refine(self, session_id: str, feedback: str) -> ProfileSession:
        session = self._require_results(session_id)
        draft = await self.bio.chat_refine(session, feedback)
        return self._save(
            session.evolve(
                bio=draft,
                chat_refinements_used=session.chat_refinements_used + 1,
                last_error=None,
            )
        )

    async def enhance(self, session_id: str) -> tuple[ProfileSession, EnhancementReport]:
        session = self._require_results(session_id)
        if not session.selected:
            raise InputValidationError("There are no selected photos to enhance.")
        report = await self.enhancement.enhance(session.selected, session.photos)
        last_error = "\n".join(report.errors) or None
        updated = self._save(session.evolve(selected=report.photos, last_error=last_error))
        return updated, report

    async def download_photo(self, session_id: str, photo_id: str) -> Download:
        session = self._require_results(session_id)
        for photo in session.selected:
            if photo.photo_id == photo_id:
                return await self.archive.single_photo(photo)
        raise ArchiveError("That photo isn't part of your selection.")

    async def download_archive(self, session_id: str) -> Download:
        session = self._require_results(session_id)
        return await self.archive.profile_zip(
            session.bio.text if session.bio else None,
            session.selected,
            session.answers.get("name"),
        )

    def _require_results(self, session_id: str) -> ProfileSession:
        session = self.get_session(session_id)
        if session.step not in (WizardStep.PRELIMINARY_RESULTS, WizardStep.FINAL_RESULTS):
            raise InputValidationError("Analyze your photos first.")
        return session

    def _selected_photos(
        self, session: ProfileSession, results: Sequence[SelectionResult]
    ) -> tuple[SelectedPhoto, ...]:
        selected = []
        for result in results:
            photo = session.photo(result.photo_id)
            if photo is None:
                raise InputValidationError("Selected photo is no longer in the session.")
            selected.append(
                SelectedPhoto(
                    photo_id=photo.id, filename=photo.filename, reason=result.reason
                )
            )
        return tuple(selected)

    def _back_to_upload(
        self, session: ProfileSession, operation: str, exc: UpliftError
    ) -> None:
        log_operation_failure(_logger, operation, exc)
        self._save(session.evolve(step=WizardStep.PHOTO_UPLOAD, last_error=exc.message))

    def _save(self, session: ProfileSession) -> ProfileSession:
        self.store.save(session)
        return session
