"""Request and response models for the wizard API."""

from pydantic import BaseModel, Field

from profile_uplift.domain.gateway import Provider
from profile_uplift.domain.profile import ProfileSession, WizardStep
from profile_uplift.domain.questionnaire import Question, RefinementSettings


class QuestionView(BaseModel):
    id: str
    text: str
    kind: str
    options: list[str]

    @classmethod
    def from_question(cls, question: Question) -> "QuestionView":
        return cls(
            id=question.id,
            text=question.text,
            kind=question.kind,
            options=list(question.options),
        )


class PhotoView(BaseModel):
    id: str
    filename: str
    content_type: str
    size_bytes: int


class SelectedPhotoView(BaseModel):
    photo_id: str
    filename: str
    reason: str
    enhanced_url: str | None = None
    enhance_error: str | None = None


class BioView(BaseModel):
    text: str
    provider: str
    model: str
    tone: str | None = None
    refinement: RefinementSettings | None = None
    feedback: str | None = None


class SessionView(BaseModel):
    id: str
    step: WizardStep
    answers: dict[str, str | list[str]]
    photos: list[PhotoView]
    selected: list[SelectedPhotoView]
    bio: BioView | None
    chat_refinements_used: int
    chat_refinements_remaining: int
    last_error: str | None

    @classmethod
    def from_session(
        cls, session: ProfileSession, max_chat_refinements: int
    ) -> "SessionView":
        bio = None
        if session.bio is not None:
            bio = BioView(
                text=session.bio.text,
                provider=session.bio.provider,
                model=session.bio.model,
                tone=session.bio.tone,
                refinement=session.bio.refinement,
                feedback=session.bio.feedback,
            )
        return cls(
            id=session.id,
            step=session.step,
            answers=dict(session.answers.values),
            photos=[
                PhotoView(
                    id=photo.id,
                    filename=photo.filename,
                    content_type=photo.declared_type,
                    size_bytes=photo.size,
                )
                for photo in session.photos
            ],
            selected=[
                SelectedPhotoView(
                    photo_id=photo.photo_id,
                    filename=photo.filename,
                    reason=photo.reason,
                    enhanced_url=photo.enhanced_url,
                    enhance_error=photo.enhance_error,
                )
                for photo in session.selected
            ],
            bio=bio,
            chat_refinements_used=session.chat_refinements_used,
            chat_refinements_remaining=max(
                0, max_chat_refinements - session.chat_refinements_used
            ),
            last_error=session.last_error,
        )


class AnswersIn(BaseModel):
    answers: dict[str, str | list[str]]


class AnalyzeIn(BaseModel):
    provider: Provider | None = None


class RefineIn(BaseModel):
    settings: RefinementSettings = Field(default_factory=RefinementSettings)
    tone: str | None = Field(default=None, max_length=100)
    force_change: bool = False


class ChatRefineIn(BaseModel):
    feedback: str = Field(min_length=1, max_length=500)


class EnhanceOut(BaseModel):
    session: SessionView
    enhanced: int
    failed: int
    errors: list[str]


class ProgressOut(BaseModel):
    progress: float | None
