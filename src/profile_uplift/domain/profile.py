"""Session-scoped wizard state."""

from dataclasses import dataclass, field, replace
from enum import StrEnum

from profile_uplift.domain.images import UploadedImage
from profile_uplift.domain.questionnaire import Answers, RefinementSettings


class WizardStep(StrEnum):
    WELCOME = "welcome"
    QUESTIONNAIRE = "questionnaire"
    PHOTO_UPLOAD = "photo_upload"
    PRELIMINARY_RESULTS = "preliminary_results"
    FINAL_RESULTS = "final_results"


@dataclass(frozen=True)
class SelectionResult:
    """A photo the model picked, with its justification."""

    photo_id: str
    reason: str


@dataclass(frozen=True)
class SelectedPhoto:
    photo_id: str
    filename: str
    reason: str
    enhanced_url: str | None = None
    enhance_error: str | None = None


@dataclass(frozen=True)
class BioDraft:
    """Bio text and the settings that produced it."""

    text: str
    provider: str
    model: str
    tone: str | None = None
    refinement: RefinementSettings | None = None
    feedback: str | None = None


@dataclass(frozen=True)
class ProfileSession:
    """Immutable snapshot of one user's wizard progress.

    Every operation returns a new snapshot; resetting is constructing a fresh
    one.
    """

    id: str
    step: WizardStep = WizardStep.WELCOME
    answers: Answers = field(default_factory=Answers)
    photos: tuple[UploadedImage, ...] = ()
    selected: tuple[SelectedPhoto, ...] = ()
    bio: BioDraft | None = None
    chat_refinements_used: int = 0
    last_error: str | None = None

    def evolve(self, **changes: object) -> "ProfileSession":
        return replace(self, **changes)

    def photo(self, photo_id: str) -> UploadedImage | None:
        for photo in self.photos:
            if photo.id == photo_id:
                return photo
        return None
