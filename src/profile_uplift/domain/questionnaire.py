"""Questionnaire definitions and answer/refinement models."""

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class Question:
    """One questionnaire prompt shown to the user."""

    id: str
    text: str
    kind: Literal["text", "longtext", "single-choice", "multiple-choice"]
    options: tuple[str, ...] = ()


IDENTITY_QUESTION_IDS = ("name", "age", "gender", "target_gender")

QUESTIONS: tuple[Question, ...] = (
    Question("name", "What's your first name?", "text"),
    Question("age", "How old are you?", "text"),
    Question(
        "gender", "What is your gender?", "single-choice",
        ("Male", "Female", "Transgender"),
    ),
    Question(
        "target_gender", "Who are you interested in meeting?", "single-choice",
        ("Men", "Women", "Everyone"),
    ),
    Question(
        "describe_words",
        "What are three words your friends would use to describe you?",
        "text",
    ),
    Question(
        "friday_night",
        "Your ideal Friday night is...",
        "single-choice",
        (
            "A cozy night in",
            "Dinner and drinks with friends",
            "Exploring a new spot in the city",
            "A spontaneous adventure",
            "A live event",
        ),
    ),
    Question(
        "passion",
        "What's a passion or hobby you could talk about for hours?",
        "text",
    ),
    Question(
        "looking_for",
        "What are you looking for on a dating app right now?",
        "multiple-choice",
        (
            "Something casual and fun",
            "A serious, long-term relationship",
            "New friends and connections",
            "Figuring it out as I go",
            "Someone to share hobbies with",
        ),
    ),
    Question(
        "fun_fact",
        "Share a quick, fun fact about yourself or a recent small adventure.",
        "longtext",
    ),
)

QUESTIONS_BY_ID = {question.id: question for question in QUESTIONS}


class Answers(BaseModel):
    """Questionnaire answers keyed by question id."""

    values: dict[str, str | list[str]] = Field(default_factory=dict)

    def get(self, question_id: str) -> str | None:
        value = self.values.get(question_id)
        if value is None:
            return None
        if isinstance(value, list):
            joined = ", ".join(item.strip() for item in value if item.strip())
            return joined or None
        return value.strip() or None

    def missing_required(self) -> list[str]:
        return [qid for qid in IDENTITY_QUESTION_IDS if self.get(qid) is None]


class RefinementSettings(BaseModel):
    """Targeting preferences used when regenerating a bio.

    Sliders run 0-100; ``None`` means the user picked "not sure".
    """

    target_vibe: int | None = Field(default=None, ge=0, le=100)
    relationship_goal: int | None = Field(default=None, ge=0, le=100)
    target_sophistication: int | None = Field(default=None, ge=0, le=100)
    swipe_location: str = ""
    location_status: Literal["living", "visiting"] | None = None
    origin_location: str = ""
    additional_info: str = ""
    use_simple_language: bool = False
