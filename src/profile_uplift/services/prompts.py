"""Prompt builders for photo selection and bio writing."""

from collections.abc import Sequence

from profile_uplift.domain.questionnaire import (
    IDENTITY_QUESTION_IDS,
    QUESTIONS,
    Answers,
    RefinementSettings,
)

SAFETY_SETTINGS: list[dict[str, str]] = [
    {"category": category, "threshold": "BLOCK_NONE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]

_VIBES = (
    (10, "Sweet & Wholesome"),
    (35, "Kind & Easygoing"),
    (60, "Fun & Balanced"),
    (85, "Confident & Bold"),
    (100, "Edgy & Daring"),
)
_GOALS = (
    (10, "Ready for Marriage"),
    (35, "Serious Relationship"),
    (60, "Something Meaningful"),
    (85, "Open to Dating"),
    (100, "Casual Fun"),
)
_SOPHISTICATION = (
    (15, "a highly educated specialist: complex sentences and precise, niche vocabulary are fine"),
    (40, "a cultured intellectual: richer vocabulary, arts and ideas"),
    (65, "a witty professional: clever, ambitious, balanced"),
    (90, "a social extrovert: energetic, playful, light"),
    (100, "someone who likes simple, direct English and a bit of status"),
)


def _bucket(value: int | None, table: Sequence[tuple[int, str]], unsure: str) -> str:
    if value is None:
        return unsure
    for upper, label in table:
        if value <= upper:
            return label
    return table[-1][1]


def vibe_label(value: int | None) -> str:
    return _bucket(value, _VIBES, "not sure; keep the vibe balanced and broadly appealing")


def goal_label(value: int | None) -> str:
    return _bucket(value, _GOALS, "not sure; stay open from casual to serious")


def sophistication_label(value: int | None) -> str:
    return _bucket(
        value,
        _SOPHISTICATION,
        "not sure; aim for intelligent, witty and broadly accessible",
    )


def _answers_block(answers: Answers) -> str:
    labels = {
        "name": "Name",
        "age": "Age",
        "gender": "Gender",
        "target_gender": "Interested in",
    }
    lines = [
        f"- {labels[qid]}: {answers.get(qid)}"
        for qid in IDENTITY_QUESTION_IDS
        if answers.get(qid)
    ]
    for question in QUESTIONS:
        if question.id in IDENTITY_QUESTION_IDS:
            continue
        value = answers.get(question.id)
        if value:
            lines.append(f"- {question.text} {value}")
    return "\n".join(lines)


def _location_guidance(settings: RefinementSettings) -> str:
    location = settings.swipe_location.strip()
    if not location:
        return "User is based locally."
    if settings.location_status == "visiting" and settings.origin_location.strip():
        guidance = (
            f"The user is visiting {location} and is from "
            f"{settings.origin_location.strip()}; work that in naturally."
        )
    elif settings.location_status == "living":
        guidance = f"The user lives in {location}; local flavour is welcome."
    else:
        guidance = f"The user swipes in {location}."
    return (
        f"{guidance} Match English complexity to the place: simpler in "
        "non-English-speaking cities, more playful where English is native."
    )


def _refinement_block(settings: RefinementSettings) -> str:
    lines = ["TARGETING (embody these, never state them):"]
    if settings.use_simple_language:
        lines.append(
            "- OVERRIDE: readers are non-native English speakers. Use very short "
            "sentences and common words only. This beats every other style rule."
        )
    lines.extend(
        [
            f"- Target vibe: {vibe_label(settings.target_vibe)}",
            f"- Relationship goal: {goal_label(settings.relationship_goal)}",
            f"- Target partner: {sophistication_label(settings.target_sophistication)}",
            f"- Location: {_location_guidance(settings)}",
            f'- Other notes from the user: "{settings.additional_info.strip() or "None"}"',
        ]
    )
    return "\n".join(lines)


def build_bio_prompt(
    answers: Answers,
    tone: str | None = None,
    refinement: RefinementSettings | None = None,
) -> str:
    sections = [
        "You write dating app bios. Write one 30-45 word bio from the answers "
        "below: confident, warm, a little cheeky, 2-4 well-placed emojis, short "
        "sentences, ending with an easy conversation hook.",
        "Rules: no name or age in the bio; output only the bio text, no quotes, "
        "no markdown, no explanations.",
    ]
    if tone:
        sections.append(f"Extra tone for this version: {tone}.")
    if refinement is not None:
        sections.append(_refinement_block(refinement))
    sections.append(f"Answers:\n{_answers_block(answers)}")
    return "\n\n".join(sections)


def build_chat_refine_prompt(bio: str, feedback: str) -> str:
    return "\n\n".join(
        [
            "You edit dating app bios. Apply the user's request to the bio with "
            "a light touch, keeping its tone and core message. Keep it around 45 "
            "words.",
            f'Current bio:\n"{bio}"',
            f'User request:\n"{feedback}"',
            "Output only the edited bio text.",
        ]
    )


def insist_on_change(prompt: str, previous: str) -> str:
    """Strengthen a prompt after the model echoed the bio back unchanged."""
    return (
        f"{prompt}\n\nIMPORTANT: your previous answer was identical to the "
        f'existing bio ("{previous}"). You MUST return a noticeably different '
        "bio that still follows every rule above."
    )


def build_selection_prompt(
    count: int,
    select: int,
    user_gender: str | None = None,
    target_gender: str | None = None,
) -> str:
    expected = min(select, count)
    return "\n\n".join(
        [
            f"You are a dating profile photo consultant for a "
            f"{(user_gender or 'person').lower()} interested in meeting "
            f"{(target_gender or 'people').lower()}. Pick the photos that make "
            "the user look most attractive, confident and approachable.",
            f"There are {count} photos, numbered 1 to {count} in the order given.",
            f"Select exactly {expected} distinct photos.",
            "For each, give one flattering 5-15 word sentence explaining why it "
            "works on a dating profile.",
            'Respond with ONLY a JSON array like [{"index": 1, "reason": "..."}]. '
            "No prose and no code fences.",
        ]
    )
