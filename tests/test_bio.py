"""Tests for bio drafting and refinement."""

import asyncio

import pytest

from profile_uplift.domain.errors import (
    BioGenerationError,
    InputValidationError,
    RefinementLimitError,
    UpstreamError,
)
from profile_uplift.domain.profile import BioDraft, ProfileSession, WizardStep
from profile_uplift.domain.questionnaire import Answers, RefinementSettings
from profile_uplift.services.bio import BioService, same_bio
from profile_uplift.services.prompts import build_bio_prompt
from tests.conftest import FakeGateway

CURRENT = "Weekend climber 🧗 and taco critic 🌮. Convince me your salsa is better?"


def _session(used: int = 0) -> ProfileSession:
    return ProfileSession(
        id="s1",
        step=WizardStep.PRELIMINARY_RESULTS,
        bio=BioDraft(text=CURRENT, provider="openai", model="gpt-5-mini"),
        chat_refinements_used=used,
    )


def test_generate_returns_draft_with_settings(answers: Answers) -> None:
    gateway = FakeGateway(replies=["  New bio ✨  "])
    settings = RefinementSettings(target_vibe=90, swipe_location="Lisbon")

    draft = asyncio.run(
        BioService(gateway=gateway).generate(answers, tone="playful", refinement=settings)
    )

    assert draft.text == "New bio ✨"
    assert draft.tone == "playful"
    assert draft.refinement == settings
    assert draft.provider == "openai"
    prompt = gateway.requests[0].body.contents[0].parts[0].text or ""
    assert "Edgy & Daring" in prompt
    assert "Lisbon" in prompt
    assert gateway.requests[0].body.safety_settings


def test_force_change_retries_once_when_echoed(answers: Answers) -> None:
    gateway = FakeGateway(replies=[f"  {CURRENT}\n", "A fresh take on me 🌊"])
    previous = BioDraft(text=CURRENT, provider="openai", model="gpt-5-mini")

    draft = asyncio.run(
        BioService(gateway=gateway).generate(
            answers, refinement=RefinementSettings(), previous=previous, force_change=True
        )
    )

    assert len(gateway.requests) == 2
    assert draft.text == "A fresh take on me 🌊"
    retry_prompt = gateway.requests[1].body.contents[0].parts[0].text or ""
    assert "MUST return a noticeably different" in retry_prompt


def test_force_change_retries_only_once(answers: Answers) -> None:
    gateway = FakeGateway(replies=[CURRENT])
    previous = BioDraft(text=CURRENT, provider="openai", model="gpt-5-mini")

    draft = asyncio.run(
        BioService(gateway=gateway).generate(answers, previous=previous, force_change=True)
    )

    assert len(gateway.requests) == 2
    assert draft.text == CURRENT


def test_without_force_change_echo_is_accepted(answers: Answers) -> None:
    gateway = FakeGateway(replies=[CURRENT])
    previous = BioDraft(text=CURRENT, provider="openai", model="gpt-5-mini")

    asyncio.run(BioService(gateway=gateway).generate(answers, previous=previous))

    assert len(gateway.requests) == 1


def test_empty_output_is_an_error(answers: Answers) -> None:
    gateway = FakeGateway(replies=["   "])

    with pytest.raises(BioGenerationError):
        asyncio.run(BioService(gateway=gateway).generate(answers))


def test_vendor_errors_propagate(answers: Answers) -> None:
    gateway = FakeGateway(replies=[UpstreamError(429, "Rate limit reached")])

    with pytest.raises(UpstreamError):
        asyncio.run(BioService(gateway=gateway).generate(answers))


def test_slow_gateway_times_out(answers: Answers) -> None:
    class _SlowGateway(FakeGateway):
        async def generate(self, request):  # type: ignore[no-untyped-def]
            await asyncio.sleep(1)
            return await super().generate(request)

    service = BioService(gateway=_SlowGateway(), timeout_seconds=0.01)

    with pytest.raises(BioGenerationError) as excinfo:
        asyncio.run(service.generate(answers))

    assert "too long" in excinfo.value.message


def test_chat_refine_keeps_settings_and_records_feedback() -> None:
    gateway = FakeGateway(replies=["Shorter, punchier bio 🎯"])

    draft = asyncio.run(
        BioService(gateway=gateway).chat_refine(_session(), "  make it shorter ")
    )

    assert draft.text == "Shorter, punchier bio 🎯"
    assert draft.feedback == "make it shorter"
    prompt = gateway.requests[0].body.contents[0].parts[0].text or ""
    assert CURRENT in prompt
    assert "make it shorter" in prompt


def test_chat_refine_rejected_locally_after_limit() -> None:
    gateway = FakeGateway()

    with pytest.raises(RefinementLimitError) as excinfo:
        asyncio.run(
            BioService(gateway=gateway, max_chat_refinements=2).chat_refine(
                _session(used=2), "more emojis"
            )
        )

    assert gateway.requests == []
    assert excinfo.value.http_status == 429


def test_chat_refine_requires_feedback() -> None:
    gateway = FakeGateway()

    with pytest.raises(InputValidationError):
        asyncio.run(BioService(gateway=gateway).chat_refine(_session(), "   "))

    assert gateway.requests == []


def test_same_bio_ignores_whitespace() -> None:
    assert same_bio("a  b\nc", " a b c ")
    assert not same_bio("a b c", "a b d")


def test_bio_prompt_simple_language_and_visiting() -> None:
    settings = RefinementSettings(
        use_simple_language=True,
        swipe_location="Tokyo",
        location_status="visiting",
        origin_location="Berlin",
        additional_info="I love jazz",
    )

    prompt = build_bio_prompt(Answers(values={"name": "Sam"}), refinement=settings)

    assert "OVERRIDE" in prompt
    assert "visiting Tokyo" in prompt
    assert "Berlin" in prompt
    assert "I love jazz" in prompt
    assert "not sure" in prompt
