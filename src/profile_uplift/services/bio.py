"""Bio drafting, regeneration and chat-style edits."""

import asyncio
import logging
from dataclasses import dataclass

from profile_uplift.domain.errors import (
    BioGenerationError,
    InputValidationError,
    RefinementLimitError,
)
from profile_uplift.domain.gateway import Provider, ProviderResponse, text_request
from profile_uplift.domain.profile import BioDraft, ProfileSession
from profile_uplift.domain.questionnaire import Answers, RefinementSettings
from profile_uplift.services.gateway import GatewayClient
from profile_uplift.services.prompts import (
    SAFETY_SETTINGS,
    build_bio_prompt,
    build_chat_refine_prompt,
    insist_on_change,
)

_logger = logging.getLogger(__name__)


def normalize_whitespace(text: str) -> str:
    return " ".join(text.split())


def same_bio(left: str, right: str) -> bool:
    return normalize_whitespace(left) == normalize_whitespace(right)


@dataclass
class BioService:
    """Writes bios through the gateway."""

    gateway: GatewayClient
    max_chat_refinements: int = 2
    timeout_seconds: float = 90.0
    provider: Provider | None = None

    async def generate(
        self,
        answers: Answers,
        *,
        tone: str | None = None,
        refinement: RefinementSettings | None = None,
        previous: BioDraft | None = None,
        force_change: bool = False,
    ) -> BioDraft:
        """Draft a bio from questionnaire answers.

        With ``force_change`` and a ``previous`` draft, an echo of the previous
        text is retried once with a firmer instruction.
        """
        prompt = build_bio_prompt(answers, tone, refinement)
        text, response = await self._complete_distinct(
            prompt, previous.text if previous and force_change else None
        )
        return BioDraft(
            text=text,
            provider=response.provider,
            model=response.model_version,
            tone=tone,
            refinement=refinement,
        )

    async def chat_refine(
        self, session: ProfileSession, feedback: str, *, force_change: bool = True
    ) -> BioDraft:
        """Apply a free-text edit request to the session's current bio.

        Sessions that used up their edits are rejected before any request is
        made.
        """
        if session.chat_refinements_used >= self.max_chat_refinements:
            raise RefinementLimitError(self.max_chat_refinements)
        if session.bio is None:
            raise InputValidationError("Generate a bio before refining it.")
        feedback = feedback.strip()
        if not feedback:
            raise InputValidationError("Tell us what to change about your bio.")
        prompt = build_chat_refine_prompt(session.bio.text, feedback)
        text, response = await self._complete_distinct(
            prompt, session.bio.text if force_change else None
        )
        return BioDraft(
            text=text,
            provider=response.provider,
            model=response.model_version,
            tone=session.bio.tone,
            refinement=session.bio.refinement,
            feedback=feedback,
        )

    async def _complete_distinct(
        self, prompt: str, must_differ_from: str | None
    ) -> tuple[str, ProviderResponse]:
        text, response = await self._complete(prompt)
        if must_differ_from is None or not same_bio(text, must_differ_from):
            return text, response
        _logger.info("Model echoed the previous bio; retrying once with a firmer prompt")
        return await self._complete(insist_on_change(prompt, must_differ_from))

    async def _complete(self, prompt: str) -> tuple[str, ProviderResponse]:
        request = text_request(
            prompt, provider=self.provider, safety_settings=SAFETY_SETTINGS
        )
        try:
            response = await asyncio.wait_for(
                self.gateway.generate(request), timeout=self.timeout_seconds
            )
        except TimeoutError as exc:
            raise BioGenerationError(
                "Writing your bio took too long. Please try again.",
                detail={"timeout_seconds": self.timeout_seconds},
            ) from exc
        text = response.text().strip()
        if not text:
            finish = None
            if response.candidates:
                finish = response.candidates[0].finish_reason
            raise BioGenerationError(
                "Failed to generate bio. No text content received.",
                detail={"finish_reason": finish, "model": response.model_version},
            )
        return text, response
