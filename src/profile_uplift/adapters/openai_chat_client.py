"""OpenAI Chat Completions client speaking the canonical gateway shape."""

import logging
from dataclasses import dataclass
from typing import Any

import openai
from openai import AsyncOpenAI

from profile_uplift.domain.errors import GatewayInternalError, UpstreamError
from profile_uplift.domain.gateway import (
    Candidate,
    Content,
    GatewayBody,
    Part,
    ProviderResponse,
    UsageMetadata,
)
from profile_uplift.services.gateway import ProviderClient

_logger = logging.getLogger(__name__)

# Reasoning model families reject any temperature other than the default.
_FIXED_TEMPERATURE_PREFIXES = ("gpt-5", "o1", "o3", "o4")


@dataclass
class OpenAIChatClient(ProviderClient):
    """Provider client backed by the OpenAI Chat Completions API."""

    client: AsyncOpenAI
    model: str
    max_completion_tokens_cap: int = 4096

    @classmethod
    def create(cls, api_key: str, model: str, timeout: float) -> "OpenAIChatClient":
        """Create an OpenAI chat client."""
        return cls(client=AsyncOpenAI(api_key=api_key, timeout=timeout), model=model)

    async def generate(self, body: GatewayBody) -> ProviderResponse:
        """Translate to a chat request and map the single choice back."""
        payload = build_chat_payload(body, self.model, self.max_completion_tokens_cap)
        try:
            completion = await self.client.chat.completions.create(**payload)
        except openai.APIStatusError as exc:
            _logger.warning(
                "OpenAI rejected request: status=%s message=%s",
                exc.status_code,
                exc.message,
            )
            raise UpstreamError(
                exc.status_code,
                _status_message(exc),
                detail=exc.body,
            ) from exc
        except openai.APIError as exc:
            raise GatewayInternalError(
                "OpenAI request failed", detail=str(exc)
            ) from exc
        return normalize_chat_completion(completion, self.model)

    async def close(self) -> None:
        """Close the SDK's HTTP session."""
        await self.client.close()


def build_chat_payload(
    body: GatewayBody, model: str, max_completion_tokens_cap: int
) -> dict[str, Any]:
    """Convert Gemini-style contents into a Chat Completions payload."""
    messages = [_to_message(content) for content in body.contents]
    payload: dict[str, Any] = {"model": model, "messages": messages}
    config = body.generation_config
    if config is not None:
        if config.temperature is not None and _accepts_temperature(
            model, config.temperature
        ):
            payload["temperature"] = config.temperature
        if config.max_output_tokens is not None:
            payload["max_completion_tokens"] = min(
                config.max_output_tokens, max_completion_tokens_cap
            )
    return payload


def _accepts_temperature(model: str, temperature: float) -> bool:
    if model.startswith(_FIXED_TEMPERATURE_PREFIXES):
        return temperature == 1
    return True


def _to_message(content: Content) -> dict[str, Any]:
    role = "assistant" if content.role == "model" else (content.role or "user")
    texts = [part.text for part in content.parts if part.text is not None]
    images = [part.inline_data for part in content.parts if part.inline_data]
    if not images:
        return {"role": role, "content": "\n\n".join(texts)}
    blocks: list[dict[str, Any]] = [{"type": "text", "text": text} for text in texts]
    blocks.extend(
        {
            "type": "image_url",
            "image_url": {"url": f"data:{image.mime_type};base64,{image.data}"},
        }
        for image in images
    )
    return {"role": role, "content": blocks}


def normalize_chat_completion(completion: Any, model: str) -> ProviderResponse:
    """Reshape a chat completion into the canonical response."""
    choices = getattr(completion, "choices", None) or []
    candidates: list[Candidate] = []
    if choices:
        choice = choices[0]
        text = getattr(choice.message, "content", None) or ""
        candidates.append(
            Candidate(
                content=Content(role="model", parts=[Part(text=text)]),
                finish_reason=getattr(choice, "finish_reason", None),
            )
        )
    usage = getattr(completion, "usage", None)
    usage_metadata = None
    if usage is not None:
        usage_metadata = UsageMetadata(
            prompt_token_count=getattr(usage, "prompt_tokens", None),
            candidates_token_count=getattr(usage, "completion_tokens", None),
            total_token_count=getattr(usage, "total_tokens", None),
        )
    return ProviderResponse(
        candidates=candidates,
        usage_metadata=usage_metadata,
        model_version=model,
        provider="openai",
    )


def _status_message(exc: openai.APIStatusError) -> str:
    body = exc.body
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return exc.message or "OpenAI request failed"
