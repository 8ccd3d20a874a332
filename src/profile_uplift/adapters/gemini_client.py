"""Gemini generateContent REST client."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from profile_uplift.domain.errors import GatewayInternalError, UpstreamError
from profile_uplift.domain.gateway import (
    Candidate,
    Content,
    GatewayBody,
    InlineData,
    Part,
    ProviderResponse,
    UsageMetadata,
)
from profile_uplift.services.gateway import ProviderClient

_logger = logging.getLogger(__name__)


@dataclass
class HttpxGeminiClient(ProviderClient):
    """Provider client calling the Gemini REST API with httpx."""

    api_key: str
    model: str
    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 90.0

    @classmethod
    def create(
        cls, api_key: str, model: str, base_url: str, timeout: float
    ) -> "HttpxGeminiClient":
        """Create a Gemini client with a managed httpx session."""
        return cls(
            api_key=api_key,
            model=model,
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def generate(self, body: GatewayBody) -> ProviderResponse:
        """POST the contents as-is; the canonical shape is Gemini's own."""
        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = body.model_dump(
            by_alias=True, exclude_none=True, exclude={"image_urls"}
        )
        try:
            response = await self.http_client.post(
                url,
                headers={"x-goog-api-key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise GatewayInternalError(
                "Gemini request failed", detail=f"{exc.__class__.__name__}: {exc}"
            ) from exc
        try:
            data = response.json()
        except ValueError:
            data = None
        if response.is_error:
            message = _error_message(data) or "Gemini request failed"
            _logger.warning(
                "Gemini rejected request: status=%s message=%s",
                response.status_code,
                message,
            )
            raise UpstreamError(response.status_code, message, detail=data)
        if not isinstance(data, dict):
            raise GatewayInternalError("Gemini returned a non-JSON response")
        return normalize_gemini_response(data, self.model)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def normalize_gemini_response(data: dict[str, Any], model: str) -> ProviderResponse:
    """Keep only text and inline-image parts, dropping thoughts and metadata."""
    candidates = []
    for raw in data.get("candidates") or []:
        parts: list[Part] = []
        for raw_part in (raw.get("content") or {}).get("parts") or []:
            if raw_part.get("thought"):
                continue
            if isinstance(raw_part.get("text"), str):
                parts.append(Part(text=raw_part["text"]))
            elif isinstance(raw_part.get("inlineData"), dict):
                inline = raw_part["inlineData"]
                parts.append(
                    Part(
                        inline_data=InlineData(
                            mime_type=inline.get("mimeType", "application/octet-stream"),
                            data=inline.get("data", ""),
                        )
                    )
                )
        candidates.append(
            Candidate(
                content=Content(role="model", parts=parts),
                finish_reason=raw.get("finishReason"),
            )
        )
    usage = data.get("usageMetadata")
    usage_metadata = None
    if isinstance(usage, dict):
        usage_metadata = UsageMetadata(
            prompt_token_count=usage.get("promptTokenCount"),
            candidates_token_count=usage.get("candidatesTokenCount"),
            total_token_count=usage.get("totalTokenCount"),
        )
    return ProviderResponse(
        candidates=candidates,
        usage_metadata=usage_metadata,
        model_version=data.get("modelVersion") or model,
        provider="gemini",
    )


def _error_message(data: object) -> str | None:
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return None
