"""Canonical request and response shapes for the LLM gateway.

Both vendors are spoken to through these Gemini-style models; vendor-specific
fields are dropped at the adapter boundary.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Provider = Literal["gemini", "openai"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", protected_namespaces=()
    )


class InlineData(_CamelModel):
    mime_type: str = Field(alias="mimeType")
    data: str


class Part(_CamelModel):
    text: str | None = None
    inline_data: InlineData | None = Field(default=None, alias="inlineData")


class Content(_CamelModel):
    role: str | None = None
    parts: list[Part] = Field(default_factory=list)


class GenerationConfig(_CamelModel):
    temperature: float | None = None
    max_output_tokens: int | None = Field(default=None, alias="maxOutputTokens")
    response_mime_type: str | None = Field(default=None, alias="responseMimeType")
    top_p: float | None = Field(default=None, alias="topP")


class GatewayBody(_CamelModel):
    contents: list[Content]
    safety_settings: list[dict[str, str]] | None = Field(
        default=None, alias="safetySettings"
    )
    generation_config: GenerationConfig | None = Field(
        default=None, alias="generationConfig"
    )
    image_urls: list[str] | None = Field(default=None, alias="imageUrls")


class GatewayRequest(_CamelModel):
    provider: Provider | None = None
    endpoint: str = "generateContent"
    body: GatewayBody

    def wire_dict(self) -> dict[str, object]:
        """Serialize exactly as sent over HTTP."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Candidate(_CamelModel):
    content: Content
    finish_reason: str | None = Field(default=None, alias="finishReason")


class UsageMetadata(_CamelModel):
    prompt_token_count: int | None = Field(default=None, alias="promptTokenCount")
    candidates_token_count: int | None = Field(
        default=None, alias="candidatesTokenCount"
    )
    total_token_count: int | None = Field(default=None, alias="totalTokenCount")


class ProviderResponse(_CamelModel):
    candidates: list[Candidate]
    usage_metadata: UsageMetadata | None = Field(default=None, alias="usageMetadata")
    model_version: str = Field(alias="modelVersion")
    provider: Provider

    def text(self) -> str:
        """Concatenate text parts of the first candidate."""
        if not self.candidates:
            return ""
        return "".join(
            part.text for part in self.candidates[0].content.parts if part.text
        )

    def wire_dict(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, exclude_none=True)


def text_request(
    prompt: str,
    *,
    provider: Provider | None = None,
    temperature: float | None = None,
    max_output_tokens: int | None = None,
    safety_settings: list[dict[str, str]] | None = None,
) -> GatewayRequest:
    """Build a single-turn text-only request."""
    config = None
    if temperature is not None or max_output_tokens is not None:
        config = GenerationConfig(
            temperature=temperature, max_output_tokens=max_output_tokens
        )
    return GatewayRequest(
        provider=provider,
        body=GatewayBody(
            contents=[Content(role="user", parts=[Part(text=prompt)])],
            safety_settings=safety_settings,
            generation_config=config,
        ),
    )
