"""Tests for the provider-normalizing gateway and the OpenAI translation."""

import asyncio
from types import SimpleNamespace

import httpx
import openai
import pytest

from profile_uplift.adapters.openai_chat_client import (
    OpenAIChatClient,
    build_chat_payload,
    normalize_chat_completion,
)
from profile_uplift.domain.errors import (
    GatewayConfigError,
    GatewayInternalError,
    UpstreamError,
)
from profile_uplift.domain.gateway import (
    Content,
    GatewayBody,
    GatewayRequest,
    GenerationConfig,
    InlineData,
    Part,
    text_request,
)
from profile_uplift.services.gateway import ProviderGateway
from tests.conftest import FakeImageFetcher, FakeProviderClient


def _completion(text: str = "Hello there", model: str = "gpt-5-mini-2025-08-07"):  # type: ignore[no-untyped-def]
    return SimpleNamespace(
        model=model,
        choices=[
            SimpleNamespace(
                message=SimpleNamespace(role="assistant", content=text),
                finish_reason="stop",
            )
        ],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=5, total_tokens=17),
    )


class _FakeCompletions:
    def __init__(self, result: object) -> None:
        self.result = result
        self.calls: list[dict[str, object]] = []

    async def create(self, **kwargs):  # type: ignore[no-untyped-def]
        self.calls.append(kwargs)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class _FakeOpenAI:
    def __init__(self, result: object) -> None:
        self.chat = SimpleNamespace(completions=_FakeCompletions(result))


def _status_error(status: int, message: str) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return openai.APIStatusError(
        message, response=response, body={"error": {"message": message}}
    )


def test_default_openai_provider_reports_configured_model() -> None:
    fake = _FakeOpenAI(_completion())
    gateway = ProviderGateway(
        clients={"openai": OpenAIChatClient(client=fake, model="gpt-5-mini")},
        default_provider="openai",
        image_fetcher=FakeImageFetcher(),
    )

    response = asyncio.run(gateway.generate(text_request("Say hi")))

    assert response.provider == "openai"
    assert response.model_version == "gpt-5-mini"
    assert response.text() == "Hello there"
    assert response.usage_metadata is not None
    assert response.usage_metadata.total_token_count == 17
    wire = response.wire_dict()
    assert wire["modelVersion"] == "gpt-5-mini"
    assert wire["candidates"][0]["content"]["parts"] == [{"text": "Hello there"}]


def test_explicit_provider_overrides_default() -> None:
    gemini = FakeProviderClient(model="gemini-2.5-flash", provider="gemini")
    openai_client = FakeProviderClient()
    gateway = ProviderGateway(
        clients={"gemini": gemini, "openai": openai_client},
        default_provider="openai",
        image_fetcher=FakeImageFetcher(),
    )

    response = asyncio.run(gateway.generate(text_request("hi", provider="gemini")))

    assert response.provider == "gemini"
    assert len(gemini.bodies) == 1
    assert openai_client.bodies == []


def test_unknown_default_falls_back_to_openai() -> None:
    client = FakeProviderClient()
    gateway = ProviderGateway(
        clients={"openai": client},
        default_provider="anthropic",
        image_fetcher=FakeImageFetcher(),
    )

    assert gateway.resolve_provider(None) == "openai"


def test_missing_provider_key_is_config_error() -> None:
    gateway = ProviderGateway(
        clients={"openai": FakeProviderClient()},
        default_provider="openai",
        image_fetcher=FakeImageFetcher(),
    )

    with pytest.raises(GatewayConfigError) as excinfo:
        asyncio.run(gateway.generate(text_request("hi", provider="gemini")))

    assert excinfo.value.http_status == 500
    assert "gemini" in excinfo.value.message


def test_image_urls_are_fetched_and_inlined_in_order() -> None:
    client = FakeProviderClient()
    fetcher = FakeImageFetcher()
    gateway = ProviderGateway(
        clients={"openai": client}, default_provider="openai", image_fetcher=fetcher
    )
    request = GatewayRequest(
        body=GatewayBody(
            contents=[Content(role="user", parts=[Part(text="Pick the best")])],
            image_urls=["https://cdn.test/a.jpg", "https://cdn.test/b.jpg"],
        )
    )

    asyncio.run(gateway.generate(request))

    body = client.bodies[0]
    parts = body.contents[0].parts
    assert body.image_urls is None
    assert sorted(fetcher.fetched) == ["https://cdn.test/a.jpg", "https://cdn.test/b.jpg"]
    assert [part.inline_data is not None for part in parts] == [True, True, False]
    assert parts[-1].text == "Pick the best"


def test_failed_image_fetch_is_internal_error() -> None:
    class _BrokenFetcher(FakeImageFetcher):
        async def fetch_image(self, url: str):  # type: ignore[no-untyped-def]
            raise httpx.ConnectError("boom")

    gateway = ProviderGateway(
        clients={"openai": FakeProviderClient()},
        default_provider="openai",
        image_fetcher=_BrokenFetcher(),
    )
    request = GatewayRequest(
        body=GatewayBody(contents=[], image_urls=["https://cdn.test/a.jpg"])
    )

    with pytest.raises(GatewayInternalError):
        asyncio.run(gateway.generate(request))


def test_chat_payload_translates_parts_and_clamps_tokens() -> None:
    body = GatewayBody(
        contents=[
            Content(
                role="user",
                parts=[
                    Part(text="Describe"),
                    Part(inline_data=InlineData(mime_type="image/jpeg", data="QUJD")),
                ],
            ),
            Content(role="model", parts=[Part(text="A photo")]),
        ],
        generation_config=GenerationConfig(temperature=0.4, max_output_tokens=10_000),
    )

    payload = build_chat_payload(body, "gpt-4o-mini", 4096)

    assert payload["temperature"] == 0.4
    assert payload["max_completion_tokens"] == 4096
    user, assistant = payload["messages"]
    assert user["role"] == "user"
    assert user["content"][0] == {"type": "text", "text": "Describe"}
    assert user["content"][1] == {
        "type": "image_url",
        "image_url": {"url": "data:image/jpeg;base64,QUJD"},
    }
    assert assistant == {"role": "assistant", "content": "A photo"}


@pytest.mark.parametrize(("temperature", "kept"), [(0.7, False), (1.0, True)])
def test_fixed_temperature_models_only_accept_default(
    temperature: float, kept: bool
) -> None:
    body = GatewayBody(
        contents=[Content(parts=[Part(text="hi")])],
        generation_config=GenerationConfig(temperature=temperature),
    )

    payload = build_chat_payload(body, "gpt-5-mini", 4096)

    assert ("temperature" in payload) is kept
    assert "max_completion_tokens" not in payload


def test_normalize_chat_completion_without_choices() -> None:
    response = normalize_chat_completion(
        SimpleNamespace(choices=[], usage=None), "gpt-5-mini"
    )

    assert response.candidates == []
    assert response.text() == ""
    assert response.provider == "openai"


def test_openai_status_error_keeps_vendor_status() -> None:
    client = OpenAIChatClient(
        client=_FakeOpenAI(_status_error(429, "Rate limit reached")), model="gpt-5-mini"
    )

    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(client.generate(text_request("hi").body))

    assert excinfo.value.http_status == 429
    assert excinfo.value.message == "Rate limit reached"


def test_openai_connection_error_is_internal() -> None:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    client = OpenAIChatClient(
        client=_FakeOpenAI(openai.APIConnectionError(request=request)),
        model="gpt-5-mini",
    )

    with pytest.raises(GatewayInternalError):
        asyncio.run(client.generate(text_request("hi").body))


def test_openai_request_carries_model_and_messages() -> None:
    fake = _FakeOpenAI(_completion())
    client = OpenAIChatClient(client=fake, model="gpt-5-mini")

    asyncio.run(client.generate(text_request("hi", max_output_tokens=256).body))

    call = fake.chat.completions.calls[0]
    assert call["model"] == "gpt-5-mini"
    assert call["messages"] == [{"role": "user", "content": "hi"}]
    assert call["max_completion_tokens"] == 256
