"""Provider-normalizing LLM gateway."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from profile_uplift.config import parse_provider
from profile_uplift.domain.errors import (
    GatewayConfigError,
    GatewayInternalError,
    UpliftError,
)
from profile_uplift.domain.gateway import (
    Content,
    GatewayBody,
    GatewayRequest,
    InlineData,
    Part,
    ProviderResponse,
)
from profile_uplift.services.image_codec import to_base64
from profile_uplift.services.tasks import run_all

_logger = logging.getLogger(__name__)


class ProviderClient(Protocol):
    """One LLM vendor behind the canonical request/response shape."""

    model: str

    async def generate(self, body: GatewayBody) -> ProviderResponse:
        """Run a generation and return the canonical response."""


@dataclass(frozen=True)
class FetchedImage:
    data: bytes
    mime_type: str


class ImageFetcher(Protocol):
    """Interface for downloading remotely hosted images."""

    async def fetch_image(self, url: str) -> FetchedImage:
        """Download an image and report its media type."""


class GatewayClient(Protocol):
    """What callers of the gateway depend on, local or remote."""

    async def generate(self, request: GatewayRequest) -> ProviderResponse:
        """Send a request through the gateway."""


@dataclass
class ProviderGateway(GatewayClient):
    """Dispatches canonical requests to the configured vendor."""

    clients: dict[str, ProviderClient]
    default_provider: str
    image_fetcher: ImageFetcher
    fetch_concurrency: int = 4

    def resolve_provider(self, requested: str | None) -> str:
        return parse_provider(requested, fallback=parse_provider(self.default_provider))

    async def generate(self, request: GatewayRequest) -> ProviderResponse:
        provider = self.resolve_provider(request.provider)
        client = self.clients.get(provider)
        if client is None:
            raise GatewayConfigError(provider)
        body = await self._inline_remote_images(request.body)
        image_count = sum(
            1 for content in body.contents for part in content.parts if part.inline_data
        )
        _logger.info(
            "Gateway dispatch: provider=%s model=%s images=%s",
            provider,
            client.model,
            image_count,
        )
        return await client.generate(body)

    async def _inline_remote_images(self, body: GatewayBody) -> GatewayBody:
        """Fetch ``imageUrls`` server-side and prepend them as inline parts."""
        if not body.image_urls:
            return body
        semaphore = asyncio.Semaphore(self.fetch_concurrency)

        async def fetch(url: str) -> Part:
            async with semaphore:
                try:
                    image = await self.image_fetcher.fetch_image(url)
                except UpliftError:
                    raise
                except Exception as exc:
                    raise GatewayInternalError(
                        "Failed to fetch an image for analysis",
                        detail={"url": url, "error": repr(exc)},
                    ) from exc
            return Part(
                inline_data=InlineData(
                    mime_type=image.mime_type, data=to_base64(image.data)
                )
            )

        image_parts = await run_all(fetch(url) for url in body.image_urls)
        contents = list(body.contents) or [Content(role="user")]
        first = contents[0]
        contents[0] = first.model_copy(
            update={"parts": [*image_parts, *first.parts]}
        )
        return body.model_copy(update={"contents": contents, "image_urls": None})
