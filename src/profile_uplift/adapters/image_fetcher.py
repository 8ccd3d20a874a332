"""Downloads remotely hosted images for vendors that need inline bytes."""

from dataclasses import dataclass

import httpx

from profile_uplift.services.gateway import FetchedImage, ImageFetcher
from profile_uplift.services.image_codec import mime_type_for


@dataclass
class HttpxImageFetcher(ImageFetcher):
    """Image fetcher using httpx."""

    http_client: httpx.AsyncClient
    timeout: float = 20.0

    @classmethod
    def create(cls, timeout: float) -> "HttpxImageFetcher":
        """Create an image fetcher with a managed httpx session."""
        return cls(http_client=httpx.AsyncClient(follow_redirects=True), timeout=timeout)

    async def fetch_image(self, url: str) -> FetchedImage:
        """Download ``url`` and work out its media type."""
        response = await self.http_client.get(url, timeout=self.timeout)
        response.raise_for_status()
        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not content_type.startswith("image/"):
            content_type = mime_type_for(response.content)
        return FetchedImage(data=response.content, mime_type=content_type)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
