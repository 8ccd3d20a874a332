"""HTTP client for a gateway deployed as a separate function."""

from dataclasses import dataclass

import httpx
from pydantic import ValidationError

from profile_uplift.domain.errors import GatewayInternalError, UpstreamError
from profile_uplift.domain.gateway import GatewayRequest, ProviderResponse
from profile_uplift.services.gateway import GatewayClient


@dataclass
class HttpxGatewayClient(GatewayClient):
    """Posts canonical requests to ``POST /api/gemini``."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 90.0
    path: str = "/api/gemini"

    @classmethod
    def create(cls, base_url: str, timeout: float) -> "HttpxGatewayClient":
        """Create a gateway client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def generate(self, request: GatewayRequest) -> ProviderResponse:
        """Send the request; non-2xx responses keep their status and message.

        A 500 is an internal failure unless the gateway marks it as a vendor
        error it is passing through.
        """
        try:
            response = await self.http_client.post(
                f"{self.base_url}{self.path}",
                json=request.wire_dict(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise GatewayInternalError(
                "Couldn't reach the AI service. Please try again.",
                detail=f"{exc.__class__.__name__}: {exc}",
            ) from exc
        try:
            payload = response.json()
        except ValueError:
            payload = None
        mirrored = isinstance(payload, dict) and payload.get("code") == "UPSTREAM_ERROR"
        if response.status_code == httpx.codes.INTERNAL_SERVER_ERROR and not mirrored:
            raise GatewayInternalError(
                "Something went wrong talking to the AI service. Please try again.",
                detail=payload,
            )
        if response.is_error:
            message = "AI service request failed"
            detail = None
            if isinstance(payload, dict):
                message = str(payload.get("error") or message)
                detail = payload.get("details")
            raise UpstreamError(response.status_code, message, detail=detail)
        try:
            return ProviderResponse.model_validate(payload)
        except ValidationError as exc:
            raise GatewayInternalError(
                "The AI service returned an unexpected response.",
                detail=exc.errors(include_url=False),
            ) from exc

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
