"""Cloudinary upload client."""

import logging
from dataclasses import dataclass

import httpx

from profile_uplift.domain.errors import CdnNotConfiguredError, CdnUploadError
from profile_uplift.services.cdn import (
    CdnAsset,
    CdnUploader,
    ProgressCallback,
    UploadSignature,
    UploadSigner,
)

_logger = logging.getLogger(__name__)


@dataclass
class HttpSignatureSource(UploadSigner):
    """Fetches signed-upload fields from a remote signature endpoint."""

    signature_url: str
    http_client: httpx.AsyncClient
    timeout: float = 10.0

    async def sign(self) -> UploadSignature:
        try:
            response = await self.http_client.get(
                self.signature_url, timeout=self.timeout
            )
        except httpx.HTTPError as exc:
            raise CdnUploadError("could not reach the signature service") from exc
        if response.status_code == httpx.codes.SERVICE_UNAVAILABLE:
            raise CdnNotConfiguredError()
        if response.is_error:
            raise CdnUploadError(
                "the signature service failed",
                detail={"status": response.status_code},
            )
        try:
            payload = response.json()
            return UploadSignature(
                signature=payload["signature"],
                timestamp=int(payload["timestamp"]),
                cloud_name=payload["cloudname"],
                api_key=payload["apikey"],
                upload_preset=payload.get("upload_preset"),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise CdnUploadError(
                "the signature service returned an invalid response"
            ) from exc


@dataclass
class HttpxCloudinaryUploader(CdnUploader):
    """Uploads straight to Cloudinary, signed when a signer is available.

    Without a signer the unsigned preset path is used; with neither, uploads
    raise ``CdnNotConfiguredError`` so callers can pick another pipeline.
    """

    http_client: httpx.AsyncClient
    signer: UploadSigner | None = None
    cloud_name: str | None = None
    upload_preset: str | None = None
    timeout: float = 60.0
    api_base_url: str = "https://api.cloudinary.com/v1_1"

    @classmethod
    def create(
        cls,
        *,
        signer: UploadSigner | None,
        cloud_name: str | None,
        upload_preset: str | None,
        timeout: float = 60.0,
    ) -> "HttpxCloudinaryUploader":
        """Create an uploader with a managed httpx session."""
        return cls(
            http_client=httpx.AsyncClient(),
            signer=signer,
            cloud_name=cloud_name,
            upload_preset=upload_preset,
            timeout=timeout,
        )

    async def upload(
        self,
        data: bytes,
        filename: str,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> CdnAsset:
        cloud_name, fields = await self._form_fields()
        url = f"{self.api_base_url}/{cloud_name}/image/upload"
        if on_progress:
            on_progress(0.0)
        try:
            response = await self.http_client.post(
                url,
                data=fields,
                files={"file": (filename, data, content_type)},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise CdnUploadError(f"network error ({exc.__class__.__name__})") from exc
        if response.is_error:
            message = _error_message(response)
            _logger.warning(
                "Cloudinary upload of %s failed: status=%s message=%s",
                filename,
                response.status_code,
                message,
            )
            raise CdnUploadError(message, detail={"status": response.status_code})
        try:
            payload = response.json()
        except ValueError as exc:
            raise CdnUploadError("the CDN returned an unreadable response") from exc
        secure_url = payload.get("secure_url") if isinstance(payload, dict) else None
        if not isinstance(secure_url, str) or not secure_url:
            raise CdnUploadError("the CDN did not return a URL")
        if on_progress:
            on_progress(1.0)
        return CdnAsset(
            secure_url=secure_url,
            public_id=payload.get("public_id"),
            size_bytes=payload.get("bytes"),
        )

    async def _form_fields(self) -> tuple[str, dict[str, str]]:
        if self.signer is not None:
            signature = await self.signer.sign()
            fields = {
                "api_key": signature.api_key,
                "timestamp": str(signature.timestamp),
                "signature": signature.signature,
            }
            if signature.upload_preset:
                fields["upload_preset"] = signature.upload_preset
            return signature.cloud_name, fields
        if self.cloud_name and self.upload_preset:
            return self.cloud_name, {"upload_preset": self.upload_preset}
        raise CdnNotConfiguredError()

    async def fetch(self, url: str) -> bytes:
        """Download a delivered asset."""
        response = await self.http_client.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return response.reason_phrase or "unknown CDN error"
