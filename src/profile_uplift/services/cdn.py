"""CDN delivery-URL transformations and upload signing."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

import cloudinary.utils

from profile_uplift.domain.errors import CdnNotConfiguredError

_logger = logging.getLogger(__name__)

ENHANCE_TRANSFORMS = ("e_enhance", "e_improve:100", "q_auto", "f_auto")
ANALYSIS_MAX_WIDTH = 1024


@dataclass(frozen=True)
class CdnAsset:
    """An uploaded image as returned by the CDN."""

    secure_url: str
    public_id: str | None = None
    size_bytes: int | None = None


@dataclass(frozen=True)
class UploadSignature:
    signature: str
    timestamp: int
    cloud_name: str
    api_key: str
    upload_preset: str | None

    def as_response(self) -> dict[str, object]:
        """Shape served by the signature endpoint."""
        return {
            "signature": self.signature,
            "timestamp": self.timestamp,
            "cloudname": self.cloud_name,
            "apikey": self.api_key,
            "upload_preset": self.upload_preset,
        }


ProgressCallback = Callable[[float], None]


class UploadSigner(Protocol):
    """Source of signed-upload parameters."""

    async def sign(self) -> UploadSignature:
        """Return fresh upload signature fields."""


class CdnUploader(Protocol):
    """Interface for pushing image bytes to the CDN."""

    async def upload(
        self,
        data: bytes,
        filename: str,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> CdnAsset:
        """Upload bytes and return the stored asset; reports 0.0 to 1.0."""

    async def fetch(self, url: str) -> bytes:
        """Download a delivered asset."""


def transform_url(url: str, directives: str) -> str:
    """Insert transformation directives after ``/upload/`` in a delivery URL.

    URLs without exactly one ``/upload/`` segment are returned untouched.
    """
    head, sep, tail = url.partition("/upload/")
    if not sep or "/upload/" in tail:
        _logger.warning("Unexpected CDN URL shape, leaving as is: %s", url)
        return url
    return f"{head}/upload/{directives}/{tail}"


def enhanced_url(url: str) -> str:
    return transform_url(url, ",".join(ENHANCE_TRANSFORMS))


def analysis_url(url: str, max_width: int = ANALYSIS_MAX_WIDTH) -> str:
    """Downsized, quality-capped JPEG variant used for model analysis."""
    return transform_url(url, f"c_limit,w_{max_width},q_auto:good,f_jpg")


@dataclass
class CloudinarySigner(UploadSigner):
    """Signs uploads with the account secret held by the server."""

    cloud_name: str | None
    api_key: str | None
    api_secret: str | None
    upload_preset: str | None = None
    clock: Callable[[], float] = field(default=time.time)

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    async def sign(self) -> UploadSignature:
        if not self.configured:
            raise CdnNotConfiguredError()
        timestamp = int(round(self.clock()))
        params: dict[str, object] = {"timestamp": timestamp}
        if self.upload_preset:
            params["upload_preset"] = self.upload_preset
        signature = cloudinary.utils.api_sign_request(params, self.api_secret)
        return UploadSignature(
            signature=signature,
            timestamp=timestamp,
            cloud_name=self.cloud_name or "",
            api_key=self.api_key or "",
            upload_preset=self.upload_preset,
        )
