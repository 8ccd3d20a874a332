"""Builds photo-selection requests via the CDN URL or inline pipeline."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from profile_uplift.domain.errors import CdnNotConfiguredError, InputValidationError
from profile_uplift.domain.gateway import (
    Content,
    GatewayBody,
    GatewayRequest,
    GenerationConfig,
    InlineData,
    Part,
    Provider,
)
from profile_uplift.domain.images import UploadedImage
from profile_uplift.services.budget import PayloadBudgeter
from profile_uplift.services.cdn import (
    ANALYSIS_MAX_WIDTH,
    CdnUploader,
    ProgressCallback,
    analysis_url,
)
from profile_uplift.services.image_codec import mime_type_for, to_base64
from profile_uplift.services.prompts import SAFETY_SETTINGS
from profile_uplift.services.tasks import run_all

_logger = logging.getLogger(__name__)

Pipeline = Literal["url", "inline"]


@dataclass(frozen=True)
class PreparedBatch:
    """A ready-to-send selection request and its position-to-photo mapping."""

    request: GatewayRequest
    index_map: dict[int, str]
    pipeline: Pipeline


@dataclass
class UploadProgress:
    """Aggregates per-upload fractions into one monotonic overall fraction."""

    total: int
    callback: ProgressCallback | None = None
    _fractions: list[float] = field(init=False)
    _reported: float = field(init=False, default=0.0)

    def __post_init__(self) -> None:
        self._fractions = [0.0] * self.total

    @property
    def value(self) -> float:
        if not self.total:
            return 1.0
        return sum(self._fractions) / self.total

    def reporter(self, position: int) -> ProgressCallback:
        def report(fraction: float) -> None:
            clamped = min(1.0, max(0.0, fraction))
            self._fractions[position] = max(self._fractions[position], clamped)
            current = self.value
            if current > self._reported:
                self._reported = current
                if self.callback:
                    self.callback(current)

        return report


def _selection_config() -> GenerationConfig:
    return GenerationConfig(response_mime_type="application/json")


def url_request(
    prompt: str, urls: Sequence[str], provider: Provider | None = None
) -> GatewayRequest:
    return GatewayRequest(
        provider=provider,
        body=GatewayBody(
            contents=[Content(role="user", parts=[Part(text=prompt)])],
            safety_settings=SAFETY_SETTINGS,
            generation_config=_selection_config(),
            image_urls=list(urls),
        ),
    )


def inline_request(
    prompt: str, images: Sequence[UploadedImage], provider: Provider | None = None
) -> GatewayRequest:
    """Images first, in submission order, then the prompt."""
    parts = []
    for image in images:
        if image.encoded is not None:
            data, mime_type = image.encoded.data, image.encoded.mime_type
        else:
            data, mime_type = image.data, mime_type_for(image.data)
        parts.append(Part(inline_data=InlineData(mime_type=mime_type, data=to_base64(data))))
    parts.append(Part(text=prompt))
    return GatewayRequest(
        provider=provider,
        body=GatewayBody(
            contents=[Content(role="user", parts=parts)],
            safety_settings=SAFETY_SETTINGS,
            generation_config=_selection_config(),
        ),
    )


@dataclass
class SelectionSubmitter:
    """Prefers CDN-hosted URLs and falls back to inline base64 images.

    The fallback only happens when the CDN reports it isn't configured; any
    other upload failure is a hard failure.
    """

    uploader: CdnUploader
    budgeter: PayloadBudgeter
    upload_concurrency: int = 4
    analysis_max_width: int = ANALYSIS_MAX_WIDTH

    async def prepare(
        self,
        photos: Sequence[UploadedImage],
        prompt: str,
        *,
        provider: Provider | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> PreparedBatch:
        if not photos:
            raise InputValidationError("Add at least one photo first.")
        index_map = {position: photo.id for position, photo in enumerate(photos, start=1)}
        try:
            urls = await self.upload_all(photos, on_progress)
        except CdnNotConfiguredError:
            _logger.info("CDN not configured; sending %s photos inline", len(photos))
            batch = await self.budgeter.encode_batch(
                photos, lambda encoded: inline_request(prompt, encoded, provider).wire_dict()
            )
            if on_progress:
                on_progress(1.0)
            return PreparedBatch(
                request=GatewayRequest.model_validate(batch.request),
                index_map=index_map,
                pipeline="inline",
            )
        analysis_urls = [analysis_url(url, self.analysis_max_width) for url in urls]
        return PreparedBatch(
            request=url_request(prompt, analysis_urls, provider),
            index_map=index_map,
            pipeline="url",
        )

    async def upload_all(
        self,
        photos: Sequence[UploadedImage],
        on_progress: ProgressCallback | None = None,
    ) -> list[str]:
        """Upload every photo and return delivery URLs in submission order."""
        progress = UploadProgress(total=len(photos), callback=on_progress)
        semaphore = asyncio.Semaphore(self.upload_concurrency)

        async def upload_one(position: int, photo: UploadedImage) -> str:
            async with semaphore:
                asset = await self.uploader.upload(
                    photo.data,
                    photo.filename,
                    photo.declared_type or mime_type_for(photo.data),
                    on_progress=progress.reporter(position),
                )
            return asset.secure_url

        return await run_all(
            upload_one(position, photo) for position, photo in enumerate(photos)
        )
