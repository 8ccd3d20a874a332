"""Best-effort photo enhancement through CDN transformations."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace

from profile_uplift.domain.errors import UpliftError
from profile_uplift.domain.images import UploadedImage
from profile_uplift.domain.profile import SelectedPhoto
from profile_uplift.services.cdn import CdnUploader, ProgressCallback, enhanced_url
from profile_uplift.services.image_codec import mime_type_for

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnhancementReport:
    photos: tuple[SelectedPhoto, ...]
    enhanced: int
    failed: int

    @property
    def errors(self) -> list[str]:
        return [
            f"Failed to enhance: {photo.filename}."
            for photo in self.photos
            if photo.enhance_error
        ]


@dataclass
class EnhancementService:
    """Uploads selected originals and derives enhanced delivery URLs.

    One photo failing never stops the others; its error is kept on the
    photo record instead.
    """

    uploader: CdnUploader
    concurrency: int = 4

    async def enhance(
        self,
        selected: Sequence[SelectedPhoto],
        originals: Sequence[UploadedImage],
        on_progress: ProgressCallback | None = None,
    ) -> EnhancementReport:
        by_id = {image.id: image for image in originals}
        pending = [photo for photo in selected if not photo.enhanced_url]
        semaphore = asyncio.Semaphore(self.concurrency)
        done = 0

        async def enhance_one(photo: SelectedPhoto) -> SelectedPhoto:
            nonlocal done
            original = by_id.get(photo.photo_id)
            try:
                if original is None:
                    return replace(
                        photo,
                        enhance_error="Could not find the original photo file to enhance.",
                    )
                async with semaphore:
                    asset = await self.uploader.upload(
                        original.data,
                        original.filename,
                        original.declared_type or mime_type_for(original.data),
                    )
                return replace(
                    photo, enhanced_url=enhanced_url(asset.secure_url), enhance_error=None
                )
            except UpliftError as exc:
                _logger.warning("Enhancement failed for %s: %s", photo.filename, exc)
                return replace(photo, enhance_error=exc.message)
            finally:
                done += 1
                if on_progress and pending:
                    on_progress(done / len(pending))

        results = {
            photo.photo_id: photo
            for photo in await asyncio.gather(*(enhance_one(photo) for photo in pending))
        }
        photos = tuple(results.get(photo.photo_id, photo) for photo in selected)
        failed = sum(1 for photo in results.values() if photo.enhance_error)
        _logger.info(
            "Enhanced %s of %s photos (%s failed)",
            len(results) - failed,
            len(pending),
            failed,
        )
        return EnhancementReport(
            photos=photos, enhanced=len(results) - failed, failed=failed
        )
