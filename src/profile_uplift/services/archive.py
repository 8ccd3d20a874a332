"""Packages the finished profile for download."""

import asyncio
import io
import logging
import re
import zipfile
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from profile_uplift.domain.errors import ArchiveError
from profile_uplift.domain.profile import SelectedPhoto

_logger = logging.getLogger(__name__)

Fetch = Callable[[str], Awaitable[bytes]]


@dataclass(frozen=True)
class Download:
    filename: str
    data: bytes
    media_type: str


def file_extension(filename: str) -> str:
    """Lower-cased extension of ``filename``, ``jpg`` when missing or odd."""
    stem, dot, extension = filename.lower().rpartition(".")
    if dot and stem and 0 < len(extension) < 5:
        return extension
    return "jpg"


def safe_stem(filename: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", filename.split(".")[0])


def archive_name(user_name: str | None) -> str:
    base = re.sub(r"\s+", "_", (user_name or "").strip()) or "Profile"
    return f"{base}_Uplift_Enhanced.zip"


@dataclass
class ArchiveService:
    """Builds single-photo downloads and the bio-plus-photos ZIP."""

    fetch: Fetch

    async def single_photo(self, photo: SelectedPhoto) -> Download:
        if not photo.enhanced_url:
            raise ArchiveError("This photo has not been enhanced yet.")
        try:
            data = await self.fetch(photo.enhanced_url)
        except Exception as exc:
            _logger.warning("Could not fetch %s: %r", photo.enhanced_url, exc)
            raise ArchiveError(
                "Couldn't download the enhanced photo. Please try again."
            ) from exc
        extension = file_extension(photo.filename)
        return Download(
            filename=f"uplifted_{safe_stem(photo.filename)}.{extension}",
            data=data,
            media_type=f"image/{'jpeg' if extension == 'jpg' else extension}",
        )

    async def profile_zip(
        self,
        bio: str | None,
        photos: Sequence[SelectedPhoto],
        user_name: str | None = None,
    ) -> Download:
        """Zip ``bio.txt`` and every enhanced photo.

        A photo that can't be fetched becomes an ``ERROR_downloading_photo_<n>.txt``
        entry rather than failing the archive.
        """
        enhanced = [photo for photo in photos if photo.enhanced_url]
        if not enhanced:
            raise ArchiveError(
                "No enhanced photos available to download. Enhance your photos first."
            )
        entries = await asyncio.gather(
            *(self._entry(position, photo) for position, photo in enumerate(enhanced, 1))
        )
        buffer = io.BytesIO()
        with zipfile.ZipFile(
            buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9
        ) as archive:
            archive.writestr("bio.txt", bio or "No bio was generated.")
            for name, data in entries:
                archive.writestr(name, data)
        return Download(
            filename=archive_name(user_name),
            data=buffer.getvalue(),
            media_type="application/zip",
        )

    async def _entry(self, position: int, photo: SelectedPhoto) -> tuple[str, bytes]:
        url = photo.enhanced_url or ""
        try:
            data = await self.fetch(url)
        except Exception as exc:  # noqa: BLE001
            _logger.warning("Could not fetch %s for the archive: %r", url, exc)
            note = (
                f"Could not download image: {photo.filename}\n"
                f"URL: {url}\n"
                f"Error: {exc}"
            )
            return f"ERROR_downloading_photo_{position}.txt", note.encode("utf-8")
        return f"photo_{position}.{file_extension(photo.filename)}", data
