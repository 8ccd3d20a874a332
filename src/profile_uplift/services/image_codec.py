"""JPEG transcoding with decode fallbacks and a quality/dimension search."""

import asyncio
import base64
import io
import logging
import os
import tempfile
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from functools import partial
from typing import TypeVar

from PIL import Image, ImageFile, ImageOps

from profile_uplift.domain.errors import (
    ImageDecodeError,
    UnsupportedImageFormatError,
)
from profile_uplift.domain.images import EncodedImage, EncodeTarget, UploadedImage

_logger = logging.getLogger(__name__)

T = TypeVar("T")

EncodeFn = Callable[[int, float], EncodedImage]

# ISO base media file brands that canvas-style rasterizers can't handle.
_ISO_BMFF_BRANDS = {
    b"heic": "heic",
    b"heix": "heic",
    b"hevc": "heic",
    b"hevx": "heic",
    b"heim": "heic",
    b"heis": "heic",
    b"mif1": "heif",
    b"msf1": "heif",
    b"avif": "avif",
    b"avis": "avif",
}
HEIC_FAMILY = frozenset({"heic", "heif", "avif"})

_PARSER_CHUNK = 64 * 1024


def sniff_container(data: bytes) -> str | None:
    """Identify an image container from its leading bytes.

    File names and declared media types are ignored on purpose: phones
    routinely hand over HEIC data named ``IMG_0001.jpg``.
    """
    if data.startswith(b"\xff\xd8\xff"):
        return "jpeg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "gif"
    if data[4:8] == b"ftyp":
        box_end = min(int.from_bytes(data[:4], "big"), len(data), 256)
        brands = [data[8:12]]
        # Compatible brands follow the 4-byte minor version.
        brands.extend(data[offset : offset + 4] for offset in range(16, box_end, 4))
        for brand in brands:
            family = _ISO_BMFF_BRANDS.get(brand)
            if family:
                return family
    return None


def mime_type_for(data: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    container = sniff_container(data)
    if container in ("jpeg", "png", "webp", "gif", "heic", "heif", "avif"):
        return f"image/{container}"
    return "image/jpeg"


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@dataclass(eq=False)
class FallbackExhausted(Exception):
    """Every strategy in a fallback chain failed."""

    failures: list[tuple[str, BaseException]]


async def first_success(
    attempts: Sequence[tuple[str, Callable[[], Awaitable[T]]]],
    timeout_seconds: float,
) -> T:
    """Run named async attempts in order, returning the first that succeeds."""
    failures: list[tuple[str, BaseException]] = []
    for name, attempt in attempts:
        try:
            return await asyncio.wait_for(attempt(), timeout=timeout_seconds)
        except Exception as exc:  # noqa: BLE001
            _logger.info("Strategy %s failed: %r", name, exc)
            failures.append((name, exc))
    raise FallbackExhausted(failures)


def _to_rgb(image: Image.Image) -> Image.Image:
    if image.mode == "RGB":
        return image
    if image.mode in ("RGBA", "LA", "P", "PA"):
        rgba = image.convert("RGBA")
        try:
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
        finally:
            rgba.close()
        return background
    return image.convert("RGB")


def _normalize(image: Image.Image) -> Image.Image:
    """Return an upright RGB copy independent of ``image``."""
    upright = ImageOps.exif_transpose(image)
    rgb = _to_rgb(upright)
    if rgb is not upright:
        upright.close()
    return rgb


def decode_draft(data: bytes, size_hint: int) -> Image.Image:
    """Fast path: let the JPEG decoder scale down while decoding."""
    with Image.open(io.BytesIO(data)) as image:
        image.draft("RGB", (size_hint, size_hint))
        image.load()
        return _normalize(image)


def decode_incremental(data: bytes, size_hint: int) -> Image.Image:
    """Feed the bytes through Pillow's push parser in chunks."""
    parser = ImageFile.Parser()
    for offset in range(0, len(data), _PARSER_CHUNK):
        parser.feed(data[offset : offset + _PARSER_CHUNK])
    image = parser.close()
    try:
        return _normalize(image)
    finally:
        image.close()


def decode_temp_file(data: bytes, size_hint: int) -> Image.Image:
    """Decode from a temporary file for plugins that need a real path."""
    fd, path = tempfile.mkstemp(prefix="uplift-", suffix=".img")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        with Image.open(path) as image:
            image.load()
            return _normalize(image)
    finally:
        os.unlink(path)


DECODE_STRATEGIES: tuple[tuple[str, Callable[[bytes, int], Image.Image]], ...] = (
    ("draft", decode_draft),
    ("incremental", decode_incremental),
    ("temp_file", decode_temp_file),
)


def encode_jpeg(image: Image.Image, max_dimension: int, quality: float) -> EncodedImage:
    """Encode ``image`` as JPEG with its long side capped at ``max_dimension``."""
    width, height = image.size
    scale = min(1.0, max_dimension / max(width, height))
    size = (max(1, round(width * scale)), max(1, round(height * scale)))
    resized = image if size == image.size else image.resize(
        size, Image.Resampling.LANCZOS
    )
    buffer = io.BytesIO()
    try:
        resized.save(buffer, format="JPEG", quality=round(quality * 100), optimize=True)
    finally:
        if resized is not image:
            resized.close()
    return EncodedImage(
        data=buffer.getvalue(), quality=quality, width=size[0], height=size[1]
    )


def quality_steps(target: EncodeTarget) -> list[float]:
    steps: list[float] = []
    quality = target.initial_quality
    while quality > target.min_quality + 1e-9:
        steps.append(round(quality, 4))
        quality -= target.quality_step
    steps.append(target.min_quality)
    return steps


def dimension_steps(target: EncodeTarget, source_long_side: int | None = None) -> list[int]:
    """Long-side caps to try, largest first, ending at the floor.

    Caps above the source's own size all encode identically, so they collapse
    into one step.
    """
    caps: list[int] = []
    dimension = target.max_dimension
    while True:
        effective = max(dimension, target.min_dimension)
        if source_long_side is not None:
            effective = min(effective, source_long_side)
        if not caps or caps[-1] != effective:
            caps.append(effective)
        if dimension <= target.min_dimension:
            return caps
        dimension = int(dimension * target.dimension_ratio)


def search_quality(encode: EncodeFn, dimension: int, target: EncodeTarget) -> EncodedImage:
    """Lower quality until the encoding fits; returns the min-quality one otherwise."""
    *higher, lowest = quality_steps(target)
    for quality in higher:
        result = encode(dimension, quality)
        if result.size <= target.target_bytes:
            return result
    return encode(dimension, lowest)


def search_dimensions(
    encode: EncodeFn, target: EncodeTarget, source_long_side: int | None = None
) -> EncodedImage:
    """Shrink dimensions until some quality fits; degrade gracefully at the floor."""
    *larger, smallest = dimension_steps(target, source_long_side)
    for dimension in larger:
        result = search_quality(encode, dimension, target)
        if result.size <= target.target_bytes:
            return result
    return search_quality(encode, smallest, target)


@dataclass
class ImageTranscoder:
    """Decodes uploads and re-encodes them as size-bounded JPEGs."""

    decode_timeout_seconds: float = 15.0

    async def decode(self, image: UploadedImage, size_hint: int) -> Image.Image:
        """Decode with the fallback chain; the caller must close the result."""
        if not image.data:
            raise ImageDecodeError(
                image.filename,
                "the file is empty",
                "If the photo lives in cloud storage, download it to your device "
                "first and upload it again.",
            )
        container = sniff_container(image.data)
        if container in HEIC_FAMILY:
            raise UnsupportedImageFormatError(image.filename, container)
        attempts = [
            (name, partial(asyncio.to_thread, strategy, image.data, size_hint))
            for name, strategy in DECODE_STRATEGIES
        ]
        try:
            return await first_success(attempts, self.decode_timeout_seconds)
        except FallbackExhausted as exc:
            _logger.warning(
                "All decoders failed for %s (%s bytes, sniffed=%s): %s",
                image.filename,
                image.size,
                container,
                [f"{name}: {error!r}" for name, error in exc.failures],
            )
            raise _decode_error(image.filename, exc.failures) from exc

    async def transcode(self, image: UploadedImage, target: EncodeTarget) -> UploadedImage:
        """Return ``image`` with a JPEG encoding that honours ``target``."""
        decoded = await self.decode(image, target.max_dimension)
        try:
            encoded = await asyncio.to_thread(
                search_dimensions,
                partial(encode_jpeg, decoded),
                target,
                max(decoded.size),
            )
        finally:
            decoded.close()
        _logger.debug(
            "Encoded %s: %sx%s q=%.2f %s bytes (target %s)",
            image.filename,
            encoded.width,
            encoded.height,
            encoded.quality,
            encoded.size,
            target.target_bytes,
        )
        return image.with_encoding(encoded)


def _decode_error(
    filename: str, failures: list[tuple[str, BaseException]]
) -> ImageDecodeError:
    if any(isinstance(error, TimeoutError) for _, error in failures):
        return ImageDecodeError(
            filename,
            "decoding timed out",
            "The photo may still be downloading from cloud storage. Save it to "
            "your device, or pick a different photo.",
        )
    return ImageDecodeError(
        filename,
        "the data is corrupt or not a supported image",
        "Re-save it as JPEG or PNG (a screenshot works too) and upload again.",
    )
