"""Image records moving through upload, encoding and enhancement."""

from dataclasses import dataclass


@dataclass(frozen=True)
class EncodedImage:
    """A JPEG re-encoding of an uploaded image."""

    data: bytes
    quality: float
    width: int
    height: int
    mime_type: str = "image/jpeg"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def long_side(self) -> int:
        return max(self.width, self.height)


@dataclass(frozen=True)
class UploadedImage:
    """One user-supplied photo. The original bytes are never modified."""

    id: str
    data: bytes
    declared_type: str
    filename: str
    encoded: EncodedImage | None = None

    @property
    def size(self) -> int:
        return len(self.data)

    def with_encoding(self, encoded: EncodedImage) -> "UploadedImage":
        """Return a copy carrying a derived representation."""
        return UploadedImage(
            id=self.id,
            data=self.data,
            declared_type=self.declared_type,
            filename=self.filename,
            encoded=encoded,
        )


@dataclass(frozen=True)
class EncodeTarget:
    """Constraints for the JPEG quality/dimension search."""

    target_bytes: int
    max_dimension: int
    min_dimension: int
    initial_quality: float = 0.85
    min_quality: float = 0.45
    quality_step: float = 0.07
    dimension_ratio: float = 0.85

    def __post_init__(self) -> None:
        if self.min_dimension > self.max_dimension:
            raise ValueError("min_dimension must not exceed max_dimension")
        if self.min_quality > self.initial_quality:
            raise ValueError("min_quality must not exceed initial_quality")
