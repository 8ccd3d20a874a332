"""Error taxonomy shared by services and the HTTP layer."""

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class UpliftError(Exception):
    """Base error with a user-facing message and an HTTP mapping."""

    code: str
    message: str
    http_status: int = 400
    detail: Any | None = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.detail is not None:
            payload["details"] = self.detail
        return payload


class InputValidationError(UpliftError):
    def __init__(self, message: str, *, detail: Any | None = None) -> None:
        super().__init__(
            code="INVALID_INPUT", message=message, http_status=400, detail=detail
        )


class UnsupportedImageFormatError(UpliftError):
    def __init__(self, filename: str, container: str) -> None:
        super().__init__(
            code="UNSUPPORTED_FORMAT",
            message=(
                f"'{filename}' is a {container.upper()} image, which can't be "
                "converted here. Export it as JPEG (on iPhone: Settings > Camera "
                "> Formats > Most Compatible) or take a screenshot of it, then "
                "upload again."
            ),
            http_status=415,
            detail={"filename": filename, "container": container},
        )


class ImageDecodeError(UpliftError):
    def __init__(self, filename: str, cause: str, hint: str) -> None:
        super().__init__(
            code="DECODE_FAILED",
            message=f"Couldn't read '{filename}' ({cause}). {hint}",
            http_status=422,
            detail={"filename": filename, "cause": cause},
        )


class PayloadTooLargeError(UpliftError):
    def __init__(self, size_bytes: int, ceiling_bytes: int, rounds: int) -> None:
        super().__init__(
            code="PAYLOAD_TOO_LARGE",
            message=(
                "Your photos are too large to analyze together even after "
                "compression. Try uploading fewer photos or smaller files."
            ),
            http_status=413,
            detail={
                "size_bytes": size_bytes,
                "ceiling_bytes": ceiling_bytes,
                "rounds": rounds,
            },
        )


class UpstreamError(UpliftError):
    """A vendor or remote gateway rejected the request."""

    def __init__(self, status: int, message: str, *, detail: Any | None = None):
        super().__init__(
            code="UPSTREAM_ERROR", message=message, http_status=status, detail=detail
        )


class GatewayInternalError(UpliftError):
    """Network or parse failure talking to a vendor; usually retryable."""

    def __init__(self, message: str, *, detail: Any | None = None) -> None:
        super().__init__(
            code="INTERNAL", message=message, http_status=500, detail=detail
        )


class GatewayConfigError(UpliftError):
    def __init__(self, provider: str) -> None:
        super().__init__(
            code="NOT_CONFIGURED",
            message=f"API key not configured for provider '{provider}'",
            http_status=500,
        )


class SelectionValidationError(UpliftError):
    def __init__(self, reason: str) -> None:
        super().__init__(
            code="INVALID_SELECTION",
            message=(
                "The AI failed to provide a complete and valid analysis for your "
                "photos. This can be due to image quality or a temporary API "
                "issue. Please try again with different photos."
            ),
            http_status=502,
            detail={"reason": reason},
        )


class BioGenerationError(UpliftError):
    def __init__(self, message: str, *, detail: Any | None = None) -> None:
        super().__init__(
            code="BIO_FAILED", message=message, http_status=502, detail=detail
        )


class RefinementLimitError(UpliftError):
    def __init__(self, limit: int) -> None:
        super().__init__(
            code="REFINEMENT_LIMIT",
            message=f"You've used all {limit} quick edits for this session.",
            http_status=429,
        )


class AnalysisTimeoutError(UpliftError):
    def __init__(self, seconds: float) -> None:
        super().__init__(
            code="ANALYSIS_TIMEOUT",
            message=(
                "Analyzing your photos took too long. On phones this usually "
                "means some photos are stored only in the cloud (iCloud or "
                "Google Photos) and never finished downloading. Pick photos "
                "saved on the device and try again."
            ),
            http_status=504,
            detail={"seconds": seconds},
        )


class CdnNotConfiguredError(UpliftError):
    def __init__(self) -> None:
        super().__init__(
            code="CDN_NOT_CONFIGURED",
            message="Image hosting is not configured on the server.",
            http_status=503,
        )


class CdnUploadError(UpliftError):
    def __init__(self, message: str, *, detail: Any | None = None) -> None:
        super().__init__(
            code="CDN_UPLOAD_FAILED",
            message=f"Image upload failed: {message}",
            http_status=502,
            detail=detail,
        )


class SessionNotFoundError(UpliftError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            code="SESSION_NOT_FOUND",
            message="Your session has expired. Please start again.",
            http_status=404,
            detail={"session_id": session_id},
        )


class ArchiveError(UpliftError):
    def __init__(self, message: str) -> None:
        super().__init__(code="ARCHIVE_FAILED", message=message, http_status=409)
