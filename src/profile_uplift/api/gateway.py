"""Gateway relay and CDN signature endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from profile_uplift.app_logging import log_operation_failure
from profile_uplift.domain.errors import CdnNotConfiguredError, UpliftError
from profile_uplift.domain.gateway import GatewayRequest

if TYPE_CHECKING:
    from profile_uplift.containers import AppContainer

_logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["gateway"])

_ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _cors_headers(methods: str) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": methods,
        "Access-Control-Allow-Headers": "Content-Type",
    }


def _gateway_error(
    status_code: int,
    message: str,
    details: Any | None = None,
    code: str | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {"error": message, "status": status_code}
    if details is not None:
        content["details"] = details
    if code is not None:
        content["code"] = code
    return JSONResponse(
        content, status_code=status_code, headers=_cors_headers("POST, OPTIONS")
    )


@router.api_route("/gemini", methods=_ALL_METHODS)
async def gemini_gateway(request: Request) -> Response:
    """Relay a canonical request to the configured vendor."""
    headers = _cors_headers("POST, OPTIONS")
    if request.method == "OPTIONS":
        return Response(status_code=status.HTTP_200_OK, headers=headers)
    if request.method != "POST":
        return JSONResponse(
            {"error": "Method not allowed"},
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            headers=headers,
        )
    try:
        raw = await request.json()
    except ValueError:
        return _gateway_error(status.HTTP_400_BAD_REQUEST, "Invalid JSON body")
    if not isinstance(raw, dict) or not raw.get("body"):
        return _gateway_error(status.HTTP_400_BAD_REQUEST, "Missing body")
    try:
        gateway_request = GatewayRequest.model_validate(raw)
    except ValidationError as exc:
        return _gateway_error(
            status.HTTP_400_BAD_REQUEST,
            "Invalid request body",
            exc.errors(include_url=False, include_context=False),
        )
    container: AppContainer = request.app.state.container
    try:
        response = await container.gateway.generate(gateway_request)
    except UpliftError as exc:
        log_operation_failure(_logger, "Gateway request", exc)
        return _gateway_error(exc.http_status, exc.message, exc.detail, exc.code)
    except Exception as exc:
        log_operation_failure(_logger, "Gateway request", exc)
        return _gateway_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", str(exc)
        )
    return JSONResponse(response.wire_dict(), headers=headers)


@router.api_route("/cloudinary-signature", methods=_ALL_METHODS)
async def cloudinary_signature(request: Request) -> Response:
    """Issue signed-upload fields for browser or remote uploaders."""
    headers = _cors_headers("GET, OPTIONS")
    if request.method == "OPTIONS":
        return Response(status_code=status.HTTP_200_OK, headers=headers)
    if request.method != "GET":
        return JSONResponse(
            {"error": "Method not allowed"},
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            headers=headers,
        )
    container: AppContainer = request.app.state.container
    try:
        signature = await container.signer.sign()
    except CdnNotConfiguredError:
        _logger.error("Signature requested but Cloudinary is not configured")
        return JSONResponse(
            {"error": "Cloudinary is not configured on the server."},
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            headers=headers,
        )
    except Exception as exc:
        log_operation_failure(_logger, "Upload signature", exc)
        return JSONResponse(
            {"error": "Could not generate upload signature."},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            headers=headers,
        )
    return JSONResponse(signature.as_response(), headers=headers)
