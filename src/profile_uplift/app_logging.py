"""Logging configuration helpers."""

import logging

_ROOT_LOGGER = "profile_uplift"


def configure_logging(level: str = "INFO") -> None:
    """Attach one stream handler to the package logger; safe to call twice."""
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(level.upper())
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def log_operation_failure(
    logger: logging.Logger, operation: str, exc: BaseException
) -> None:
    """Write the developer-facing diagnostic for a failed operation.

    Expected failures (anything carrying a ``code``) are logged without a
    traceback; anything else gets the full stack.
    """
    code = getattr(exc, "code", None)
    if code is None:
        logger.error("%s failed unexpectedly", operation, exc_info=exc)
        return
    logger.warning(
        "%s failed: code=%s message=%s detail=%s",
        operation,
        code,
        getattr(exc, "message", str(exc)),
        getattr(exc, "detail", None),
    )
