"""Tests for logging configuration."""

import logging

import pytest

from profile_uplift.app_logging import configure_logging, log_operation_failure
from profile_uplift.domain.errors import CdnUploadError


def test_configure_logging_idempotent() -> None:
    logger = logging.getLogger("profile_uplift")
    logger.handlers.clear()

    configure_logging()
    first_count = len(logger.handlers)

    configure_logging()
    second_count = len(logger.handlers)

    assert first_count == 1
    assert second_count == 1


def test_expected_failures_log_without_traceback(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("tests.expected")

    with caplog.at_level(logging.WARNING, logger="tests.expected"):
        log_operation_failure(logger, "Enhance", CdnUploadError("quota exceeded"))

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert "code=CDN_UPLOAD_FAILED" in record.getMessage()
    assert record.exc_info is None


def test_unexpected_failures_keep_traceback(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("tests.unexpected")

    with caplog.at_level(logging.ERROR, logger="tests.unexpected"):
        log_operation_failure(logger, "Enhance", RuntimeError("boom"))

    record = caplog.records[-1]
    assert record.levelno == logging.ERROR
    assert record.exc_info is not None
