"""Tests for logging helpers, the error hierarchy and cancellation."""

import logging

import pytest

from doc_normalizer.cancellation import CancellationToken
from doc_normalizer.exceptions import (
    DecodeError,
    DocumentNormalizerError,
    PipelineCancelledError,
    ProcessingError,
)
from doc_normalizer.utils.logging_utils import (
    PERFORMANCE_LEVEL,
    get_logger,
    log_performance,
    log_stage_timing,
    setup_logging,
)


def test_stage_timing_records_duration(caplog):
    logger = get_logger("doc_normalizer.test")
    caplog.set_level(logging.DEBUG)

    with log_stage_timing("blur", logger) as stats:
        stats["pixels"] = 100

    assert stats["duration"] >= 0
    assert "Completed blur" in caplog.text
    assert "pixels=100" in caplog.text


def test_stage_timing_logs_failure(caplog):
    logger = get_logger("doc_normalizer.test")
    caplog.set_level(logging.DEBUG)

    with pytest.raises(RuntimeError):
        with log_stage_timing("encode", logger):
            raise RuntimeError("boom")

    errors = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert errors and "Failed encode" in errors[0].getMessage()


def test_performance_level(caplog):
    caplog.set_level(logging.DEBUG)
    log_performance(get_logger("doc_normalizer.test"), "done", duration=0.5, size_bytes=10)

    record = caplog.records[-1]
    assert record.levelno == PERFORMANCE_LEVEL
    assert record.getMessage() == "done (duration=0.5000, size_bytes=10)"


def test_setup_logging_with_file(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    root = setup_logging(level="INFO", log_file=log_file, use_rich=False)

    get_logger("doc_normalizer.test").info("written to file")
    for handler in root.handlers:
        handler.flush()

    assert "written to file" in log_file.read_text(encoding="utf-8")
    assert root.level == logging.INFO


def test_error_details_in_message():
    error = DecodeError("Could not decode image", processor="decode_image", size_bytes=3)
    assert isinstance(error, ProcessingError)
    assert isinstance(error, DocumentNormalizerError)
    assert str(error) == "Could not decode image (Details: size_bytes=3, processor=decode_image)"


def test_cancellation_token():
    token = CancellationToken()
    assert not token.cancelled
    token.raise_if_cancelled("decoding")

    token.cancel()
    assert token.cancelled
    with pytest.raises(PipelineCancelledError) as exc_info:
        token.raise_if_cancelled("cropping")
    assert exc_info.value.details == {"stage": "cropping"}
