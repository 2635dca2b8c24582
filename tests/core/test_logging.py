import io
import json
import logging

import pytest

from src.core.exceptions import ValidationError
from src.core.logging import LogContext, configure_logging, get_logger, reset_logging


@pytest.fixture
def log_stream():
    reset_logging()
    LogContext.clear()
    stream = io.StringIO()
    configure_logging(level=logging.DEBUG, json_output=True, stream=stream)
    yield stream
    reset_logging()
    LogContext.clear()


def _lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


class TestStructuredLogging:
    """Tests for JSON log output and context binding."""

    def test_extra_fields_and_context(self, log_stream):
        LogContext.set(school_id=4, operation="createInvoice")
        get_logger("invoices").info("invoice created", extra={"invoice_id": 9})

        [entry] = _lines(log_stream)
        assert entry["message"] == "invoice created"
        assert entry["logger"] == "billing.invoices"
        assert entry["level"] == "INFO"
        assert entry["school_id"] == "4"
        assert entry["operation"] == "createInvoice"
        assert entry["invoice_id"] == 9

    def test_bind_restores_previous_values(self, log_stream):
        LogContext.set(request_id="outer")
        with LogContext.bind(request_id="inner", queue="receipts"):
            assert LogContext.get_all()["request_id"] == "inner"
            assert LogContext.get_all()["queue"] == "receipts"
        assert LogContext.get_all() == {"request_id": "outer"}

    def test_app_exception_details_are_logged(self, log_stream):
        try:
            raise ValidationError("bad currency", "currency")
        except ValidationError:
            get_logger("payments").error("rejected", exc_info=True)

        [entry] = _lines(log_stream)
        assert entry["exc_type"] == "ValidationError"
        assert entry["exc_status_code"] == 422
        assert entry["exc_details"] == {"field": "currency"}

    def test_configure_is_idempotent(self, log_stream):
        configure_logging(level=logging.INFO, json_output=False)
        assert len(logging.getLogger("billing").handlers) == 1
