"""
Structured logging tests -- JSON formatter and LogContext propagation.
"""

import json
import logging
from decimal import Decimal
from uuid import uuid4

from portal_kernel.exceptions import VersionConflictError
from portal_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _format(record_msg, *, extra=None, exc=None):
    logger = logging.getLogger("portal_kernel.test")
    exc_info = (type(exc), exc, None) if exc is not None else None
    record = logger.makeRecord(
        logger.name, logging.INFO, __file__, 1, record_msg, (), exc_info, extra=extra,
    )
    return json.loads(StructuredFormatter().format(record))


class TestStructuredFormatter:
    def test_basic_fields(self):
        payload = _format("hello")
        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "portal_kernel.test"
        assert "ts" in payload

    def test_extra_values_serialized(self):
        doc_id = uuid4()
        payload = _format("x", extra={"document_id": doc_id, "qty": Decimal("2.5")})
        assert payload["document_id"] == str(doc_id)
        assert payload["qty"] == "2.5"

    def test_kernel_error_fields(self):
        exc = VersionConflictError("doc-1", 3, 4)
        payload = _format("conflict", exc=exc)
        error = payload["error"]
        assert error["type"] == "VersionConflictError"
        assert error["code"] == "VERSION_CONFLICT"
        assert error["expected_version"] == 3
        assert error["actual_version"] == 4
        assert "traceback" not in payload


class TestLogContext:
    def test_bind_restores(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(document_id=uuid4(), correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
            assert "document_id" in LogContext.get_all()
        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_context_in_records(self):
        batch_id = uuid4()
        with LogContext.bind(batch_id=batch_id):
            payload = _format("inside")
        assert payload["batch_id"] == str(batch_id)

    def test_unknown_keys_ignored(self):
        with LogContext.bind(tenant="x"):
            assert LogContext.get_all() == {}

    def test_none_does_not_overwrite(self):
        LogContext.set(actor_id="a-1")
        with LogContext.bind(actor_id=None, document_id="d-1"):
            assert LogContext.get_all() == {"actor_id": "a-1", "document_id": "d-1"}

    def test_get_logger_namespace(self, captured_logs):
        get_logger("anything").info("namespaced")
        assert any(r["logger"] == "portal_kernel.anything" for r in captured_logs())
