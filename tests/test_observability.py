"""Tests for structured logging and the metric recording helpers."""

import json
import logging
import sys

from prometheus_client import REGISTRY

from bucketdav import metrics
from bucketdav.logging_config import (
    JSONFormatter,
    RequestContextFilter,
    TextFormatter,
    configure_logging,
    request_id_var,
)


def _record(msg: str = "hello %s", args=("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="bucketdav.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_base_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "bucketdav.test"
        assert entry["message"] == "hello world"
        assert entry["timestamp"].endswith("+00:00")
        assert "http" not in entry
        assert "tree" not in entry
        assert "request_id" not in entry

    def test_access_fields_grouped(self):
        record = _record(method="GET", path="/a", status=200, duration_ms=1.5, request_id="ab")
        entry = json.loads(JSONFormatter().format(record))
        assert entry["request_id"] == "ab"
        assert entry["http"] == {"method": "GET", "path": "/a", "status": 200, "duration_ms": 1.5}

    def test_tree_fields_grouped(self):
        record = _record(operation="copy", source="a", destination="b", entries=12, skipped=0)
        entry = json.loads(JSONFormatter().format(record))
        assert entry["tree"] == {
            "operation": "copy",
            "source": "a",
            "destination": "b",
            "entries": 12,
            "skipped": 0,
        }

    def test_unknown_extras_are_dropped(self):
        entry = json.loads(JSONFormatter().format(_record(secret="x")))
        assert "secret" not in entry

    def test_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


class TestTextFormatter:
    def test_prefixes_request_id(self):
        line = TextFormatter().format(_record(request_id="ab12"))
        assert line.startswith("[ab12] ")
        assert line.endswith("INFO bucketdav.test: hello world")

    def test_without_request_id(self):
        assert not TextFormatter().format(_record()).startswith("[")


class TestRequestContextFilter:
    def test_stamps_current_request_id(self):
        token = request_id_var.set("req-1")
        try:
            record = _record()
            assert RequestContextFilter().filter(record)
        finally:
            request_id_var.reset(token)
        assert record.request_id == "req-1"

    def test_keeps_explicit_request_id(self):
        token = request_id_var.set("req-1")
        try:
            record = _record(request_id="explicit")
            RequestContextFilter().filter(record)
        finally:
            request_id_var.reset(token)
        assert record.request_id == "explicit"

    def test_outside_requests(self):
        record = _record()
        RequestContextFilter().filter(record)
        assert record.request_id is None


class TestConfigureLogging:
    def test_json_format(self):
        root = logging.getLogger()
        saved = root.handlers[:], root.level
        try:
            configure_logging("DEBUG", "json")
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            handler = root.handlers[0]
            assert isinstance(handler.formatter, JSONFormatter)
            assert any(isinstance(f, RequestContextFilter) for f in handler.filters)
        finally:
            root.handlers[:] = saved[0]
            root.setLevel(saved[1])

    def test_text_format_and_unknown_level(self):
        root = logging.getLogger()
        saved = root.handlers[:], root.level
        try:
            configure_logging("NOPE", "text")
            assert root.level == logging.INFO
            assert isinstance(root.handlers[0].formatter, TextFormatter)
        finally:
            root.handlers[:] = saved[0]
            root.setLevel(saved[1])


class TestMetricHelpers:
    """The session app has already called init_metrics()."""

    def _value(self, name: str, labels: dict[str, str]) -> float:
        return REGISTRY.get_sample_value(name, labels) or 0.0

    def test_init_is_idempotent(self, app):
        counter = metrics.dav_operations_total
        metrics.init_metrics()
        assert metrics.dav_operations_total is counter

    def test_record_operation(self, app):
        labels = {"method": "MKCOL", "status": "599"}
        before = self._value("bucketdav_dav_operations_total", labels)
        metrics.record_operation("MKCOL", 599)
        assert self._value("bucketdav_dav_operations_total", labels) == before + 1

    def test_record_tree_entries_ignores_zero(self, app):
        labels = {"operation": "delete"}
        before = self._value("bucketdav_tree_entries_total", labels)
        metrics.record_tree_entries("delete", 0)
        assert self._value("bucketdav_tree_entries_total", labels) == before
        metrics.record_tree_entries("delete", 3)
        assert self._value("bucketdav_tree_entries_total", labels) == before + 3

    def test_record_tree_skip(self, app):
        labels = {"operation": "move"}
        before = self._value("bucketdav_tree_entries_skipped_total", labels)
        metrics.record_tree_skip("move")
        assert self._value("bucketdav_tree_entries_skipped_total", labels) == before + 1
