"""
Tests for structured logging middleware.
Covers masking of credentials and contact details, request ids and probe skipping.
"""

import json
import logging
import sys

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from core.middleware.logging import (
    StructuredFormatter,
    StructuredLoggingMiddleware,
    mask_headers,
    mask_sensitive_data,
    should_log_request,
)


class TestMasking:
    def test_sensitive_fields(self):
        masked = mask_sensitive_data({
            "response": "accepted",
            "access_token": "eyJ.abc.def",
            "nested": {"apiKey": "k", "proposedHourlyRate": 45},
        })

        assert masked == {
            "response": "accepted",
            "access_token": "[REDACTED]",
            "nested": {"apiKey": "[REDACTED]", "proposedHourlyRate": 45},
        }

    def test_contact_details_in_free_text(self):
        masked = mask_sensitive_data({"message": "Reach me at jane@example.com or 512-555-0100"})

        assert masked["message"] == "Reach me at [EMAIL] or [PHONE]"

    def test_lists(self):
        assert mask_sensitive_data(["a@b.io", 3]) == ["[EMAIL]", 3]

    def test_max_depth(self):
        data = current = {}
        for _ in range(15):
            current["child"] = {}
            current = current["child"]

        assert "[MAX_DEPTH_EXCEEDED]" in json.dumps(mask_sensitive_data(data))

    def test_authorization_keeps_scheme(self):
        masked = mask_headers({
            "Authorization": "Bearer eyJ.abc.def",
            "X-Amz-Security-Token": "tok",
            "Content-Type": "application/json",
        })

        assert masked == {
            "Authorization": "Bearer [REDACTED]",
            "X-Amz-Security-Token": "[REDACTED]",
            "Content-Type": "application/json",
        }

    @pytest.mark.parametrize("path,expected", [
        ("/health", False),
        ("/ready", False),
        ("/jobs/j-1/apply", True),
    ])
    def test_probe_paths_skipped(self, path, expected):
        assert should_log_request(path) is expected


@pytest.fixture
def client():
    app = FastAPI()
    app.add_middleware(StructuredLoggingMiddleware, log_request_body=True)

    @app.post("/jobs/{job_id}/apply")
    async def apply(job_id: str, request: Request):
        return {"jobId": job_id, "requestId": request.state.request_id}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return TestClient(app)


def _events(caplog, name):
    events = []
    for record in caplog.records:
        try:
            payload = json.loads(record.getMessage())
        except ValueError:
            continue
        if isinstance(payload, dict) and payload.get("event") == name:
            events.append(payload)
    return events


class TestStructuredLoggingMiddleware:
    def test_generates_request_id(self, client):
        response = client.post("/jobs/j-1/apply", json={})

        request_id = response.headers["x-request-id"]
        assert request_id
        assert response.json()["requestId"] == request_id

    def test_propagates_request_id(self, client):
        response = client.post("/jobs/j-1/apply", json={}, headers={"x-request-id": "abc-123"})
        assert response.headers["x-request-id"] == "abc-123"

    def test_logs_masked_request(self, client, caplog):
        caplog.set_level(logging.INFO, logger="core.middleware.logging")

        client.post(
            "/jobs/j-1/apply",
            json={"message": "call 512-555-0100", "proposedRate": 45},
            headers={"Authorization": "Bearer secret.jwt.value"},
        )

        started = _events(caplog, "request_started")[0]
        assert started["headers"]["authorization"] == "Bearer [REDACTED]"
        assert started["body"] == {"message": "call [PHONE]", "proposedRate": 45}

        completed = _events(caplog, "request_completed")[0]
        assert completed["status_code"] == 200
        assert completed["user_sub"] is None
        assert "secret.jwt.value" not in caplog.text

    def test_health_not_logged(self, client, caplog):
        caplog.set_level(logging.INFO, logger="core.middleware.logging")

        response = client.get("/health")

        assert response.headers["x-request-id"]
        assert _events(caplog, "request_started") == []


class TestStructuredFormatter:
    def test_json_output(self):
        record = logging.LogRecord("svc", logging.INFO, __file__, 1, "hello", None, None)
        record.request_id = "req-1"

        output = json.loads(StructuredFormatter().format(record))

        assert output["message"] == "hello"
        assert output["level"] == "INFO"
        assert output["request_id"] == "req-1"

    def test_exception_info(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord("svc", logging.ERROR, __file__, 1, "oops", None, sys.exc_info())

        output = json.loads(StructuredFormatter().format(record))
        assert output["exception"]["type"] == "ValueError"
