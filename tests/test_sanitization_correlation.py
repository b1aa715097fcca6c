"""Tests for payload sanitization and correlation scopes."""

from __future__ import annotations

import hashlib

from notify_dispatch.correlation import (
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
)
from notify_dispatch.sanitization import MASK, PayloadSanitizer, default_sanitizer


class TestPayloadSanitizer:
    def test_masks_credentials_recursively(self) -> None:
        payload = {
            "task_name": "Fix",
            "Password": "hunter2",
            "auth": {"api_key": "k", "user": "bob"},
            "tokens": [{"token": "t1"}, {"token": "t2"}],
        }

        clean = default_sanitizer.sanitize(payload)

        assert clean == {
            "task_name": "Fix",
            "Password": MASK,
            "auth": {"api_key": MASK, "user": "bob"},
            "tokens": [{"token": MASK}, {"token": MASK}],
        }
        assert payload["Password"] == "hunter2"

    def test_contact_fields_pass_through(self) -> None:
        payload = {"email": "a@example.com", "phone": "+1", "telegram_id": "9"}

        assert default_sanitizer.sanitize(payload) == payload

    def test_hash_keys(self) -> None:
        sanitizer = PayloadSanitizer(hash_keys=["employee_id"])

        clean = sanitizer.sanitize({"employee_id": 17})

        digest = hashlib.sha256(b"17").hexdigest()
        assert clean == {"employee_id": f"sha256:{digest}"}

    def test_custom_sensitive_keys(self) -> None:
        sanitizer = PayloadSanitizer(sensitive_keys=["salary"])

        assert sanitizer.sanitize({"salary": 1, "password": "p"}) == {
            "salary": MASK,
            "password": "p",
        }


class TestCorrelationScope:
    def test_binds_and_resets(self) -> None:
        assert get_correlation_id() is None

        with correlation_scope() as correlation_id:
            assert get_correlation_id() == correlation_id

        assert get_correlation_id() is None

    def test_nested_scope_reuses_outer_id(self) -> None:
        with correlation_scope("outer") as outer:
            with correlation_scope() as inner:
                assert inner == outer == "outer"

    def test_explicit_id_overrides(self) -> None:
        set_correlation_id("request-1")
        try:
            with correlation_scope("job-1") as bound:
                assert bound == "job-1"
            assert get_correlation_id() == "request-1"
        finally:
            set_correlation_id(None)
