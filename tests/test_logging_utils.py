from __future__ import annotations

import json
import logging
import unittest

from app.logging_utils import (
    REDACTED,
    JsonFormatter,
    RequestContextFilter,
    bind_request_context,
    redact,
    reset_request_context,
)


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("app.test", logging.INFO, __file__, 1, "something_happened", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class RedactionTests(unittest.TestCase):
    def test_nested_secrets_are_masked(self) -> None:
        cleaned = redact({"user": {"email": "a@b.com", "password_hash": "x"}, "items": [{"token": "t"}]})
        self.assertEqual(cleaned["user"]["email"], "a@b.com")
        self.assertEqual(cleaned["user"]["password_hash"], REDACTED)
        self.assertEqual(cleaned["items"][0]["token"], REDACTED)

    def test_formatter_masks_extra_fields(self) -> None:
        line = JsonFormatter().format(_record(password="hunter2", user_id=7))
        payload = json.loads(line)
        self.assertEqual(payload["message"], "something_happened")
        self.assertEqual(payload["password"], REDACTED)
        self.assertEqual(payload["user_id"], 7)
        self.assertNotIn("hunter2", line)


class RequestContextTests(unittest.TestCase):
    def test_bound_context_is_stamped_until_reset(self) -> None:
        token = bind_request_context(request_id="req-1", path="/api/sos", ignored="x")
        try:
            record = _record()
            RequestContextFilter().filter(record)
            self.assertEqual(record.request_id, "req-1")
            self.assertEqual(record.path, "/api/sos")
            self.assertFalse(hasattr(record, "ignored"))
        finally:
            reset_request_context(token)

        record = _record()
        RequestContextFilter().filter(record)
        self.assertFalse(hasattr(record, "request_id"))

    def test_explicit_fields_win_over_context(self) -> None:
        token = bind_request_context(request_id="req-1")
        try:
            record = _record(request_id="explicit")
            RequestContextFilter().filter(record)
            self.assertEqual(record.request_id, "explicit")
        finally:
            reset_request_context(token)


if __name__ == "__main__":
    unittest.main()
