"""Logging setup with bearer-token redaction.

Every record passing through the root handler is scrubbed of
``Bearer <token>`` values, so access tokens forwarded by callers never reach
the log sink even when an exception message or header dump contains one.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping

_BEARER_PATTERN = re.compile(r"(?i)(bearer\s+)[\w\-.~+/=^]+")
_REDACTED = "[redacted]"
_SENSITIVE_HEADERS = {"authorization", "proxy-authorization", "cookie"}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def redact_text(text: str) -> str:
    """Mask bearer tokens inside free text."""
    return _BEARER_PATTERN.sub(rf"\g<1>{_REDACTED}", text)


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy of ``headers`` with credential-bearing values replaced."""
    return {
        k: (_REDACTED if k.lower() in _SENSITIVE_HEADERS else v)
        for k, v in headers.items()
    }


class RedactingFilter(logging.Filter):
    """Rewrites each record's message with bearer tokens masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        redacted = redact_text(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """Install a single redacting stream handler on the root logger."""
    root = logging.getLogger()
    for handler in root.handlers:
        if getattr(handler, "_meli_proxy", False):
            root.setLevel(level)
            return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RedactingFilter())
    handler._meli_proxy = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)
