"""Structured logging helpers for DrsHub."""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Mapping

__all__ = ["JSONFormatter", "configure_logging", "mask_sensitive_data"]

_BEARER_RE = re.compile(r"(?i)(bearer\s+)[A-Za-z0-9\-._~+/]+=*")
_SENSITIVE_KEYS = ("authorization", "token", "secret", "private_key", "password", "passport")


def _mask_text(value: str) -> str:
    return _BEARER_RE.sub(r"\1***", value)


def mask_sensitive_data(payload: Any) -> Any:
    """Return ``payload`` with bearer tokens and secret-looking keys masked."""

    if isinstance(payload, Mapping):
        masked = {}
        for key, value in payload.items():
            if isinstance(key, str) and any(marker in key.lower() for marker in _SENSITIVE_KEYS):
                masked[key] = "***" if value is not None else None
            else:
                masked[key] = mask_sensitive_data(value)
        return masked
    if isinstance(payload, (list, tuple)):
        return [mask_sensitive_data(item) for item in payload]
    if isinstance(payload, str):
        return _mask_text(payload)
    return payload


class JSONFormatter(logging.Formatter):
    """Formatter emitting masked JSON log entries."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "drs_url": getattr(record, "drs_url", None),
            "provider": getattr(record, "provider", None),
            "stage": getattr(record, "stage", None),
        }
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            payload.update(record.extra_fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


class _MaskingTextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return _mask_text(super().format(record))


def configure_logging(
    *,
    level: str = "INFO",
    fmt: str = "json",
    propagate: bool = False,
) -> logging.Logger:
    """Install a single managed stream handler on the ``DrsHub`` logger."""

    logger = logging.getLogger("DrsHub")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_drshub_managed", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(_MaskingTextFormatter("%(levelname)s %(name)s: %(message)s"))
    handler._drshub_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)

    logger.propagate = propagate
    return logger
