"""
Custom Exceptions for the Inbound Email Relay

All exceptions follow the pattern of specific, actionable errors
with context needed for debugging and logging.

Storage (botocore ClientError) and delivery (httpx.HTTPError) failures are
not wrapped: they propagate unmodified so the Lambda retry policy sees them.
"""

from dataclasses import dataclass
from typing import Any


class MailhookError(Exception):
    """Base exception for the inbound email relay."""

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


@dataclass
class MalformedMessageError(MailhookError):
    """Raw MIME content could not be decoded into a message."""

    reason: str
    source_key: str | None = None

    def __init__(self, reason: str, source_key: str | None = None) -> None:
        self.reason = reason
        self.source_key = source_key
        super().__init__(
            f"Malformed MIME message: {reason}",
            source_key=source_key,
        )


@dataclass
class InvalidTriggerEventError(MailhookError):
    """Trigger event does not describe a stored S3 object."""

    missing: str

    def __init__(self, missing: str) -> None:
        self.missing = missing
        super().__init__(
            f"Invalid S3 trigger event: missing {missing}",
            missing=missing,
        )
