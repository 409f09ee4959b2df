"""
ForwardInboundEmail Lambda Handler

Main entry point for relaying inbound emails to helpdesk webhooks.

Trigger: S3 ObjectCreated notification for a raw MIME message (SES receipt rule → S3)
Output: HTTP POST of {"payload": "<json>"} to the webhook routed by recipient

Flow:
1. Stream the MIME object from S3 and decode it
2. Resolve the webhook from the To address (or X-Forwarded-To)
3. Normalize the body (HTML → Markdown, strip quoted history, detect forwards)
4. Store attachments to S3 behind presigned URLs
5. POST the payload with the optional custom header and Basic credentials

Messages without a recipient or without a configured route are skipped.
Decode, storage and delivery failures are re-raised so Lambda retries them.
"""

import json
import logging
from collections.abc import Iterable
from enum import Enum
from typing import Any, BinaryIO
from urllib.parse import unquote_plus

import structlog

from lambdas.forward_inbound_email.attachment_handler import externalize_attachments
from lambdas.forward_inbound_email.content_normalizer import (
    NormalizedContent,
    normalize_content,
)
from lambdas.forward_inbound_email.email_parser import ParsedMessage, parse_email
from mailhook.config import get_settings
from mailhook.exceptions import InvalidTriggerEventError
from mailhook.models.payload import ExternalizedAttachment, OutboundPayload
from mailhook.routing import get_address_router, get_credential_resolver
from mailhook.tools.s3 import open_object_stream
from mailhook.tools.webhook import post_payload

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)
logging.basicConfig(format="%(message)s")
logging.getLogger().setLevel(get_settings().effective_log_level)

log = structlog.get_logger()

FORWARDED_TO_HEADER = "x-forwarded-to"


class SkipReason(str, Enum):
    """Why a message was accepted without delivery."""

    NO_RECIPIENT = "no_recipient"
    NO_ROUTE = "no_route"


def build_outbound_payload(
    message: ParsedMessage,
    content: NormalizedContent,
    attachments: list[ExternalizedAttachment],
) -> OutboundPayload:
    """Combine the decoded message, its normalized body and stored attachments."""
    return OutboundPayload(
        date=message.date,
        subject=message.subject,
        body_text=content.body_html,
        message_id=message.message_id,
        from_=message.from_addresses,
        to=message.to,
        forwarded=content.forwarded,
        attachments=attachments,
        is_markdown=content.is_markdown,
    )


def build_delivery_headers(webhook_url: str) -> dict[str, str]:
    """
    Headers for the webhook request.

    Adds the configured fixed header (if any) and an Authorization header
    when the webhook host has Basic credentials.
    """
    settings = get_settings()
    headers: dict[str, str] = {}

    if settings.custom_header_name:
        headers[settings.custom_header_name] = settings.custom_header_value

    credential = get_credential_resolver().lookup_url(webhook_url)
    if credential:
        headers["Authorization"] = credential.authorization_header()

    return headers


def _skipped(source_key: str | None, reason: SkipReason) -> dict[str, Any]:
    return {"key": source_key, "status": "skipped", "reason": reason.value}


def process_raw_email(
    source: bytes | BinaryIO | Iterable[bytes],
    *,
    source_key: str | None = None,
) -> dict[str, Any]:
    """
    Run the relay pipeline over one raw MIME message.

    Returns:
        Result dict with status "delivered" or "skipped"
    """
    message = parse_email(source, source_key=source_key)

    recipient = message.primary_recipient
    if recipient is None:
        log.info("no_recipient_address", source_key=source_key)
        return _skipped(source_key, SkipReason.NO_RECIPIENT)

    forwarded_to = message.header(FORWARDED_TO_HEADER)
    webhook_url = get_address_router().resolve(recipient.address, forwarded_to)
    if not webhook_url:
        log.info(
            "no_route_for_recipient",
            source_key=source_key,
            to=recipient.address,
            forwarded_to=forwarded_to,
        )
        return _skipped(source_key, SkipReason.NO_ROUTE)

    log.info(
        "email_parsed",
        source_key=source_key,
        to=recipient.address,
        subject=message.subject,
        has_html=message.html is not None,
        attachment_count=len(message.attachments),
    )

    content = normalize_content(message)
    attachments = externalize_attachments(message.attachments)
    payload = build_outbound_payload(message, content, attachments)

    response = post_payload(
        webhook_url,
        payload.to_json(),
        headers=build_delivery_headers(webhook_url),
    )

    return {
        "key": source_key,
        "status": "delivered",
        "webhook_url": webhook_url,
        "attachments": len(attachments),
        "status_code": response.status_code,
    }


def process_s3_object(bucket: str, key: str) -> dict[str, Any]:
    """Fetch a stored MIME object and relay it."""
    stream = open_object_stream(bucket, key)
    return process_raw_email(stream, source_key=key)


def _extract_s3_location(record: dict[str, Any]) -> tuple[str, str]:
    """
    Extract bucket/key from an S3 event record.

    Keys in S3 notifications are URL-encoded ("+" for spaces).
    """
    s3_data = record.get("s3") or {}
    bucket = (s3_data.get("bucket") or {}).get("name")
    key = (s3_data.get("object") or {}).get("key")

    if not bucket:
        raise InvalidTriggerEventError("s3.bucket.name")
    if not key:
        raise InvalidTriggerEventError("s3.object.key")

    return bucket, unquote_plus(key)


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    AWS Lambda handler for S3-stored inbound emails.

    Args:
        event: S3 ObjectCreated notification
        context: Lambda context

    Returns:
        Response dict with one result per record

    Raises:
        Exception: Any decode, storage or delivery failure, unchanged
    """
    request_id = getattr(context, "aws_request_id", "local")
    records = event.get("Records") or []

    log.info(
        "processing_inbound_email",
        request_id=request_id,
        record_count=len(records),
    )

    if not records:
        raise InvalidTriggerEventError("Records")

    results = []
    for record in records:
        bucket = key = None
        try:
            bucket, key = _extract_s3_location(record)
            results.append(process_s3_object(bucket, key))
        except Exception:
            log.error(
                "unhandled_error",
                request_id=request_id,
                bucket=bucket,
                key=key,
                exc_info=True,
            )
            raise

    return {
        "statusCode": 200,
        "body": json.dumps({"results": results}),
    }
