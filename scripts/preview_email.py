#!/usr/bin/env python3
"""
Preview Script: Inbound Email Relay

Runs the relay pipeline over a local MIME file without touching S3 or
the webhook, and prints the route and the payload that would be posted.
Attachments are listed with placeholder URLs instead of being uploaded.

Usage:
    # Preview a saved message
    python scripts/preview_email.py tests/fixtures/sample_in.eml

    # Substitute the TEST_EMAIL_ADDRESS placeholder in a template
    python scripts/preview_email.py tests/fixtures/sample_in.eml --recipient support@example.com

Routes and credentials come from the same MAILHOOK_* environment (or .env)
as the Lambda.
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from lambdas.forward_inbound_email.content_normalizer import normalize_content  # noqa: E402
from lambdas.forward_inbound_email.email_parser import parse_email  # noqa: E402
from lambdas.forward_inbound_email.handler import (  # noqa: E402
    FORWARDED_TO_HEADER,
    build_delivery_headers,
    build_outbound_payload,
)
from mailhook.models.payload import ExternalizedAttachment  # noqa: E402
from mailhook.routing import get_address_router  # noqa: E402

PLACEHOLDER = "TEST_EMAIL_ADDRESS"


def load_message(path: Path, recipient: str | None) -> bytes:
    raw = path.read_bytes()
    if recipient:
        raw = raw.replace(PLACEHOLDER.encode("ascii"), recipient.encode("utf-8"))
    return raw


def preview(raw: bytes, source_key: str) -> dict:
    """Build the preview document for one message."""
    message = parse_email(raw, source_key=source_key)
    recipient = message.primary_recipient
    forwarded_to = message.header(FORWARDED_TO_HEADER)

    webhook_url = None
    if recipient:
        webhook_url = get_address_router().resolve(recipient.address, forwarded_to)

    content = normalize_content(message)
    attachments = [
        ExternalizedAttachment(
            url=f"<not uploaded: {attachment.size_bytes} bytes>",
            cid=attachment.cid,
            filename=attachment.filename,
            content_type=attachment.content_type,
            content_disposition=attachment.content_disposition,
        )
        for attachment in message.attachments
    ]
    payload = build_outbound_payload(message, content, attachments)

    headers = build_delivery_headers(webhook_url) if webhook_url else {}
    if "Authorization" in headers:
        headers["Authorization"] = "Basic ***"

    return {
        "recipient": recipient.address if recipient else None,
        "forwarded_to": forwarded_to,
        "webhook_url": webhook_url,
        "headers": headers,
        "visible_text": content.visible_text,
        "payload": json.loads(payload.to_json()),
    }


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Preview the webhook payload for a local MIME file",
    )
    parser.add_argument("path", type=Path, help="Path to a raw MIME (.eml) file")
    parser.add_argument(
        "--recipient",
        help=f"Replace every {PLACEHOLDER} placeholder with this address",
    )
    args = parser.parse_args()

    if not args.path.is_file():
        parser.error(f"File not found: {args.path}")

    raw = load_message(args.path, args.recipient)
    result = preview(raw, source_key=args.path.name)

    print(json.dumps(result, indent=2))
    if not result["webhook_url"]:
        print("\nNo route configured for this message; the Lambda would skip it.", file=sys.stderr)


if __name__ == "__main__":
    main()
