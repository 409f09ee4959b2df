"""
ForwardInboundEmail Lambda

Relays inbound emails stored in S3 to helpdesk webhooks.
Normalizes the body, stores attachments behind presigned URLs, and posts
a JSON payload to the webhook configured for the recipient.

Flow:
    Inbound Email
    → SES Receipt Rule
    → S3 Bucket (raw MIME)
    → This Lambda
    → Webhook POST
"""

from lambdas.forward_inbound_email.attachment_handler import (
    externalize_attachments,
    store_attachment,
)
from lambdas.forward_inbound_email.content_normalizer import (
    NormalizedContent,
    extract_visible_text,
    html_to_markdown,
    normalize_content,
    text_to_html,
)
from lambdas.forward_inbound_email.email_parser import (
    AttachmentData,
    ParsedMessage,
    parse_email,
)
from lambdas.forward_inbound_email.forward_extractor import (
    ForwardExtraction,
    extract_forwarded,
)
from lambdas.forward_inbound_email.handler import lambda_handler, process_raw_email

__all__ = [
    "AttachmentData",
    "ForwardExtraction",
    "NormalizedContent",
    "ParsedMessage",
    "extract_forwarded",
    "extract_visible_text",
    "externalize_attachments",
    "html_to_markdown",
    "lambda_handler",
    "normalize_content",
    "parse_email",
    "process_raw_email",
    "store_attachment",
    "text_to_html",
]
