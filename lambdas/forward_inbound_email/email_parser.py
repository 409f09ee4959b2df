"""
Email Parser Module

Decodes a raw MIME stream into a ParsedMessage: address headers, the
preferred text and HTML bodies, and every other part as an attachment.

Input may be bytes, a binary file object, or an iterable of byte chunks
(the S3 StreamingBody is consumed chunk by chunk).
"""

import mimetypes
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timezone
from email import errors as email_errors
from email.message import EmailMessage
from email.parser import BytesFeedParser
from email.policy import default as default_policy
from typing import BinaryIO

import structlog

from mailhook.exceptions import MalformedMessageError
from mailhook.models.payload import AddressRecord

log = structlog.get_logger()

READ_CHUNK_SIZE = 64 * 1024
BODY_FRAGMENT_TYPES = ("text/plain", "text/html")


@dataclass
class AttachmentData:
    """Raw attachment data from email parse."""

    filename: str
    content: bytes
    content_type: str
    content_disposition: str = "attachment"
    cid: str | None = None

    @property
    def size_bytes(self) -> int:
        return len(self.content)


@dataclass
class ParsedMessage:
    """Result of decoding an inbound email."""

    subject: str = ""
    message_id: str = ""
    date: str | None = None
    from_addresses: list[AddressRecord] = field(default_factory=list)
    to: list[AddressRecord] = field(default_factory=list)

    # Lowercased header name -> first value
    headers: dict[str, str] = field(default_factory=dict)

    # Plain body; replaced by the HTML conversion during normalization
    text: str = ""
    html: str | None = None

    attachments: list[AttachmentData] = field(default_factory=list)

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower())

    @property
    def primary_recipient(self) -> AddressRecord | None:
        """First To mailbox with a non-empty address."""
        for record in self.to:
            if record.address:
                return record
        return None


def _iter_chunks(source: bytes | BinaryIO | Iterable[bytes]) -> Iterable[bytes]:
    if isinstance(source, (bytes, bytearray)):
        yield bytes(source)
    elif hasattr(source, "read"):
        while chunk := source.read(READ_CHUNK_SIZE):
            yield chunk
    else:
        yield from source


def _decode_text(part: EmailMessage) -> str:
    """Decode a text part, tolerating unknown or lying charsets."""
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError):
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def _address_records(msg: EmailMessage, header_name: str) -> list[AddressRecord]:
    header = msg.get(header_name)
    if header is None:
        return []

    addresses = getattr(header, "addresses", None)
    if addresses is None:
        return []

    return [
        AddressRecord(name=addr.display_name or "", address=addr.addr_spec or "")
        for addr in addresses
    ]


def _format_date(msg: EmailMessage) -> str | None:
    header = msg.get("Date")
    value = getattr(header, "datetime", None)
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _collect_headers(msg: EmailMessage) -> dict[str, str]:
    headers: dict[str, str] = {}
    for name, value in msg.items():
        headers.setdefault(name.lower(), str(value))
    return headers


def _iter_leaf_parts(part: EmailMessage) -> Iterable[EmailMessage]:
    """Walk the MIME tree, keeping attached messages whole."""
    if part.get_content_type() == "message/rfc822":
        yield part
    elif part.is_multipart():
        for child in part.iter_parts():
            yield from _iter_leaf_parts(child)
    else:
        yield part


def _default_filename(content_type: str) -> str:
    extension = mimetypes.guess_extension(content_type) or ".bin"
    return f"attachment{extension}"


def _extract_attachment(part: EmailMessage) -> AttachmentData:
    content_type = part.get_content_type()

    if content_type == "message/rfc822":
        inner = part.get_payload()
        content = inner[0].as_bytes() if inner else b""
    else:
        content = part.get_payload(decode=True) or b""

    cid = part.get("Content-ID")
    if cid:
        cid = str(cid).strip().strip("<>")

    return AttachmentData(
        filename=part.get_filename() or _default_filename(content_type),
        content=content,
        content_type=content_type,
        content_disposition=part.get_content_disposition() or "attachment",
        cid=cid or None,
    )


def _extract_attachments(
    msg: EmailMessage,
    body_parts: list[EmailMessage],
) -> list[AttachmentData]:
    """
    Every leaf part that is not a chosen body becomes an attachment.

    A single-part message that is not a body (e.g. a bare PDF from a
    scanner) is itself the attachment. Unnamed inline text/plain and
    text/html parts (e.g. a second alternative) are body fragments; other
    text types such as text/calendar are kept.
    """
    attachments: list[AttachmentData] = []

    for part in _iter_leaf_parts(msg):
        if any(part is body for body in body_parts):
            continue

        if (
            part.get_content_type() in BODY_FRAGMENT_TYPES
            and part.get_content_disposition() != "attachment"
            and not part.get_filename()
        ):
            continue

        attachment = _extract_attachment(part)
        attachments.append(attachment)

        log.debug(
            "extracted_attachment",
            filename=attachment.filename,
            content_type=attachment.content_type,
            size_bytes=attachment.size_bytes,
        )

    return attachments


def parse_email(
    source: bytes | BinaryIO | Iterable[bytes],
    *,
    source_key: str | None = None,
) -> ParsedMessage:
    """
    Decode raw MIME content into a ParsedMessage.

    Args:
        source: Raw bytes, a binary stream, or an iterable of byte chunks
        source_key: Object key, used only for error context

    Returns:
        ParsedMessage with headers, bodies and attachments

    Raises:
        MalformedMessageError: If the content is empty or has no usable headers
    """
    parser = BytesFeedParser(policy=default_policy)
    size_bytes = 0

    for chunk in _iter_chunks(source):
        size_bytes += len(chunk)
        parser.feed(chunk)

    msg = parser.close()

    if size_bytes == 0:
        raise MalformedMessageError("empty message", source_key=source_key)
    if not msg.keys():
        raise MalformedMessageError("no headers found", source_key=source_key)

    try:
        headers = _collect_headers(msg)
        from_addresses = _address_records(msg, "From")
        to = _address_records(msg, "To")
        date = _format_date(msg)
    except (email_errors.HeaderParseError, ValueError, IndexError) as e:
        log.error("email_header_parse_failed", source_key=source_key, error=str(e))
        raise MalformedMessageError(f"undecodable headers: {e}", source_key=source_key) from e

    text_part = msg.get_body(preferencelist=("plain",))
    html_part = msg.get_body(preferencelist=("html",))
    body_parts = [part for part in (text_part, html_part) if part is not None]

    parsed = ParsedMessage(
        subject=str(msg.get("Subject", "") or ""),
        message_id=str(msg.get("Message-ID", "") or "").strip(),
        date=date,
        from_addresses=from_addresses,
        to=to,
        headers=headers,
        text=_decode_text(text_part) if text_part is not None else "",
        html=_decode_text(html_part) if html_part is not None else None,
        attachments=_extract_attachments(msg, body_parts),
    )

    if msg.defects:
        log.warning(
            "email_parse_defects",
            source_key=source_key,
            defects=[type(defect).__name__ for defect in msg.defects],
        )

    log.debug(
        "email_decoded",
        source_key=source_key,
        size_bytes=size_bytes,
        has_html=parsed.html is not None,
        attachment_count=len(parsed.attachments),
    )

    return parsed
