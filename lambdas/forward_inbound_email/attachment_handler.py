"""
Attachment Handler Module

Stores email attachments to S3 and replaces them in the payload with
presigned download URLs.

Uploads run concurrently on a thread pool. The first failure cancels the
uploads that have not started yet and is re-raised: a payload is never
delivered with some of its attachments missing.
"""

import os
import re
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait

import structlog

from lambdas.forward_inbound_email.email_parser import AttachmentData
from mailhook.config import get_settings
from mailhook.models.payload import ExternalizedAttachment
from mailhook.tools.s3 import generate_download_url, get_s3_client, put_object

log = structlog.get_logger()

MAX_FILENAME_LENGTH = 200
WHITESPACE_PATTERN = re.compile(r"\s")


def _sanitize_filename(filename: str) -> str:
    """
    Sanitize filename for S3 storage.

    - Removes path components (Unix and Windows)
    - Replaces every whitespace character with "_"
    - Limits length
    """
    # Normalize Windows backslashes to forward slashes for cross-platform support
    normalized = filename.replace("\\", "/")
    safe_name = os.path.basename(normalized) or "attachment"

    safe_name = WHITESPACE_PATTERN.sub("_", safe_name)

    if len(safe_name) > MAX_FILENAME_LENGTH:
        name_part = safe_name[:150]
        suffix = os.path.splitext(safe_name)[1][:MAX_FILENAME_LENGTH - 150]
        safe_name = f"{name_part}{suffix}"

    return safe_name


def _build_s3_key(filename: str, prefix: str | None = None) -> str:
    """
    Build S3 key for attachment storage.

    Format: {prefix}{nanosecond timestamp}_{filename}
    """
    key_prefix = get_settings().attachment_prefix if prefix is None else prefix
    return f"{key_prefix}{time.time_ns()}_{_sanitize_filename(filename)}"


def store_attachment(
    attachment: AttachmentData,
    *,
    client=None,
    bucket: str | None = None,
    prefix: str | None = None,
    expires_in: int | None = None,
) -> ExternalizedAttachment:
    """
    Upload one attachment and presign a download URL for it.

    Args:
        attachment: Raw attachment data from email parse
        client: S3 client to reuse (one is created otherwise)
        bucket: Override S3 bucket name
        prefix: Override S3 key prefix
        expires_in: Override URL lifetime in seconds

    Returns:
        ExternalizedAttachment for the webhook payload

    Raises:
        ClientError: If the S3 upload or presign fails
    """
    settings = get_settings()
    s3_bucket = bucket or settings.attachment_bucket
    s3_key = _build_s3_key(attachment.filename, prefix)
    ttl = expires_in or settings.attachment_url_ttl_seconds
    client = client or get_s3_client()

    log.info(
        "storing_attachment",
        filename=attachment.filename,
        bucket=s3_bucket,
        key=s3_key,
        content_type=attachment.content_type,
        size_bytes=attachment.size_bytes,
    )

    put_object(s3_bucket, s3_key, attachment.content, attachment.content_type, client=client)
    url = generate_download_url(s3_bucket, s3_key, ttl, client=client)

    log.info("attachment_stored", bucket=s3_bucket, key=s3_key)

    return ExternalizedAttachment(
        url=url,
        cid=attachment.cid,
        filename=attachment.filename,
        content_type=attachment.content_type,
        content_disposition=attachment.content_disposition,
    )


def externalize_attachments(
    attachments: list[AttachmentData],
    *,
    client=None,
    bucket: str | None = None,
    prefix: str | None = None,
    max_workers: int | None = None,
) -> list[ExternalizedAttachment]:
    """
    Store all attachments of an email concurrently.

    Returns:
        ExternalizedAttachment list in the same order as the input

    Raises:
        Exception: The first upload failure, after pending uploads are cancelled
    """
    if not attachments:
        return []

    client = client or get_s3_client()
    workers = max_workers or get_settings().attachment_upload_workers

    with ThreadPoolExecutor(max_workers=min(workers, len(attachments))) as pool:
        futures = [
            pool.submit(
                store_attachment,
                attachment,
                client=client,
                bucket=bucket,
                prefix=prefix,
            )
            for attachment in attachments
        ]

        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in pending:
            future.cancel()

        for attachment, future in zip(attachments, futures):
            if future in done and future.exception() is not None:
                log.error(
                    "attachment_processing_failed",
                    filename=attachment.filename,
                    error=str(future.exception()),
                    cancelled_count=sum(1 for f in pending if f.cancelled()),
                )
                raise future.exception()

    stored = [future.result() for future in futures]

    log.info("attachments_processed", stored_count=len(stored))

    return stored
