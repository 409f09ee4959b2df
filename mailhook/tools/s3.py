"""
S3 Tools

Thin wrappers over the boto3 S3 client for reading inbound MIME objects
and storing attachments behind presigned URLs.

ClientError is logged and re-raised unchanged.
"""

from collections.abc import Iterator

import boto3
import structlog
from botocore.exceptions import ClientError

from mailhook.config import get_settings

log = structlog.get_logger()

STREAM_CHUNK_SIZE = 64 * 1024


def get_s3_client():
    """Get S3 client with optional endpoint override for local dev."""
    settings = get_settings()
    return boto3.client("s3", **settings.s3_config)


def open_object_stream(
    bucket: str,
    key: str,
    *,
    client=None,
    chunk_size: int = STREAM_CHUNK_SIZE,
) -> Iterator[bytes]:
    """
    Stream the body of an S3 object in chunks.

    The GetObject call happens immediately so a missing object fails here,
    not halfway through parsing.

    Raises:
        ClientError: If S3 get fails
    """
    client = client or get_s3_client()

    log.info("fetching_object", bucket=bucket, key=key)

    try:
        response = client.get_object(Bucket=bucket, Key=key)
    except ClientError as e:
        log.error("s3_fetch_failed", bucket=bucket, key=key, error=str(e))
        raise

    log.debug(
        "object_stream_opened",
        bucket=bucket,
        key=key,
        content_length=response.get("ContentLength"),
    )

    return response["Body"].iter_chunks(chunk_size=chunk_size)


def put_object(
    bucket: str,
    key: str,
    content: bytes,
    content_type: str,
    *,
    client=None,
) -> None:
    """
    Upload bytes to S3.

    Raises:
        ClientError: If S3 upload fails
    """
    client = client or get_s3_client()

    try:
        client.put_object(
            Bucket=bucket,
            Key=key,
            Body=content,
            ContentType=content_type,
        )
    except ClientError as e:
        log.error("s3_upload_failed", bucket=bucket, key=key, error=str(e))
        raise


def generate_download_url(
    bucket: str,
    key: str,
    expires_in: int,
    *,
    client=None,
) -> str:
    """
    Generate a presigned GET URL for an object.

    Raises:
        ClientError: If presigning fails
    """
    client = client or get_s3_client()

    try:
        url = client.generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=expires_in,
        )
    except ClientError as e:
        log.error("presign_failed", bucket=bucket, key=key, error=str(e))
        raise

    log.debug("presigned_url_generated", bucket=bucket, key=key, expires_in=expires_in)

    return url
