"""
Pytest Configuration and Shared Fixtures

Provides moto AWS mocking, sample S3 events, MIME builders and cache resets.
"""

import json
import os
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Callable
from unittest.mock import MagicMock, patch

import boto3
import pytest
from moto import mock_aws

# Set test environment before importing application modules
os.environ["MAILHOOK_ROUTES"] = json.dumps(
    {
        "support@example.com": "https://example.com/hook/1",
        "support@another.com": "https://another.com/hook/2",
    }
)
os.environ["MAILHOOK_DOMAIN_CREDENTIALS"] = json.dumps(
    {
        "example.com": {
            "username_var": "EXAMPLE_COM_USER",
            "password_var": "EXAMPLE_COM_PASS",
        },
    }
)
os.environ["EXAMPLE_COM_USER"] = "u1"
os.environ["EXAMPLE_COM_PASS"] = "p1"
os.environ["MAILHOOK_ATTACHMENT_BUCKET"] = "test-email-attachments"
os.environ["MAILHOOK_AWS_REGION"] = "us-east-1"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ.pop("CUSTOM_AUTH_HEADER", None)
os.environ.pop("MAILHOOK_CUSTOM_HEADER_NAME", None)

INBOUND_BUCKET = "test-inbound-emails"
ATTACHMENT_BUCKET = "test-email-attachments"
FIXTURES_DIR = Path(__file__).parent / "fixtures"


# --- Cache Fixtures ---


@pytest.fixture(autouse=True)
def reset_caches():
    """Rebuild settings and routing tables for every test."""
    from mailhook.config import get_settings
    from mailhook.routing import get_address_router, get_credential_resolver

    get_settings.cache_clear()
    get_address_router.cache_clear()
    get_credential_resolver.cache_clear()
    yield
    get_settings.cache_clear()
    get_address_router.cache_clear()
    get_credential_resolver.cache_clear()


# --- AWS Mocking Fixtures ---


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    return {
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        "region_name": "us-east-1",
    }


@pytest.fixture
def mock_s3(aws_credentials):
    """Create mocked inbound and attachment buckets."""
    with mock_aws():
        s3 = boto3.client("s3", **aws_credentials)
        s3.create_bucket(Bucket=INBOUND_BUCKET)
        s3.create_bucket(Bucket=ATTACHMENT_BUCKET)
        yield s3


@pytest.fixture
def mock_post():
    """Patch webhook delivery in the handler."""
    with patch("lambdas.forward_inbound_email.handler.post_payload") as post:
        post.return_value = MagicMock(status_code=200)
        yield post


# --- MIME Fixtures ---


@pytest.fixture
def make_email() -> Callable[..., bytes]:
    """
    Build raw MIME bytes.

    Attachments are (filename, content, maintype, subtype) tuples.
    """

    def _make_email(
        *,
        to: str | None = "support@example.com",
        subject: str = "Cannot reset my password",
        text: str | None = "Hi, the reset link has expired.",
        html: str | None = None,
        headers: dict[str, str] | None = None,
        attachments: list[tuple[str, bytes, str, str]] | None = None,
        date: str | None = "Mon, 06 Jan 2025 10:30:00 +0000",
    ) -> bytes:
        msg = EmailMessage()
        msg["From"] = "Jane Customer <jane@customer.com>"
        if to:
            msg["To"] = to
        msg["Subject"] = subject
        if date:
            msg["Date"] = date
        msg["Message-ID"] = "<abc123@mail.customer.com>"
        for name, value in (headers or {}).items():
            msg[name] = value

        if text is not None:
            msg.set_content(text)
            if html is not None:
                msg.add_alternative(html, subtype="html")
        elif html is not None:
            msg.set_content(html, subtype="html")
        else:
            msg.set_content("")

        for filename, content, maintype, subtype in attachments or []:
            msg.add_attachment(content, maintype=maintype, subtype=subtype, filename=filename)

        return msg.as_bytes()

    return _make_email


@pytest.fixture
def sample_template() -> bytes:
    """Sample MIME message with a TEST_EMAIL_ADDRESS placeholder recipient."""
    return (FIXTURES_DIR / "sample_in.eml").read_bytes()


# --- Event Fixtures ---


@pytest.fixture
def s3_event() -> Callable[..., dict[str, Any]]:
    """Build an S3 ObjectCreated notification."""

    def _s3_event(key: str, bucket: str = INBOUND_BUCKET) -> dict[str, Any]:
        return {
            "Records": [
                {
                    "eventSource": "aws:s3",
                    "eventName": "ObjectCreated:Put",
                    "s3": {
                        "bucket": {"name": bucket},
                        "object": {"key": key},
                    },
                }
            ]
        }

    return _s3_event


@pytest.fixture
def lambda_context() -> MagicMock:
    context = MagicMock()
    context.aws_request_id = "req-0001"
    return context
