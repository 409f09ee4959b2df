# Shared Infrastructure for the Inbound Email Relay
"""
Shared infrastructure components for the inbound email Lambda.

This package provides:
- Configuration management
- Routing and credential tables
- Pydantic models for the webhook payload
- Tool implementations for S3 and webhook delivery
- Custom exceptions
"""

from mailhook.config import Settings, get_settings
from mailhook.exceptions import (
    InvalidTriggerEventError,
    MailhookError,
    MalformedMessageError,
)
from mailhook.routing import (
    AddressRouter,
    CredentialResolver,
    DomainCredential,
    get_address_router,
    get_credential_resolver,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "InvalidTriggerEventError",
    "MailhookError",
    "MalformedMessageError",
    # Routing
    "AddressRouter",
    "CredentialResolver",
    "DomainCredential",
    "get_address_router",
    "get_credential_resolver",
]
