"""
Routing Tables

Maps inbound recipient addresses to webhook URLs and webhook hosts to
HTTP Basic credentials.

Both tables are built once per process from Settings and are read-only
afterwards, so concurrent invocations can share them without locking.
"""

import base64
import os
from collections.abc import Mapping
from dataclasses import dataclass
from email.utils import parseaddr
from functools import lru_cache
from types import MappingProxyType
from urllib.parse import urlparse

import structlog

from mailhook.config import CredentialEnvVars, get_settings

log = structlog.get_logger()


def normalize_address(value: str | None) -> str:
    """
    Reduce a header value to a lowercase addr-spec.

    Handles formats like:
    - "Support <support@example.com>"
    - "<support@example.com>"
    - "support@example.com"
    """
    if not value:
        return ""
    _, address = parseaddr(value)
    return (address or value).strip().lower()


class AddressRouter:
    """Static recipient address → webhook URL table."""

    def __init__(self, routes: Mapping[str, str]) -> None:
        self._routes = MappingProxyType(
            {normalize_address(address): url for address, url in routes.items()}
        )

    def __len__(self) -> int:
        return len(self._routes)

    def resolve(
        self,
        recipient_address: str | None,
        forwarded_to: str | None = None,
    ) -> str | None:
        """
        Find the webhook URL for a message.

        The envelope recipient is tried first; mail-forwarding setups keep
        the original mailbox in X-Forwarded-To, which is tried second.

        Returns:
            Webhook URL, or None when neither address is configured
        """
        for candidate in (recipient_address, forwarded_to):
            url = self._routes.get(normalize_address(candidate))
            if url:
                return url
        return None


@dataclass(frozen=True)
class DomainCredential:
    """HTTP Basic credentials for one webhook host."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"DomainCredential(username={self.username!r}, password='***')"

    def authorization_header(self) -> str:
        token = base64.b64encode(f"{self.username}:{self.password}".encode("utf-8"))
        return f"Basic {token.decode('ascii')}"


class CredentialResolver:
    """Static webhook host → Basic credential table."""

    def __init__(self, credentials: Mapping[str, DomainCredential]) -> None:
        self._credentials = MappingProxyType(
            {host.lower(): credential for host, credential in credentials.items()}
        )

    @classmethod
    def from_env_vars(
        cls,
        config: Mapping[str, CredentialEnvVars],
        environ: Mapping[str, str] | None = None,
    ) -> "CredentialResolver":
        """
        Build the table by reading the environment variables named in config.

        Hosts whose username or password variable is unset or empty get no
        entry, so requests to them go out unauthenticated.
        """
        env = os.environ if environ is None else environ
        credentials: dict[str, DomainCredential] = {}

        for host, names in config.items():
            username = env.get(names.username_var)
            password = env.get(names.password_var)
            if username and password:
                credentials[host] = DomainCredential(username=username, password=password)
            else:
                log.warning(
                    "domain_credentials_incomplete",
                    host=host,
                    username_var=names.username_var,
                    password_var=names.password_var,
                )

        return cls(credentials)

    def lookup(self, host: str | None) -> DomainCredential | None:
        if not host:
            return None
        return self._credentials.get(host.lower())

    def lookup_url(self, url: str) -> DomainCredential | None:
        """
        Credentials for the host of a webhook URL.

        An unparseable URL is logged and treated as having no credentials;
        delivery still goes ahead.
        """
        try:
            host = urlparse(url).hostname
            if not host:
                raise ValueError("URL has no host")
        except ValueError as e:
            log.error("webhook_url_unparseable", webhook_url=url, error=str(e))
            return None

        credential = self.lookup(host)
        if credential:
            log.debug("credentials_applied", host=host)
        else:
            log.debug("no_credentials_for_host", host=host)
        return credential


@lru_cache(maxsize=1)
def get_address_router() -> AddressRouter:
    """Process-wide router built from settings on first use."""
    return AddressRouter(get_settings().routes)


@lru_cache(maxsize=1)
def get_credential_resolver() -> CredentialResolver:
    """Process-wide credential table built from settings on first use."""
    return CredentialResolver.from_env_vars(get_settings().domain_credentials)
