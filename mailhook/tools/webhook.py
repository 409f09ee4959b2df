"""
Webhook Tools

Posts the serialized payload to a webhook endpoint over httpx.
"""

from typing import Any

import httpx
import structlog

log = structlog.get_logger()


def post_payload(
    url: str,
    payload_json: str,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """
    POST {"payload": payload_json} to a webhook.

    The payload travels as a JSON string inside a JSON body. The response
    body is not inspected; any 2xx status counts as delivered.

    Args:
        url: Webhook URL
        payload_json: Serialized OutboundPayload
        headers: Extra request headers (custom header, Authorization)

    Returns:
        The httpx response

    Raises:
        httpx.HTTPStatusError: On a non-2xx response
        httpx.HTTPError: On network failure
    """
    body: dict[str, Any] = {"payload": payload_json}

    log.debug("posting_to_webhook", webhook_url=url, header_names=sorted(headers or {}))

    try:
        response = httpx.post(url, json=body, headers=headers or {})
        response.raise_for_status()
    except httpx.HTTPError as e:
        log.error("webhook_delivery_failed", webhook_url=url, error=str(e))
        raise

    log.info("webhook_delivered", webhook_url=url, status_code=response.status_code)

    return response
