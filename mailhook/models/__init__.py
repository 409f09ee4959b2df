"""
Pydantic models shared by the inbound email relay.
"""

from mailhook.models.payload import (
    AddressRecord,
    ExternalizedAttachment,
    ForwardedInfo,
    OutboundPayload,
)

__all__ = [
    "AddressRecord",
    "ExternalizedAttachment",
    "ForwardedInfo",
    "OutboundPayload",
]
