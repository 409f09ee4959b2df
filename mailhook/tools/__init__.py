# Shared Tools
"""
Collaborator wrappers used by the inbound email Lambda.
"""

from mailhook.tools.s3 import (
    generate_download_url,
    get_s3_client,
    open_object_stream,
    put_object,
)
from mailhook.tools.webhook import post_payload

__all__ = [
    # S3 tools
    "generate_download_url",
    "get_s3_client",
    "open_object_stream",
    "put_object",
    # Webhook tools
    "post_payload",
]
