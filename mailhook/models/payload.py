"""
Payload Models

Pydantic models for the JSON document posted to webhook endpoints.
Field aliases are the wire names the receiving helpdesk reads and
must stay stable.
"""

from pydantic import BaseModel, ConfigDict, Field


class AddressRecord(BaseModel):
    """A single mailbox from an address header."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="", description="Display name, empty if absent")
    address: str = Field(default="", description="addr-spec, e.g. jane@example.com")


class ForwardedInfo(BaseModel):
    """Original sender recovered from a forwarded message body."""

    model_config = ConfigDict(frozen=True)

    name: str
    address: str


class ExternalizedAttachment(BaseModel):
    """Attachment stored in S3 and exposed through a presigned URL."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str = Field(..., description="Presigned GET URL, valid for seven days")
    cid: str | None = Field(default=None, description="Content-ID without angle brackets")
    filename: str
    content_type: str = Field(..., alias="contentType")
    content_disposition: str = Field(default="attachment", alias="contentDisposition")


class OutboundPayload(BaseModel):
    """
    Structured email forwarded to a webhook.

    Serialized with by_alias=True; the result is itself sent as a JSON
    string under the "payload" key of the request body.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    date: str | None = Field(default=None, description="ISO-8601 timestamp of the Date header")
    subject: str = ""
    body_text: str = Field(default="", description="Visible reply text rendered as HTML")
    message_id: str = Field(default="", alias="messageId")
    from_: list[AddressRecord] = Field(default_factory=list, alias="from")
    to: list[AddressRecord] = Field(default_factory=list)
    forwarded: ForwardedInfo | None = None
    attachments: list[ExternalizedAttachment] = Field(default_factory=list)
    is_markdown: bool = Field(default=False, alias="isMarkDown")

    def to_json(self) -> str:
        """Serialize using the wire field names."""
        return self.model_dump_json(by_alias=True)
