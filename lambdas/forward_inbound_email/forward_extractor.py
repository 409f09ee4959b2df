"""
Forward Extractor

Detects a forwarded message by the header block mail clients paste into
the body ("From: Jane Doe <jane@example.com>" ... "To: ...>") and recovers
the original sender.

This is a text heuristic, not a header re-parse: only the first "From:"
occurrence is considered, and the name/address split is on "<".
"""

import re
from dataclasses import dataclass

from mailhook.models.payload import ForwardedInfo

# Text between a "From:" label and the next ">"
FORWARDED_FROM_PATTERN = re.compile(r"From:\s+(.*?)>")

# Embedded header block: "From:" through the "To:" line and its closing ">"
FORWARDED_HEADER_BLOCK_PATTERN = re.compile(r"From:.+?(?=To:)[^>]*>", re.DOTALL)

FORWARD_BANNER = "---------- Forwarded message ---------"

# Gmail HTML forwards convert to "From: **Jane Doe** <[jane@x.com](mailto:jane@x.com)>"
MARKDOWN_LINK_PATTERN = re.compile(r"\[([^\]]*)\]\([^)]*\)")
EMPHASIS_MARKERS = "* "


@dataclass(frozen=True)
class ForwardExtraction:
    """Original sender (if any) and the text with forwarding artifacts removed."""

    forwarded: ForwardedInfo | None
    text: str


def find_forwarded_sender(text: str) -> ForwardedInfo | None:
    """
    Find the original sender in a forwarded body.

    Returns:
        ForwardedInfo, or None when there is no "From: name <address>" pair
    """
    if not text:
        return None

    match = FORWARDED_FROM_PATTERN.search(text)
    if not match:
        return None

    parts = match.group(1).split("<")
    if len(parts) < 2:
        return None

    return ForwardedInfo(name=_unmark(parts[0]), address=_unmark(parts[1]))


def _unmark(value: str) -> str:
    """Drop Markdown emphasis and mailto links left by HTML conversion."""
    value = value.strip()
    link = MARKDOWN_LINK_PATTERN.fullmatch(value)
    if link:
        value = link.group(1)
    return value.strip(EMPHASIS_MARKERS).strip()


def scrub_forward_headers(text: str) -> str:
    """Remove embedded header blocks and every forwarding banner."""
    text = FORWARDED_HEADER_BLOCK_PATTERN.sub("", text)
    return text.replace(FORWARD_BANNER, "")


def extract_forwarded(text: str) -> ForwardExtraction:
    """
    Split visible text into forwarding metadata and residual text.

    Text is only scrubbed when a forwarded sender was found.
    """
    forwarded = find_forwarded_sender(text)
    if forwarded is None:
        return ForwardExtraction(forwarded=None, text=text)

    return ForwardExtraction(forwarded=forwarded, text=scrub_forward_headers(text))
