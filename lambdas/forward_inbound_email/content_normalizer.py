"""
Content Normalizer Module

Derives the human-visible body of an inbound email:

1. HTML bodies are converted to Markdown (with <head> and comments removed
   first so CSS never leaks into the text).
2. Quoted history is cut away, leaving only the newest reply.
3. Forwarded messages are detected and their pasted header block removed.
"""

import html
import re
from dataclasses import dataclass

import structlog
from markdownify import ATX, markdownify

from lambdas.forward_inbound_email.email_parser import ParsedMessage
from lambdas.forward_inbound_email.forward_extractor import extract_forwarded
from mailhook.models.payload import ForwardedInfo

log = structlog.get_logger()

HEAD_PATTERN = re.compile(r"<head\b[^>]*>.*</head>", re.DOTALL | re.IGNORECASE)
HTML_COMMENT_PATTERN = re.compile(r"<!--[\s\S]*?-->")
EXCESS_BLANK_LINES_PATTERN = re.compile(r"\n{3,}")

# Reply boundaries
QUOTED_LINE_PATTERN = re.compile(r"^\s*>")
QUOTE_HEADER_PATTERN = re.compile(r"^\s*On\s.+wrote:\s*$")
ORIGINAL_MESSAGE_PATTERN = re.compile(
    r"^\s*-{2,}\s*Original Message\s*-{2,}\s*$", re.IGNORECASE
)
SIGNATURE_DELIMITER_PATTERN = re.compile(r"^--\s?$")
MOBILE_SIGNATURE_PATTERN = re.compile(r"^Sent from my [\w .'-]+$", re.IGNORECASE)

URL_PATTERN = re.compile(r"\b(?:https?://|www\.)[^\s<>\"']+", re.IGNORECASE)
URL_TRAILING_PUNCTUATION = ".,;:!?)]}"


@dataclass(frozen=True)
class NormalizedContent:
    """Visible text and forwarding metadata for one message."""

    visible_text: str
    forwarded: ForwardedInfo | None
    is_markdown: bool

    @property
    def body_html(self) -> str:
        """Visible text rendered the way the webhook receiver displays it."""
        return text_to_html(self.visible_text)


def strip_head(html_body: str) -> str:
    """Remove the <head>...</head> block (styles, scripts, meta)."""
    return HEAD_PATTERN.sub("", html_body, count=1)


def html_to_markdown(html_body: str) -> str:
    """
    Convert an HTML body to Markdown.

    Underscores and asterisks are left unescaped so email addresses and
    identifiers read naturally.
    """
    if not html_body:
        return ""

    cleaned = HTML_COMMENT_PATTERN.sub("", html_body)
    markdown = markdownify(
        cleaned,
        heading_style=ATX,
        escape_asterisks=False,
        escape_underscores=False,
        escape_misc=False,
    )
    return EXCESS_BLANK_LINES_PATTERN.sub("\n\n", markdown).strip()


def _is_reply_boundary(lines: list[str], index: int) -> bool:
    line = lines[index]

    if SIGNATURE_DELIMITER_PATTERN.match(line):
        return True
    if ORIGINAL_MESSAGE_PATTERN.match(line):
        return True
    if QUOTE_HEADER_PATTERN.match(line):
        return True

    # Clients wrap long attributions: "On Mon, 1 Jan 2024 at 10:00, Jane\n<jane@x.com> wrote:"
    next_line = lines[index + 1] if index + 1 < len(lines) else ""
    return line.lstrip().startswith("On ") and next_line.rstrip().endswith("wrote:")


def extract_visible_text(text: str) -> str:
    """
    Keep only the newest contribution of an email body.

    Quoted lines (">") are dropped; everything from the first attribution
    line ("On ... wrote:"), "-----Original Message-----" separator or
    signature delimiter ("-- ") onward is cut. A trailing "Sent from my ..."
    line is removed as well.
    """
    if not text:
        return ""

    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    visible: list[str] = []

    for index, line in enumerate(lines):
        if _is_reply_boundary(lines, index):
            break
        if QUOTED_LINE_PATTERN.match(line):
            continue
        visible.append(line.rstrip())

    while visible and not visible[-1].strip():
        visible.pop()
    if visible and MOBILE_SIGNATURE_PATTERN.match(visible[-1].strip()):
        visible.pop()

    return EXCESS_BLANK_LINES_PATTERN.sub("\n\n", "\n".join(visible)).strip()


def normalize_content(message: ParsedMessage) -> NormalizedContent:
    """
    Compute the visible text of a parsed message.

    When an HTML body is present its Markdown conversion replaces
    message.text, and the result is flagged as Markdown.
    """
    is_markdown = bool(message.html)

    if is_markdown:
        message.text = html_to_markdown(strip_head(message.html))

    visible_text = extract_visible_text(message.text or "")
    extraction = extract_forwarded(visible_text)

    log.debug(
        "content_normalized",
        is_markdown=is_markdown,
        visible_length=len(extraction.text),
        forwarded=extraction.forwarded is not None,
    )

    return NormalizedContent(
        visible_text=extraction.text,
        forwarded=extraction.forwarded,
        is_markdown=is_markdown,
    )


def _escape_and_linkify(text: str) -> str:
    """Escape text, turning bare URLs (including Markdown <url> autolinks) into anchors."""
    pieces = []
    position = 0

    for match in URL_PATTERN.finditer(text):
        url = match.group(0)
        trailing = ""
        while url and url[-1] in URL_TRAILING_PUNCTUATION:
            trailing = url[-1] + trailing
            url = url[:-1]
        href = url if "://" in url else f"http://{url}"

        pieces.append(html.escape(text[position:match.start()], quote=False))
        pieces.append(f'<a href="{html.escape(href)}">{html.escape(url, quote=False)}</a>')
        pieces.append(html.escape(trailing, quote=False))
        position = match.end()

    pieces.append(html.escape(text[position:], quote=False))
    return "".join(pieces)


def text_to_html(text: str) -> str:
    """
    Render plain text as minimal HTML.

    Text is escaped and URLs become links. Blank-line separated blocks
    become <p> paragraphs and single newlines become <br/>.
    """
    text = (text or "").replace("\r\n", "\n").strip()
    if not text:
        return ""

    escaped = _escape_and_linkify(text)
    lines = [line.strip(" \t") for line in escaped.split("\n")]
    paragraphs = re.split(r"\n{2,}", "\n".join(lines).strip())

    rendered = []
    for paragraph in paragraphs:
        paragraph = paragraph.strip()
        if paragraph:
            rendered.append("<p>" + paragraph.replace("\n", "<br/>") + "</p>")
    return "".join(rendered)
