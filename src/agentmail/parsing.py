"""Parse raw RFC 5322 bytes into the parts the archive stores."""

import email.utils
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser


@dataclass
class ParsedAttachment:
    content: bytes
    filename: str | None = None
    content_type: str | None = None
    size: int | None = None


@dataclass
class ParsedMessage:
    """Structured view of a message, as produced by parse_message()."""
    message_id: str | None = None
    subject: str | None = None
    date: datetime | None = None
    from_addrs: list[str] = field(default_factory=list)
    to_addrs: list[str] = field(default_factory=list)
    cc_addrs: list[str] = field(default_factory=list)
    bcc_addrs: list[str] = field(default_factory=list)
    text: str | None = None
    html: str | None = None
    attachments: list[ParsedAttachment] = field(default_factory=list)


def format_addresses(header_value: str | None) -> list[str]:
    """Render an address header as a list of 'Name <addr>' / 'addr' strings."""
    if not header_value:
        return []
    result = []
    for name, addr in email.utils.getaddresses([str(header_value)]):
        if name and addr:
            result.append(f"{name} <{addr}>")
        elif addr or name:
            result.append(addr or name)
    return result


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = email.utils.parsedate_to_datetime(str(value))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _get_text(part: EmailMessage) -> str | None:
    try:
        content = part.get_content()
    except (KeyError, LookupError, UnicodeDecodeError):
        payload = part.get_payload(decode=True) or b""
        content = payload.decode("utf-8", errors="replace")
    return content if isinstance(content, str) else None


def parse_message(raw: bytes) -> ParsedMessage:
    """Parse raw message bytes.

    The first text/plain and text/html parts that are not attachments become
    the bodies; every part with attachment disposition becomes an attachment.
    """
    msg = BytesParser(policy=policy.default).parsebytes(raw)

    parsed = ParsedMessage(
        message_id=(msg.get("Message-ID") or "").strip() or None,
        subject=str(msg["Subject"]) if msg["Subject"] is not None else None,
        date=_parse_date(msg.get("Date")),
        from_addrs=format_addresses(msg.get("From")),
        to_addrs=format_addresses(msg.get("To")),
        cc_addrs=format_addresses(msg.get("Cc")),
        bcc_addrs=format_addresses(msg.get("Bcc")),
    )

    for part in msg.walk():
        if part.is_multipart():
            continue
        content_type = part.get_content_type()
        disposition = part.get_content_disposition()
        if disposition == "attachment" or (disposition == "inline" and part.get_filename()):
            payload = part.get_payload(decode=True) or b""
            parsed.attachments.append(ParsedAttachment(
                content=payload,
                filename=part.get_filename(),
                content_type=content_type,
                size=len(payload),
            ))
        elif content_type == "text/plain" and parsed.text is None:
            parsed.text = _get_text(part)
        elif content_type == "text/html" and parsed.html is None:
            parsed.html = _get_text(part)
        elif not content_type.startswith("text/"):
            payload = part.get_payload(decode=True) or b""
            parsed.attachments.append(ParsedAttachment(
                content=payload,
                filename=part.get_filename(),
                content_type=content_type,
                size=len(payload),
            ))

    return parsed
