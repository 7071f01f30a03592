"""Archive records and their metadata.json projection."""

import email.utils
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from .errors import MetadataError

Direction = Literal["received", "sent"]

# Seconds fraction of an ISO-8601 time, e.g. the ".5" in "10:00:00.5Z"
FRACTION_RE = re.compile(r"(?<=\d\d:\d\d:\d\d)\.(\d+)")


def _normalize_fraction(value: str) -> str:
    """Pad or cut the seconds fraction to 6 digits for `fromisoformat`."""
    return FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 or RFC 2822 timestamp. Naive values are UTC."""
    if not value:
        return None
    value = value.strip()
    parsed: datetime | None
    try:
        parsed = datetime.fromisoformat(_normalize_fraction(value.replace("Z", "+00:00")))
    except ValueError:
        try:
            parsed = email.utils.parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require(data: dict, key: str, kind: type, nullable: bool = False) -> Any:
    """Fetch `key` from a metadata payload, checking its type."""
    if key not in data:
        raise MetadataError(f"Missing key: {key}")
    value = data[key]
    if value is None and nullable:
        return None
    if not isinstance(value, kind) or isinstance(value, bool) and kind is not bool:
        raise MetadataError(f"Invalid value for {key}: {value!r}")
    return value


def _require_str_list(data: dict, key: str) -> list[str]:
    values = _require(data, key, list)
    if not all(isinstance(v, str) for v in values):
        raise MetadataError(f"Invalid value for {key}: expected list of strings")
    return list(values)


@dataclass
class AttachmentRecord:
    """A saved attachment, relative to its message directory."""
    filename: str
    content_type: str
    size: int
    relative_path: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "contentType": self.content_type,
            "size": self.size,
            "relativePath": self.relative_path,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AttachmentRecord":
        return cls(
            filename=_require(data, "filename", str),
            content_type=_require(data, "contentType", str),
            size=_require(data, "size", int),
            relative_path=_require(data, "relativePath", str),
        )


@dataclass
class MessageRecord:
    """Metadata for a received message."""
    uid: int
    message_id: str | None
    from_addrs: list[str]
    to_addrs: list[str]
    subject: str | None
    date: str | None
    flags: list[str]
    saved_at: str
    attachments: list[AttachmentRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "messageId": self.message_id,
            "from": self.from_addrs,
            "to": self.to_addrs,
            "subject": self.subject,
            "date": self.date,
            "flags": self.flags,
            "savedAt": self.saved_at,
            "attachments": [a.to_dict() for a in self.attachments],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "MessageRecord":
        """Validate a received metadata payload.

        `uid` and `flags` are optional on read; the conversation index only
        needs the shared fields.
        """
        if not isinstance(data, dict):
            raise MetadataError("Metadata must be a JSON object")
        _require(data, "attachments", list)
        uid = data.get("uid", 0)
        flags = data.get("flags", [])
        return cls(
            uid=uid if isinstance(uid, int) else 0,
            message_id=_require(data, "messageId", str, nullable=True),
            from_addrs=_require_str_list(data, "from"),
            to_addrs=_require_str_list(data, "to"),
            subject=_require(data, "subject", str, nullable=True),
            date=_require(data, "date", str, nullable=True),
            flags=[str(f) for f in flags] if isinstance(flags, list) else [],
            saved_at=_require(data, "savedAt", str),
            attachments=_load_attachments(data["attachments"]),
        )


@dataclass
class SentMessageRecord:
    """Metadata for a message we sent."""
    message_id: str | None
    from_addrs: list[str]
    to_addrs: list[str]
    cc_addrs: list[str]
    bcc_addrs: list[str]
    subject: str | None
    date: str | None
    saved_at: str
    attachments: list[AttachmentRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "messageId": self.message_id,
            "from": self.from_addrs,
            "to": self.to_addrs,
            "cc": self.cc_addrs,
            "bcc": self.bcc_addrs,
            "subject": self.subject,
            "date": self.date,
            "savedAt": self.saved_at,
            "attachments": [a.to_dict() for a in self.attachments],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SentMessageRecord":
        if not isinstance(data, dict):
            raise MetadataError("Metadata must be a JSON object")
        _require(data, "attachments", list)
        return cls(
            message_id=_require(data, "messageId", str, nullable=True),
            from_addrs=_require_str_list(data, "from"),
            to_addrs=_require_str_list(data, "to"),
            cc_addrs=_require_str_list(data, "cc"),
            bcc_addrs=_require_str_list(data, "bcc"),
            subject=_require(data, "subject", str, nullable=True),
            date=_require(data, "date", str, nullable=True),
            saved_at=_require(data, "savedAt", str),
            attachments=_load_attachments(data["attachments"]),
        )


def _load_attachments(items: list) -> list[AttachmentRecord]:
    # Attachment entries are informational; skip malformed ones instead of
    # hiding the whole message.
    records = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            records.append(AttachmentRecord.from_dict(item))
        except MetadataError:
            continue
    return records


@dataclass(frozen=True)
class ConversationEntry:
    """One message in a reconstructed conversation."""
    direction: Direction
    message_id: str | None
    from_addrs: list[str]
    to_addrs: list[str]
    subject: str | None
    date: str | None
    saved_at: str
    message_dir: str
    cc_addrs: list[str] | None = None
    bcc_addrs: list[str] | None = None

    @property
    def timestamp(self) -> str:
        """Date shown for the entry: origin date if it parses, else archive time."""
        if parse_timestamp(self.date) is not None:
            return self.date
        return self.saved_at

    @property
    def effective_time(self) -> datetime | None:
        """Sort time: parsed date, else parsed savedAt, else None."""
        return parse_timestamp(self.date) or parse_timestamp(self.saved_at)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "direction": self.direction,
            "messageId": self.message_id,
            "from": self.from_addrs,
            "to": self.to_addrs,
        }
        if self.cc_addrs is not None:
            result["cc"] = self.cc_addrs
        if self.bcc_addrs is not None:
            result["bcc"] = self.bcc_addrs
        result.update({
            "subject": self.subject,
            "date": self.date,
            "savedAt": self.saved_at,
            "messageDir": self.message_dir,
        })
        return result
