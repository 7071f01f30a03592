"""Write received and sent messages to per-message archive directories.

Each message gets a fresh directory:

    <root>/<YYYYMMDDThhmmssZ>_<discriminator>[_<n>]/
        raw.eml         (received only)
        body.txt        (if non-empty)
        body.html       (if non-empty)
        attachments/
        metadata.json   (always written last)

A directory without metadata.json is an interrupted write; readers treat it
as absent.
"""

import json
import logging
import mimetypes
import re
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from .config import get_messages_dir, get_sent_dir
from .errors import AllocationError
from .models import AttachmentRecord, MessageRecord, SentMessageRecord
from .parsing import ParsedMessage

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"
RAW_FILE = "raw.eml"
TEXT_BODY_FILE = "body.txt"
HTML_BODY_FILE = "body.html"
ATTACHMENTS_DIR = "attachments"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
MAX_UNIQUE_ATTEMPTS = 10000


@dataclass
class SaveResult:
    message_dir: Path
    metadata: MessageRecord | SentMessageRecord


@dataclass
class SentMessageInput:
    """What was handed to the transport, mirrored into the sent archive."""
    message_id: str | None
    from_addr: str
    to: list[str]
    subject: str
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)
    text: str | None = None
    html: str | None = None
    attachment_paths: list[Path] = field(default_factory=list)


def format_timestamp(dt: datetime) -> str:
    """Compact UTC timestamp safe for paths, e.g. 20260212T100000Z."""
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def isoformat_utc(dt: datetime) -> str:
    """ISO-8601 with millisecond precision and a Z suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sanitize_filename(filename: str) -> str:
    """Make an attachment name safe to write into the attachments dir.

    - Drop any directory components
    - Replace runs of characters outside [A-Za-z0-9.()_- ] with "_"
    - Fall back to "attachment" if nothing is left

    Idempotent: sanitizing a sanitized name returns it unchanged.
    """
    basename = Path(filename.strip().replace("\\", "/")).name
    sanitized = re.sub(r"[^a-zA-Z0-9.()_\- ]+", "_", basename).strip()
    if sanitized in ("", ".", ".."):
        return "attachment"
    return sanitized


def sanitize_segment(value: str) -> str:
    """Sanitize a Message-ID for use in a directory name."""
    sanitized = re.sub(r"[^a-zA-Z0-9._-]+", "_", value).strip("_")
    return sanitized or "message"


def allocate_message_dir(base: Path) -> Path:
    """Create and return a new directory at `base`, or `base_1`, `base_2`, ...

    Never reuses an existing directory. Raises AllocationError once every
    candidate is taken.
    """
    for i in range(MAX_UNIQUE_ATTEMPTS + 1):
        candidate = base.with_name(f"{base.name}_{i}") if i else base
        try:
            candidate.mkdir()
        except FileExistsError:
            continue
        return candidate
    raise AllocationError(f"Unable to create unique message directory for {base}")


def unique_file_path(target: Path) -> Path:
    """Return `target`, or `stem(1).ext`, `stem(2).ext`, ... if taken."""
    if not target.exists():
        return target
    for i in range(1, MAX_UNIQUE_ATTEMPTS + 1):
        candidate = target.with_name(f"{target.stem}({i}){target.suffix}")
        if not candidate.exists():
            return candidate
    raise AllocationError(f"Unable to create unique path for {target}")


def _write_bodies(message_dir: Path, text: str | None, html: str | None) -> None:
    if text:
        (message_dir / TEXT_BODY_FILE).write_text(text, encoding="utf-8")
    if html:
        (message_dir / HTML_BODY_FILE).write_text(html, encoding="utf-8")


def _attachment_record(path: Path, content_type: str, size: int) -> AttachmentRecord:
    return AttachmentRecord(
        filename=path.name,
        content_type=content_type,
        size=size,
        relative_path=f"{ATTACHMENTS_DIR}/{path.name}",
    )


def _write_metadata(message_dir: Path, metadata: MessageRecord | SentMessageRecord) -> None:
    payload = json.dumps(metadata.to_dict(), indent=2, ensure_ascii=False)
    (message_dir / METADATA_FILE).write_text(f"{payload}\n", encoding="utf-8")


def save_message(
    uid: int,
    raw: bytes,
    parsed: ParsedMessage,
    flags: list[str],
    messages_dir: Path | None = None,
) -> SaveResult:
    """Archive a received message.

    Writes raw.eml, bodies and attachments, then metadata.json. Any I/O error
    propagates and leaves a directory without metadata.
    """
    messages_dir = messages_dir or get_messages_dir()
    messages_dir.mkdir(parents=True, exist_ok=True)

    now = datetime.now(timezone.utc)
    message_dir = allocate_message_dir(messages_dir / f"{format_timestamp(now)}_uid-{uid}")
    attachment_dir = message_dir / ATTACHMENTS_DIR
    attachment_dir.mkdir()

    (message_dir / RAW_FILE).write_bytes(raw)
    _write_bodies(message_dir, parsed.text, parsed.html)

    attachments = []
    for index, attachment in enumerate(parsed.attachments, start=1):
        name = sanitize_filename(attachment.filename) if attachment.filename else f"attachment-{index}.bin"
        path = unique_file_path(attachment_dir / name)
        path.write_bytes(attachment.content)
        attachments.append(_attachment_record(
            path,
            attachment.content_type or DEFAULT_CONTENT_TYPE,
            attachment.size if attachment.size is not None else len(attachment.content),
        ))

    metadata = MessageRecord(
        uid=uid,
        message_id=parsed.message_id,
        from_addrs=parsed.from_addrs,
        to_addrs=[*parsed.to_addrs, *parsed.cc_addrs, *parsed.bcc_addrs],
        subject=parsed.subject,
        date=isoformat_utc(parsed.date) if parsed.date else None,
        flags=list(flags),
        saved_at=isoformat_utc(now),
        attachments=attachments,
    )
    _write_metadata(message_dir, metadata)
    logger.debug("Saved message uid=%s to %s", uid, message_dir)

    return SaveResult(message_dir=message_dir, metadata=metadata)


def save_sent_message(message: SentMessageInput, sent_dir: Path | None = None) -> SaveResult:
    """Archive a message that was just sent.

    Attachments are copied from their source paths. Raises on any I/O error;
    callers decide whether that matters.
    """
    sent_dir = sent_dir or get_sent_dir()
    sent_dir.mkdir(parents=True, exist_ok=True)

    now = datetime.now(timezone.utc)
    segment = sanitize_segment(message.message_id or "message")
    message_dir = allocate_message_dir(sent_dir / f"{format_timestamp(now)}_msg-{segment}")
    attachment_dir = message_dir / ATTACHMENTS_DIR
    attachment_dir.mkdir()

    _write_bodies(message_dir, message.text, message.html)

    attachments = []
    for source in message.attachment_paths:
        source = Path(source).resolve()
        path = unique_file_path(attachment_dir / sanitize_filename(source.name))
        shutil.copyfile(source, path)
        content_type, _ = mimetypes.guess_type(source.name)
        attachments.append(_attachment_record(
            path,
            content_type or DEFAULT_CONTENT_TYPE,
            path.stat().st_size,
        ))

    saved_at = isoformat_utc(now)
    metadata = SentMessageRecord(
        message_id=message.message_id,
        from_addrs=[message.from_addr],
        to_addrs=list(message.to),
        cc_addrs=list(message.cc),
        bcc_addrs=list(message.bcc),
        subject=message.subject,
        date=saved_at,
        saved_at=saved_at,
        attachments=attachments,
    )
    _write_metadata(message_dir, metadata)
    logger.debug("Saved sent message %s to %s", message.message_id, message_dir)

    return SaveResult(message_dir=message_dir, metadata=metadata)
