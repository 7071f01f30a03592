"""Rebuild a conversation with one correspondent from the local archive."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .address import contains_address, normalize_email
from .archive import METADATA_FILE
from .config import get_messages_dir, get_sent_dir
from .errors import MetadataError, ValidationError
from .models import ConversationEntry, MessageRecord, SentMessageRecord

logger = logging.getLogger(__name__)


def _sort_key(entry: ConversationEntry) -> tuple:
    """Effective time ascending; unparseable last; ties by message_dir."""
    ts = entry.effective_time
    return (ts is None, ts or datetime.min.replace(tzinfo=timezone.utc), entry.message_dir)


def sort_entries(entries: list[ConversationEntry]) -> list[ConversationEntry]:
    return sorted(entries, key=_sort_key)


def _list_message_dirs(root: Path) -> list[Path]:
    """Immediate subdirectories of an archive root; none if it's missing."""
    try:
        return sorted(p for p in root.iterdir() if p.is_dir())
    except FileNotFoundError:
        return []


def _load_metadata(message_dir: Path) -> object | None:
    try:
        return json.loads((message_dir / METADATA_FILE).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None


def iter_received(sender: str, messages_dir: Path) -> Iterator[ConversationEntry]:
    """Received messages whose From contains `sender`."""
    for message_dir in _list_message_dirs(messages_dir):
        try:
            record = MessageRecord.from_dict(_load_metadata(message_dir))
        except MetadataError:
            logger.debug("Skipping %s: no valid metadata", message_dir)
            continue
        if not contains_address(record.from_addrs, sender):
            continue
        yield ConversationEntry(
            direction="received",
            message_id=record.message_id,
            from_addrs=record.from_addrs,
            to_addrs=record.to_addrs,
            subject=record.subject,
            date=record.date,
            saved_at=record.saved_at,
            message_dir=str(message_dir),
        )


def iter_sent(recipient: str, sent_dir: Path) -> Iterator[ConversationEntry]:
    """Sent messages addressed (to/cc/bcc) to `recipient`."""
    for message_dir in _list_message_dirs(sent_dir):
        try:
            record = SentMessageRecord.from_dict(_load_metadata(message_dir))
        except MetadataError:
            logger.debug("Skipping %s: no valid metadata", message_dir)
            continue
        if not (
            contains_address(record.to_addrs, recipient)
            or contains_address(record.cc_addrs, recipient)
            or contains_address(record.bcc_addrs, recipient)
        ):
            continue
        yield ConversationEntry(
            direction="sent",
            message_id=record.message_id,
            from_addrs=record.from_addrs,
            to_addrs=record.to_addrs,
            cc_addrs=record.cc_addrs,
            bcc_addrs=record.bcc_addrs,
            subject=record.subject,
            date=record.date,
            saved_at=record.saved_at,
            message_dir=str(message_dir),
        )


def query_conversation(
    sender: str,
    include_sent: bool = False,
    limit: int | None = None,
    messages_dir: Path | None = None,
    sent_dir: Path | None = None,
) -> list[ConversationEntry]:
    """Return the archived messages exchanged with `sender`, oldest first.

    Received messages match on From; with include_sent, sent messages match
    on To/Cc/Bcc. The limit applies to the merged, sorted list. The archive
    is re-scanned on every call.
    """
    if limit is not None and limit < 0:
        raise ValidationError("limit must be >= 0")

    sender = normalize_email(sender)
    entries = list(iter_received(sender, messages_dir or get_messages_dir()))
    if include_sent:
        entries.extend(iter_sent(sender, sent_dir or get_sent_dir()))

    entries = sort_entries(entries)
    if limit is not None:
        entries = entries[:limit]
    return entries
