"""Fetch unseen messages once and archive them."""

import logging
from dataclasses import dataclass
from pathlib import Path

from .archive import save_message
from .config import DEFAULT_POLLING_CONFIG, load_mail_config, try_read_polling_config
from .errors import HookError
from .hooks import run_on_receive_hook
from .parsing import parse_message
from .transport import MailTransport, imap_transport

logger = logging.getLogger(__name__)


@dataclass
class ReceiveResult:
    mailbox: str
    found: int = 0
    saved: int = 0
    seen_marked: int = 0
    failed: int = 0


def resolve_mailbox(explicit: str | None = None, polling_path: Path | None = None) -> str:
    """Explicit mailbox, else the polling config's, else INBOX."""
    if explicit and explicit.strip():
        return explicit.strip()
    polling = try_read_polling_config(polling_path)
    return polling.mailbox if polling else DEFAULT_POLLING_CONFIG.mailbox


def receive_once(
    mailbox: str | None = None,
    transport: MailTransport | None = None,
    messages_dir: Path | None = None,
    hook_path: Path | None = None,
) -> ReceiveResult:
    """Archive every unseen message in `mailbox`, then mark it seen.

    A failure on one message is logged and counted; the rest still get
    processed. A message is only marked seen after it has been saved.
    """
    mailbox = resolve_mailbox(mailbox)
    if transport is None:
        transport = imap_transport(load_mail_config())

    result = ReceiveResult(mailbox=mailbox)
    try:
        messages = transport.fetch_unseen(mailbox)
        result.found = len(messages)
        if not messages:
            logger.info("No unseen messages in %s.", mailbox)

        for fetched in messages:
            try:
                saved = save_message(
                    uid=fetched.uid,
                    raw=fetched.raw,
                    parsed=parse_message(fetched.raw),
                    flags=fetched.flags,
                    messages_dir=messages_dir,
                )
                logger.info(
                    "Saved uid=%s subject=%r to %s",
                    fetched.uid, saved.metadata.subject, saved.message_dir,
                )

                try:
                    run_on_receive_hook(mailbox, saved.message_dir, saved.metadata, hook_path)
                except HookError as e:
                    logger.warning("On-receive hook failed for uid=%s: %s", fetched.uid, e)

                transport.mark_seen(fetched.sequence_ref)
                result.saved += 1
                result.seen_marked += 1
            except Exception as e:
                result.failed += 1
                logger.error("Failed processing message uid=%s: %s", fetched.uid, e)
    finally:
        transport.close()

    return result
