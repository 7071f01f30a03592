"""IMAP and SMTP adapters over imaplib/smtplib."""

import imaplib
import re
import smtplib
import ssl
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from mimetypes import guess_type
from pathlib import Path
from typing import Protocol

from .config import MailConfig, ServerConfig

SEEN_FLAG = "\\Seen"


@dataclass
class FetchedMessage:
    """One unseen message as returned by the transport."""
    sequence_ref: bytes
    uid: int
    raw: bytes
    flags: list[str] = field(default_factory=list)


@dataclass
class OutgoingMessage:
    """A validated message ready to hand to the SMTP server."""
    to: list[str]
    subject: str
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)
    text: str | None = None
    html: str | None = None
    attachment_paths: list[Path] = field(default_factory=list)


class MailTransport(Protocol):
    """Reads unseen mail from one mailbox."""

    def fetch_unseen(self, mailbox: str) -> list[FetchedMessage]:
        ...

    def mark_seen(self, sequence_ref: bytes) -> None:
        ...

    def close(self) -> None:
        ...


class MailSender(Protocol):
    """Delivers a message; returns its Message-ID."""

    def send(self, message: OutgoingMessage, sender: str) -> str:
        ...


_FETCH_UID_RE = re.compile(rb"UID (\d+)")
_FETCH_FLAGS_RE = re.compile(rb"FLAGS \(([^)]*)\)")


class IMAPTransport:
    """Minimal IMAP client for polling unseen messages."""

    def __init__(self, server: ServerConfig):
        self.server = server
        self._conn: imaplib.IMAP4 | None = None

    @property
    def conn(self) -> imaplib.IMAP4:
        if not self._conn:
            if self.server.secure:
                self._conn = imaplib.IMAP4_SSL(self.server.host, self.server.port)
            else:
                self._conn = imaplib.IMAP4(self.server.host, self.server.port)
            self._conn.login(self.server.user, self.server.password)
        return self._conn

    def fetch_unseen(self, mailbox: str) -> list[FetchedMessage]:
        typ, data = self.conn.select(mailbox)
        if typ != "OK":
            raise RuntimeError(f"Failed to select folder {mailbox}: {data}")

        typ, data = self.conn.uid("SEARCH", None, "UNSEEN")
        if typ != "OK":
            raise RuntimeError(f"Search failed: {data}")

        messages = []
        for uid in data[0].split():
            typ, fetched = self.conn.uid("FETCH", uid, "(UID FLAGS BODY.PEEK[])")
            if typ != "OK" or not fetched or not isinstance(fetched[0], tuple):
                raise RuntimeError(f"Failed to fetch message for UID {uid!r}")
            envelope, raw = fetched[0]
            uid_match = _FETCH_UID_RE.search(envelope)
            flags_match = _FETCH_FLAGS_RE.search(envelope)
            messages.append(FetchedMessage(
                sequence_ref=uid,
                uid=int(uid_match.group(1)) if uid_match else int(uid),
                raw=raw,
                flags=[f.decode() for f in flags_match.group(1).split()] if flags_match else [],
            ))
        return messages

    def mark_seen(self, sequence_ref: bytes) -> None:
        typ, data = self.conn.uid("STORE", sequence_ref, "+FLAGS", f"({SEEN_FLAG})")
        if typ != "OK":
            raise RuntimeError(f"Failed to mark UID {sequence_ref!r} seen: {data}")

    def close(self) -> None:
        if self._conn:
            try:
                self._conn.logout()
            except (imaplib.IMAP4.error, OSError):
                pass
            self._conn = None


class SMTPSender:
    """Send mail through an SMTP server (implicit TLS or STARTTLS)."""

    def __init__(self, server: ServerConfig):
        self.server = server

    def build(self, message: OutgoingMessage, sender: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = sender
        msg["To"] = ", ".join(message.to)
        if message.cc:
            msg["Cc"] = ", ".join(message.cc)
        msg["Subject"] = message.subject
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid(domain=sender.rsplit("@", 1)[-1])

        if message.text:
            msg.set_content(message.text)
        if message.html:
            if message.text:
                msg.add_alternative(message.html, subtype="html")
            else:
                msg.set_content(message.html, subtype="html")

        for path in message.attachment_paths:
            content_type, _ = guess_type(path.name)
            maintype, subtype = (content_type or "application/octet-stream").split("/", 1)
            msg.add_attachment(
                path.read_bytes(), maintype=maintype, subtype=subtype, filename=path.name,
            )
        return msg

    def send(self, message: OutgoingMessage, sender: str) -> str:
        msg = self.build(message, sender)
        recipients = [*message.to, *message.cc, *message.bcc]
        if self.server.secure:
            smtp = smtplib.SMTP_SSL(self.server.host, self.server.port, context=ssl.create_default_context())
        else:
            smtp = smtplib.SMTP(self.server.host, self.server.port)
        with smtp:
            if not self.server.secure:
                smtp.starttls(context=ssl.create_default_context())
            smtp.login(self.server.user, self.server.password)
            smtp.send_message(msg, from_addr=sender, to_addrs=recipients)
        return msg["Message-ID"]


def imap_transport(config: MailConfig) -> IMAPTransport:
    return IMAPTransport(config.imap)


def smtp_sender(config: MailConfig) -> SMTPSender:
    return SMTPSender(config.smtp)
