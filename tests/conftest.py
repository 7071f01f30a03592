"""Shared fixtures."""

from datetime import datetime, timezone
from email.message import EmailMessage

import pytest


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Point AGENTMAIL_HOME at a temp directory."""
    home = tmp_path / "agentmail-home"
    home.mkdir()
    monkeypatch.setenv("AGENTMAIL_HOME", str(home))
    return home


def frozen_datetime(*args):
    """A datetime subclass whose now() always returns the given UTC time."""
    fixed = datetime(*args, tzinfo=timezone.utc)

    class FrozenDatetime(datetime):
        @classmethod
        def now(cls, tz=None):
            return fixed if tz is None else fixed.astimezone(tz)

    return FrozenDatetime


def build_raw(
    from_addr="Alice <alice@example.com>",
    to_addr="agent@example.com",
    subject="Hello",
    date="Thu, 12 Feb 2026 10:00:00 +0000",
    message_id="<m-1@example.com>",
    text="Hi there",
    html=None,
    attachments=(),
) -> bytes:
    """Build raw RFC 5322 bytes for parser/receive tests."""
    msg = EmailMessage()
    msg["From"] = from_addr
    msg["To"] = to_addr
    msg["Subject"] = subject
    if date:
        msg["Date"] = date
    if message_id:
        msg["Message-ID"] = message_id
    msg.set_content(text)
    if html:
        msg.add_alternative(html, subtype="html")
    for filename, content in attachments:
        msg.add_attachment(content, maintype="application", subtype="pdf", filename=filename)
    return msg.as_bytes()
