"""Tests for the one-shot receive pipeline and on-receive hook."""

import json

import pytest

from agentmail.config import write_polling_config
from agentmail.errors import HookError
from agentmail.hooks import hook_env, run_on_receive_hook
from agentmail.models import MessageRecord
from agentmail.receive import receive_once, resolve_mailbox
from agentmail.transport import FetchedMessage

from conftest import build_raw


class FakeTransport:
    """In-memory MailTransport."""

    def __init__(self, messages=(), fail_seen=(), fail_fetch=False):
        self.messages = list(messages)
        self.fail_seen = set(fail_seen)
        self.fail_fetch = fail_fetch
        self.seen = []
        self.mailboxes = []
        self.closed = False

    def fetch_unseen(self, mailbox):
        self.mailboxes.append(mailbox)
        if self.fail_fetch:
            raise ConnectionError("IMAP down")
        return self.messages

    def mark_seen(self, sequence_ref):
        if sequence_ref in self.fail_seen:
            raise RuntimeError("STORE failed")
        self.seen.append(sequence_ref)

    def close(self):
        self.closed = True


def fetched(uid, **kwargs):
    return FetchedMessage(sequence_ref=str(uid).encode(), uid=uid, raw=build_raw(**kwargs), flags=["\\Recent"])


def metadata(**kwargs):
    defaults = dict(
        uid=42,
        message_id="m-42",
        from_addrs=["Alice <alice@example.com>"],
        to_addrs=["agent@example.com", "other@example.com"],
        subject="Hook me",
        date="2026-02-13T00:00:00.000Z",
        flags=[],
        saved_at="2026-02-13T00:00:01.000Z",
    )
    defaults.update(kwargs)
    return MessageRecord(**defaults)


class TestResolveMailbox:
    def test_explicit(self, home):
        assert resolve_mailbox(" Work ") == "Work"

    def test_from_polling_config(self, home):
        write_polling_config(mailbox="Archive")
        assert resolve_mailbox(None) == "Archive"

    def test_default(self, home):
        assert resolve_mailbox("") == "INBOX"


class TestReceiveOnce:
    def test_saves_and_marks_seen(self, home):
        transport = FakeTransport([
            fetched(1, subject="First"),
            fetched(2, subject="Second", attachments=[("report.pdf", b"pdf")]),
        ])
        result = receive_once("INBOX", transport=transport)

        assert (result.mailbox, result.found, result.saved, result.seen_marked, result.failed) == (
            "INBOX", 2, 2, 2, 0,
        )
        assert transport.seen == [b"1", b"2"]
        assert transport.closed

        dirs = sorted((home / "received").iterdir(), key=lambda p: p.name.split("uid-")[1])
        assert [d.name.split("_uid-")[1] for d in dirs] == ["1", "2"]
        data = json.loads((dirs[1] / "metadata.json").read_text())
        assert data["subject"] == "Second"
        assert data["from"] == ["Alice <alice@example.com>"]
        assert data["flags"] == ["\\Recent"]
        assert data["date"] == "2026-02-12T10:00:00.000Z"
        assert data["attachments"][0]["filename"] == "report.pdf"
        assert (dirs[1] / "raw.eml").read_bytes() == transport.messages[1].raw

    def test_one_failure_does_not_stop_batch(self, home):
        transport = FakeTransport([fetched(1), fetched(2), fetched(3)], fail_seen={b"2"})
        result = receive_once("INBOX", transport=transport)

        assert result.found == 3
        assert result.saved == 2
        assert result.seen_marked == 2
        assert result.failed == 1
        assert transport.seen == [b"1", b"3"]

    def test_empty_mailbox(self, home):
        transport = FakeTransport()
        result = receive_once("INBOX", transport=transport)
        assert (result.found, result.saved, result.failed) == (0, 0, 0)
        assert transport.closed

    def test_fetch_error_propagates_and_closes(self, home):
        transport = FakeTransport(fail_fetch=True)
        with pytest.raises(ConnectionError):
            receive_once("INBOX", transport=transport)
        assert transport.closed

    def test_runs_hook(self, home):
        hook = home / "hooks" / "on_receive.sh"
        hook.parent.mkdir()
        out = home / "hook-output.txt"
        hook.write_text(f'#!/usr/bin/env bash\necho "$AGENTMAIL_MESSAGE_UID" >> "{out}"\n')

        receive_once("INBOX", transport=FakeTransport([fetched(7), fetched(8)]))
        assert out.read_text().split() == ["7", "8"]

    def test_hook_failure_still_marks_seen(self, home):
        hook = home / "hooks" / "on_receive.sh"
        hook.parent.mkdir()
        hook.write_text("exit 3\n")

        transport = FakeTransport([fetched(1)])
        result = receive_once("INBOX", transport=transport)
        assert (result.saved, result.seen_marked, result.failed) == (1, 1, 0)
        assert transport.seen == [b"1"]


class TestOnReceiveHook:
    def test_missing_hook(self, tmp_path):
        ran = run_on_receive_hook("INBOX", tmp_path, metadata(), tmp_path / "hooks" / "on_receive.sh")
        assert ran is False

    def test_env_contract(self, tmp_path):
        env = hook_env("INBOX", tmp_path, metadata(message_id=None, date=None))
        assert env == {
            "AGENTMAIL_HOOK_EVENT": "on_receive",
            "AGENTMAIL_MAILBOX": "INBOX",
            "AGENTMAIL_MESSAGE_UID": "42",
            "AGENTMAIL_MESSAGE_ID": "",
            "AGENTMAIL_MESSAGE_SUBJECT": "Hook me",
            "AGENTMAIL_MESSAGE_FROM": "Alice <alice@example.com>",
            "AGENTMAIL_MESSAGE_TO": "agent@example.com,other@example.com",
            "AGENTMAIL_MESSAGE_SAVED_AT": "2026-02-13T00:00:01.000Z",
            "AGENTMAIL_MESSAGE_DATE": "",
            "AGENTMAIL_MESSAGE_DIR": str(tmp_path),
            "AGENTMAIL_MESSAGE_METADATA_FILE": str(tmp_path / "metadata.json"),
        }

    def test_runs_with_env(self, tmp_path):
        hook = tmp_path / "on_receive.sh"
        hook.write_text(
            '#!/usr/bin/env bash\nset -euo pipefail\n'
            'printf "%s\\n%s\\n%s\\n" "$AGENTMAIL_HOOK_EVENT" "$AGENTMAIL_MESSAGE_UID" '
            '"$AGENTMAIL_MESSAGE_SUBJECT" > "$AGENTMAIL_MESSAGE_DIR/hook-output.txt"\n'
        )
        assert run_on_receive_hook("INBOX", tmp_path, metadata(), hook) is True
        lines = (tmp_path / "hook-output.txt").read_text().splitlines()
        assert lines == ["on_receive", "42", "Hook me"]

    def test_nonzero_exit(self, tmp_path):
        hook = tmp_path / "on_receive.sh"
        hook.write_text("exit 2\n")
        with pytest.raises(HookError, match="code 2"):
            run_on_receive_hook("INBOX", tmp_path, metadata(), hook)
