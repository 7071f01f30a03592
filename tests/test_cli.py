"""Tests for agentmail CLI commands."""

import json
import os
import sys

import pytest
import yaml
from click.testing import CliRunner

from agentmail.cli import main
from agentmail.receive import ReceiveResult
from agentmail.send import SendResult
from test_config import VALID_ENV


@pytest.fixture
def runner():
    return CliRunner()


def write_received(home, name, sender, date, message_id):
    message_dir = home / "received" / name
    message_dir.mkdir(parents=True)
    (message_dir / "metadata.json").write_text(json.dumps({
        "uid": 1,
        "messageId": message_id,
        "from": [sender],
        "to": ["agent@example.com"],
        "subject": f"About {message_id}",
        "date": date,
        "flags": [],
        "savedAt": date,
        "attachments": [],
    }))


class TestHelp:
    def test_lists_commands(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "conversation (c)" in result.output
        assert "receive (r)" in result.output

    def test_alias_resolves_to_full_name(self, runner):
        result = runner.invoke(main, ["s", "--help"])
        assert result.exit_code == 0
        assert "send [OPTIONS]" in result.output


class TestReceiveSetup:
    def test_writes_yaml(self, runner, home):
        result = runner.invoke(main, ["receive", "setup", "-m", "Work", "-i", "30"])
        assert result.exit_code == 0
        assert "mailbox=Work" in result.output
        data = yaml.safe_load((home / "polling.yaml").read_text())
        assert data == {"mailbox": "Work", "interval_seconds": 30}

    def test_rejects_zero_interval(self, runner, home):
        result = runner.invoke(main, ["receive", "setup", "--interval", "0"])
        assert result.exit_code != 0
        assert not (home / "polling.yaml").exists()


class TestReceiveOnce:
    def test_prints_summary(self, runner, home, monkeypatch):
        calls = []

        def fake_receive_once(mailbox=None):
            calls.append(mailbox)
            return ReceiveResult(mailbox=mailbox, found=3, saved=2, seen_marked=2, failed=1)

        monkeypatch.setattr(sys.modules["agentmail.cli.receive"], "receive_once", fake_receive_once)
        result = runner.invoke(main, ["r", "o", "-m", "Work"])
        assert result.exit_code == 0
        assert calls == ["Work"]
        assert "found=3, saved=2, seen_marked=2, failed=1" in result.output

    def test_missing_env(self, runner, home):
        result = runner.invoke(main, ["receive", "once"])
        assert result.exit_code == 1
        assert "Environment file not found" in result.output


class TestReceiveWatch:
    def test_missing_polling_config(self, runner, home):
        result = runner.invoke(main, ["receive", "watch"])
        assert result.exit_code == 1
        assert "Polling config not found" in result.output

    def test_already_running(self, runner, home):
        runner.invoke(main, ["receive", "setup"])
        (home / "receive-watch.lock").write_text(json.dumps({"pid": os.getpid()}))
        result = runner.invoke(main, ["receive", "watch"])
        assert result.exit_code == 1
        assert "already running" in result.output


class TestConversation:
    def test_text_output(self, runner, home):
        write_received(home, "b", "Alice <alice@example.com>", "2026-02-12T11:00:00.000Z", "second")
        write_received(home, "a", "Alice <alice@example.com>", "2026-02-12T10:00:00.000Z", "first")
        write_received(home, "c", "bob@example.com", "2026-02-12T09:00:00.000Z", "bob")

        result = runner.invoke(main, ["conversation", "-s", "Alice@Example.com"])
        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert lines[0] == "Conversation entries for alice@example.com: 2"
        assert "About first" in lines[1]
        assert "About second" in lines[2]

    def test_json_output(self, runner, home):
        write_received(home, "a", "alice@example.com", "2026-02-12T10:00:00.000Z", "first")
        result = runner.invoke(main, ["conversation", "-s", "alice@example.com", "--json", "-S"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [e["messageId"] for e in data] == ["first"]
        assert data[0]["direction"] == "received"

    def test_table_output(self, runner, home):
        write_received(home, "a", "alice@example.com", "2026-02-12T10:00:00.000Z", "first")
        result = runner.invoke(main, ["c", "-s", "alice@example.com", "--table"])
        assert result.exit_code == 0
        assert "About first" in result.output

    def test_no_entries(self, runner, home):
        result = runner.invoke(main, ["conversation", "-s", "alice@example.com"])
        assert result.exit_code == 0
        assert "No conversation entries found" in result.output

    def test_invalid_sender(self, runner, home):
        result = runner.invoke(main, ["conversation", "-s", "not-an-email"])
        assert result.exit_code == 1
        assert "Invalid sender" in result.output

    def test_invalid_limit(self, runner, home):
        result = runner.invoke(main, ["conversation", "-s", "alice@example.com", "-l", "0"])
        assert result.exit_code != 0


class TestSend:
    def test_sends(self, runner, home, monkeypatch, tmp_path):
        captured = []

        def fake_send_mail(input):
            captured.append(input)
            return SendResult(message_id="<x@example.com>", message_dir=tmp_path / "sent" / "x")

        monkeypatch.setattr(sys.modules["agentmail.cli.send"], "send_mail", fake_send_mail)
        result = runner.invoke(main, [
            "send", "-t", "a@example.com; b@example.com", "-c", "c@example.com",
            "-s", "Hi", "-T", "Hello", "-a", "one.pdf", "-a", "two.pdf",
        ])
        assert result.exit_code == 0
        assert "Sent message <x@example.com>" in result.output
        [input] = captured
        assert input.to == ["a@example.com", "b@example.com"]
        assert input.cc == ["c@example.com"]
        assert input.bcc == []
        assert input.attachments == ["one.pdf", "two.pdf"]

    def test_invalid_recipient(self, runner, home):
        result = runner.invoke(main, ["send", "-t", "nope", "-s", "Hi", "-T", "x"])
        assert result.exit_code == 2
        assert "Invalid email address" in result.output

    def test_missing_body(self, runner, home):
        result = runner.invoke(main, ["send", "-t", "a@example.com", "-s", "Hi"])
        assert result.exit_code == 1
        assert "text or html" in result.output


class TestConfigValidate:
    def test_missing(self, runner, home):
        result = runner.invoke(main, ["config", "validate"])
        assert result.exit_code == 1
        assert "Environment file is missing" in result.output

    def test_valid(self, runner, home):
        (home / ".env").write_text(VALID_ENV)
        result = runner.invoke(main, ["config", "v"])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
