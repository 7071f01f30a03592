"""Run the user's on-receive hook script after a message is archived."""

import logging
import os
import subprocess
from pathlib import Path

from .archive import METADATA_FILE
from .config import get_hook_path
from .errors import HookError
from .models import MessageRecord

logger = logging.getLogger(__name__)

HOOK_EVENT = "on_receive"


def hook_env(mailbox: str, message_dir: Path, metadata: MessageRecord) -> dict[str, str]:
    """Message fields exposed to the hook, as AGENTMAIL_* variables."""
    return {
        "AGENTMAIL_HOOK_EVENT": HOOK_EVENT,
        "AGENTMAIL_MAILBOX": mailbox,
        "AGENTMAIL_MESSAGE_UID": str(metadata.uid),
        "AGENTMAIL_MESSAGE_ID": metadata.message_id or "",
        "AGENTMAIL_MESSAGE_SUBJECT": metadata.subject or "",
        "AGENTMAIL_MESSAGE_FROM": ",".join(metadata.from_addrs),
        "AGENTMAIL_MESSAGE_TO": ",".join(metadata.to_addrs),
        "AGENTMAIL_MESSAGE_SAVED_AT": metadata.saved_at,
        "AGENTMAIL_MESSAGE_DATE": metadata.date or "",
        "AGENTMAIL_MESSAGE_DIR": str(message_dir),
        "AGENTMAIL_MESSAGE_METADATA_FILE": str(message_dir / METADATA_FILE),
    }


def run_on_receive_hook(
    mailbox: str,
    message_dir: Path,
    metadata: MessageRecord,
    hook_path: Path | None = None,
) -> bool:
    """Run the hook with bash if it exists. Returns whether it ran.

    Raises HookError if the script exits non-zero or is killed.
    """
    hook_path = hook_path or get_hook_path()
    if not hook_path.is_file():
        return False

    env = {**os.environ, **hook_env(mailbox, message_dir, metadata)}
    logger.debug("Running %s for %s", hook_path, message_dir)
    try:
        result = subprocess.run(["bash", str(hook_path)], env=env)
    except OSError as e:
        raise HookError(f"Failed to start hook {hook_path}: {e}") from e

    if result.returncode < 0:
        raise HookError(f"Hook exited with signal {-result.returncode}.")
    if result.returncode != 0:
        raise HookError(f"Hook exited with code {result.returncode}.")
    return True
