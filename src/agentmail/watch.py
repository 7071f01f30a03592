"""Long-running receive watch: single-instance lock and poll loop.

Only one watcher may run per lock file. The lock is a JSON file holding the
owner's pid; a lock whose pid is no longer alive is reclaimed.

Known race: reclaiming a stale lock (unlink, then exclusive create) is not
atomic with respect to another watcher doing the same check at the same
moment, so two watchers can briefly both start. Exclusive create still
guarantees at most one of them writes the lock file.
"""

import json
import logging
import os
import signal
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from .archive import isoformat_utc
from .config import PollingConfig, get_lock_path, read_polling_config
from .errors import LockError, WatchAlreadyRunningError
from .receive import ReceiveResult, receive_once

logger = logging.getLogger(__name__)

LOCK_ACQUIRE_ATTEMPTS = 3
WATCH_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def is_process_alive(pid: int) -> bool:
    """Liveness probe via signal 0."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, but owned by someone else
        return True
    return True


def read_lock_pid(lock_path: Path) -> int | None:
    """Read the pid from a lock file; None if unreadable or malformed."""
    try:
        data = json.loads(lock_path.read_text())
    except (OSError, ValueError):
        return None
    pid = data.get("pid") if isinstance(data, dict) else None
    if isinstance(pid, int) and not isinstance(pid, bool) and pid > 0:
        return pid
    return None


class WatchLock:
    """Cross-process exclusive lock backed by a pid file."""

    def __init__(self, path: Path | None = None):
        self.path = path or get_lock_path()
        self.acquired = False

    def acquire(self) -> None:
        """Create the lock file, reclaiming it if its owner is dead.

        Raises WatchAlreadyRunningError if a live process holds it, and
        LockError if it is still contended after LOCK_ACQUIRE_ATTEMPTS.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(
            {"pid": os.getpid(), "startedAt": isoformat_utc(datetime.now(timezone.utc))},
            indent=2,
        )

        for _ in range(LOCK_ACQUIRE_ATTEMPTS):
            try:
                with open(self.path, "x") as f:
                    f.write(f"{payload}\n")
            except FileExistsError:
                pid = read_lock_pid(self.path)
                if pid is not None and is_process_alive(pid):
                    raise WatchAlreadyRunningError(pid)
                logger.warning("Removing stale watch lock %s (pid %s)", self.path, pid)
                self.path.unlink(missing_ok=True)
                continue
            self.acquired = True
            return

        raise LockError(f"Unable to acquire watch lock at {self.path}")

    def release(self) -> None:
        if self.acquired:
            self.path.unlink(missing_ok=True)
            self.acquired = False

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, *args):
        self.release()


class CancellationToken:
    """Cooperative stop flag, checked between poll cycles."""

    def __init__(self):
        self._event = threading.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> bool:
        """Request a stop. Returns False if one was already requested."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    def wait(self, timeout: float) -> bool:
        """Sleep up to `timeout` seconds; returns True if cancelled."""
        return self._event.wait(timeout)


def install_signal_handlers(token: CancellationToken) -> Callable[[], None]:
    """Route SIGINT/SIGTERM to `token`. Returns a function that restores
    the previous handlers."""
    def handler(signum, frame):
        name = signal.Signals(signum).name
        if token.cancel(name):
            logger.warning("Received %s. Stopping receive watch.", name)
        else:
            logger.info("Received %s again; already stopping.", name)

    previous = {sig: signal.signal(sig, handler) for sig in WATCH_SIGNALS}

    def restore() -> None:
        for sig, old in previous.items():
            signal.signal(sig, old)

    return restore


def watch_loop(
    receive: Callable[[str], ReceiveResult] | None = None,
    polling: PollingConfig | None = None,
    lock_path: Path | None = None,
    token: CancellationToken | None = None,
    handle_signals: bool = True,
) -> int:
    """Poll `receive(mailbox)` until cancelled. Returns the cycle count.

    Errors inside a cycle are logged and the loop keeps going. A cycle always
    finishes before a stop request is honored. The lock is released on every
    exit path.
    """
    polling = polling or read_polling_config()
    receive = receive or (lambda mailbox: receive_once(mailbox=mailbox))
    token = token or CancellationToken()

    lock = WatchLock(lock_path)
    lock.acquire()
    restore = None
    cycles = 0

    try:
        if handle_signals:
            restore = install_signal_handlers(token)
        logger.info(
            "Starting receive watch on mailbox %s every %s second(s).",
            polling.mailbox,
            polling.interval_seconds,
        )
        while not token.cancelled:
            cycles += 1
            try:
                result = receive(polling.mailbox)
                logger.info(
                    "Receive cycle complete. Found=%s, Saved=%s, SeenMarked=%s, Failed=%s",
                    result.found, result.saved, result.seen_marked, result.failed,
                )
            except Exception:
                logger.exception("Receive cycle failed")

            if not token.cancelled:
                token.wait(polling.interval_seconds)
    finally:
        if restore:
            restore()
        lock.release()
        logger.info("Receive watch stopped.")

    return cycles
