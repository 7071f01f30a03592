"""Exception types raised by agentmail."""


class AgentmailError(Exception):
    """Base class for errors reported to the user."""


class ValidationError(AgentmailError, ValueError):
    """Input rejected before any I/O happened."""


class ConfigError(AgentmailError):
    """Account or polling configuration is missing or invalid."""


class AllocationError(AgentmailError):
    """No unique directory or file name could be found."""


class LockError(AgentmailError):
    """The watch lock could not be acquired."""


class WatchAlreadyRunningError(LockError):
    """Another live process holds the watch lock."""

    def __init__(self, pid: int):
        self.pid = pid
        super().__init__(f"Receive watch is already running with PID {pid}.")


class HookError(AgentmailError):
    """The on-receive hook exited unsuccessfully."""


class MetadataError(AgentmailError, ValueError):
    """A metadata.json payload does not match the expected shape."""
