"""Paths, account settings (.env) and polling settings (YAML)."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import dotenv_values

from .address import is_valid_email
from .errors import ConfigError

HOME_ENV_VAR = "AGENTMAIL_HOME"
ENV_FILE = ".env"
POLLING_FILE = "polling.yaml"
RECEIVED_DIR = "received"
SENT_DIR = "sent"
LOCK_FILE = "receive-watch.lock"
HOOKS_DIR = "hooks"
ON_RECEIVE_HOOK = "on_receive.sh"


def get_home() -> Path:
    """Get the agentmail home directory.

    Uses AGENTMAIL_HOME if set, otherwise ~/.agentmail.
    """
    env_home = os.environ.get(HOME_ENV_VAR)
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / ".agentmail"


def get_env_path() -> Path:
    return get_home() / ENV_FILE


def get_polling_path() -> Path:
    return get_home() / POLLING_FILE


def get_messages_dir() -> Path:
    """Archive root for received messages."""
    return get_home() / RECEIVED_DIR


def get_sent_dir() -> Path:
    """Archive root for sent messages."""
    return get_home() / SENT_DIR


def get_lock_path() -> Path:
    return get_home() / LOCK_FILE


def get_hook_path() -> Path:
    return get_home() / HOOKS_DIR / ON_RECEIVE_HOOK


# --- Account settings ---


@dataclass
class ServerConfig:
    """Connection settings for one SMTP or IMAP server."""
    host: str
    port: int
    secure: bool
    user: str
    password: str


@dataclass
class MailConfig:
    """The configured account."""
    email: str
    smtp: ServerConfig
    imap: ServerConfig


REQUIRED_ENV_KEYS = (
    "AGENTMAIL_EMAIL",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_SECURE",
    "SMTP_USER",
    "SMTP_PASS",
    "IMAP_HOST",
    "IMAP_PORT",
    "IMAP_SECURE",
    "IMAP_USER",
    "IMAP_PASS",
)


@dataclass
class EnvValidation:
    """Result of checking an env file without raising."""
    is_valid: bool
    env_file: Path
    exists: bool
    missing_keys: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)


def _parse_port(key: str, value: str | None, issues: list[str]) -> int:
    try:
        port = int((value or "").strip())
    except ValueError:
        issues.append(f"{key}: must be an integer")
        return 0
    if not 1 <= port <= 65535:
        issues.append(f"{key}: must be between 1 and 65535")
    return port


def _parse_bool(key: str, value: str | None, issues: list[str]) -> bool:
    normalized = (value or "").strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    issues.append(f"{key}: must be 'true' or 'false'")
    return False


def _parse_mail_env(raw: dict[str, str | None]) -> tuple[MailConfig, list[str]]:
    """Build a MailConfig from raw env values, collecting every issue."""
    issues: list[str] = []

    for key in REQUIRED_ENV_KEYS:
        value = raw.get(key)
        if value is None or not value.strip():
            issues.append(f"{key}: required")

    email_addr = (raw.get("AGENTMAIL_EMAIL") or "").strip()
    if email_addr and not is_valid_email(email_addr):
        issues.append("AGENTMAIL_EMAIL: invalid email address")

    def server(prefix: str) -> ServerConfig:
        return ServerConfig(
            host=(raw.get(f"{prefix}_HOST") or "").strip(),
            port=_parse_port(f"{prefix}_PORT", raw.get(f"{prefix}_PORT"), issues),
            secure=_parse_bool(f"{prefix}_SECURE", raw.get(f"{prefix}_SECURE"), issues),
            user=(raw.get(f"{prefix}_USER") or "").strip(),
            password=raw.get(f"{prefix}_PASS") or "",
        )

    config = MailConfig(email=email_addr, smtp=server("SMTP"), imap=server("IMAP"))
    # Dedupe while keeping order ("required" and parse errors can overlap)
    return config, list(dict.fromkeys(issues))


def load_mail_config(env_file: Path | None = None) -> MailConfig:
    """Load account settings from the env file.

    Raises ConfigError if the file is missing or any value is invalid.
    """
    env_file = env_file or get_env_path()
    if not env_file.exists():
        raise ConfigError(
            f"Environment file not found at {env_file}. Create it using .env.example values."
        )

    config, issues = _parse_mail_env(dotenv_values(env_file))
    if issues:
        raise ConfigError(f"Invalid environment configuration: {'; '.join(issues)}")
    return config


def validate_env_file(env_file: Path | None = None) -> EnvValidation:
    """Check the env file and report what's wrong with it."""
    env_file = env_file or get_env_path()
    exists = env_file.exists()
    raw = dotenv_values(env_file) if exists else {}

    missing = [
        key for key in REQUIRED_ENV_KEYS
        if raw.get(key) is None or not raw[key].strip()
    ]
    _, issues = _parse_mail_env(raw)

    return EnvValidation(
        is_valid=exists and not issues,
        env_file=env_file,
        exists=exists,
        missing_keys=missing,
        issues=issues,
    )


# --- Polling settings ---


@dataclass
class PollingConfig:
    """Mailbox and interval used by `receive watch`."""
    mailbox: str = "INBOX"
    interval_seconds: int = 60

    def validate(self) -> "PollingConfig":
        if not isinstance(self.mailbox, str) or not self.mailbox.strip():
            raise ConfigError("Polling config: mailbox must be a non-empty string")
        if (
            not isinstance(self.interval_seconds, int)
            or isinstance(self.interval_seconds, bool)
            or self.interval_seconds < 1
        ):
            raise ConfigError("Polling config: interval_seconds must be an integer >= 1")
        self.mailbox = self.mailbox.strip()
        return self


DEFAULT_POLLING_CONFIG = PollingConfig()


def write_polling_config(
    mailbox: str | None = None,
    interval_seconds: int | None = None,
    path: Path | None = None,
) -> PollingConfig:
    """Save polling settings, filling unset values with defaults."""
    path = path or get_polling_path()
    config = PollingConfig(
        mailbox=mailbox if mailbox is not None else DEFAULT_POLLING_CONFIG.mailbox,
        interval_seconds=(
            interval_seconds if interval_seconds is not None
            else DEFAULT_POLLING_CONFIG.interval_seconds
        ),
    ).validate()

    path.parent.mkdir(parents=True, exist_ok=True)
    data = {"mailbox": config.mailbox, "interval_seconds": config.interval_seconds}
    with open(path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
    return config


def read_polling_config(path: Path | None = None) -> PollingConfig:
    """Load polling settings. Raises ConfigError if missing or invalid."""
    path = path or get_polling_path()
    if not path.exists():
        raise ConfigError(
            f"Polling config not found at {path}. Run `agentmail receive setup` first."
        )

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Polling config at {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Polling config at {path} must be a mapping")

    return PollingConfig(
        mailbox=data.get("mailbox"),
        interval_seconds=data.get("interval_seconds"),
    ).validate()


def try_read_polling_config(path: Path | None = None) -> PollingConfig | None:
    """Like read_polling_config(), but None if the file doesn't exist."""
    path = path or get_polling_path()
    if not path.exists():
        return None
    return read_polling_config(path)
