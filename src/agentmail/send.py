"""Send a message, then mirror it into the sent archive."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .address import is_valid_email
from .archive import SentMessageInput, save_sent_message
from .config import MailConfig, load_mail_config
from .errors import ValidationError
from .transport import MailSender, OutgoingMessage, smtp_sender

logger = logging.getLogger(__name__)


@dataclass
class SendMailInput:
    to: list[str]
    subject: str
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)
    text: str | None = None
    html: str | None = None
    attachments: list[str | Path] = field(default_factory=list)


@dataclass
class SendResult:
    message_id: str
    # None when the sent archive could not be written
    message_dir: Path | None = None


def validate_send_input(input: SendMailInput) -> OutgoingMessage:
    """Check recipients, subject, body and attachments before any I/O.

    Raises ValidationError listing every problem found.
    """
    issues = []
    if not input.to:
        issues.append("At least one recipient is required.")
    for label, addresses in (("to", input.to), ("cc", input.cc), ("bcc", input.bcc)):
        for address in addresses:
            if not is_valid_email(address):
                issues.append(f"Invalid {label} address: {address}")
    if not input.subject or not input.subject.strip():
        issues.append("Subject is required.")
    if not input.text and not input.html:
        issues.append("Either text or html content must be provided.")

    paths = []
    for raw_path in input.attachments:
        path = Path(raw_path).expanduser().resolve()
        if not path.is_file() or not os.access(path, os.R_OK):
            issues.append(f"Attachment is not a readable file: {raw_path}")
        paths.append(path)

    if issues:
        raise ValidationError(" ".join(issues))

    return OutgoingMessage(
        to=[a.strip() for a in input.to],
        cc=[a.strip() for a in input.cc],
        bcc=[a.strip() for a in input.bcc],
        subject=input.subject.strip(),
        text=input.text,
        html=input.html,
        attachment_paths=paths,
    )


def send_mail(
    input: SendMailInput,
    sender: MailSender | None = None,
    config: MailConfig | None = None,
    sent_dir: Path | None = None,
) -> SendResult:
    """Send `input` and archive a copy.

    Transport errors propagate (nothing is archived). Archive errors are only
    logged: the message has already gone out.
    """
    message = validate_send_input(input)
    config = config or load_mail_config()
    sender = sender or smtp_sender(config)

    message_id = sender.send(message, config.email)
    result = SendResult(message_id=message_id)

    try:
        saved = save_sent_message(
            SentMessageInput(
                message_id=message_id,
                from_addr=config.email,
                to=message.to,
                cc=message.cc,
                bcc=message.bcc,
                subject=message.subject,
                text=message.text,
                html=message.html,
                attachment_paths=message.attachment_paths,
            ),
            sent_dir,
        )
        result.message_dir = saved.message_dir
    except Exception as e:
        logger.warning("Message sent but failed to persist sent mail locally: %s", e)

    logger.info("Sent message %s", message_id)
    return result
