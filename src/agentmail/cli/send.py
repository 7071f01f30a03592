"""Send command."""

import click
from click import echo, option

from ..send import SendMailInput, send_mail

from .utils import address_list, handle_errors


@click.command(no_args_is_help=True)
@option('-a', '--attach', 'attachments', multiple=True, help="Attachment file path (repeatable)")
@option('-b', '--bcc', callback=address_list, help="Comma-separated bcc addresses")
@option('-c', '--cc', callback=address_list, help="Comma-separated cc addresses")
@option('-H', '--html', help="HTML body")
@option('-s', '--subject', required=True, help="Message subject")
@option('-t', '--to', required=True, callback=address_list, help="Comma-separated recipient addresses")
@option('-T', '--text', help="Plain-text body")
@handle_errors
def send(
    attachments: tuple[str, ...],
    bcc: list[str],
    cc: list[str],
    html: str | None,
    subject: str,
    to: list[str],
    text: str | None,
):
    """Send an email through SMTP and archive a copy.

    \b
    Examples:
      agentmail send -t alice@example.com -s Hi -T "Hello Alice"
      agentmail send -t a@x.com,b@y.com -s Report -T "See attached" -a report.pdf
    """
    result = send_mail(SendMailInput(
        to=to,
        cc=cc,
        bcc=bcc,
        subject=subject,
        text=text,
        html=html,
        attachments=list(attachments),
    ))
    echo(f"Sent message {result.message_id}")
    if result.message_dir:
        echo(f"Archived to {result.message_dir}")
