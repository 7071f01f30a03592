"""Local email archive, conversation lookup and receive watcher."""

from .archive import SaveResult, SentMessageInput, sanitize_filename, save_message, save_sent_message
from .conversation import query_conversation
from .models import AttachmentRecord, ConversationEntry, MessageRecord, SentMessageRecord
from .receive import ReceiveResult, receive_once
from .send import SendMailInput, SendResult, send_mail
from .watch import CancellationToken, WatchLock, watch_loop

__all__ = [
    "AttachmentRecord",
    "CancellationToken",
    "ConversationEntry",
    "MessageRecord",
    "ReceiveResult",
    "SaveResult",
    "SendMailInput",
    "SendResult",
    "SentMessageInput",
    "SentMessageRecord",
    "WatchLock",
    "query_conversation",
    "receive_once",
    "sanitize_filename",
    "save_message",
    "save_sent_message",
    "send_mail",
    "watch_loop",
]
