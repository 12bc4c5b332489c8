"""Message schema and output channels.

Components:
- Message / MessageKind: Normalized notification passed from sources to outputs
- OutputChannel: Delivery interface
- WebhookChannel / SlackChannel / TelegramChannel / ConsoleChannel: Outputs
- build_channels: Create the outputs enabled in Settings
"""

from bili_relay.push.channels import (
    ConsoleChannel,
    OutputChannel,
    SlackChannel,
    TelegramChannel,
    WebhookChannel,
    build_channels,
)
from bili_relay.push.schemas import Message, MessageKind

__all__ = [
    "ConsoleChannel",
    "Message",
    "MessageKind",
    "OutputChannel",
    "SlackChannel",
    "TelegramChannel",
    "WebhookChannel",
    "build_channels",
]
