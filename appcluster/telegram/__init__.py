from .notifier import TelegramNotifier
from .events import (
    NodeDnsStatusChange,
    ResultChange,
    ActionError,
)
from .formatter import MessageFormatter

__all__ = [
    "TelegramNotifier",
    "NodeDnsStatusChange",
    "ResultChange",
    "ActionError",
    "MessageFormatter",
]
