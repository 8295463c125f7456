# ABOUTME: Notification collaborator: topics and the Notifier protocol used by the core.
# ABOUTME: LoggingNotifier is the default sink when no transport is attached.

import logging
from enum import Enum
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    BOOK_ADD = "book_add"
    BOOKS_REMOVE = "books_remove"
    BOOK_METADATA_UPDATE = "book_metadata_update"
    LOG = "log"


@runtime_checkable
class Notifier(Protocol):
    """Anything that can publish a payload on a topic."""

    def send(self, topic: Topic, payload: Any) -> None: ...


class LoggingNotifier:
    """Writes every notification to the log at INFO level."""

    def send(self, topic: Topic, payload: Any) -> None:
        logger.info("[%s] %s", topic.value.upper(), payload)

