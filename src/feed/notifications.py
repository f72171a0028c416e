import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional, Protocol

logger = logging.getLogger(__name__)

Level = Literal["success", "error"]


@dataclass
class Notification:
    """A toast-style message shown to the viewer."""

    level: Level
    message: str
    created_at: datetime = field(default_factory=datetime.now)


class Notifier(Protocol):
    """Where the feed engine reports outcomes the viewer should see."""

    def success(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class LogNotifier:
    """Notifier that logs messages and keeps the most recent ones."""

    def __init__(self, max_history: int = 50):
        self.history: deque[Notification] = deque(maxlen=max_history)

    def success(self, message: str) -> None:
        logger.info(message)
        self.history.append(Notification("success", message))

    def error(self, message: str) -> None:
        logger.warning(message)
        self.history.append(Notification("error", message))

    def latest(self) -> Optional[Notification]:
        return self.history[-1] if self.history else None
