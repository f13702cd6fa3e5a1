"""
In-process message transport between negotiating parties.

Each party owns a named mailbox. Receives are filtered by conversation id,
reply reference, message kind and sender; waiting is a bounded poll loop that
yields to the event loop between checks and gives up after a timeout.
"""

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Iterable, Optional

logger = logging.getLogger(__name__)


class MessageKind(str, Enum):
    """Performatives exchanged by the negotiation protocol."""
    REQUEST = "request"
    PROPOSE = "propose"
    ACCEPT = "accept"
    REJECT = "reject"
    INFORM = "inform"
    FAILURE = "failure"


@dataclass(frozen=True)
class Message:
    """A single message addressed to one party."""
    kind: MessageKind
    sender: str
    receiver: str
    conversation_id: Optional[str] = None
    reply_with: Optional[str] = None
    in_reply_to: Optional[str] = None
    payload: Any = None
    message_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def matches(self, *, conversation_id: Optional[str] = None,
                kinds: Optional[Iterable[MessageKind]] = None,
                sender: Optional[str] = None,
                in_reply_to: Optional[str] = None) -> bool:
        if conversation_id is not None and self.conversation_id != conversation_id:
            return False
        if kinds is not None and self.kind not in set(kinds):
            return False
        if sender is not None and self.sender != sender:
            return False
        if in_reply_to is not None and self.in_reply_to != in_reply_to:
            return False
        return True


def new_reference(prefix: str, conversation_id: str) -> str:
    """Fresh reply reference such as ``prop-<conversation>-<hex>``."""
    return f"{prefix}-{conversation_id}-{uuid.uuid4().hex[:8]}"


class MessageBus:
    """Routes messages to per-party mailboxes.

    All parties run on one event loop, so mailbox operations are atomic with
    respect to each other.
    """

    def __init__(self):
        self._mailboxes: Dict[str, Deque[Message]] = {}

    def register(self, name: str) -> None:
        if name in self._mailboxes:
            raise ValueError(f"Party '{name}' is already registered")
        self._mailboxes[name] = deque()

    def unregister(self, name: str) -> None:
        self._mailboxes.pop(name, None)

    def is_registered(self, name: str) -> bool:
        return name in self._mailboxes

    def pending(self, name: str) -> int:
        return len(self._mailboxes.get(name, ()))

    def send(self, message: Message) -> bool:
        """Deliver ``message``; returns ``False`` if the receiver is unknown."""
        mailbox = self._mailboxes.get(message.receiver)
        if mailbox is None:
            logger.warning(f"Dropping {message.kind.value} from {message.sender}: "
                           f"no party named '{message.receiver}'")
            return False
        mailbox.append(message)
        return True

    def receive(self, name: str, **filters) -> Optional[Message]:
        """Remove and return the oldest message matching ``filters``, if any."""
        mailbox = self._mailboxes.get(name)
        if not mailbox:
            return None
        for message in mailbox:
            if message.matches(**filters):
                mailbox.remove(message)
                return message
        return None

    async def wait_for(self, name: str, timeout: float, poll_interval: float = 0.5,
                       **filters) -> Optional[Message]:
        """Poll the mailbox until a matching message arrives or ``timeout`` elapses.

        Returns:
            Optional[Message]: The matching message, or ``None`` on timeout.
        """

        loop = asyncio.get_running_loop()
        started = loop.time()
        while True:
            message = self.receive(name, **filters)
            if message is not None:
                return message
            elapsed = loop.time() - started
            if elapsed > timeout:
                return None
            await asyncio.sleep(poll_interval)
