"""
Message routing for the chat server.

Receive loops hand parsed messages to the router with :meth:`MessageRouter.submit`.
A single router task consumes them in arrival order and dispatches each one:
the history entry is appended first, then the rendered line is queued on
every target session. Dispatches never overlap, so the history order is the
order in which any recipient can observe deliveries.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Iterable, Optional

from CoolChat.core.message.protocol import (
    Message,
    STORAGE_FAILED,
    render_not_found,
)
from CoolChat.core.server.exceptions import (
    ChatServerError,
    ConnectionFault,
    RecipientNotFound,
    StorageFault,
)
from CoolChat.core.server.history import HistoryEntry, HistoryLog
from CoolChat.core.server.interfaces import ConnectionRegistry
from CoolChat.core.server.session import Session

logger = logging.getLogger(__name__)

# Ends the router task once every earlier message is dispatched
_STOP = object()


class DeliveryStatus(Enum):
    """Status of message delivery."""
    DELIVERED = auto()
    FAILED = auto()


@dataclass
class DeliveryResult:
    """Result of a delivery attempt to one session."""
    status: DeliveryStatus
    user_id: str
    error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status is DeliveryStatus.DELIVERED


class MessageRouter:
    """
    Routes messages to the sessions registered in a ConnectionRegistry.

    Broadcasts go to every registered session, including the sender.
    Private messages go to the recipient and back to the sender.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        history: HistoryLog,
        strict_durability: bool = False,
        queue_size: int = 0
    ):
        """
        Initialize message router.

        Args:
            registry: Directory of live sessions
            history: History log every routed message is appended to
            strict_durability: Refuse delivery when the history append fails
            queue_size: Maximum number of submitted messages waiting for
                dispatch (0 = unbounded)
        """
        self._registry = registry
        self._history = history
        self._strict_durability = strict_durability
        self._inbound: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._dispatch_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        """Number of submitted messages not yet dispatched."""
        return self._inbound.qsize()

    def start(self) -> None:
        """Start the router task."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="message-router")
        logger.debug("Message router started")

    async def stop(self) -> None:
        """Dispatch everything already submitted, then stop the router task."""
        if not self.is_running:
            return
        await self._inbound.put(_STOP)
        await self._task
        self._task = None
        logger.debug("Message router stopped")

    async def submit(self, message: Message) -> None:
        """
        Queue a message for dispatch.

        Messages submitted by one receive loop are dispatched in the order
        they were submitted.
        """
        await self._inbound.put(message)

    async def join(self) -> None:
        """Wait until every submitted message has been dispatched."""
        await self._inbound.join()

    async def _run(self) -> None:
        while True:
            message = await self._inbound.get()
            try:
                if message is _STOP:
                    return
                await self.dispatch(message)
            except RecipientNotFound as e:
                logger.debug("Private message from %s dropped: %s", message.sender, e)
            except StorageFault as e:
                logger.error("Message from %s not delivered: %s", message.sender, e)
            except ChatServerError as e:
                logger.warning("Error dispatching message from %s: %s", message.sender, e)
            except Exception as e:
                logger.exception("Unexpected error dispatching message: %s", e)
            finally:
                self._inbound.task_done()

    async def dispatch(self, message: Message) -> Dict[str, DeliveryResult]:
        """
        Route one message: append it to the history, then deliver it.

        Args:
            message: Parsed client message

        Returns:
            Delivery results keyed by username

        Raises:
            RecipientNotFound: A private message names an unknown user
            StorageFault: The history append failed in strict mode
        """
        async with self._dispatch_lock:
            stamped = message.stamped()
            if stamped.is_private:
                return await self._route_private(stamped)
            return await self._route_broadcast(stamped)

    async def _route_broadcast(self, message: Message) -> Dict[str, DeliveryResult]:
        rendered = message.render()
        await self._record(message, rendered)
        return self.deliver(self._registry.snapshot_all(), rendered)

    async def _route_private(self, message: Message) -> Dict[str, DeliveryResult]:
        recipient = self._registry.lookup(message.recipient)
        sender = self._registry.lookup(message.sender)

        if recipient is None:
            if sender is not None:
                self.deliver([sender], render_not_found(message.recipient))
            raise RecipientNotFound(message.recipient)

        if sender is None:
            logger.debug("Sender %s left before private message was routed", message.sender)
            return {}

        rendered = message.render()
        await self._record(message, rendered)
        targets = [recipient] if recipient is sender else [recipient, sender]
        return self.deliver(targets, rendered)

    async def _record(self, message: Message, rendered: str) -> None:
        """Append the message to the history before it is delivered."""
        entry = HistoryEntry(
            self._history.format_timestamp(message.timestamp),
            message.sender,
            rendered
        )
        try:
            await self._history.append(entry)
        except StorageFault as e:
            if not self._strict_durability:
                logger.error("History append failed, delivering anyway: %s", e)
                return
            sender = self._registry.lookup(message.sender)
            if sender is not None:
                self.deliver([sender], STORAGE_FAILED)
            raise

    @staticmethod
    def deliver(sessions: Iterable[Session], line: str) -> Dict[str, DeliveryResult]:
        """
        Queue a line on each session independently.

        A session that cannot take the line is aborted, which starts its
        teardown; the remaining sessions are unaffected.
        """
        results: Dict[str, DeliveryResult] = {}
        for session in sessions:
            try:
                session.send(line)
                results[session.username] = DeliveryResult(DeliveryStatus.DELIVERED, session.username)
            except ConnectionFault as e:
                logger.warning("Dropping session %r after failed send: %s", session, e)
                results[session.username] = DeliveryResult(DeliveryStatus.FAILED, session.username, str(e))
                session.abort()
        return results


__all__ = [
    'MessageRouter',
    'DeliveryResult',
    'DeliveryStatus',
]
