"""
Push Feed Base

A push feed holds one long-lived connection and hands parsed payloads to a
handler. Reconnects follow a ``RetryPolicy``:

    DISCONNECTED -> CONNECTING -> CONNECTED -> BACKOFF -> DISCONNECTED

After ``max_attempts`` consecutive failed reconnects the feed gives up
(``FAILED``) and the manager moves on to the next feed.
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ...core.recovery import RetryPolicy
from ..token_feed.models import RawSourcePayload

logger = logging.getLogger(__name__)

PushHandler = Callable[[str, List[RawSourcePayload]], Awaitable[Any]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    BACKOFF = "backoff"
    FAILED = "failed"


class PushFeed(ABC):
    """Long-lived push connection with bounded reconnects."""

    name: str = "push"

    def __init__(
        self,
        retry_policy: Optional[RetryPolicy] = None,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.retry_policy = retry_policy or RetryPolicy()
        self.state = ConnectionState.DISCONNECTED
        self.attempts = 0
        self.messages_received = 0
        self.messages_dropped = 0
        self.last_error: Optional[str] = None
        self.connected_at: Optional[datetime] = None
        self._handler: Optional[PushHandler] = None
        self._rng = rng
        self._running = False
        self._connected_this_attempt = False

    def on_payloads(self, handler: PushHandler) -> None:
        self._handler = handler

    @abstractmethod
    async def _connect_and_listen(self) -> None:
        """Open the connection, call ``_mark_connected`` and feed ``_handle_message``.

        Returns when the remote end closes; raises on connection errors.
        """

    @abstractmethod
    def parse_message(self, raw: Any) -> List[RawSourcePayload]:
        """Payloads carried by one message.

        Raises:
            ValueError: the message is malformed
        """

    def _mark_connected(self) -> None:
        self.state = ConnectionState.CONNECTED
        self.connected_at = datetime.now(timezone.utc)
        self._connected_this_attempt = True
        logger.info("Push feed %s connected", self.name)

    async def _handle_message(self, raw: Any) -> None:
        self.messages_received += 1
        try:
            payloads = self.parse_message(raw)
        except (ValueError, TypeError, KeyError) as exc:
            # Drop the message, keep the connection
            self.messages_dropped += 1
            logger.debug("Dropped malformed %s message: %s", self.name, exc)
            return
        if payloads and self._handler is not None:
            await self._handler(self.name, payloads)

    async def run(self) -> bool:
        """
        Connect and keep reconnecting until stopped or out of attempts.

        Returns:
            True if stopped on request, False once reconnects are exhausted
        """
        self._running = True
        self.attempts = 0
        while self._running:
            self.state = ConnectionState.CONNECTING
            self._connected_this_attempt = False
            try:
                await self._connect_and_listen()
                self.last_error = None
            except asyncio.CancelledError:
                self.state = ConnectionState.DISCONNECTED
                raise
            except Exception as exc:  # noqa: BLE001
                self.last_error = str(exc) or exc.__class__.__name__
                logger.warning("Push feed %s connection error: %s", self.name, self.last_error)

            if not self._running:
                break
            if self._connected_this_attempt:
                self.attempts = 0

            if not self.retry_policy.allows(self.attempts):
                self.state = ConnectionState.FAILED
                logger.warning(
                    "Push feed %s gave up after %d reconnect attempts", self.name, self.attempts
                )
                return False

            delay = self.retry_policy.get_delay(self.attempts, self._rng)
            self.attempts += 1
            self.state = ConnectionState.BACKOFF
            logger.info(
                "Reconnecting %s in %.1fs (%d/%d)",
                self.name, delay, self.attempts, self.retry_policy.max_attempts,
            )
            await asyncio.sleep(delay)
            self.state = ConnectionState.DISCONNECTED

        self.state = ConnectionState.DISCONNECTED
        return True

    async def stop(self) -> None:
        self._running = False

    def status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "attempts": self.attempts,
            "messages_received": self.messages_received,
            "messages_dropped": self.messages_dropped,
            "last_error": self.last_error,
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
        }
