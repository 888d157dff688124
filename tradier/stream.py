"""
Tradier WebSocket stream client.
Connects with the session id as bearer token, sends one subscription and
hands every complete message to a handler. No reconnect: when the loop ends
the stream stays down until the caller restarts the whole lifecycle.
"""

from __future__ import annotations
import asyncio
import contextlib
import time
from typing import List, Optional, Union
import websockets
from websockets.asyncio.client import ClientConnection
from websockets.frames import CloseCode
import logging

from tradier.errors import InvalidStateError
from tradier.handlers import MessageHandler, print_message
from tradier.models import StreamState, SubscriptionRequest

logger = logging.getLogger(__name__)


class StreamClient:
    """
    One WebSocket connection to the Tradier market events stream.

    The client owns its receive loop: `start_receiving()` launches it as a
    task, `wait_closed()` waits for it and `disconnect()` tears it down.
    """

    def __init__(
        self,
        service_uri: str,
        bearer_token: str,
        handler: MessageHandler = print_message,
        open_timeout: Optional[float] = 10.0,
        close_timeout: Optional[float] = 5.0,
    ):
        self.service_uri = service_uri
        self.bearer_token = bearer_token
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout
        self._handler = handler

        self._ws: Optional[ClientConnection] = None
        self._state = StreamState.UNCONNECTED
        self._receive_task: Optional[asyncio.Task] = None

        self._messages_received = 0
        self._last_message_at: Optional[float] = None
        self._last_error: Optional[BaseException] = None

    # ==================== Status ====================

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is StreamState.OPEN

    @property
    def messages_received(self) -> int:
        return self._messages_received

    @property
    def last_message_at(self) -> Optional[float]:
        """Unix time of the last dispatched message, None before the first."""
        return self._last_message_at

    @property
    def last_error(self) -> Optional[BaseException]:
        """Error that ended the receive loop, None after a clean close."""
        return self._last_error

    # ==================== Lifecycle ====================

    async def connect(self) -> bool:
        """Open the WebSocket. Returns False instead of raising on failure."""
        if self._state is StreamState.OPEN:
            return True

        self._state = StreamState.CONNECTING
        try:
            self._ws = await websockets.connect(
                self.service_uri,
                additional_headers={"Authorization": f"Bearer {self.bearer_token}"},
                open_timeout=self.open_timeout,
                close_timeout=self.close_timeout,
            )
        except Exception as e:
            logger.error(f"[STREAM] Connect to {self.service_uri} failed: {e!r}")
            self._ws = None
            self._state = StreamState.UNCONNECTED
            return False

        self._state = StreamState.OPEN
        self._last_error = None
        logger.info(f"[STREAM] Connected to {self.service_uri}")
        return True

    async def send(self, data: str):
        """Send one complete text frame."""
        if self._state is not StreamState.OPEN or self._ws is None:
            raise InvalidStateError(f"Cannot send while stream is {self._state.value}")

        await self._ws.send(data)
        logger.info(f"[STREAM] Sent data: {data}")

    async def subscribe(self, request: Union[SubscriptionRequest, str]):
        """Send the subscription payload. Must be awaited before start_receiving()."""
        payload = request.to_json() if isinstance(request, SubscriptionRequest) else request
        await self.send(payload)

    def start_receiving(self) -> asyncio.Task:
        """Launch the receive loop as a task owned by this client."""
        if self._state is not StreamState.OPEN or self._ws is None:
            raise InvalidStateError(f"Cannot receive while stream is {self._state.value}")

        if self._receive_task is None or self._receive_task.done():
            self._receive_task = asyncio.create_task(
                self._receive_loop(self._ws), name="tradier-stream-receive"
            )
        return self._receive_task

    async def wait_closed(self):
        """Block until the receive loop has ended, for any reason."""
        task = self._receive_task
        if task is None:
            return
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[STREAM] Receive task failed: {task.exception()!r}")

    async def disconnect(self):
        """Close with normal-closure status. No-op unless the stream is open."""
        if self._state is not StreamState.OPEN or self._ws is None:
            return

        self._state = StreamState.CLOSING
        logger.info("[STREAM] Disconnecting...")
        try:
            await self._ws.close(code=CloseCode.NORMAL_CLOSURE)
        finally:
            await self._stop_receive_task()
            self._state = StreamState.CLOSED
        logger.info("[STREAM] WebSocket connection closed.")

    async def _stop_receive_task(self):
        task = self._receive_task
        if task is None or task.done():
            return

        # Closing the socket unwinds the pending read; cancel if it did not
        await asyncio.wait({task}, timeout=self.close_timeout)
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # ==================== Receive Loop ====================

    async def _receive_loop(self, ws: ClientConnection):
        logger.info("[STREAM] Receiving...")
        try:
            # recv_streaming() raises ConnectionClosed once the socket is done,
            # after draining frames already buffered
            while True:
                fragments: List[Union[str, bytes]] = []
                async for fragment in ws.recv_streaming():
                    fragments.append(fragment)
                if not fragments:
                    continue
                await self._dispatch(self._assemble(fragments))

        except websockets.ConnectionClosed as e:
            # A received close frame of any code is a clean end of stream
            if e.rcvd is not None:
                if self._state is StreamState.OPEN:
                    logger.info(f"[STREAM] Server closed the connection: {e.rcvd}")
            else:
                self._last_error = e
                logger.warning(f"[STREAM] Connection lost: {e}. Stream ended.")
        except Exception as e:
            self._last_error = e
            logger.error(f"[STREAM] Receive error: {e}. Stream ended.", exc_info=True)
            await ws.close(code=CloseCode.INTERNAL_ERROR)
        finally:
            # disconnect() owns the CLOSING -> CLOSED transition
            if self._state is StreamState.OPEN:
                self._state = StreamState.CLOSED

    @staticmethod
    def _assemble(fragments: List[Union[str, bytes]]) -> str:
        """Join the frames of one message. Binary payloads are read as UTF-8."""
        if isinstance(fragments[0], str):
            return "".join(fragments)
        return b"".join(fragments).decode("utf-8", errors="replace")

    async def _dispatch(self, message: str):
        self._messages_received += 1
        self._last_message_at = time.time()
        try:
            await self._handler(message)
        except Exception as e:
            logger.error(f"[STREAM] Handler error: {e}", exc_info=True)
