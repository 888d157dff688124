"""
Tradier Stream — Main Orchestrator.
Session bootstrap, stream connect + subscribe, receive until shutdown.
"""

from __future__ import annotations
import asyncio
import os
import sys
import signal
from typing import Optional
import logging

from dotenv import load_dotenv
import websockets

from config import AppConfig
from tradier.errors import TradierError
from tradier.handlers import MessageHandler, print_message
from tradier.models import SubscriptionRequest
from tradier.session import SessionAuthenticator
from tradier.stream import StreamClient

logger = logging.getLogger(__name__)


def setup_logging(config: AppConfig):
    handlers = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        # Create log dir before FileHandler
        os.makedirs(os.path.dirname(config.log_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )


class StreamApp:
    """Runs one session -> connect -> subscribe -> receive lifecycle."""

    def __init__(self, config: AppConfig, handler: MessageHandler = print_message):
        self.config = config
        self.handler = handler
        self.authenticator = SessionAuthenticator(timeout=config.tradier.session_timeout_sec)
        self.stream: Optional[StreamClient] = None
        self._running = False

    def build_subscription(self, session_id: str) -> SubscriptionRequest:
        sub = self.config.subscription
        return SubscriptionRequest(
            symbols=sub.symbols,
            session_id=session_id,
            filters=sub.filters,
            linebreak=sub.linebreak,
            valid_only=sub.valid_only,
            advanced_details=sub.advanced_details,
        )

    async def start(self) -> bool:
        """
        Full startup sequence, then block until the stream ends.
        Returns False if startup failed or the stream ended with an error.
        A stop() during startup ends the sequence cleanly.
        """
        self._running = True
        logger.info("=" * 60)
        logger.info("   TRADIER STREAM — STARTING")
        logger.info("=" * 60)

        # 1. Get session id; without one no stream is attempted
        try:
            session_id = await self.authenticator.request_session(
                self.config.tradier.session_url,
                self.config.tradier.bearer_token,
            )
        except TradierError as e:
            if not self._running:
                return True
            logger.critical(f"[BOOT] Could not create stream session: {e}")
            return False
        finally:
            await self.authenticator.close()

        if not self._running:
            logger.info("[BOOT] Stopped before connecting.")
            return True

        # 2. Build subscription payload
        request = self.build_subscription(session_id)

        # 3. Connect
        self.stream = StreamClient(
            self.config.tradier.websocket_url,
            session_id,
            handler=self.handler,
            open_timeout=self.config.stream.open_timeout_sec,
            close_timeout=self.config.stream.close_timeout_sec,
        )
        if not await self.stream.connect():
            logger.critical(f"[BOOT] Could not connect to {self.config.tradier.websocket_url}")
            return False

        # stop() during the handshake found nothing open to close
        if not self._running:
            await self.stream.disconnect()
            logger.info("[BOOT] Stopped before subscribing.")
            return True

        # 4. Subscribe before any message is read
        try:
            await self.stream.subscribe(request)
        except (TradierError, websockets.ConnectionClosed) as e:
            await self.stream.disconnect()
            if not self._running:
                return True
            logger.critical(f"[BOOT] Subscription failed: {e}")
            return False

        if not self._running:
            await self.stream.disconnect()
            logger.info("[BOOT] Stopped before receiving.")
            return True

        # 5. Receive until server close, error or stop()
        self.stream.start_receiving()
        logger.info(f"[BOOT] ✅ Streaming {len(request.symbols)} symbols. Ctrl+C to quit.")
        await self.stream.wait_closed()

        if self.stream.last_error is not None:
            logger.error(f"[STREAM] Stream ended with error: {self.stream.last_error}")
            return False
        return True

    async def stop(self):
        """Graceful shutdown."""
        logger.info("[SHUTDOWN] Stopping stream...")
        self._running = False
        if self.stream is not None:
            await self.stream.disconnect()
        await self.authenticator.close()
        logger.info("[SHUTDOWN] Complete.")


async def main():
    """Entry point."""
    load_dotenv()
    config = AppConfig.from_env()
    setup_logging(config)

    # Validate critical config
    if not config.tradier.bearer_token:
        logger.critical("TRADIER_TOKEN must be set!")
        sys.exit(1)

    app = StreamApp(config)

    # Graceful shutdown handler
    if sys.platform != "win32":
        loop = asyncio.get_event_loop()
        def handle_signal(sig):
            logger.info(f"Received signal {sig}. Initiating shutdown...")
            asyncio.create_task(app.stop())

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))

    try:
        ok = await app.start()
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received in main loop.")
        await app.stop()
        return
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        await app.stop()
        sys.exit(1)

    if not ok:
        sys.exit(1)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
