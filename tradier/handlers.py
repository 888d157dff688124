"""
Message sinks for the stream receive loop.
"""

from __future__ import annotations
import sys
from typing import Any, Callable, Coroutine

# Type for async message handler: receives one complete decoded message
MessageHandler = Callable[[str], Coroutine[Any, Any, None]]


async def print_message(message: str):
    """Default sink: write each raw message to stdout."""
    sys.stdout.write(message + "\n")
    sys.stdout.flush()
