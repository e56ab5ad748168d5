"""
Process lifecycle: signal-driven graceful shutdown.

SIGINT and SIGTERM set an asyncio.Event that the update loop watches
while waiting for the next message.
"""

import asyncio
import logging
import signal
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS: Tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


def install_signal_handlers(
    stop_event: asyncio.Event,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> None:
    """
    Wire SIGINT/SIGTERM to the stop event.

    Args:
        stop_event: Event set on the first shutdown signal
        loop: Event loop to register with (default: running loop)

    Note:
        - Must be called from the main thread with a running loop
        - Falls back to signal.signal where the loop has no
          add_signal_handler (Windows)
    """
    if loop is None:
        loop = asyncio.get_running_loop()

    def request_shutdown(signum: int) -> None:
        if stop_event.is_set():
            return
        logger.info(
            "Shutdown signal received, exiting...",
            extra={"signal": signal.Signals(signum).name}
        )
        stop_event.set()

    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, request_shutdown, sig)
        except NotImplementedError:
            signal.signal(
                sig,
                lambda signum, frame: loop.call_soon_threadsafe(request_shutdown, signum)
            )


def remove_signal_handlers(loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
    """Restore default handling so a second Ctrl+C after shutdown kills the process."""
    if loop is None:
        loop = asyncio.get_running_loop()

    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.remove_signal_handler(sig)
        except NotImplementedError:
            signal.signal(sig, signal.SIG_DFL)
