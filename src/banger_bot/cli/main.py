# src/banger_bot/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the Nostr connector until
SIGINT/SIGTERM. Exit status is 1 on fatal configuration errors and internal
scheduler faults.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys

from ..cli.bootstrap import ConfigError, create_initial_state
from ..config import get_settings
from ..connectors.nostr_connector import run_nostr_bot
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(state: AppState) -> int:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(signum: int) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        # Some platforms (Windows) have no loop signal handlers.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, _handle_signal, sig)

    return await run_nostr_bot(state, stop_event)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    try:
        state = create_initial_state(settings=settings)
    except ConfigError as e:
        logger.error("%s", e)
        sys.exit(1)

    logger.info("Bot pubkey: %s (%s)", state.keys.npub, state.keys.public_key)

    try:
        status = asyncio.run(_run(state))
    except KeyboardInterrupt:
        status = 0
    except Exception:
        logger.exception("Uncaught exception")
        status = 1

    logger.info("Bye.")
    sys.exit(status)


if __name__ == "__main__":
    main()
