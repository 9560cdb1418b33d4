# src/gemini_tasks/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console REPL on a single
asyncio event loop. Remote calls started by commands keep running between
prompts; on exit they are awaited before the HTTP client is closed.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from ..cli.bootstrap import create_initial_state, shutdown
from ..config import get_settings
from ..connectors.console_connector import (
    ConsoleConfirmer,
    ConsoleInput,
    ConsoleNotifier,
    run_console_loop,
)
from ..core.errors import ConfigError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> int:
    console_input = ConsoleInput()
    try:
        state = create_initial_state(
            settings=settings,
            notifier=ConsoleNotifier(),
            confirmer=ConsoleConfirmer(console_input),
        )
    except ConfigError as e:
        logger.error("%s", e)
        print(str(e), file=sys.stderr)
        return 2

    try:
        await run_console_loop(state, console_input)
    finally:
        await shutdown(state)
    return 0


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "WARNING")).upper()
    console_level = getattr(logging, level_name, logging.WARNING)

    setup_logging(log_dir=getattr(settings, "data_dir", ".local/gemini_tasks"), console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "Gemini Tasks"))

    try:
        code = asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt, shutting down.")
        print()
        code = 130

    logger.info("Bye.")
    sys.exit(code)


if __name__ == "__main__":
    main()
