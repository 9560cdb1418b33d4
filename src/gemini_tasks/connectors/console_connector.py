# src/gemini_tasks/connectors/console_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import threading
from datetime import datetime
from typing import TextIO

from ..cli.commands import add_plain_line, registry as command_registry
from ..core.errors import TasksError, friendly_remote_error_message
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleInput:
    """
    Reads stdin on a daemon thread and hands lines to the event loop.

    Both the REPL and the delete confirmation read from this one queue, so
    there is never more than one reader on stdin. A daemon thread also means a
    pending readline never blocks interpreter shutdown.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        loop = asyncio.get_running_loop()
        stream = self._stream if self._stream is not None else sys.stdin

        def _pump() -> None:
            while True:
                line = stream.readline()
                item = line.rstrip("\r\n") if line else None
                with contextlib.suppress(RuntimeError):
                    # Loop already closed: nothing left to deliver to.
                    loop.call_soon_threadsafe(self._queue.put_nowait, item)
                if item is None:
                    return

        self._thread = threading.Thread(target=_pump, name="console-input", daemon=True)
        self._thread.start()

    async def readline(self, prompt: str = "") -> str:
        if prompt:
            print(prompt, end="", flush=True)
        line = await self._queue.get()
        if line is None:
            # Keep EOF visible to the next reader too.
            self._queue.put_nowait(None)
            raise EOFError
        return line


class ConsoleNotifier:
    """Notifier port for the terminal: alerts and banners are timestamped lines."""

    def alert(self, message: str) -> None:
        _print_ts(f"[!] {message}")

    def banner(self, message: str | None) -> None:
        if message:
            _print_ts(f"[!] {message}")


class ConsoleConfirmer:
    """Confirmer port for the terminal. Anything but y/yes counts as no."""

    def __init__(self, console_input: ConsoleInput) -> None:
        self._input = console_input

    async def confirm(self, prompt: str) -> bool:
        try:
            answer = await self._input.readline(f"{prompt} [y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")


async def run_console_loop(state: AppState, console_input: ConsoleInput) -> None:
    logger.info("Console connector started.")
    console_input.start()

    app_name = str(getattr(getattr(state, "settings", None), "app_name", "Gemini Tasks"))
    _print_ts(f"[{app_name}] Use /login or /signup to start, /help for commands, /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate feedback for operations that wait on the network.
        _print_ts(text)

    while True:
        prompt = ">>> " if state.auth.is_authenticated else "(signed out) >>> "
        try:
            user_input = (await console_input.readline(prompt)).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = await command_registry.handle(state, user_input, emit=emit)
            if reply is None:
                reply = await add_plain_line(state, user_input)
        except TasksError as e:
            msg = friendly_remote_error_message(e)
            logger.info("Command failed: %s", msg)
            reply = msg
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply:
            print(reply, flush=True)

    logger.info("Console connector finished.")
