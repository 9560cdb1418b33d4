# src/gemini_tasks/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import cast

from ..core.state import AppState
from ..tasks.sync_engine import TaskSyncEngine
from ..tasks.task_models import Priority, Task

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return await h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return await h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("  /exit - Quit.")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering ----


def render_task(pos: int, task: Task, *, pending: bool = False) -> str:
    mark = "[x]" if task.is_completed else "[ ]"
    line = f"{pos:>3}. {mark} {task.priority.icon} {task.title}"
    if not task.is_completed:
        line += f"  ({task.priority.label})"
    if pending:
        line += "  ..."
    return line


def render_tasks(engine: TaskSyncEngine) -> str:
    lines: list[str] = []
    if engine.error:
        lines.append(f"[!] {engine.error}")
    if engine.loading:
        lines.append("Loading...")
        return "\n".join(lines)

    tasks = engine.tasks
    if not tasks:
        if not engine.error:
            lines.append("The list is empty.")
        return "\n".join(lines)

    for pos, task in enumerate(tasks, start=1):
        lines.append(render_task(pos, task, pending=engine.is_pending(task.id)))
    return "\n".join(lines)


# ---- helpers ----


def _resolve(state: AppState, args: list[str]) -> Task | str:
    """Map a 1-based list position to the task currently shown there."""
    if not args:
        return "Which task? Give its number from /list."
    try:
        pos = int(args[0])
    except ValueError:
        return f"Not a task number: {args[0]}"

    tasks = state.engine.tasks
    if pos < 1 or pos > len(tasks):
        return f"No task #{pos}. The list has {len(tasks)} item(s)."
    return tasks[pos - 1]


def _require_login(state: AppState) -> str | None:
    if not state.auth.is_authenticated:
        return "Not signed in. Use /login <email> <password> or /signup <email> <password>."
    return None


def _still_saving(task: Task) -> str:
    return f"{task.title!r} is still being saved. Try again in a moment."


async def _after_spawn(state: AppState) -> str:
    # One yield lets the spawned operation apply its optimistic change.
    await asyncio.sleep(0)
    return render_tasks(state.engine)


# ---- commands ----


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    who = state.auth.user_email if state.auth.is_authenticated else "not signed in"
    engine = state.engine
    pending = sum(1 for t in engine.tasks if engine.is_pending(t.id))
    url = getattr(state.settings, "supabase_url", "")
    return (
        "Status:\n"
        f"  Backend: {url}\n"
        f"  User: {who}\n"
        f"  Tasks: {len(engine.tasks)} ({pending} saving)"
    )


async def cmd_signup(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /signup <email> <password>"
    result = await state.auth.sign_up(args[0], args[1])
    return result.message or ("Signed up." if result.ok else "Sign-up failed.")


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 2:
        return "Usage: /login <email> <password>"
    if emit:
        emit("Signing in...")
    result = await state.auth.sign_in(args[0], args[1])
    if not result.ok:
        return result.message or "Sign-in failed."
    return f"Welcome back, {state.auth.user_email}!\n{render_tasks(state.engine)}"


async def cmd_logout(state: AppState, args: list[str]) -> str:
    if not state.auth.is_authenticated:
        return "Not signed in."
    await state.drain()
    result = await state.auth.sign_out()
    return "Signed out." if not result.message else f"Signed out locally ({result.message})."


async def cmd_list(state: AppState, args: list[str]) -> str:
    return _require_login(state) or render_tasks(state.engine)


async def cmd_reload(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    denied = _require_login(state)
    if denied:
        return denied
    if emit:
        emit("Loading...")
    await state.engine.load()
    return render_tasks(state.engine)


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add Buy milk             -> Low priority
    /add -p high Call mom     -> explicit priority (low|medium|high or 1|2|3)
    """
    denied = _require_login(state)
    if denied:
        return denied

    priority = Priority.LOW
    if len(args) >= 2 and args[0] in ("-p", "--priority"):
        try:
            priority = Priority.parse(args[1])
        except ValueError as e:
            return str(e)
        args = args[2:]

    title = " ".join(args).strip()
    if not title:
        return "Usage: /add [-p low|medium|high] <title>"

    state.spawn(state.engine.add(title, priority))
    return await _after_spawn(state)


async def cmd_done(state: AppState, args: list[str]) -> str:
    denied = _require_login(state)
    if denied:
        return denied
    task = _resolve(state, args)
    if isinstance(task, str):
        return task
    if task.is_provisional:
        return _still_saving(task)
    state.spawn(state.engine.toggle_completion(task.id))
    return await _after_spawn(state)


async def cmd_rm(state: AppState, args: list[str]) -> str:
    denied = _require_login(state)
    if denied:
        return denied
    task = _resolve(state, args)
    if isinstance(task, str):
        return task
    if task.is_provisional:
        return _still_saving(task)

    # The console owns the only input stream, so it asks before handing off;
    # the engine must not prompt again from a background operation.
    if getattr(state.settings, "confirm_deletes", True):
        if not await state.confirmer.confirm(f"Delete {task.title!r}?"):
            return "Kept."

    state.spawn(state.engine.remove(task.id, confirm=False))
    return await _after_spawn(state)


async def add_plain_line(state: AppState, line: str) -> str:
    """A bare line (no slash) adds a Low-priority task."""
    denied = _require_login(state)
    if denied:
        return denied
    state.spawn(state.engine.add(line, Priority.LOW))
    return await _after_spawn(state)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show backend, user and task counts.")
registry.register("signup", cmd_signup, help_text="Create an account: /signup <email> <password>.")
registry.register("login", cmd_login, help_text="Sign in: /login <email> <password>.", aliases=["signin"])
registry.register("logout", cmd_logout, help_text="Sign out and clear the local list.")
registry.register("list", cmd_list, help_text="Show the task list.", aliases=["ls"])
registry.register("reload", cmd_reload, help_text="Reload tasks from the server.")
registry.register(
    "add", cmd_add, help_text="Add a task: /add [-p low|medium|high] <title>.", aliases=["a"]
)
registry.register("done", cmd_done, help_text="Toggle completion: /done <n>.", aliases=["toggle", "t"])
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <n>.", aliases=["del", "delete"])
