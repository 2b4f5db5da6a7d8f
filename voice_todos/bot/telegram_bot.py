"""
Voice Todos — Telegram Bot.

Telegram is the owner's remote control for the local task store: add, list,
complete, re-date and delete tasks, and start/stop a voice capture on the
host microphone. The same Application's JobQueue delivers the reminders.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
from datetime import datetime
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import Update
from telegram.ext import Application, ApplicationBuilder, CommandHandler, ContextTypes

from voice_todos.config import settings
from voice_todos.core.dates import local_zone
from voice_todos.core.errors import NotFound, PersistenceError
from voice_todos.core.ingestion import IngestionState
from voice_todos.core.views import CategoryFilter, DoneFilter, due_label, filter_tasks, is_overdue
from voice_todos.data.models import Task, TaskCategory

if TYPE_CHECKING:
    from voice_todos.core.ingestion import IngestionCoordinator
    from voice_todos.data.db import TaskStore

logger = logging.getLogger(__name__)

_HELP_TEXT = (
    "📝 Voice Todos\n\n"
    "/record — start recording on the host microphone\n"
    "/stop — stop recording and turn it into tasks\n"
    "/add <title> [#work|#personal] — add a task\n"
    "/list [all|done|undone] [personal|work] — show tasks\n"
    "/done <id> — toggle completion\n"
    "/due <id> <YYYY-MM-DD HH:MM | none> — set or clear the due date\n"
    "/delete <id> — delete a task"
)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users.

    Does NOT send any response to strangers — the bot must not reveal
    its existence to unauthorized users.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _format_task(task: Task, now: datetime | None = None) -> str:
    mark = "✅" if task.is_done else "⬜"
    line = f"{mark} #{task.id} {task.title} [{task.category.value}]"
    label = due_label(task, now)
    if label:
        line += f" — {label}"
        if is_overdue(task, now):
            line += " ⚠️"
    return line


def _parse_list_args(args: list[str]) -> tuple[DoneFilter, CategoryFilter]:
    done, category = DoneFilter.ALL, CategoryFilter.ALL
    for arg in args:
        value = arg.strip().lower()
        if value in {f.value for f in DoneFilter}:
            done = DoneFilter(value)
        elif value in {f.value for f in CategoryFilter}:
            category = CategoryFilter(value)
    return done, category


def _parse_add_args(args: list[str]) -> tuple[str, TaskCategory | None]:
    category: TaskCategory | None = None
    words: list[str] = []
    for word in args:
        if word.lower() in ("#work", "#personal"):
            category = TaskCategory(word[1:].lower())
        else:
            words.append(word)
    return " ".join(words).strip(), category


def _parse_due_arg(raw: str) -> datetime | None:
    """'YYYY-MM-DD HH:MM' (local) or 'none'. Raises ValueError otherwise."""
    if raw.strip().lower() == "none":
        return None
    parsed = datetime.strptime(raw.strip(), "%Y-%m-%d %H:%M")
    tz = local_zone(settings.TIMEZONE)
    return parsed.replace(tzinfo=tz) if tz else parsed.astimezone()


def _parse_task_id(args: list[str]) -> int | None:
    if not args:
        return None
    try:
        return int(args[0])
    except ValueError:
        return None


def _store(context: ContextTypes.DEFAULT_TYPE) -> TaskStore:
    return context.bot_data["store"]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(_HELP_TEXT)


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(_HELP_TEXT)


@authorized_only
async def cmd_add(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /add <title> [#work|#personal]."""
    title, category = _parse_add_args(context.args or [])
    if not title:
        await update.message.reply_text("Usage: /add <title> [#work|#personal]")
        return

    try:
        task = _store(context).add_task(title, category)
    except PersistenceError as exc:
        logger.error("/add error: %s", exc)
        await update.message.reply_text("Couldn't save the task. Please try again.")
        return
    await update.message.reply_text(f"Added {_format_task(task)}")


@authorized_only
async def cmd_list(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /list [all|done|undone] [personal|work]."""
    done, category = _parse_list_args(context.args or [])
    tasks = filter_tasks(_store(context).list_tasks(), done=done, category=category)
    if not tasks:
        await update.message.reply_text("No tasks.")
        return
    tasks.sort(key=lambda t: t.id)
    await update.message.reply_text("\n".join(_format_task(t) for t in tasks))


@authorized_only
async def cmd_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /done <id> — toggle completion."""
    task_id = _parse_task_id(context.args or [])
    if task_id is None:
        await update.message.reply_text("Usage: /done <task_id>\nUse /list to see IDs.")
        return

    try:
        task = _store(context).toggle_done(task_id)
    except NotFound:
        await update.message.reply_text(f"No task #{task_id}. Use /list to see IDs.")
        return
    except PersistenceError as exc:
        logger.error("/done error: %s", exc)
        await update.message.reply_text(f"Couldn't update task #{task_id}. Please try again.")
        return
    await update.message.reply_text(_format_task(task))


@authorized_only
async def cmd_due(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /due <id> <YYYY-MM-DD HH:MM | none>."""
    args = context.args or []
    task_id = _parse_task_id(args)
    if task_id is None or len(args) < 2:
        await update.message.reply_text("Usage: /due <task_id> <YYYY-MM-DD HH:MM | none>")
        return

    try:
        due = _parse_due_arg(" ".join(args[1:]))
    except ValueError:
        await update.message.reply_text("Invalid date. Use YYYY-MM-DD HH:MM, or 'none' to clear.")
        return

    try:
        task = _store(context).update_task(task_id, due_date=due)
    except NotFound:
        await update.message.reply_text(f"No task #{task_id}. Use /list to see IDs.")
        return
    except PersistenceError as exc:
        logger.error("/due error: %s", exc)
        await update.message.reply_text(f"Couldn't update task #{task_id}. Please try again.")
        return
    await update.message.reply_text(_format_task(task))


@authorized_only
async def cmd_delete(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete <id>."""
    task_id = _parse_task_id(context.args or [])
    if task_id is None:
        await update.message.reply_text("Usage: /delete <task_id>")
        return

    try:
        _store(context).delete_task(task_id)
    except NotFound:
        await update.message.reply_text(f"No task #{task_id}. Use /list to see IDs.")
        return
    except PersistenceError as exc:
        logger.error("/delete error: %s", exc)
        await update.message.reply_text(f"Couldn't delete task #{task_id}. Please try again.")
        return
    await update.message.reply_text(f"🗑 Deleted task #{task_id}")


# ---------------------------------------------------------------------------
# Voice capture
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_record(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /record — a new coordinator starts capturing immediately."""
    current: IngestionCoordinator | None = context.user_data.get("ingestion")
    if current is not None and not current.is_finished:
        await update.message.reply_text("Already recording. Send /stop to finish.")
        return

    coordinator = context.bot_data["ingestion_factory"]()
    if coordinator.state is IngestionState.FAILED:
        await update.message.reply_text(f"❌ {coordinator.error_message}")
        return

    context.user_data["ingestion"] = coordinator
    await update.message.reply_text("🎙 Recording… send /stop when you're done.")


@authorized_only
async def cmd_stop(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /stop — upload the recording and report the created tasks."""
    coordinator: IngestionCoordinator | None = context.user_data.get("ingestion")
    if coordinator is None or coordinator.state is not IngestionState.CAPTURING:
        await update.message.reply_text("Nothing is recording. Send /record to start.")
        return

    await update.message.reply_text("⏳ Processing…")
    state = await coordinator.toggle()
    context.user_data.pop("ingestion", None)
    await coordinator.dispose()

    if state is IngestionState.SUCCEEDED:
        if not coordinator.tasks:
            await update.message.reply_text("I didn't catch any tasks in that recording.")
            return
        lines = [_format_task(t) for t in coordinator.tasks]
        await update.message.reply_text("Added:\n" + "\n".join(lines))
    else:
        await update.message.reply_text(f"❌ {coordinator.error_message}")


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    store: TaskStore | None = None,
    ingestion_factory: Callable[[], IngestionCoordinator] | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        store: Task store. Defaults to a SQLite store at DATABASE_PATH whose
               reminders go through this Application's JobQueue.
        ingestion_factory: Builds a fresh IngestionCoordinator per /record.
               Defaults to the host microphone + remote parse-todo endpoint.
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    if store is None:
        from voice_todos.adapters.telegram_notifier import TelegramReminderService
        from voice_todos.core.reminders import ReminderScheduler
        from voice_todos.data.db import TaskStore

        reminders = ReminderScheduler(TelegramReminderService(app.job_queue, settings.ALLOWED_USER_IDS))
        store = TaskStore(reminders, tz=local_zone(settings.TIMEZONE))
        # The JobQueue is in-memory: rebuild every pending reminder on boot.
        store.reconcile_all()

    if ingestion_factory is None:
        ingestion_factory = _default_ingestion_factory(store)

    app.bot_data["store"] = store
    app.bot_data["ingestion_factory"] = ingestion_factory

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("add", cmd_add))
    app.add_handler(CommandHandler("list", cmd_list))
    app.add_handler(CommandHandler("done", cmd_done))
    app.add_handler(CommandHandler("due", cmd_due))
    app.add_handler(CommandHandler("delete", cmd_delete))
    app.add_handler(CommandHandler("record", cmd_record))
    app.add_handler(CommandHandler("stop", cmd_stop))

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _default_ingestion_factory(store: TaskStore) -> Callable[[], IngestionCoordinator]:
    from voice_todos.adapters.sounddevice_recorder import SoundDeviceMicrophone, SoundDeviceRecorder
    from voice_todos.core.capture import AudioCaptureSession
    from voice_todos.core.ingestion import IngestionCoordinator
    from voice_todos.core.transcription import TranscriptionClient

    client = TranscriptionClient.from_settings()
    microphone = SoundDeviceMicrophone()

    def factory() -> IngestionCoordinator:
        session = AudioCaptureSession(
            SoundDeviceRecorder.from_settings(),
            microphone,
            recordings_dir=settings.RECORDINGS_DIR or None,
        )
        return IngestionCoordinator(session, client, store)

    return factory


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting Voice Todos bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
