"""
bot.py — Telegram bot handlers.

The bot is the capture surface and the renderer for the scan pipeline:
a photo message is a capture event, and every text the orchestrator
displays is rendered through style.py into one message that is edited in
place. All visual formatting is delegated to style.py.

Updates are processed concurrently so that a photo arriving mid-analysis
reaches the orchestrator and is dropped there instead of queueing behind
the running scan.
"""
from __future__ import annotations

import logging

from telegram import Message, Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

import config
import style
from history_store import visible_records
from image_encoder import CapturedImage, ReadFailure, decode_data_uri, detect_mime_type
from pipeline import Orchestrator

logger = logging.getLogger(__name__)


def get_orchestrator(context: ContextTypes.DEFAULT_TYPE) -> Orchestrator:
    return context.application.bot_data["orchestrator"]


# ── Handlers ───────────────────────────────────────────────────────────────────

async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(style.welcome(), parse_mode="MarkdownV2")


async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(style.help_text(), parse_mode="MarkdownV2")


async def cmd_history(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    records = visible_records(get_orchestrator(context).history)
    if not records:
        await update.message.reply_text(style.history_empty(), parse_mode="MarkdownV2")
        return

    page = records[: config.HISTORY_PAGE_SIZE]
    await update.message.reply_text(
        style.history_header(len(page), len(records)), parse_mode="MarkdownV2"
    )
    for record in page:
        caption = style.history_caption(record)
        try:
            photo = decode_data_uri(record.image_src)
        except ValueError as exc:
            logger.warning("history: record %s has an unusable image: %s", record.id, exc)
            await update.message.reply_text(caption, parse_mode="MarkdownV2")
            continue
        await update.message.reply_photo(photo=photo, caption=caption, parse_mode="MarkdownV2")


async def cmd_clear(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_user.id not in config.ADMIN_IDS:
        await update.message.reply_text(style.not_admin(), parse_mode="MarkdownV2")
        return
    if not await get_orchestrator(context).clear_history():
        await update.message.reply_text(style.busy(), parse_mode="MarkdownV2")
        return
    await update.message.reply_text(style.history_cleared(), parse_mode="MarkdownV2")


async def handle_photo(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    orchestrator = get_orchestrator(context)
    if not orchestrator.capture_enabled:
        await update.message.reply_text(style.busy(), parse_mode="MarkdownV2")
        return

    message = update.message
    shown: list[Message] = []

    async def display(text: str) -> None:
        card = style.analysis_card(text)
        if shown:
            await shown[0].edit_text(card, parse_mode="MarkdownV2")
        else:
            shown.append(await message.reply_text(card, parse_mode="MarkdownV2"))

    async def read() -> CapturedImage:
        if message.photo:
            file_id, mime = message.photo[-1].file_id, "image/jpeg"
        else:
            file_id, mime = message.document.file_id, None
        try:
            tg_file = await context.bot.get_file(file_id)
            data = bytes(await tg_file.download_as_bytearray())
        except TelegramError as exc:
            raise ReadFailure(f"download failed: {exc}") from exc
        return CapturedImage(data=data, mime_type=mime or detect_mime_type(data))

    await orchestrator.submit_reader(read, display)

    if orchestrator.persist_failed:
        await message.reply_text(style.persist_warning(), parse_mode="MarkdownV2")


async def handle_non_photo(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(style.not_a_photo(), parse_mode="MarkdownV2")


# ── App factory ────────────────────────────────────────────────────────────────

def build_application(orchestrator: Orchestrator) -> Application:
    app = (
        Application.builder()
        .token(config.TELEGRAM_BOT_TOKEN)
        .concurrent_updates(True)
        .build()
    )
    app.bot_data["orchestrator"] = orchestrator

    app.add_handler(CommandHandler("start",   cmd_start))
    app.add_handler(CommandHandler("help",    cmd_help))
    app.add_handler(CommandHandler("history", cmd_history))
    app.add_handler(CommandHandler("clear",   cmd_clear))
    app.add_handler(MessageHandler(filters.PHOTO | filters.Document.IMAGE, handle_photo))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_non_photo))
    return app
