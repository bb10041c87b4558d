"""
Tests for bot.py handlers, driven with MagicMock updates (no Telegram API).

Covers:
  - handle_photo(): downloads, runs the pipeline, edits one message in place
  - handle_photo(): busy orchestrator → busy notice, no second run
  - handle_photo(): download error → failure text, no history
  - handle_photo(): save warning only follows the run whose write failed
  - cmd_history(): empty notice / header + one photo per visible record
  - cmd_clear(): admin-only
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from telegram.error import NetworkError

import bot
import config
import database as db
import style
from history_store import HistoryRecord, HistoryStore
from pipeline import FAILURE_TEXT, IN_PROGRESS_TEXT, Orchestrator, PipelineState
from providers.base import AnalysisProvider, Failure, Success

TOMATO = '**Analysis:** It is a tomato. <span class="health-score">Health Score: 8/10</span>'


@pytest_asyncio.fixture(autouse=True)
async def init_db(tmp_data_dir):
    await db.init_db()


def make_orchestrator(*outcomes, history=()) -> Orchestrator:
    provider = MagicMock(spec=AnalysisProvider)
    provider.full_name = "fake/model"
    provider.analyse = AsyncMock(side_effect=list(outcomes))
    return Orchestrator(provider, HistoryStore(max_records=0), history=history)


def make_context(orchestrator: Orchestrator, image: bytes = b"", download_error=None):
    context = MagicMock()
    context.application.bot_data = {"orchestrator": orchestrator}
    tg_file = MagicMock()
    tg_file.download_as_bytearray = AsyncMock(
        return_value=bytearray(image), side_effect=download_error
    )
    context.bot.get_file = AsyncMock(return_value=tg_file)
    return context


def make_update(user_id: int = 1):
    update = MagicMock()
    update.effective_user.id = user_id
    sent = MagicMock()
    sent.edit_text = AsyncMock()
    update.message.reply_text = AsyncMock(return_value=sent)
    update.message.reply_photo = AsyncMock()
    update.message.photo = [MagicMock(file_id="small"), MagicMock(file_id="large")]
    return update, sent


# ── handle_photo ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestHandlePhoto:
    async def test_success_edits_placeholder_with_result(self, red_jpeg):
        orch = make_orchestrator(Success(TOMATO))
        context = make_context(orch, red_jpeg)
        update, sent = make_update()

        await bot.handle_photo(update, context)

        context.bot.get_file.assert_awaited_once_with("large")
        update.message.reply_text.assert_awaited_once_with(
            style.analysis_card(IN_PROGRESS_TEXT), parse_mode="MarkdownV2"
        )
        sent.edit_text.assert_awaited_once_with(style.analysis_card(TOMATO), parse_mode="MarkdownV2")
        assert len(orch.history) == 1

    async def test_busy_replies_and_skips(self, red_jpeg):
        orch = make_orchestrator(Success(TOMATO))
        orch.state = PipelineState.BUSY
        context = make_context(orch, red_jpeg)
        update, _ = make_update()

        await bot.handle_photo(update, context)

        update.message.reply_text.assert_awaited_once_with(style.busy(), parse_mode="MarkdownV2")
        orch.provider.analyse.assert_not_awaited()

    async def test_download_error_shows_failure(self):
        orch = make_orchestrator()
        context = make_context(orch, download_error=NetworkError("timed out"))
        update, sent = make_update()

        await bot.handle_photo(update, context)

        sent.edit_text.assert_awaited_once_with(style.analysis_card(FAILURE_TEXT), parse_mode="MarkdownV2")
        assert orch.history == ()
        assert orch.state is PipelineState.IDLE

    async def test_save_warning_only_for_the_run_that_failed_to_save(self, red_jpeg):
        orch = make_orchestrator(Success(TOMATO), Failure("503"))
        context = make_context(orch, red_jpeg)

        first, _ = make_update()
        with patch("database.set_item", AsyncMock(side_effect=OSError("disk full"))):
            await bot.handle_photo(first, context)
        first.message.reply_text.assert_any_await(style.persist_warning(), parse_mode="MarkdownV2")

        second, sent = make_update()
        await bot.handle_photo(second, context)

        sent.edit_text.assert_awaited_once_with(style.analysis_card(FAILURE_TEXT), parse_mode="MarkdownV2")
        texts = [c.args[0] for c in second.message.reply_text.await_args_list]
        assert style.persist_warning() not in texts


# ── /history ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestHistoryCommand:
    async def test_empty(self):
        update, _ = make_update()
        await bot.cmd_history(update, make_context(make_orchestrator()))
        update.message.reply_text.assert_awaited_once_with(style.history_empty(), parse_mode="MarkdownV2")

    async def test_shows_visible_records_as_photos(self, monkeypatch):
        monkeypatch.setattr(config, "HISTORY_PAGE_SIZE", 5)
        good = HistoryRecord(2, "data:image/jpeg;base64,aGk=", "fine", "now")
        bad = HistoryRecord(1, "data:image/jpeg;base64,aGk=", None, "then")
        update, _ = make_update()

        await bot.cmd_history(update, make_context(make_orchestrator(history=(good, bad))))

        update.message.reply_text.assert_awaited_once_with(
            style.history_header(1, 1), parse_mode="MarkdownV2"
        )
        update.message.reply_photo.assert_awaited_once_with(
            photo=b"hi", caption=style.history_caption(good), parse_mode="MarkdownV2"
        )

    async def test_unusable_image_falls_back_to_text(self):
        record = HistoryRecord(1, "not-a-data-uri", "fine", "now")
        update, _ = make_update()

        await bot.cmd_history(update, make_context(make_orchestrator(history=(record,))))

        update.message.reply_photo.assert_not_awaited()
        assert update.message.reply_text.await_count == 2


# ── /clear ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestClearCommand:
    async def test_non_admin_refused(self, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_IDS", {42})
        record = HistoryRecord(1, "data:image/jpeg;base64,aGk=", "fine", "now")
        orch = make_orchestrator(history=(record,))
        update, _ = make_update(user_id=7)

        await bot.cmd_clear(update, make_context(orch))

        update.message.reply_text.assert_awaited_once_with(style.not_admin(), parse_mode="MarkdownV2")
        assert orch.history == (record,)

    async def test_admin_clears(self, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_IDS", {42})
        orch = make_orchestrator(history=(HistoryRecord(1, "data:image/jpeg;base64,aGk=", "fine", "now"),))
        update, _ = make_update(user_id=42)

        await bot.cmd_clear(update, make_context(orch))

        assert orch.history == ()
        update.message.reply_text.assert_awaited_once_with(style.history_cleared(), parse_mode="MarkdownV2")
