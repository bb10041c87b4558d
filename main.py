"""
main.py — Single entry point.

Loads the scan history, builds the pipeline and runs the Telegram bot in
one asyncio event loop.
"""
import asyncio
import logging
import signal
import sys

import config
from bot import build_application

# Log file lives in the same data/ directory as the database so that a single
# Docker volume mount (./data:/app/data) captures both.
config.DATA_DIR.mkdir(parents=True, exist_ok=True)

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=logging.INFO,
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(str(config.DATA_DIR / "scanner.log"), encoding="utf-8"),
    ],
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def run() -> None:
    config.require("TELEGRAM_BOT_TOKEN", "GEMINI_API_KEY")

    # ── Storage + pipeline bootstrap (must happen before the bot starts) ──────
    import database as _db
    from history_store import HistoryStore
    from pipeline import Orchestrator
    from providers.gemini_provider import GeminiProvider
    try:
        await _db.init_db()
        logger.info("Database ready at %s", _db.DB_PATH)
    except Exception as exc:
        logger.critical("FATAL: database init failed: %s", exc, exc_info=True)
        raise

    provider = GeminiProvider(config.GEMINI_API_KEY, config.GEMINI_MODEL)
    orchestrator = await Orchestrator.start(provider, HistoryStore())
    logger.info(
        "Pipeline ready: provider=%s, %d past scan(s)",
        provider.full_name, len(orchestrator.history),
    )

    ptb_app = build_application(orchestrator)

    stop_event = asyncio.Event()

    def _stop(*_):
        logger.info("Shutdown signal received.")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _stop)
        except (NotImplementedError, RuntimeError):
            # Windows doesn't support add_signal_handler for all signals
            pass

    async with ptb_app:
        await ptb_app.start()
        await ptb_app.updater.start_polling(
            allowed_updates=["message"],
            drop_pending_updates=True,
        )
        logger.info("✅ Bot is running. Press Ctrl+C to stop.")

        try:
            await stop_event.wait()
        except (KeyboardInterrupt, SystemExit):
            pass

        logger.info("Shutting down…")
        await ptb_app.updater.stop()
        await ptb_app.stop()

    logger.info("Goodbye.")


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
