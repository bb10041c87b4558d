"""
pipeline.py — the capture → encode → analyse → persist orchestrator.

Two states, IDLE and BUSY. A capture is only accepted while IDLE; one that
arrives while BUSY is dropped (there is no queue), which is the only
concurrency guard the pipeline needs on a single event loop.

The orchestrator owns the in-memory history and is its only writer: each
successful run replaces it wholesale with the log returned by
HistoryStore.append.
"""
from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional

from history_store import HistoryLog, HistoryRecord, HistoryStore, RecordIdGenerator
from image_encoder import CapturedImage, ReadFailure, encode_image
from providers.base import AnalysisOutcome, AnalysisProvider, Failure, Success, build_request

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "Analysis results will appear here..."
IN_PROGRESS_TEXT = "Analyzing, please wait..."
FAILURE_TEXT     = "Sorry, an error occurred during analysis."

Display = Callable[[str], Awaitable[None]]
Reader = Callable[[], Awaitable[CapturedImage]]


class PipelineState(str, Enum):
    IDLE = "idle"
    BUSY = "busy"


def _format_timestamp(now: datetime) -> str:
    return now.strftime("%c")


class Orchestrator:

    def __init__(
        self,
        provider: AnalysisProvider,
        store: HistoryStore,
        history: HistoryLog = (),
        now: Callable[[], datetime] = datetime.now,
        ids: Optional[RecordIdGenerator] = None,
    ):
        self.provider = provider
        self.store = store
        self.history: HistoryLog = tuple(history)
        self.state = PipelineState.IDLE
        self.result_text = PLACEHOLDER_TEXT
        self.image_src: Optional[str] = None
        self.persist_failed = False
        self._now = now
        self._ids = ids or RecordIdGenerator()
        self._ids.observe(self.history)

    @classmethod
    async def start(cls, provider: AnalysisProvider, store: HistoryStore, **kwargs) -> "Orchestrator":
        """Load the persisted history and return an idle orchestrator."""
        history = await store.load()
        return cls(provider, store, history=history, **kwargs)

    @property
    def capture_enabled(self) -> bool:
        return self.state is PipelineState.IDLE

    async def submit(self, image: Optional[CapturedImage], display: Optional[Display] = None) -> bool:
        """Handle an already-read capture. None means the user cancelled."""
        if image is None:
            return False

        async def _read() -> CapturedImage:
            return image

        return await self.submit_reader(_read, display)

    async def submit_reader(self, read: Reader, display: Optional[Display] = None) -> bool:
        """
        Run the pipeline for one capture whose bytes are fetched by read().
        Returns False if the capture was dropped because a run is in flight.
        """
        if self.state is PipelineState.BUSY:
            logger.info("Capture ignored, analysis already in progress")
            return False

        self.state = PipelineState.BUSY
        self.result_text = IN_PROGRESS_TEXT
        self.image_src = None
        self.persist_failed = False
        try:
            await self._show(display)
            outcome = await self._analyse(read)
            if isinstance(outcome, Success):
                await self._record(outcome.text)
                self.result_text = outcome.text
            else:
                logger.warning("Analysis failed: %s", outcome.reason)
                self.result_text = FAILURE_TEXT
            await self._show(display)
        finally:
            self.state = PipelineState.IDLE
        return True

    async def clear_history(self) -> bool:
        """Explicit reset of the persisted log. Refused while a run is in flight."""
        if self.state is PipelineState.BUSY:
            return False
        self.history = await self.store.reset()
        logger.info("History cleared")
        return True

    async def _analyse(self, read: Reader) -> AnalysisOutcome:
        try:
            image = await read()
            encoded = encode_image(image)
        except ReadFailure as exc:
            return Failure(f"read failure: {exc}")
        except Exception as exc:
            logger.error("Image read raised: %s", exc)
            return Failure(f"read failure: {type(exc).__name__}: {exc}")

        self.image_src = encoded.storage
        request = build_request(encoded.transport)
        try:
            return await self.provider.analyse(request)
        except Exception as exc:
            logger.error("[%s] raised instead of returning Failure: %s", self.provider.full_name, exc)
            return Failure(f"{type(exc).__name__}: {exc}")

    async def _record(self, text: str) -> None:
        record = HistoryRecord(
            id=self._ids.next(),
            image_src=self.image_src,
            analysis_result=text,
            timestamp=_format_timestamp(self._now()),
        )
        self.history = await self.store.append(record, self.history)
        self.persist_failed = self.store.last_write_failed

    async def _show(self, display: Optional[Display]) -> None:
        if display is None:
            return
        try:
            await display(self.result_text)
        except Exception as exc:
            logger.error("Display update failed: %s", exc)
