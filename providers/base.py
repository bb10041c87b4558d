"""
Shared types, prompt and base class for analysis providers.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Union

from image_encoder import InlineImage

logger = logging.getLogger(__name__)

# ── Prompt ────────────────────────────────────────────────────────────────────
# The renderer depends on the health-score span; keep its exact markup.

INSTRUCTION_TEMPLATE = """You are a world-class expert nutritionist. Your task is to analyze the food in the image with maximum confidence.

**Analysis Rules:**
1.  **Identify Foods:** State your primary identification of each food item as a fact.
2.  **Be Decisive and Confident:** You MUST act as an expert. DO NOT use words of uncertainty like 'probably', 'it seems', 'it might be', 'it looks like'. Present your best assessment directly and factually.
3.  **No Doubts:** Do not express any uncertainty or mention alternative possibilities. Make your best determination and state it as fact.
4.  **Health Score:** Provide a health score from 1 to 10 (1 being very unhealthy, 10 being extremely healthy). Present it as: <span class="health-score">Health Score: X/10</span>. Briefly explain your score.
5.  **Suggestions:** Explain if it's a healthy choice and suggest a better alternative if applicable.
6.  **Formatting:** Format your entire response using simple paragraphs. Use bold text for titles (e.g., **Analysis:**, **Health Assessment:**, **Suggestions:**). Do not use headings or bulleted lists.
7.  **Language:** Respond in English."""


# ── Request / outcome types ───────────────────────────────────────────────────

@dataclass(frozen=True)
class AnalysisRequest:
    instruction: str
    image: InlineImage

    def to_payload(self) -> dict:
        """Wire shape: {instruction, image: {data, mimeType}}."""
        return {
            "instruction": self.instruction,
            "image": {"data": self.image.data, "mimeType": self.image.mime_type},
        }


@dataclass(frozen=True)
class Success:
    text: str


@dataclass(frozen=True)
class Failure:
    reason: str


AnalysisOutcome = Union[Success, Failure]


def build_request(image: InlineImage, instruction: str = INSTRUCTION_TEMPLATE) -> AnalysisRequest:
    return AnalysisRequest(instruction=instruction, image=image)


# ── Abstract base ──────────────────────────────────────────────────────────────

class AnalysisProvider(ABC):
    """Base class all analysis providers must implement."""

    name: str           # e.g. "google"
    model_id: str       # e.g. "gemini-2.0-flash"

    @abstractmethod
    async def analyse(self, request: AnalysisRequest) -> AnalysisOutcome:
        """
        Send request exactly once. Must never raise: every failure is
        returned as Failure so callers have a single failure channel.
        """
        ...

    @property
    def full_name(self) -> str:
        return f"{self.name}/{self.model_id}"
