"""
Google Gemini analysis provider — uses the google-genai SDK.

One generate_content call per request: the instruction text followed by the
inline image. No retries; the SDK's own timeout applies.
"""
from __future__ import annotations

import base64
import binascii
import logging
import time

from google import genai
from google.genai import types as genai_types

from providers.base import AnalysisOutcome, AnalysisProvider, AnalysisRequest, Failure, Success

logger = logging.getLogger(__name__)


class GeminiProvider(AnalysisProvider):

    def __init__(self, api_key: str, model: str = "gemini-2.0-flash"):
        self.name     = "google"
        self.model_id = model
        self._client  = genai.Client(api_key=api_key)

    async def analyse(self, request: AnalysisRequest) -> AnalysisOutcome:
        payload = request.to_payload()
        image = payload["image"]
        try:
            image_bytes = base64.b64decode(image["data"], validate=True)
        except (binascii.Error, ValueError) as exc:
            logger.error("[%s] Bad transport encoding: %s", self.full_name, exc)
            return Failure(f"invalid image payload: {exc}")

        t0 = time.monotonic()
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model_id,
                contents=[
                    payload["instruction"],
                    genai_types.Part.from_bytes(data=image_bytes, mime_type=image["mimeType"]),
                ],
            )
            text = response.text
        except Exception as exc:
            logger.error("[%s] Failed: %s", self.full_name, exc)
            return Failure(f"{type(exc).__name__}: {exc}")

        latency_ms = int((time.monotonic() - t0) * 1000)
        if not text:
            logger.error("[%s] Empty response after %dms", self.full_name, latency_ms)
            return Failure("empty response")

        logger.info("[%s] OK — %d chars, latency=%dms", self.full_name, len(text), latency_ms)
        return Success(text)
