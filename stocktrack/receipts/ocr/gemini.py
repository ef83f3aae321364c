"""Gemini API OCR engine for receipt transcription."""

from __future__ import annotations

import logging

from ..errors import EngineUnavailable
from ..image import RawImage, encode_png
from . import EngineOutput, ErrorOutput, OcrEngine, ProgressCallback, TextOutput
from .claude import TRANSCRIBE_PROMPT, strip_fences

logger = logging.getLogger(__name__)


class GeminiOcrEngine(OcrEngine):
    """Transcribe receipts using Google Gemini's vision capability."""

    name = "gemini"

    def __init__(self, api_key: str = "", model: str = "gemini-2.0-flash") -> None:
        self._api_key = api_key
        self._model_name = model
        self._language = "eng"
        self._model = None

    async def load(self, language: str) -> None:
        if not self._api_key:
            raise EngineUnavailable(
                "Gemini API key is not set. "
                "Check the config file or the GEMINI_API_KEY environment variable."
            )

        try:
            import google.generativeai as genai
        except ImportError:
            raise EngineUnavailable(
                "google-generativeai SDK is required: pip install google-generativeai"
            ) from None

        genai.configure(api_key=self._api_key)
        self._model = genai.GenerativeModel(self._model_name)
        self._language = language

    async def run(self, image: RawImage, report: ProgressCallback) -> EngineOutput:
        if self._model is None:
            raise EngineUnavailable("GeminiOcrEngine.load() has not completed")

        parts = [
            {"mime_type": "image/png", "data": encode_png(image)},
            TRANSCRIBE_PROMPT.format(language=self._language),
        ]
        report(0.2)

        try:
            response = await self._model.generate_content_async(parts)
            text = response.text
        # google-api-core errors and blocked-response ValueErrors share no base
        except Exception as e:
            logger.warning("gemini request failed: %s", e)
            return ErrorOutput(f"Gemini request failed: {e}")

        report(0.9)
        return TextOutput(strip_fences(text))

    async def close(self) -> None:
        self._model = None
