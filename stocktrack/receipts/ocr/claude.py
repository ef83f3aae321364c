"""Claude API OCR engine for receipt transcription."""

from __future__ import annotations

import base64
import logging

from ..errors import EngineUnavailable
from ..image import RawImage, encode_png
from . import EngineOutput, ErrorOutput, OcrEngine, ProgressCallback, TextOutput

logger = logging.getLogger(__name__)

TRANSCRIBE_PROMPT = """\
This image is a photo of a shop receipt (or part of one).
Transcribe every line of text exactly as printed, top to bottom.
Keep each printed line on its own line and keep the spacing between the
item name and the price. Do not add, explain, total or reformat anything.
Language hint: {language}
"""


class ClaudeOcrEngine(OcrEngine):
    """Transcribe receipts using Claude's vision capability."""

    name = "claude"

    def __init__(self, api_key: str = "", model: str = "claude-sonnet-4-5-20250929") -> None:
        self._api_key = api_key
        self._model = model
        self._language = "eng"
        self._client = None
        self._anthropic = None

    async def load(self, language: str) -> None:
        if not self._api_key:
            raise EngineUnavailable(
                "Anthropic API key is not set. "
                "Check the config file or the ANTHROPIC_API_KEY environment variable."
            )

        try:
            import anthropic
        except ImportError:
            raise EngineUnavailable(
                "anthropic SDK is required: pip install anthropic"
            ) from None

        self._anthropic = anthropic
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        self._language = language

    async def run(self, image: RawImage, report: ProgressCallback) -> EngineOutput:
        if self._client is None:
            raise EngineUnavailable("ClaudeOcrEngine.load() has not completed")

        data = base64.standard_b64encode(encode_png(image)).decode()
        content = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": "image/png", "data": data},
            },
            {"type": "text", "text": TRANSCRIBE_PROMPT.format(language=self._language)},
        ]
        report(0.2)

        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=4096,
                messages=[{"role": "user", "content": content}],
            )
        except self._anthropic.APIError as e:
            logger.warning("claude request failed: %s", e)
            return ErrorOutput(f"Claude request failed: {e}")

        report(0.9)
        text = "".join(
            getattr(block, "text", "") for block in response.content
        )
        return TextOutput(strip_fences(text))

    async def close(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.close()


def strip_fences(text: str) -> str:
    """Remove a markdown code fence wrapped around a model's transcription."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned
