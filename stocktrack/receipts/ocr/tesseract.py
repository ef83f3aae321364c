"""Local Tesseract OCR engine via pytesseract."""

from __future__ import annotations

import asyncio
import logging

from ..errors import EngineUnavailable
from ..image import RawImage, to_grayscale
from . import EngineOutput, ErrorOutput, OcrEngine, ProgressCallback, TextOutput

logger = logging.getLogger(__name__)

# Tesseract gives no progress callback; progress is estimated while waiting.
_PROGRESS_INTERVAL = 0.25
_PROGRESS_STEP = 0.05
_PROGRESS_CEILING = 0.9


class TesseractEngine(OcrEngine):
    """Recognize receipt text with a local Tesseract install.

    Works offline. The blocking pytesseract call runs in a worker thread;
    aborting stops waiting for it and discards whatever it returns.
    """

    name = "tesseract"

    def __init__(
        self, tesseract_cmd: str = "", page_segmentation_mode: int = 6
    ) -> None:
        self._tesseract_cmd = tesseract_cmd
        self._psm = page_segmentation_mode
        self._language = "eng"
        self._pytesseract = None

    async def load(self, language: str) -> None:
        try:
            import pytesseract
        except ImportError:
            raise EngineUnavailable(
                "pytesseract is required: pip install pytesseract"
            ) from None

        if self._tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self._tesseract_cmd

        try:
            version = await asyncio.to_thread(pytesseract.get_tesseract_version)
            installed = await asyncio.to_thread(pytesseract.get_languages)
        except (pytesseract.TesseractError, OSError) as e:
            raise EngineUnavailable(f"Tesseract is not available: {e}") from e

        missing = [lang for lang in language.split("+") if lang not in installed]
        if missing:
            raise EngineUnavailable(
                f"Tesseract language data not installed: {', '.join(missing)}"
            )

        self._language = language
        self._pytesseract = pytesseract
        logger.info("tesseract %s ready (lang=%s)", version, language)

    async def run(self, image: RawImage, report: ProgressCallback) -> EngineOutput:
        pytesseract = self._pytesseract
        if pytesseract is None:
            raise EngineUnavailable("TesseractEngine.load() has not completed")

        report(0.1)
        gray = to_grayscale(image)
        report(0.2)

        config = f"--psm {self._psm} -c preserve_interword_spaces=1"
        job = asyncio.ensure_future(
            asyncio.to_thread(
                pytesseract.image_to_string,
                gray.pixels,
                lang=self._language,
                config=config,
            )
        )

        fraction = 0.2
        try:
            while True:
                done, _ = await asyncio.wait({job}, timeout=_PROGRESS_INTERVAL)
                if done:
                    break
                fraction = min(_PROGRESS_CEILING, fraction + _PROGRESS_STEP)
                report(fraction)
        except asyncio.CancelledError:
            job.cancel()
            raise

        try:
            text = job.result()
        except (pytesseract.TesseractError, RuntimeError, OSError) as e:
            logger.warning("tesseract run failed: %s", e)
            return ErrorOutput(f"Tesseract failed: {e}")

        report(1.0)
        return TextOutput(text)

    async def close(self) -> None:
        self._pytesseract = None
