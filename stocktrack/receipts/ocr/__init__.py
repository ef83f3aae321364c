"""OCR engine base class, result types, and factory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Union

if TYPE_CHECKING:
    from ..config import ScannerConfig
    from ..image import RawImage


@dataclass(frozen=True)
class ProgressEvent:
    percent: int  # 0..100


@dataclass(frozen=True)
class RecognizedText:
    text: str


@dataclass(frozen=True)
class TextOutput:
    """An engine run that produced text."""

    text: str


@dataclass(frozen=True)
class ErrorOutput:
    """An engine run that failed; ``message`` is shown to the operator."""

    message: str


EngineOutput = Union[TextOutput, ErrorOutput]

# Engines report completion as a fraction in 0.0..1.0.
ProgressCallback = Callable[[float], None]


class OcrEngine(ABC):
    """Abstract base for receipt text recognition engines."""

    name: str = ""

    @abstractmethod
    async def load(self, language: str) -> None:
        """Prepare the engine for ``language``.

        Raises:
            EngineUnavailable: If the engine's binary, SDK, credentials or
                language data are missing.
        """
        ...

    @abstractmethod
    async def run(self, image: RawImage, report: ProgressCallback) -> EngineOutput:
        """Recognize the text in ``image``.

        Engine-level failures are returned as ``ErrorOutput``. The coroutine
        must tolerate being cancelled at any await.
        """
        ...

    async def close(self) -> None:
        """Release engine resources. Safe to call more than once."""


ENGINE_NAMES = ("tesseract", "claude", "gemini")


def create_engine(config: ScannerConfig) -> OcrEngine:
    """Create an OCR engine based on configuration."""
    engine_name = config.ocr.backend

    match engine_name:
        case "tesseract":
            from .tesseract import TesseractEngine

            return TesseractEngine(
                tesseract_cmd=config.ocr.tesseract.tesseract_cmd,
                page_segmentation_mode=config.ocr.tesseract.page_segmentation_mode,
            )
        case "claude":
            from .claude import ClaudeOcrEngine

            return ClaudeOcrEngine(
                api_key=config.ocr.claude.api_key,
                model=config.ocr.claude.model,
            )
        case "gemini":
            from .gemini import GeminiOcrEngine

            return GeminiOcrEngine(
                api_key=config.ocr.gemini.api_key,
                model=config.ocr.gemini.model,
            )
        case _:
            raise ValueError(
                f"Unknown OCR backend: {engine_name!r} "
                f"(choose one of {', '.join(ENGINE_NAMES)})"
            )
