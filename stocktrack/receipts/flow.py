"""Explicit state machine for one scan → review → commit cycle."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable

from .errors import (
    Cancelled,
    InvalidTransition,
    NoItemsFound,
    QuotaExceeded,
    ScanError,
)
from .image import CropRegion, RawImage, extract, load_image, set_region
from .models import RESOURCE_RECEIPT_SCANS, UNLIMITED, QuotaProvider
from .parser import LineItemParser
from .review import ReviewDraft

if TYPE_CHECKING:
    from .commit import CommitPipeline, CommitResult
    from .ocr import RecognizedText
    from .ocr.recognizer import TextRecognizer

logger = logging.getLogger(__name__)


class ScanState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    CROPPING = "cropping"
    RECOGNIZING = "recognizing"
    PARSED = "parsed"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({ScanState.DONE, ScanState.CANCELLED})


class ScanFlow:
    """One scan attempt for one owner.

    ``Idle → Capturing → Cropping → Recognizing → Parsed → Committing →
    Done | Failed``, plus ``Cancelled``. Nothing reaches the inventory store
    before ``commit``, so a cancelled or abandoned flow leaves no records.
    """

    def __init__(
        self,
        owner_key: str,
        parser: LineItemParser | None = None,
        *,
        quota: QuotaProvider | None = None,
    ) -> None:
        self.owner_key = owner_key
        self._parser = parser or LineItemParser()
        self._quota = quota
        self._state = ScanState.IDLE
        self._image: RawImage | None = None
        self._region: CropRegion | None = None
        self._text: RecognizedText | None = None
        self._draft: ReviewDraft | None = None
        self._progress = 0
        self._error: ScanError | None = None
        self._recognizer: TextRecognizer | None = None

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def image(self) -> RawImage | None:
        return self._image

    @property
    def region(self) -> CropRegion | None:
        return self._region

    @property
    def text(self) -> RecognizedText | None:
        return self._text

    @property
    def draft(self) -> ReviewDraft | None:
        return self._draft

    @property
    def error(self) -> ScanError | None:
        return self._error

    def _require(self, action: str, *allowed: ScanState) -> None:
        if self._state not in allowed:
            raise InvalidTransition(
                f"cannot {action} while {self._state.value} "
                f"(allowed from: {', '.join(s.value for s in allowed)})"
            )

    def _move(self, state: ScanState) -> None:
        logger.debug("scan flow %s: %s -> %s", self.owner_key, self._state.value, state.value)
        self._state = state

    # capture / crop

    def begin_capture(self) -> None:
        self._require("begin capture", ScanState.IDLE)
        self._move(ScanState.CAPTURING)

    def load(self, data: bytes) -> RawImage:
        """Decode uploaded bytes and move on to cropping."""
        self._require("load an image", ScanState.IDLE, ScanState.CAPTURING, ScanState.CROPPING)
        return self.use_image(load_image(data))

    def use_image(self, image: RawImage) -> RawImage:
        """Adopt an already decoded image (e.g. a camera frame)."""
        self._require("use an image", ScanState.IDLE, ScanState.CAPTURING, ScanState.CROPPING)
        self._image = image
        self._region = None
        self._move(ScanState.CROPPING)
        return image

    def select_region(
        self,
        displayed_rect: tuple[float, float, float, float],
        displayed_dims: tuple[float, float] | None = None,
    ) -> CropRegion:
        """Set the region to scan; ``displayed_dims`` defaults to native size."""
        self._require("select a region", ScanState.CROPPING)
        native = self._image.dims
        self._region = set_region(displayed_rect, displayed_dims or native, native)
        return self._region

    def clear_region(self) -> None:
        self._require("clear the region", ScanState.CROPPING)
        self._region = None

    # recognition

    async def recognize(
        self,
        recognizer: TextRecognizer,
        on_progress: Callable[[int], None] | None = None,
    ) -> ReviewDraft:
        """Run OCR on the selected region and parse it into a review draft.

        ``NoItemsFound`` sends the flow back to cropping; other recognition
        errors move it to failed; an abort moves it to cancelled. The error
        is re-raised in every case.
        """
        self._require("recognize", ScanState.CROPPING)

        if self._quota is not None:
            remaining = await self._quota.remaining_allowance(
                self.owner_key, RESOURCE_RECEIPT_SCANS
            )
            if remaining != UNLIMITED and remaining <= 0:
                raise QuotaExceeded(RESOURCE_RECEIPT_SCANS)

        bitmap = extract(self._image, self._region) if self._region else self._image

        def report(percent: int) -> None:
            self._progress = percent
            if on_progress is not None:
                on_progress(percent)

        self._progress = 0
        self._error = None
        self._recognizer = recognizer
        self._move(ScanState.RECOGNIZING)
        try:
            text = await recognizer.recognize_text(bitmap, on_progress=report)
        except Cancelled as e:
            self._error = e
            self._move(ScanState.CANCELLED)
            raise
        except asyncio.CancelledError:
            self._move(ScanState.CANCELLED)
            raise
        except ScanError as e:
            self._error = e
            self._move(ScanState.FAILED)
            raise
        finally:
            self._recognizer = None

        if self._state is ScanState.CANCELLED:
            raise Cancelled("scan cancelled")

        self._text = text
        if self._quota is not None:
            self._quota.record_use(self.owner_key, RESOURCE_RECEIPT_SCANS)

        try:
            items = self._parser.parse(text)
        except NoItemsFound as e:
            self._error = e
            self._move(ScanState.CROPPING)
            raise

        self._draft = ReviewDraft(items)
        self._move(ScanState.PARSED)
        logger.info("scan flow %s parsed %d item(s)", self.owner_key, len(self._draft))
        return self._draft

    def cancel(self) -> None:
        """Abandon the scan. Only valid while recognizing or reviewing."""
        self._require("cancel", ScanState.RECOGNIZING, ScanState.PARSED)
        if self._state is ScanState.RECOGNIZING and self._recognizer is not None:
            self._recognizer.abort()
        self._draft = None
        self._move(ScanState.CANCELLED)

    def retry(self) -> None:
        """Leave the failed state and return to cropping the same image."""
        self._require("retry", ScanState.FAILED)
        self._error = None
        self._move(ScanState.CROPPING if self._image is not None else ScanState.IDLE)

    # commit

    async def commit(self, pipeline: CommitPipeline) -> CommitResult:
        """Persist the reviewed rows that have a name."""
        self._require("commit", ScanState.PARSED)
        items = self._draft.committable()
        if not items:
            raise NoItemsFound("add at least one item with a name before committing")
        self._move(ScanState.COMMITTING)
        try:
            result = await pipeline.commit(items, self.owner_key)
        except ScanError as e:
            self._error = e
            self._move(ScanState.FAILED)
            raise
        except Exception:
            logger.exception("commit aborted for %s", self.owner_key)
            self._move(ScanState.FAILED)
            raise
        self._move(ScanState.DONE)
        return result
