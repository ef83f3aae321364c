"""Scoped, abortable text recognition on top of an OcrEngine."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, Union

from ..errors import Busy, Cancelled, EngineUnavailable, RecognitionFailed, ScanError
from ..image import RawImage
from . import ErrorOutput, OcrEngine, ProgressEvent, RecognizedText

logger = logging.getLogger(__name__)

RecognitionEvent = Union[ProgressEvent, RecognizedText]


def _to_percent(fraction: float) -> int:
    # 100 is reserved for the event that accompanies the finished text.
    return max(0, min(99, int(fraction * 100)))


class TextRecognizer:
    """Owns one OCR engine for the duration of a scan flow.

    Use as an async context manager so the engine is always torn down::

        async with TextRecognizer(engine) as recognizer:
            async for event in recognizer.recognize(image):
                ...

    Only one recognition may be in flight at a time; a second concurrent
    ``recognize`` fails with ``Busy`` rather than queueing.
    """

    def __init__(self, engine: OcrEngine, language: str = "eng") -> None:
        self._engine = engine
        self._language = language
        self._ready = False
        self._init_task: asyncio.Future | None = None
        self._job: asyncio.Future | None = None

    @property
    def engine_name(self) -> str:
        return self._engine.name

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def busy(self) -> bool:
        return self._job is not None and not self._job.done()

    async def __aenter__(self) -> TextRecognizer:
        try:
            await self.initialize()
        except BaseException:
            await self._engine.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.terminate()

    async def initialize(self, language: str | None = None) -> None:
        """Load the engine. Idempotent; concurrent callers share one load.

        ``language`` overrides the hint given at construction; it only takes
        effect on the load that actually runs.

        Raises:
            EngineUnavailable: If the engine cannot be loaded. A later call
                retries the load.
        """
        if self._ready:
            return
        if self._init_task is None:
            if language:
                self._language = language
            logger.debug("loading %s engine (lang=%s)", self._engine.name, self._language)
            self._init_task = asyncio.ensure_future(self._engine.load(self._language))
        task = self._init_task

        try:
            await asyncio.shield(task)
        except EngineUnavailable:
            self._forget_init(task)
            raise
        except asyncio.CancelledError:
            if task.cancelled():
                self._forget_init(task)
            raise
        except Exception as e:
            self._forget_init(task)
            raise EngineUnavailable(f"{self._engine.name} engine failed to load: {e}") from e

        self._ready = True

    def _forget_init(self, task: asyncio.Future) -> None:
        if self._init_task is task:
            self._init_task = None

    async def recognize(self, image: RawImage) -> AsyncIterator[RecognitionEvent]:
        """Recognize ``image``, yielding progress and finally the text.

        Yields ``ProgressEvent`` with non-decreasing percentages, then
        ``ProgressEvent(100)`` and exactly one ``RecognizedText``.

        Raises:
            Busy: Another recognition is in flight.
            EngineUnavailable: ``initialize()`` has not succeeded.
            Cancelled: ``abort()`` was called before the text arrived.
            RecognitionFailed: The engine reported or raised an error.
        """
        if self.busy:
            raise Busy(f"{self._engine.name} engine is already recognizing")
        if not self._ready:
            raise EngineUnavailable("recognizer is not initialized")

        progress: asyncio.Queue[float] = asyncio.Queue()
        job = asyncio.ensure_future(self._engine.run(image, progress.put_nowait))
        self._job = job
        last = 0

        try:
            yield ProgressEvent(0)
            while not job.done():
                getter = asyncio.ensure_future(progress.get())
                try:
                    await asyncio.wait({getter, job}, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    if not getter.done():
                        getter.cancel()
                if getter.done() and not getter.cancelled():
                    percent = _to_percent(getter.result())
                    if percent > last:
                        last = percent
                        yield ProgressEvent(percent)

            if job.cancelled():
                logger.info("%s recognition aborted", self._engine.name)
                raise Cancelled("recognition aborted")
            error = job.exception()
            if isinstance(error, ScanError):
                raise error
            if error is not None:
                raise RecognitionFailed(f"{self._engine.name} engine error: {error}") from error

            output = job.result()
            if isinstance(output, ErrorOutput):
                raise RecognitionFailed(output.message)

            yield ProgressEvent(100)
            yield RecognizedText(output.text)
        finally:
            if not job.done():
                job.cancel()
                await asyncio.wait({job})
            if not job.cancelled() and job.exception() is not None:
                logger.debug("recognition job ended with %r", job.exception())
            if self._job is job:
                self._job = None

    async def recognize_text(
        self,
        image: RawImage,
        on_progress: Callable[[int], None] | None = None,
    ) -> RecognizedText:
        """Drain ``recognize`` and return the text."""
        events = self.recognize(image)
        try:
            async for event in events:
                if isinstance(event, RecognizedText):
                    return event
                if on_progress is not None:
                    on_progress(event.percent)
        finally:
            await events.aclose()
        raise RecognitionFailed("engine finished without producing text")

    def abort(self) -> bool:
        """Abort the in-flight recognition, if any.

        The consumer of ``recognize`` receives ``Cancelled``.
        """
        if not self.busy:
            return False
        self._job.cancel()
        return True

    async def terminate(self) -> None:
        """Abort any work and release the engine. Safe to call repeatedly."""
        job = self._job
        if job is not None and not job.done():
            job.cancel()
            await asyncio.wait({job})
        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()
            await asyncio.wait({self._init_task})
        self._init_task = None
        self._ready = False
        await self._engine.close()
        logger.debug("%s engine terminated", self._engine.name)
