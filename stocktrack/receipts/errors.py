"""Error taxonomy for the receipt scanning pipeline."""

from __future__ import annotations


class ScanError(Exception):
    """Base class for every failure the receipt pipeline can report.

    ``retryable`` tells the caller whether offering a retry makes sense.
    """

    retryable: bool = False


class UnsupportedFormat(ScanError):
    """The supplied bytes are not a decodable raster image."""


class InvalidRegion(ScanError, ValueError):
    """The crop region is empty or lies outside the image."""


class EngineUnavailable(ScanError):
    """The OCR engine could not be loaded (missing binary, SDK, key or model)."""

    retryable = True


class RecognitionFailed(ScanError):
    """The OCR engine ran but did not produce text."""

    retryable = True


class Cancelled(ScanError):
    """Recognition was aborted. An expected outcome, not a fault."""


class Busy(ScanError):
    """A recognition is already in flight on this engine instance."""


class NoItemsFound(ScanError):
    """No receipt line survived parsing; re-crop or rescan."""

    retryable = True


class IndexOutOfRange(ScanError, IndexError):
    """A review edit referenced a row that does not exist."""


class QuotaExceeded(ScanError):
    """The owner's plan allowance for a metered resource is used up."""

    def __init__(self, resource_type: str = "inventoryItems", limit: int | None = None) -> None:
        self.resource_type = resource_type
        self.limit = limit
        detail = f" (limit {limit})" if limit is not None else ""
        super().__init__(f"plan allowance for {resource_type} exhausted{detail}")


class InvalidTransition(ScanError):
    """A scan flow operation was called from a state that does not allow it."""
