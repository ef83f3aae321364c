"""Receipt-to-inventory extraction for stocktrack."""

from .camera import CameraCapture, ReceiptCamera
from .commit import CommitPipeline, CommitResult, FailedItem
from .config import (
    CommitConfig,
    OcrConfig,
    ParserConfig,
    PlanConfig,
    ScannerConfig,
    StoreConfig,
    load_config,
)
from .errors import (
    Busy,
    Cancelled,
    EngineUnavailable,
    IndexOutOfRange,
    InvalidRegion,
    InvalidTransition,
    NoItemsFound,
    QuotaExceeded,
    RecognitionFailed,
    ScanError,
    UnsupportedFormat,
)
from .flow import ScanFlow, ScanState
from .image import CropRegion, RawImage, extract, load_image, set_region
from .models import (
    CandidateLineItem,
    InventoryRecord,
    InventoryStore,
    QuotaProvider,
    stock_status,
)
from .ocr import OcrEngine, RecognizedText, create_engine
from .ocr.recognizer import TextRecognizer
from .parser import LineItemParser, scan_total
from .plans import PLANS, PlanQuota, get_plan
from .review import ReviewDraft

__all__ = [
    "ReceiptCamera",
    "CameraCapture",
    "RawImage",
    "CropRegion",
    "load_image",
    "set_region",
    "extract",
    "OcrEngine",
    "RecognizedText",
    "create_engine",
    "TextRecognizer",
    "LineItemParser",
    "scan_total",
    "ReviewDraft",
    "CommitPipeline",
    "CommitResult",
    "FailedItem",
    "ScanFlow",
    "ScanState",
    "CandidateLineItem",
    "InventoryRecord",
    "InventoryStore",
    "QuotaProvider",
    "stock_status",
    "PLANS",
    "PlanQuota",
    "get_plan",
    "ScannerConfig",
    "OcrConfig",
    "ParserConfig",
    "CommitConfig",
    "StoreConfig",
    "PlanConfig",
    "load_config",
    "ScanError",
    "UnsupportedFormat",
    "InvalidRegion",
    "EngineUnavailable",
    "RecognitionFailed",
    "Cancelled",
    "Busy",
    "NoItemsFound",
    "IndexOutOfRange",
    "QuotaExceeded",
    "InvalidTransition",
]
