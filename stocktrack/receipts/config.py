"""TOML configuration loader for the receipt scanner."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from .commit import DEFAULT_CATEGORY
from .parser import DEFAULT_NOISE_KEYWORDS

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]

DEFAULT_DB_PATH = "~/.config/stocktrack/inventory.db"


@dataclass
class CameraConfig:
    index: int = 0
    save_dir: str = ""


@dataclass
class TesseractOcrConfig:
    tesseract_cmd: str = ""
    page_segmentation_mode: int = 6


@dataclass
class ClaudeOcrConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class GeminiOcrConfig:
    api_key: str = ""
    model: str = "gemini-2.0-flash"


@dataclass
class OcrConfig:
    backend: str = "tesseract"
    language: str = "eng"
    tesseract: TesseractOcrConfig = field(default_factory=TesseractOcrConfig)
    claude: ClaudeOcrConfig = field(default_factory=ClaudeOcrConfig)
    gemini: GeminiOcrConfig = field(default_factory=GeminiOcrConfig)


@dataclass
class ParserConfig:
    noise_keywords: list[str] = field(
        default_factory=lambda: list(DEFAULT_NOISE_KEYWORDS)
    )
    extra_noise_keywords: list[str] = field(default_factory=list)
    max_name_length: int = 50
    min_price: str = "0.01"
    max_price: str = "9999.99"
    dedupe: bool = False
    max_items: int | None = None
    title_case: bool = False
    min_line_length: int = 0
    skip_dated_lines: bool = False


@dataclass
class CommitConfig:
    concurrency: int = 1
    category: str = DEFAULT_CATEGORY


@dataclass
class StoreConfig:
    db_path: str = DEFAULT_DB_PATH


@dataclass
class PlanConfig:
    plan_id: str = "free"
    owner_key: str = "local"


@dataclass
class ScannerConfig:
    camera: CameraConfig = field(default_factory=CameraConfig)
    ocr: OcrConfig = field(default_factory=OcrConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    commit: CommitConfig = field(default_factory=CommitConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    plan: PlanConfig = field(default_factory=PlanConfig)


def load_config(path: str | Path | None = None) -> ScannerConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys can be overridden via environment variables.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cam = raw.get("camera", {})
    ocr = raw.get("ocr", {})
    prs = raw.get("parser", {})
    cmt = raw.get("commit", {})
    sto = raw.get("store", {})
    pln = raw.get("plan", {})

    tesseract_cfg = ocr.get("tesseract", {})
    claude_cfg = ocr.get("claude", {})
    gemini_cfg = ocr.get("gemini", {})

    # Resolve API keys: config file → environment variable
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )
    gemini_api_key = gemini_cfg.get("api_key", "") or os.environ.get(
        "GEMINI_API_KEY", ""
    )

    # Prices are kept as strings so TOML floats don't leak binary rounding
    min_price = str(prs.get("min_price", "0.01"))
    max_price = str(prs.get("max_price", "9999.99"))

    return ScannerConfig(
        camera=CameraConfig(
            index=cam.get("index", 0),
            save_dir=cam.get("save_dir", ""),
        ),
        ocr=OcrConfig(
            backend=ocr.get("backend", "tesseract"),
            language=ocr.get("language", "eng"),
            tesseract=TesseractOcrConfig(
                tesseract_cmd=tesseract_cfg.get("tesseract_cmd", ""),
                page_segmentation_mode=tesseract_cfg.get("page_segmentation_mode", 6),
            ),
            claude=ClaudeOcrConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
            gemini=GeminiOcrConfig(
                api_key=gemini_api_key,
                model=gemini_cfg.get("model", "gemini-2.0-flash"),
            ),
        ),
        parser=ParserConfig(
            noise_keywords=list(prs.get("noise_keywords", DEFAULT_NOISE_KEYWORDS)),
            extra_noise_keywords=list(prs.get("extra_noise_keywords", [])),
            max_name_length=prs.get("max_name_length", 50),
            min_price=min_price,
            max_price=max_price,
            dedupe=prs.get("dedupe", False),
            max_items=prs.get("max_items"),
            title_case=prs.get("title_case", False),
            min_line_length=prs.get("min_line_length", 0),
            skip_dated_lines=prs.get("skip_dated_lines", False),
        ),
        commit=CommitConfig(
            concurrency=cmt.get("concurrency", 1),
            category=cmt.get("category", DEFAULT_CATEGORY),
        ),
        store=StoreConfig(
            db_path=sto.get("db_path", DEFAULT_DB_PATH),
        ),
        plan=PlanConfig(
            plan_id=pln.get("plan_id", "free"),
            owner_key=pln.get("owner_key", "local"),
        ),
    )
