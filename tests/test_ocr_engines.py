"""Tests for OCR engines (mocked SDKs) and the engine factory."""

import sys
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest

from stocktrack.receipts.config import load_config
from stocktrack.receipts.errors import EngineUnavailable
from stocktrack.receipts.image import RawImage
from stocktrack.receipts.ocr import ErrorOutput, TextOutput, create_engine
from stocktrack.receipts.ocr.claude import ClaudeOcrEngine, strip_fences
from stocktrack.receipts.ocr.gemini import GeminiOcrEngine
from stocktrack.receipts.ocr.tesseract import TesseractEngine


@pytest.fixture
def image():
    return RawImage(np.full((12, 16, 3), 255, dtype=np.uint8))


class TestCreateEngine:
    def test_default_is_tesseract(self):
        assert isinstance(create_engine(load_config()), TesseractEngine)

    def test_create_claude_engine(self):
        config = load_config()
        config.ocr.backend = "claude"
        assert isinstance(create_engine(config), ClaudeOcrEngine)

    def test_create_gemini_engine(self):
        config = load_config()
        config.ocr.backend = "gemini"
        assert isinstance(create_engine(config), GeminiOcrEngine)

    def test_create_unknown_engine(self):
        config = load_config()
        config.ocr.backend = "unknown"
        with pytest.raises(ValueError, match="Unknown OCR backend"):
            create_engine(config)


class TestStripFences:
    def test_plain_text_untouched(self):
        assert strip_fences("Milk 1.00\nBread 1.50") == "Milk 1.00\nBread 1.50"

    def test_fenced_text(self):
        assert strip_fences("```text\nMilk 1.00\n```") == "Milk 1.00"


@pytest.fixture
def mock_pytesseract():
    mock = MagicMock()
    mock.TesseractError = type("TesseractError", (RuntimeError,), {})
    mock.get_tesseract_version.return_value = "5.3.0"
    mock.get_languages.return_value = ["eng", "osd"]
    mock.image_to_string.return_value = "Milk 1L  2 x 1.20\n"
    with patch.dict(sys.modules, {"pytesseract": mock}):
        yield mock


class TestTesseractEngine:
    @pytest.mark.asyncio
    async def test_run(self, mock_pytesseract, image):
        engine = TesseractEngine(tesseract_cmd="/opt/tesseract", page_segmentation_mode=4)
        await engine.load("eng")
        assert mock_pytesseract.pytesseract.tesseract_cmd == "/opt/tesseract"

        progress = []
        output = await engine.run(image, progress.append)

        assert output == TextOutput("Milk 1L  2 x 1.20\n")
        assert progress[-1] == 1.0
        args, kwargs = mock_pytesseract.image_to_string.call_args
        assert args[0].ndim == 2  # converted to grayscale
        assert kwargs["lang"] == "eng"
        assert "--psm 4" in kwargs["config"]

    @pytest.mark.asyncio
    async def test_missing_language(self, mock_pytesseract):
        engine = TesseractEngine()
        with pytest.raises(EngineUnavailable, match="deu"):
            await engine.load("eng+deu")

    @pytest.mark.asyncio
    async def test_binary_missing(self, mock_pytesseract):
        mock_pytesseract.get_tesseract_version.side_effect = OSError("not found")
        with pytest.raises(EngineUnavailable, match="not available"):
            await TesseractEngine().load("eng")

    @pytest.mark.asyncio
    async def test_run_failure_is_error_output(self, mock_pytesseract, image):
        mock_pytesseract.image_to_string.side_effect = mock_pytesseract.TesseractError("bad")
        engine = TesseractEngine()
        await engine.load("eng")
        output = await engine.run(image, lambda _: None)
        assert isinstance(output, ErrorOutput)

    @pytest.mark.asyncio
    async def test_run_before_load(self, image):
        with pytest.raises(EngineUnavailable):
            await TesseractEngine().run(image, lambda _: None)

    @pytest.mark.asyncio
    async def test_sdk_missing(self):
        with patch.dict(sys.modules, {"pytesseract": None}):
            with pytest.raises(EngineUnavailable, match="pip install pytesseract"):
                await TesseractEngine().load("eng")


@pytest.fixture
def mock_anthropic():
    mock_response = MagicMock()
    mock_response.content = [MagicMock(text="```\nBread   1.50\n```")]

    mock_client = AsyncMock()
    mock_client.messages.create = AsyncMock(return_value=mock_response)

    mock = MagicMock()
    mock.APIError = type("APIError", (Exception,), {})
    mock.AsyncAnthropic.return_value = mock_client
    with patch.dict(sys.modules, {"anthropic": mock}):
        yield mock


class TestClaudeOcrEngine:
    @pytest.mark.asyncio
    async def test_load_requires_api_key(self):
        with pytest.raises(EngineUnavailable, match="API key"):
            await ClaudeOcrEngine(api_key="").load("eng")

    @pytest.mark.asyncio
    async def test_run(self, mock_anthropic, image):
        engine = ClaudeOcrEngine(api_key="test-key", model="claude-test")
        await engine.load("eng")
        output = await engine.run(image, lambda _: None)

        assert output == TextOutput("Bread   1.50")
        client = mock_anthropic.AsyncAnthropic.return_value
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        content = kwargs["messages"][0]["content"]
        assert content[0]["source"]["media_type"] == "image/png"

        await engine.close()
        client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_api_error_is_error_output(self, mock_anthropic, image):
        client = mock_anthropic.AsyncAnthropic.return_value
        client.messages.create.side_effect = mock_anthropic.APIError("overloaded")
        engine = ClaudeOcrEngine(api_key="test-key")
        await engine.load("eng")
        output = await engine.run(image, lambda _: None)
        assert isinstance(output, ErrorOutput)
        assert "overloaded" in output.message


@pytest.fixture
def mock_genai():
    mock_response = MagicMock()
    mock_response.text = "Eggs 2.00"

    mock_model = MagicMock()
    mock_model.generate_content_async = AsyncMock(return_value=mock_response)

    genai = MagicMock()
    genai.GenerativeModel.return_value = mock_model
    google = MagicMock()
    google.generativeai = genai
    with patch.dict(sys.modules, {"google": google, "google.generativeai": genai}):
        yield genai


class TestGeminiOcrEngine:
    @pytest.mark.asyncio
    async def test_load_requires_api_key(self):
        with pytest.raises(EngineUnavailable, match="API key"):
            await GeminiOcrEngine(api_key="").load("eng")

    @pytest.mark.asyncio
    async def test_run(self, mock_genai, image):
        engine = GeminiOcrEngine(api_key="test-key", model="gemini-test")
        await engine.load("eng")
        output = await engine.run(image, lambda _: None)

        assert output == TextOutput("Eggs 2.00")
        mock_genai.configure.assert_called_once_with(api_key="test-key")
        mock_genai.GenerativeModel.assert_called_once_with("gemini-test")

    @pytest.mark.asyncio
    async def test_request_failure_is_error_output(self, mock_genai, image):
        model = mock_genai.GenerativeModel.return_value
        model.generate_content_async.side_effect = ValueError("blocked")
        engine = GeminiOcrEngine(api_key="test-key")
        await engine.load("eng")
        output = await engine.run(image, lambda _: None)
        assert isinstance(output, ErrorOutput)
