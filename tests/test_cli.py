"""Tests for the stocktrack-receipts command line."""

import json
from unittest.mock import patch

import cv2
import numpy as np
import pytest

from stocktrack.receipts.cli import main
from stocktrack.receipts.db import InventoryDB
from stocktrack.receipts.ocr import OcrEngine, TextOutput


class StaticEngine(OcrEngine):
    name = "static"

    def __init__(self, text):
        self.text = text

    async def load(self, language):
        pass

    async def run(self, image, report):
        return TextOutput(self.text)


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "stocktrack.toml"
    path.write_text(
        f'[store]\ndb_path = "{(tmp_path / "inv.db").as_posix()}"\n\n'
        '[plan]\nowner_key = "shop-1"\n'
    )
    return path


@pytest.fixture
def receipt_png(tmp_path):
    path = tmp_path / "receipt.png"
    ok, buf = cv2.imencode(".png", np.full((40, 60, 3), 255, dtype=np.uint8))
    path.write_bytes(buf.tobytes())
    return path


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 1
    assert "stocktrack-receipts" in capsys.readouterr().out


def test_engines(capsys, config_path):
    main(["--config", str(config_path), "engines"])
    out = capsys.readouterr().out
    assert "tesseract (configured)" in out
    assert "claude" in out


def test_scan_and_commit(capsys, tmp_path, config_path, receipt_png):
    engine = StaticEngine("Milk 1L  2 x 1.20\nBread   1.50\nTOTAL    4.20")
    with patch("stocktrack.receipts.cli.create_engine", return_value=engine):
        main([
            "--config", str(config_path),
            "scan", "--image", str(receipt_png), "--crop", "0,0,30,20",
            "--display", "30,20", "--commit", "--json",
        ])

    data = json.loads(capsys.readouterr().out)
    assert [i["name"] for i in data["items"]] == ["Milk 1L", "Bread"]
    assert data["total"] == "3.90"
    assert len(data["committed"]) == 2
    assert data["failed"] == []

    inventory = InventoryDB(tmp_path / "inv.db")
    try:
        assert inventory.count_items("shop-1") == 2
    finally:
        inventory.close()

    main(["--config", str(config_path), "items"])
    assert "Milk 1L" in capsys.readouterr().out


def test_scan_without_items_exits_retryable(capsys, config_path, receipt_png):
    with patch(
        "stocktrack.receipts.cli.create_engine", return_value=StaticEngine("THANK YOU")
    ):
        with pytest.raises(SystemExit) as excinfo:
            main(["--config", str(config_path), "scan", "--image", str(receipt_png)])
    assert excinfo.value.code == 2
    assert "no line items" in capsys.readouterr().err


def test_bad_crop_argument(config_path, receipt_png):
    with pytest.raises(SystemExit):
        main([
            "--config", str(config_path),
            "scan", "--image", str(receipt_png), "--crop", "1,2",
        ])


def test_plans(capsys, config_path):
    main(["--config", str(config_path), "plans"])
    out = capsys.readouterr().out
    assert "Free Trial" in out
    assert "(current)" in out
    assert "Remaining for shop-1" in out
