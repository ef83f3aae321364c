"""Tests for receipt line-item parsing."""

from decimal import Decimal

import pytest

from stocktrack.receipts.config import ParserConfig
from stocktrack.receipts.errors import NoItemsFound
from stocktrack.receipts.models import CandidateLineItem
from stocktrack.receipts.ocr import RecognizedText
from stocktrack.receipts.parser import (
    DEFAULT_NOISE_KEYWORDS,
    LineItemParser,
    LineItemSequence,
    scan_total,
)


@pytest.fixture
def parser():
    return LineItemParser()


class TestParseLine:
    def test_rightmost_price_wins(self, parser):
        item = parser.parse_line("SKU1023  WIDGET 2.00  12.99")
        assert item is not None
        assert item.unit_price == Decimal("12.99")
        assert item.quantity == 1

    def test_default_quantity_is_one(self, parser):
        item = parser.parse_line("Bread   1.50")
        assert item == CandidateLineItem(name="Bread", quantity=1, unit_price=Decimal("1.50"))

    def test_multiplier_quantity(self, parser):
        item = parser.parse_line("Milk 1L  2 x 1.20")
        assert item.name == "Milk 1L"
        assert item.quantity == 2
        assert item.unit_price == Decimal("1.20")

    def test_prefix_multiplier(self, parser):
        item = parser.parse_line("x3 Apples 0.50")
        assert item.name == "Apples"
        assert item.quantity == 3

    def test_leading_quantity(self, parser):
        item = parser.parse_line("2 Eggs 3.00")
        assert item.name == "Eggs"
        assert item.quantity == 2

    def test_currency_symbol_stripped(self, parser):
        item = parser.parse_line("Coffee £3.50")
        assert item.name == "Coffee"
        assert item.unit_price == Decimal("3.50")

    def test_comma_decimal_separator(self, parser):
        item = parser.parse_line("Tea 2,50")
        assert item.unit_price == Decimal("2.50")

    @pytest.mark.parametrize(
        "line",
        [
            "TOTAL    4.20",
            "Subtotal 5.00",
            "VAT 20% 1.00",
            "Card payment 10.00",
            "CASH 20.00",
            "CHANGE 5.80",
        ],
    )
    def test_noise_lines_rejected(self, parser, line):
        assert parser.parse_line(line) is None

    def test_line_without_price_rejected(self, parser):
        assert parser.parse_line("WELCOME TO THE SHOP") is None

    def test_empty_name_rejected(self, parser):
        assert parser.parse_line("#### 3.50") is None

    def test_price_above_maximum_rejected(self, parser):
        assert parser.parse_line("Car 12000.00") is None

    def test_negative_amount_not_a_price(self, parser):
        assert parser.parse_line("Refund -£1.00") is None

    def test_name_truncated(self):
        parser = LineItemParser(max_name_length=10)
        item = parser.parse_line("Extra Large Family Pizza 9.99")
        assert len(item.name) <= 10
        assert item.name == "Extra Larg"

    def test_title_case(self):
        parser = LineItemParser(title_case=True)
        assert parser.parse_line("FRESH BREAD 1.50").name == "Fresh Bread"
        assert parser.parse_line("oat milk 2 x 1.20").name == "Oat Milk"

    def test_name_case_kept_by_default(self, parser):
        assert parser.parse_line("FRESH BREAD 1.50").name == "FRESH BREAD"

    def test_short_lines_skipped(self):
        parser = LineItemParser(min_line_length=10)
        assert parser.parse_line("Tea 2.50") is None
        assert parser.parse_line("Green Tea 2.50").name == "Green Tea"

    @pytest.mark.parametrize("line", ["12/05/2024 Milk 1.00", "05.12.24 Eggs 2.00"])
    def test_dated_lines_skipped(self, parser, line):
        assert parser.parse_line(line) is not None
        assert LineItemParser(skip_dated_lines=True).parse_line(line) is None


class TestParse:
    def test_receipt_scenario(self, parser):
        items = parser.parse("Milk 1L  2 x 1.20\nBread   1.50\nTOTAL    4.20").to_list()
        assert items == [
            CandidateLineItem(name="Milk 1L", quantity=2, unit_price=Decimal("1.20")),
            CandidateLineItem(name="Bread", quantity=1, unit_price=Decimal("1.50")),
        ]

    def test_accepts_recognized_text(self, parser):
        items = parser.parse(RecognizedText("Bread 1.50")).to_list()
        assert [i.name for i in items] == ["Bread"]

    def test_order_preserved(self, parser):
        text = "Zucchini 0.80\nApples 1.10\nMango 0.95"
        names = [i.name for i in parser.parse(text)]
        assert names == ["Zucchini", "Apples", "Mango"]

    def test_no_items_raises(self, parser):
        with pytest.raises(NoItemsFound):
            parser.parse("")
        with pytest.raises(NoItemsFound):
            parser.parse("THANK YOU\nTOTAL 4.20")

    def test_sequence_is_restartable(self, parser):
        seq = parser.parse("Milk 1.00\nEggs 2.00")
        assert isinstance(seq, LineItemSequence)
        assert list(seq) == list(seq)
        assert len(seq) == 2

    def test_duplicates_kept_by_default(self, parser):
        assert len(parser.parse("Milk 1.00\nmilk 1.00")) == 2

    def test_dedupe(self):
        parser = LineItemParser(dedupe=True)
        assert len(parser.parse("Milk 1.00\nmilk 1.00\nEggs 2.00")) == 2

    def test_max_items(self):
        parser = LineItemParser(max_items=1)
        assert [i.name for i in parser.parse("Milk 1.00\nEggs 2.00")] == ["Milk"]


class TestConfiguration:
    def test_default_keywords(self, parser):
        assert parser.noise_keywords == DEFAULT_NOISE_KEYWORDS

    def test_from_config_extra_keywords(self):
        parser = LineItemParser.from_config(
            ParserConfig(extra_noise_keywords=["Loyalty"])
        )
        assert "loyalty" in parser.noise_keywords
        assert parser.parse_line("Loyalty points 0.50") is None
        assert parser.parse_line("TOTAL 4.20") is None

    def test_from_config_replaces_keywords(self):
        parser = LineItemParser.from_config(ParserConfig(noise_keywords=["summe"]))
        assert parser.parse_line("SUMME 4.20") is None
        assert parser.parse_line("Total Cola 1.00") is not None


def test_scan_total():
    items = [
        CandidateLineItem(name="Milk", quantity=2, unit_price=Decimal("1.20")),
        CandidateLineItem(name="Bread", quantity=1, unit_price=Decimal("1.50")),
    ]
    assert scan_total(items) == Decimal("3.90")
    assert scan_total([]) == Decimal("0.00")
