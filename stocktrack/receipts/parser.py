"""Heuristic line-item extraction from OCR'd receipt text.

Every line is judged on its own: a line becomes an item when it carries a
plausible price, is not receipt boilerplate, and leaves a name with at least
one letter once the price and quantity tokens are taken out.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Iterator

from .errors import NoItemsFound
from .models import CandidateLineItem, to_money
from .ocr import RecognizedText

if TYPE_CHECKING:
    from .config import ParserConfig

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = "£$€¥₹"

# Receipt metadata lines that carry a price but are not purchased goods.
DEFAULT_NOISE_KEYWORDS: tuple[str, ...] = (
    "total",
    "subtotal",
    "tax",
    "vat",
    "change",
    "cash",
    "card",
    "balance",
    "payment",
    "tender",
    "discount",
    "thank",
)

_PRICE_RE = re.compile(
    rf"(?<![\d.,\-{CURRENCY_SYMBOLS}])"
    rf"(?:(?P<pre>[{CURRENCY_SYMBOLS}])\s?)?"
    r"(?P<amount>\d{1,6}[.,]\d{1,2})(?!\d)"
    rf"(?:\s?(?P<post>[{CURRENCY_SYMBOLS}]))?"
    r"(?!\w)"
)

# "2 x", "2x", "x3", "3 @", "×2", "2 *"
_MULTIPLIER_RE = re.compile(
    r"(?<!\w)(?:(?P<before>\d{1,2})\s*[xX×*@]|[xX×*@]\s*(?P<after>\d{1,2}))(?!\w)"
)
_LEADING_QTY_RE = re.compile(r"^(?P<qty>\d{1,2})\s+(?=\S)")
_CURRENCY_RE = re.compile(rf"[{CURRENCY_SYMBOLS}]")
_SPACES_RE = re.compile(r"\s+")
_DATE_PREFIX_RE = re.compile(r"^\d{1,2}[/\-:.]\d{1,2}[/\-:.]\d{2,4}")
_WORD_START_RE = re.compile(r"\b\w")
_EDGE_PUNCTUATION = " \t-–—:;,.@*#|_=~/\\"

_MAX_QUANTITY = 99


class LineItemSequence:
    """A finite, restartable, lazily evaluated run of parsed items.

    Each iteration re-parses the text from the first line, so the sequence
    can be walked any number of times and always yields the same items in
    receipt order.
    """

    def __init__(self, parser: LineItemParser, text: str) -> None:
        self._parser = parser
        self._text = text

    @property
    def text(self) -> str:
        return self._text

    def __iter__(self) -> Iterator[CandidateLineItem]:
        return self._parser.iter_items(self._text)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def to_list(self) -> list[CandidateLineItem]:
        return list(self)


class LineItemParser:
    """Turn noisy receipt text into candidate inventory line items."""

    def __init__(
        self,
        noise_keywords: Iterable[str] = DEFAULT_NOISE_KEYWORDS,
        *,
        max_name_length: int = 50,
        min_price: Decimal | str = "0.01",
        max_price: Decimal | str = "9999.99",
        dedupe: bool = False,
        max_items: int | None = None,
        title_case: bool = False,
        min_line_length: int = 0,
        skip_dated_lines: bool = False,
    ) -> None:
        self._noise_keywords = tuple(
            k.strip().lower() for k in noise_keywords if k and k.strip()
        )
        self._max_name_length = max_name_length
        self._min_price = to_money(min_price)
        self._max_price = to_money(max_price)
        self._dedupe = dedupe
        self._max_items = max_items
        self._title_case = title_case
        self._min_line_length = min_line_length
        self._skip_dated_lines = skip_dated_lines

    @classmethod
    def from_config(cls, config: ParserConfig) -> LineItemParser:
        return cls(
            [*config.noise_keywords, *config.extra_noise_keywords],
            max_name_length=config.max_name_length,
            min_price=config.min_price,
            max_price=config.max_price,
            dedupe=config.dedupe,
            max_items=config.max_items,
            title_case=config.title_case,
            min_line_length=config.min_line_length,
            skip_dated_lines=config.skip_dated_lines,
        )

    @property
    def noise_keywords(self) -> tuple[str, ...]:
        return self._noise_keywords

    def parse(self, text: str | RecognizedText) -> LineItemSequence:
        """Parse recognized text.

        Raises:
            NoItemsFound: If no line survives. An empty result never means
                "the receipt had no items", so it is reported instead of
                returned.
        """
        if isinstance(text, RecognizedText):
            text = text.text
        sequence = LineItemSequence(self, text)
        if next(iter(sequence), None) is None:
            raise NoItemsFound("no line items recognized; adjust the crop and retry")
        return sequence

    def iter_items(self, text: str) -> Iterator[CandidateLineItem]:
        seen: set[str] = set()
        emitted = 0
        for line in _split_lines(text):
            if self._max_items is not None and emitted >= self._max_items:
                return
            item = self.parse_line(line)
            if item is None:
                continue
            if self._dedupe:
                key = _SPACES_RE.sub("", item.name.lower())
                if key in seen:
                    logger.debug("skip duplicate item: %r", line)
                    continue
                seen.add(key)
            emitted += 1
            yield item

    def parse_line(self, line: str) -> CandidateLineItem | None:
        """Parse one trimmed line, or return None if it is not an item."""
        if len(line) < self._min_line_length:
            logger.debug("skip short line: %r", line)
            return None
        if self._skip_dated_lines and _DATE_PREFIX_RE.match(line):
            logger.debug("skip dated line: %r", line)
            return None
        if self.is_noise(line):
            logger.debug("skip boilerplate line: %r", line)
            return None

        found = self._find_price(line)
        if found is None:
            logger.debug("skip line without price: %r", line)
            return None
        price, start, end = found
        rest = f"{line[:start]} {line[end:]}"

        quantity, rest = _take_quantity(rest)

        name = self._clean_name(rest)
        if not name or not any(ch.isalpha() for ch in name):
            logger.debug("skip line without a usable name: %r", line)
            return None
        if self._title_case:
            name = _WORD_START_RE.sub(lambda m: m.group().upper(), name.lower())

        return CandidateLineItem(name=name, quantity=quantity, unit_price=price)

    def is_noise(self, line: str) -> bool:
        lowered = line.lower()
        return any(keyword in lowered for keyword in self._noise_keywords)

    def _find_price(self, line: str) -> tuple[Decimal, int, int] | None:
        """Return the right-most plausible price and its span."""
        best = None
        for match in _PRICE_RE.finditer(line):
            amount = to_money(match.group("amount"))
            if self._min_price <= amount <= self._max_price:
                best = (amount, match.start(), match.end())
        return best

    def _clean_name(self, text: str) -> str:
        name = _CURRENCY_RE.sub(" ", text)
        name = _SPACES_RE.sub(" ", name).strip(_EDGE_PUNCTUATION)
        if len(name) > self._max_name_length:
            name = name[: self._max_name_length].rstrip(_EDGE_PUNCTUATION)
        return name


def _split_lines(text: str) -> Iterator[str]:
    for raw in text.splitlines():
        line = raw.strip()
        if line:
            yield line


def _take_quantity(text: str) -> tuple[int, str]:
    """Pull a quantity token out of the text left after the price."""
    matches = [
        m for m in _MULTIPLIER_RE.finditer(text)
        if 0 < int(m.group("before") or m.group("after")) <= _MAX_QUANTITY
    ]
    if matches:
        m = matches[-1]
        qty = int(m.group("before") or m.group("after"))
        return qty, f"{text[:m.start()]} {text[m.end():]}"

    m = _LEADING_QTY_RE.match(text)
    if m and 0 < int(m.group("qty")) <= _MAX_QUANTITY:
        return int(m.group("qty")), text[m.end():]

    return 1, text


def scan_total(items: Iterable[CandidateLineItem]) -> Decimal:
    """Sum ``quantity × unit_price`` across items without float drift."""
    return sum((item.line_total for item in items), Decimal("0.00"))
