"""
Row normalization for product CSV imports.
Converts one tokenized CSV row into a validated Product, decoding the nested
price document, tag lists, inventory counts, flags and dates.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from catalog_explorer.config import PricePolicy
from catalog_explorer.models import Money, PriceRange, Product, ProductStatus
from catalog_explorer.schema import ABSENT, DEFAULT_SCHEMA, PRICE_RANGE, TITLE, ColumnSpec

logger = logging.getLogger(__name__)

MAX_TAGS = 10
MAX_TAG_LENGTH = 49

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_LEADING_INT_RE = re.compile(r"^[+-]?\d+")
_TAG_SPLIT_RE = re.compile(r"[,|]")
_HTML_TAG_RE = re.compile(r"<[^>]*>")


class SkipReason(str, Enum):
    """Why a data row produced no product."""
    MISSING_TITLE = "missing_title"
    MISSING_PRICE = "missing_price"
    PARSE_ERROR = "parse_error"


@dataclass
class PriceDecodeResult:
    """Decoded price range and whether the numeric fallback was used."""
    price_range: PriceRange
    fallback_applied: bool = False


@dataclass
class RowOutcome:
    """Result of normalizing one row: a product, or the reason it was skipped."""
    row_number: int
    product: Optional[Product] = None
    skip_reason: Optional[SkipReason] = None
    empty_fields: list[str] = field(default_factory=list)
    price_fallback: bool = False

    @property
    def ok(self) -> bool:
        return self.product is not None


def slugify(text: str) -> str:
    """Convert text to URL-friendly slug."""
    if not text:
        return ""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower())
    return slug.strip("-")


def strip_html(text: str) -> str:
    if not text:
        return ""
    return _HTML_TAG_RE.sub("", text).strip()


def _first_key(data: dict, *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _parse_amount(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"Unexpected boolean price amount: {value}")
    try:
        amount = float(value)
    except OverflowError:
        raise ValueError("Price amount is too large")
    if not math.isfinite(amount) or amount < 0:
        raise ValueError(f"Invalid price amount: {value}")
    return amount


def _money(data: Any, default_currency: str) -> Money:
    if not isinstance(data, dict):
        data = {}
    currency = _first_key(data, "currency_code", "currencyCode")
    return Money(
        amount=_parse_amount(data.get("amount")),
        currency_code=str(currency).strip().upper() if currency else default_currency,
    )


def _numeric_fallback(raw: str, default_currency: str) -> PriceRange:
    # digit runs past float range parse as inf; those count as 0
    numbers = [float(n) for n in _NUMBER_RE.findall(raw or "")[:2]]
    numbers = [n if math.isfinite(n) else 0.0 for n in numbers]
    if not numbers:
        numbers = [0.0]
    low = numbers[0]
    high = numbers[1] if len(numbers) > 1 else low
    return PriceRange(
        min_variant_price=Money(amount=low, currency_code=default_currency),
        max_variant_price=Money(amount=high, currency_code=default_currency),
    )


def decode_price_range(raw: str, default_currency: str = "USD") -> PriceDecodeResult:
    """
    Decode a price range cell.

    Accepts a JSON object holding min_variant_price / max_variant_price
    sub-objects with amount and currency_code. Anything else falls back to
    the first two numbers found in the text; a single number is used for
    both bounds, no number gives 0.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        data = None

    if isinstance(data, dict):
        min_raw = _first_key(data, "min_variant_price", "minVariantPrice")
        max_raw = _first_key(data, "max_variant_price", "maxVariantPrice")
        if isinstance(min_raw, dict) or isinstance(max_raw, dict):
            try:
                min_price = _money(min_raw if isinstance(min_raw, dict) else max_raw, default_currency)
                max_price = _money(max_raw if isinstance(max_raw, dict) else min_raw, default_currency)
                return PriceDecodeResult(
                    price_range=PriceRange(
                        min_variant_price=min_price,
                        max_variant_price=max_price,
                    )
                )
            except (TypeError, ValueError):
                pass

    return PriceDecodeResult(
        price_range=_numeric_fallback(raw, default_currency),
        fallback_applied=True,
    )


def zero_price_range(default_currency: str = "USD") -> PriceRange:
    return PriceRange(
        min_variant_price=Money(amount=0.0, currency_code=default_currency),
        max_variant_price=Money(amount=0.0, currency_code=default_currency),
    )


def parse_tags(raw: str) -> list[str]:
    """
    Split a tag cell on ',' or '|'.

    JSON lists and JSON objects with a 'description' string are unpacked
    first. Empty and over-long tags are dropped; at most MAX_TAGS are kept.
    """
    if not raw:
        return []

    text = raw
    if raw[:1] in "[{":
        try:
            data = json.loads(raw)
        except ValueError:
            data = None
        if isinstance(data, list):
            text = ",".join(str(item) for item in data if isinstance(item, (str, int, float)))
        elif isinstance(data, dict):
            description = data.get("description")
            text = description if isinstance(description, str) else ""

    tags: list[str] = []
    for part in _TAG_SPLIT_RE.split(text):
        tag = part.strip()
        if not tag or len(tag) > MAX_TAG_LENGTH:
            continue
        tags.append(tag)
        if len(tags) == MAX_TAGS:
            break
    return tags


def parse_inventory(raw: str) -> int:
    """Parse a leading integer; negatives and garbage become 0."""
    match = _LEADING_INT_RE.match((raw or "").strip())
    if not match:
        return 0
    return max(0, int(match.group(0)))


def parse_bool(raw: str) -> bool:
    return (raw or "").strip().lower() == "true"


def parse_status(raw: str) -> ProductStatus:
    try:
        return ProductStatus((raw or "").strip().upper())
    except ValueError:
        return ProductStatus.ACTIVE


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 with millisecond precision and a Z suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RowNormalizer:
    """
    Normalizes tokenized CSV rows into Product records.

    One instance serves one import: the ingestion timestamp is fixed at
    construction and used for defaulted dates and synthetic ids.
    """

    def __init__(
        self,
        price_policy: PricePolicy = PricePolicy.STRICT,
        default_currency: str = "USD",
        ingested_at: Optional[datetime] = None,
        schema: Mapping[str, ColumnSpec] = DEFAULT_SCHEMA,
    ):
        self.price_policy = price_policy
        self.default_currency = default_currency
        self.ingested_at = ingested_at or datetime.now(timezone.utc)
        self.optional_fields = [key for key, spec in schema.items() if not spec.required]
        self._now = format_timestamp(self.ingested_at)
        self._epoch_millis = int(self.ingested_at.timestamp() * 1000)

    def normalize(
        self,
        raw_fields: Sequence[str],
        columns: Mapping[str, int],
        row_number: int,
    ) -> RowOutcome:
        """
        Normalize one data row.

        Args:
            raw_fields: Tokenized cells of the row
            columns: Field-to-index mapping from resolve_columns
            row_number: 1-based data row number

        Returns:
            RowOutcome holding the product or the skip reason
        """
        def cell(field_key: str) -> str:
            idx = columns.get(field_key, ABSENT)
            if idx == ABSENT or idx >= len(raw_fields):
                return ""
            return raw_fields[idx].strip()

        outcome = RowOutcome(row_number=row_number)
        outcome.empty_fields = [
            key for key in self.optional_fields
            if columns.get(key, ABSENT) != ABSENT and not cell(key)
        ]

        title = cell(TITLE)
        if not title:
            outcome.skip_reason = SkipReason.MISSING_TITLE
            return outcome

        raw_price = cell(PRICE_RANGE)
        if not raw_price:
            if self.price_policy == PricePolicy.STRICT:
                outcome.skip_reason = SkipReason.MISSING_PRICE
                return outcome
            price_range = zero_price_range(self.default_currency)
            outcome.empty_fields.append(PRICE_RANGE)
        else:
            decoded = decode_price_range(raw_price, self.default_currency)
            price_range = decoded.price_range
            outcome.price_fallback = decoded.fallback_applied
            if decoded.fallback_applied:
                logger.debug(
                    f"Row {row_number}: price is not a JSON price range, used numeric fallback",
                    extra={"row_number": row_number},
                )

        handle = cell("handle") or slugify(title) or f"product-{row_number}"

        outcome.product = Product(
            id=cell("id") or f"row-{row_number}-{self._epoch_millis}",
            title=title,
            handle=handle,
            description=strip_html(cell("description")),
            vendor=cell("vendor") or "Unknown",
            product_type=cell("product_type") or "Uncategorized",
            status=parse_status(cell("status")),
            price_range=price_range,
            total_inventory=parse_inventory(cell("total_inventory")),
            has_out_of_stock_variants=parse_bool(cell("has_out_of_stock_variants")),
            created_at=cell("created_at") or self._now,
            updated_at=cell("updated_at") or self._now,
            seo_tags=parse_tags(cell("tags")),
            featured_image=cell("featured_image") or None,
            online_store_url=cell("online_store_url") or None,
        )
        return outcome
