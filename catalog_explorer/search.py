"""
Search, filter, sort and pagination over a loaded product collection.

search_products is pure: it never mutates its inputs and always returns a
new list, so callers may re-run it on every query change.
"""

import math
import unicodedata
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence, Union

from catalog_explorer.models import (
    FacetOptions,
    Page,
    Product,
    SearchFilters,
    SortKey,
)


def _name_key(product: Product) -> tuple[str, str]:
    decomposed = unicodedata.normalize("NFKD", product.title)
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return folded, product.title


def _min_price(product: Product) -> float:
    if product.price_range is None:
        return 0.0
    return product.price_range.min_variant_price.amount


def _max_price(product: Product) -> float:
    if product.price_range is None:
        return 0.0
    return product.price_range.max_variant_price.amount


def parse_timestamp(value: Optional[str]) -> float:
    """Epoch seconds of an ISO-8601 string; 0 when absent or unparsable."""
    if not value:
        return 0.0
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return 0.0
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp()


def _coerce_sort_key(sort_by: Union[SortKey, str, None]) -> SortKey:
    if isinstance(sort_by, SortKey):
        return sort_by
    try:
        return SortKey(sort_by)
    except ValueError:
        return SortKey.RELEVANCE


def _matches_query(product: Product, terms: list[str]) -> bool:
    text = product.searchable_text()
    return all(term in text for term in terms)


def _in_stock(product: Product) -> bool:
    return product.total_inventory > 0 and not product.has_out_of_stock_variants


def _within_price(product: Product, filters: SearchFilters) -> bool:
    if product.price_range is None:
        return True
    bounds = filters.price_range
    return _min_price(product) >= bounds.min and _max_price(product) <= bounds.max


def sort_products(products: Iterable[Product], sort_by: Union[SortKey, str, None]) -> list[Product]:
    """Stable sort of products by the given key. Relevance keeps the input order."""
    key = _coerce_sort_key(sort_by)
    items = list(products)

    if key == SortKey.NAME:
        return sorted(items, key=_name_key)
    if key == SortKey.PRICE_ASC:
        return sorted(items, key=_min_price)
    if key == SortKey.PRICE_DESC:
        return sorted(items, key=_max_price, reverse=True)
    if key == SortKey.DATE:
        return sorted(items, key=lambda p: parse_timestamp(p.created_at), reverse=True)
    if key == SortKey.DATE_ASC:
        return sorted(items, key=lambda p: parse_timestamp(p.created_at))
    return items


def search_products(
    products: Sequence[Product],
    query: str = "",
    filters: Optional[SearchFilters] = None,
    sort_by: Union[SortKey, str, None] = SortKey.RELEVANCE,
) -> list[Product]:
    """
    Filter and sort products.

    Stages run in a fixed order: free-text query, vendor, product type,
    stock, price bounds, then sort. Every whitespace-separated query term
    must appear (case-insensitively) in the product's title, description,
    vendor, product type or tags.

    Args:
        products: Full product collection
        query: Free-text query; blank matches everything
        filters: Facet filters; None applies no filtering
        sort_by: SortKey or its string value; unknown keys keep filter order

    Returns:
        New list holding the matching products
    """
    filters = filters or SearchFilters()
    result = list(products)

    terms = (query or "").casefold().split()
    if terms:
        result = [p for p in result if _matches_query(p, terms)]

    if filters.vendor:
        result = [p for p in result if p.vendor == filters.vendor]

    if filters.product_type:
        result = [p for p in result if p.product_type == filters.product_type]

    if filters.in_stock:
        result = [p for p in result if _in_stock(p)]

    result = [p for p in result if _within_price(p, filters)]

    return sort_products(result, sort_by)


def paginate(products: Sequence[Product], page: int = 1, page_size: int = 24) -> Page:
    """Slice results into a 1-based page, clamping the page number into range."""
    page_size = max(1, page_size)
    total = len(products)
    total_pages = max(1, math.ceil(total / page_size))
    page = min(max(1, page), total_pages)
    start = (page - 1) * page_size
    return Page(
        items=list(products[start:start + page_size]),
        page=page,
        page_size=page_size,
        total=total,
        total_pages=total_pages,
    )


def facet_options(products: Iterable[Product]) -> FacetOptions:
    """Distinct vendors and product types, sorted, for filter dropdowns."""
    vendors = set()
    product_types = set()
    for product in products:
        if product.vendor:
            vendors.add(product.vendor)
        if product.product_type:
            product_types.add(product.product_type)
    return FacetOptions(
        vendors=sorted(vendors, key=str.casefold),
        product_types=sorted(product_types, key=str.casefold),
    )
