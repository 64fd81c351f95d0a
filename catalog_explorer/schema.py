"""
Header-to-field mapping for product CSV exports.
"""

from dataclasses import dataclass
from typing import Mapping, Sequence

ABSENT = -1

TITLE = "title"
PRICE_RANGE = "price_range"


@dataclass(frozen=True)
class ColumnSpec:
    """Accepted header names for one semantic field, in priority order."""
    aliases: tuple[str, ...]
    required: bool = False


DEFAULT_SCHEMA: dict[str, ColumnSpec] = {
    TITLE: ColumnSpec(("title", "name", "product name", "product_name"), required=True),
    PRICE_RANGE: ColumnSpec(("price_range", "price_range_v2", "price", "prices"), required=True),
    "id": ColumnSpec(("id", "product_id", "product id")),
    "handle": ColumnSpec(("handle", "slug")),
    "vendor": ColumnSpec(("vendor", "brand")),
    "product_type": ColumnSpec(("product_type", "product type", "type", "category")),
    "total_inventory": ColumnSpec(("total_inventory", "inventory", "stock", "quantity")),
    "has_out_of_stock_variants": ColumnSpec(("has_out_of_stock_variants", "out_of_stock")),
    "created_at": ColumnSpec(("created_at", "created")),
    "updated_at": ColumnSpec(("updated_at", "updated")),
    "tags": ColumnSpec(("tags", "seo_tags", "seo")),
    "status": ColumnSpec(("status",)),
    "description": ColumnSpec(("description", "description_html", "body_html")),
    "featured_image": ColumnSpec(("featured_image", "image", "image_url")),
    "online_store_url": ColumnSpec(("online_store_url", "shop_url")),
}


def _normalize_header(name: str) -> str:
    return name.strip().casefold()


def resolve_columns(
    header: Sequence[str],
    schema: Mapping[str, ColumnSpec] = DEFAULT_SCHEMA,
) -> dict[str, int]:
    """
    Map each schema field to its column index in the header row.

    Aliases are tried in order and compared to trimmed, case-folded header
    cells by equality. Fields with no matching header resolve to ABSENT.
    """
    positions: dict[str, int] = {}
    for idx, name in enumerate(header):
        positions.setdefault(_normalize_header(name), idx)

    columns: dict[str, int] = {}
    for field_key, spec in schema.items():
        columns[field_key] = ABSENT
        for alias in spec.aliases:
            idx = positions.get(_normalize_header(alias))
            if idx is not None:
                columns[field_key] = idx
                break
    return columns


def missing_required(
    columns: Mapping[str, int],
    schema: Mapping[str, ColumnSpec] = DEFAULT_SCHEMA,
) -> list[str]:
    """Return required fields that did not resolve to a column."""
    return [
        field_key
        for field_key, spec in schema.items()
        if spec.required and columns.get(field_key, ABSENT) == ABSENT
    ]


def missing_optional(
    columns: Mapping[str, int],
    schema: Mapping[str, ColumnSpec] = DEFAULT_SCHEMA,
) -> list[str]:
    """Return optional fields that did not resolve to a column."""
    return [
        field_key
        for field_key, spec in schema.items()
        if not spec.required and columns.get(field_key, ABSENT) == ABSENT
    ]
