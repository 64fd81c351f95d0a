"""
Data models for the catalog explorer.
Products, search parameters, ingestion summaries and the persisted catalog record.
Field names are snake_case in Python and camelCase on the wire.
"""

import math
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class ProductStatus(str, Enum):
    """Publication status of a product."""
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"
    DRAFT = "DRAFT"


class SortKey(str, Enum):
    """Result orderings supported by the search engine."""
    RELEVANCE = "relevance"
    NAME = "name"
    PRICE_ASC = "price-asc"
    PRICE_DESC = "price-desc"
    DATE = "date"
    DATE_ASC = "date-asc"


class SummarySeverity(str, Enum):
    """Overall outcome of a CSV import."""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Money(BaseModel):
    """A price amount with its currency."""
    amount: float = Field(0.0, ge=0, allow_inf_nan=False)
    currency_code: str = Field("USD", alias="currencyCode")

    class Config:
        populate_by_name = True
        frozen = True


class PriceRange(BaseModel):
    """Lowest and highest variant price of a product."""
    min_variant_price: Money = Field(alias="minVariantPrice")
    max_variant_price: Money = Field(alias="maxVariantPrice")

    class Config:
        populate_by_name = True
        frozen = True


class Product(BaseModel):
    """
    Normalized catalog entry produced by CSV ingestion.
    Immutable once created.
    """
    id: str
    title: str = Field(min_length=1)
    handle: str
    description: str = ""
    vendor: str = "Unknown"
    product_type: str = Field("Uncategorized", alias="productType")
    status: ProductStatus = ProductStatus.ACTIVE
    price_range: Optional[PriceRange] = Field(None, alias="priceRange")
    total_inventory: int = Field(0, ge=0, alias="totalInventory")
    has_out_of_stock_variants: bool = Field(False, alias="hasOutOfStockVariants")
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")
    seo_tags: list[str] = Field(default_factory=list, alias="seoTags")
    featured_image: Optional[str] = Field(None, alias="featuredImage")
    online_store_url: Optional[str] = Field(None, alias="onlineStoreUrl")

    class Config:
        populate_by_name = True
        frozen = True

    def searchable_text(self) -> str:
        """Case-folded text matched by free-text queries."""
        parts = [
            self.title,
            self.description,
            self.vendor,
            self.product_type,
            *self.seo_tags,
        ]
        return " ".join(parts).casefold()

    def to_dict(self) -> dict:
        """Convert to the camelCase JSON representation."""
        return self.model_dump(mode="json", by_alias=True)


class PriceBounds(BaseModel):
    """Inclusive price bounds for filtering. Only the upper bound may be infinite."""
    min: float = Field(0.0, allow_inf_nan=False)
    max: float = float("inf")

    @field_validator("max")
    @classmethod
    def _max_not_nan(cls, value: float) -> float:
        if math.isnan(value):
            raise ValueError("max must be a number")
        return value


class SearchFilters(BaseModel):
    """Facet filters applied after the free-text query. Empty strings match everything."""
    vendor: str = ""
    product_type: str = Field("", alias="productType")
    price_range: PriceBounds = Field(default_factory=PriceBounds, alias="priceRange")
    in_stock: bool = Field(False, alias="inStock")

    class Config:
        populate_by_name = True


class RowError(BaseModel):
    """A data row that was dropped during ingestion."""
    row_number: int = Field(alias="rowNumber")
    reason: str
    message: str

    class Config:
        populate_by_name = True


class IngestSummary(BaseModel):
    """Aggregate diagnostics for one CSV import."""
    total_rows: int = Field(0, alias="totalRows")
    success_count: int = Field(0, alias="successCount")
    error_count: int = Field(0, alias="errorCount")
    empty_field_count: int = Field(0, alias="emptyFieldCount")
    empty_fields_report: dict[str, int] = Field(default_factory=dict, alias="emptyFieldsReport")
    severity: SummarySeverity = SummarySeverity.SUCCESS
    message: str = ""
    fatal: bool = False
    row_errors: list[RowError] = Field(default_factory=list, alias="rowErrors")
    missing_optional_columns: list[str] = Field(default_factory=list, alias="missingOptionalColumns")
    vendors: list[str] = Field(default_factory=list)
    product_types: list[str] = Field(default_factory=list, alias="productTypes")

    class Config:
        populate_by_name = True

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class StoredCatalog(BaseModel):
    """Versioned catalog record written by the persistence gateway."""
    version: str
    products: list[Product] = Field(default_factory=list)
    timestamp: int
    filename: Optional[str] = None


class LoadedCatalog(BaseModel):
    """Catalog returned by a successful storage load."""
    products: list[Product] = Field(default_factory=list)
    filename: Optional[str] = None
    timestamp: int


class StorageInfo(BaseModel):
    """Summary of what is currently persisted."""
    has_data: bool = Field(False, alias="hasData")
    product_count: int = Field(0, alias="productCount")
    timestamp: Optional[int] = None
    filename: Optional[str] = None

    class Config:
        populate_by_name = True


class Page(BaseModel):
    """One page of search results."""
    items: list[Product] = Field(default_factory=list)
    page: int = 1
    page_size: int = Field(24, alias="pageSize")
    total: int = 0
    total_pages: int = Field(1, alias="totalPages")

    class Config:
        populate_by_name = True


class FacetOptions(BaseModel):
    """Distinct values offered by the vendor and product type filters."""
    vendors: list[str] = Field(default_factory=list)
    product_types: list[str] = Field(default_factory=list, alias="productTypes")

    class Config:
        populate_by_name = True
