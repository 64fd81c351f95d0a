"""
Product Catalog Explorer - CSV product ingestion and catalog search.

This package parses CSV exports of product records into a normalized
model, persists the loaded catalog, and provides full-text search,
faceted filtering, sorting and pagination over it. Lambda entry points
live in catalog_explorer.handler.
"""

from catalog_explorer.exceptions import (
    AWSServiceError,
    CatalogError,
    ConfigurationError,
    RowParseError,
    S3Error,
    SchemaError,
    StorageError,
    ValidationError,
)
from catalog_explorer.ingestion import CatalogIngestor, IngestResult, ingest
from catalog_explorer.models import (
    IngestSummary,
    PriceBounds,
    PriceRange,
    Product,
    ProductStatus,
    SearchFilters,
    SortKey,
)
from catalog_explorer.search import facet_options, paginate, search_products
from catalog_explorer.storage import CatalogStorage, InMemoryStore, S3Store

__all__ = [
    "CatalogIngestor",
    "IngestResult",
    "ingest",
    "IngestSummary",
    "PriceBounds",
    "PriceRange",
    "Product",
    "ProductStatus",
    "SearchFilters",
    "SortKey",
    "search_products",
    "paginate",
    "facet_options",
    "CatalogStorage",
    "InMemoryStore",
    "S3Store",
    "CatalogError",
    "ValidationError",
    "SchemaError",
    "RowParseError",
    "StorageError",
    "AWSServiceError",
    "S3Error",
    "ConfigurationError",
]

__version__ = "1.0.0"
