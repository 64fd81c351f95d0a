"""
CSV ingestion pipeline.
Tokenizes a whole CSV export, resolves its header, normalizes every data row
and aggregates the outcome into an IngestSummary. Problems are reported in
the summary, never raised to the caller.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional

from catalog_explorer.config import Settings
from catalog_explorer.csv_reader import split_lines, tokenize_line
from catalog_explorer.exceptions import ErrorContext, RowParseError, SchemaError
from catalog_explorer.logging_config import get_correlation_id, log_execution_time
from catalog_explorer.models import IngestSummary, Product, RowError, SummarySeverity
from catalog_explorer.schema import (
    DEFAULT_SCHEMA,
    ColumnSpec,
    missing_optional,
    missing_required,
    resolve_columns,
)
from catalog_explorer.transformer import RowNormalizer, SkipReason

logger = logging.getLogger(__name__)

FACET_PREVIEW_SIZE = 5

_SKIP_MESSAGES = {
    SkipReason.MISSING_TITLE: "Row has no title",
    SkipReason.MISSING_PRICE: "Row has no price",
}


@dataclass
class IngestResult:
    """Products parsed from one CSV file and the import summary."""
    products: list[Product] = field(default_factory=list)
    summary: IngestSummary = field(default_factory=IngestSummary)

    def to_dict(self) -> dict:
        return {
            "products": [p.to_dict() for p in self.products],
            "summary": self.summary.to_dict(),
        }


def _distinct(values, limit: int) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
            if len(seen) == limit:
                break
    return seen


class CatalogIngestor:
    """
    Runs the CSV ingestion pipeline.

    A malformed row never aborts the batch: row failures are counted and
    listed in the summary while the remaining rows are processed.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        schema: Mapping[str, ColumnSpec] = DEFAULT_SCHEMA,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or Settings()
        self.schema = schema
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @log_execution_time(logger)
    def ingest(self, content: str, filename: Optional[str] = None) -> IngestResult:
        """
        Parse CSV text into products.

        Args:
            content: Entire CSV file content
            filename: Source file name, used in logs only

        Returns:
            IngestResult with products and summary
        """
        lines = split_lines(content or "")
        logger.info(
            f"Starting CSV ingestion of {len(lines)} lines",
            extra={"source_file": filename, "metrics": {"line_count": len(lines)}},
        )

        if len(lines) < 2:
            return self._fatal(
                SchemaError(
                    message="CSV file must contain a header row and at least one data row",
                    context=ErrorContext(correlation_id=get_correlation_id(), filename=filename),
                ),
                total_rows=max(0, len(lines) - 1),
            )

        header = [cell.strip() for cell in tokenize_line(lines[0])]
        columns = resolve_columns(header, self.schema)
        missing = missing_required(columns, self.schema)
        if missing:
            return self._fatal(
                SchemaError(
                    message=(
                        f"Missing required columns: {', '.join(missing)}. "
                        f"Found columns: {', '.join(header)}"
                    ),
                    missing_columns=missing,
                    found_columns=header,
                    context=ErrorContext(correlation_id=get_correlation_id(), filename=filename),
                ),
                total_rows=len(lines) - 1,
            )

        normalizer = RowNormalizer(
            price_policy=self.settings.price_policy,
            default_currency=self.settings.default_currency,
            ingested_at=self.clock(),
            schema=self.schema,
        )

        products: list[Product] = []
        row_errors: list[RowError] = []
        empty_fields: Counter = Counter()
        rows_with_empty_fields = 0
        seen_ids: set[str] = set()

        for row_number, line in enumerate(lines[1:], start=1):
            try:
                outcome = normalizer.normalize(tokenize_line(line), columns, row_number)
            except Exception as e:
                error = RowParseError(
                    message=f"Row {row_number} could not be parsed: {e}",
                    row_number=row_number,
                    context=ErrorContext(correlation_id=get_correlation_id(), filename=filename),
                    original_exception=e,
                )
                logger.warning(
                    error.message,
                    extra={"row_number": row_number, "error": error.to_dict()},
                )
                row_errors.append(
                    RowError(
                        row_number=row_number,
                        reason=SkipReason.PARSE_ERROR.value,
                        message=error.message,
                    )
                )
                continue

            if outcome.empty_fields:
                rows_with_empty_fields += 1
                empty_fields.update(outcome.empty_fields)

            if outcome.product is None:
                logger.info(
                    f"Skipping row {row_number}: {outcome.skip_reason.value}",
                    extra={"row_number": row_number},
                )
                row_errors.append(
                    RowError(
                        row_number=row_number,
                        reason=outcome.skip_reason.value,
                        message=_SKIP_MESSAGES[outcome.skip_reason],
                    )
                )
                continue

            products.append(self._unique(outcome.product, seen_ids, row_number))

        summary = IngestSummary(
            total_rows=len(lines) - 1,
            success_count=len(products),
            error_count=len(row_errors),
            empty_field_count=rows_with_empty_fields,
            empty_fields_report=dict(empty_fields),
            row_errors=row_errors,
            missing_optional_columns=missing_optional(columns, self.schema),
            vendors=_distinct((p.vendor for p in products), FACET_PREVIEW_SIZE),
            product_types=_distinct((p.product_type for p in products), FACET_PREVIEW_SIZE),
        )
        summary.severity, summary.message = self._classify(summary, empty_fields)

        logger.info(
            "CSV ingestion complete",
            extra={
                "source_file": filename,
                "metrics": {
                    "total_rows": summary.total_rows,
                    "success_count": summary.success_count,
                    "error_count": summary.error_count,
                    "empty_field_count": summary.empty_field_count,
                },
            },
        )
        return IngestResult(products=products, summary=summary)

    def _unique(self, product: Product, seen_ids: set[str], row_number: int) -> Product:
        """Suffix a repeated id with the row number so ids stay unique within one import."""
        if product.id in seen_ids:
            new_id = f"{product.id}-{row_number}"
            suffix = 1
            while new_id in seen_ids:
                suffix += 1
                new_id = f"{product.id}-{row_number}-{suffix}"
            logger.warning(
                f"Duplicate product id {product.id!r} on row {row_number}, using {new_id!r}",
                extra={"row_number": row_number},
            )
            product = product.model_copy(update={"id": new_id})
        seen_ids.add(product.id)
        return product

    def _classify(self, summary: IngestSummary, empty_fields: Counter) -> tuple[SummarySeverity, str]:
        if summary.error_count:
            return (
                SummarySeverity.ERROR,
                f"Imported {summary.success_count} of {summary.total_rows} rows; "
                f"{summary.error_count} rows could not be imported.",
            )
        if summary.empty_field_count:
            top = ", ".join(f"{name} ({count})" for name, count in empty_fields.most_common(3))
            return (
                SummarySeverity.WARNING,
                f"Imported {summary.success_count} products; "
                f"{summary.empty_field_count} rows had empty fields: {top}.",
            )
        return (
            SummarySeverity.SUCCESS,
            f"Imported {summary.success_count} products successfully.",
        )

    def _fatal(self, error: SchemaError, total_rows: int) -> IngestResult:
        logger.error(
            f"CSV ingestion aborted: {error.message}",
            extra={"error": error.to_dict()},
        )
        return IngestResult(
            products=[],
            summary=IngestSummary(
                total_rows=total_rows,
                severity=SummarySeverity.ERROR,
                message=error.message,
                fatal=True,
            ),
        )


def ingest(
    content: str,
    filename: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> IngestResult:
    """Ingest CSV text with default schema and the given settings."""
    return CatalogIngestor(settings=settings).ingest(content, filename=filename)
