"""Tests for the CSV ingestion pipeline."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from catalog_explorer.config import PricePolicy, Settings
from catalog_explorer.ingestion import CatalogIngestor, IngestResult, ingest
from catalog_explorer.models import ProductStatus, SummarySeverity
from catalog_explorer.transformer import RowNormalizer

FIXED = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def ingestor():
    return CatalogIngestor(clock=lambda: FIXED)


class TestIngestSuccess:
    """Tests for well-formed files."""

    def test_clean_file(self, ingestor, sample_csv):
        """Test a complete file imports every row with success severity."""
        result = ingestor.ingest(sample_csv, filename="export.csv")

        assert isinstance(result, IngestResult)
        assert len(result.products) == 3
        summary = result.summary
        assert summary.total_rows == 3
        assert summary.success_count == 3
        assert summary.error_count == 0
        assert summary.empty_field_count == 0
        assert summary.severity == SummarySeverity.SUCCESS
        assert summary.fatal is False
        assert "3 products" in summary.message

    def test_products_are_normalized(self, ingestor, sample_csv):
        craving, gaba, omega = ingestor.ingest(sample_csv).products

        assert craving.id == "8121622593775"
        assert craving.seo_tags == ["stress", "supplements", "health"]
        assert craving.description == "Reduces stress, improves sleep quality"
        assert gaba.description == "Clinical studies on GABA"
        assert gaba.status == ProductStatus.ACTIVE
        assert omega.status == ProductStatus.ARCHIVED
        assert omega.has_out_of_stock_variants is True
        assert omega.price_range.min_variant_price.amount == 32.99
        assert omega.price_range.max_variant_price.amount == 39.99

    def test_facet_preview(self, ingestor, sample_csv):
        summary = ingestor.ingest(sample_csv).summary
        assert summary.vendors == ["Thorne", "Nordic Naturals"]
        assert summary.product_types == ["Stress Tablets", "Vitamins & Supplements"]

    def test_blank_lines_and_crlf_ignored(self, ingestor):
        content = "title,price\r\n\r\nZinc,5\r\n   \r\nIron,6\r\n"
        result = ingestor.ingest(content)
        assert [p.title for p in result.products] == ["Zinc", "Iron"]
        assert result.summary.total_rows == 2

    def test_missing_optional_columns_reported(self, ingestor):
        summary = ingestor.ingest("title,price\nZinc,5\n").summary
        assert "vendor" in summary.missing_optional_columns
        assert summary.severity == SummarySeverity.SUCCESS

    def test_module_level_ingest(self, sample_csv):
        result = ingest(sample_csv)
        assert result.summary.success_count == 3


class TestIngestPartialFailure:
    """Tests for row-level failures and degraded rows."""

    def test_empty_title_row_is_dropped(self, ingestor, price_cell):
        """Test 3 rows with an empty title on row 2 give 2 products and 1 error."""
        content = "\n".join([
            "title,price_range,vendor",
            f"Zinc,{price_cell(5, 5)},NOW",
            f",{price_cell(6, 6)},NOW",
            f"Iron,{price_cell(7, 7)},NOW",
        ])
        result = ingestor.ingest(content)

        assert len(result.products) == 2
        assert result.summary.success_count == 2
        assert result.summary.error_count == 1
        assert result.summary.row_errors[0].row_number == 2
        assert result.summary.row_errors[0].reason == "missing_title"
        assert result.summary.severity == SummarySeverity.ERROR

    def test_missing_price_strict(self, ingestor):
        result = ingestor.ingest("title,price\nZinc,\nIron,4\n")
        assert [p.title for p in result.products] == ["Iron"]
        assert result.summary.row_errors[0].reason == "missing_price"

    def test_missing_price_lenient(self):
        ingestor = CatalogIngestor(settings=Settings(price_policy=PricePolicy.LENIENT))
        result = ingestor.ingest("title,price\nZinc,\nIron,4\n")
        assert len(result.products) == 2
        assert result.summary.error_count == 0
        assert result.summary.empty_fields_report == {"price_range": 1}
        assert result.summary.severity == SummarySeverity.WARNING

    def test_empty_fields_counted_per_field_and_row(self, ingestor):
        """Test the histogram counts fields and the counter counts rows."""
        content = "\n".join([
            "title,price,vendor,status",
            "Zinc,5,,",
            "Iron,6,NOW,",
            "Copper,7,NOW,ACTIVE",
        ])
        summary = ingestor.ingest(content).summary

        assert summary.success_count == 3
        assert summary.empty_field_count == 2
        assert summary.empty_fields_report == {"vendor": 1, "status": 2}
        assert summary.severity == SummarySeverity.WARNING
        assert "status (2)" in summary.message

    def test_row_exception_does_not_abort_batch(self, ingestor):
        """Test an exception on one row is counted and the rest still import."""
        original = RowNormalizer.normalize

        def flaky(self, raw_fields, columns, row_number):
            if row_number == 2:
                raise RuntimeError("boom")
            return original(self, raw_fields, columns, row_number)

        with patch.object(RowNormalizer, "normalize", flaky):
            result = ingestor.ingest("title,price\nA,1\nB,2\nC,3\n")

        assert [p.title for p in result.products] == ["A", "C"]
        assert result.summary.error_count == 1
        assert result.summary.row_errors[0].reason == "parse_error"
        assert "boom" in result.summary.row_errors[0].message

    def test_integer_price_beyond_float_range_is_kept(self, ingestor):
        """Test a huge JSON integer amount falls back instead of failing the row."""
        price = '"{""min_variant_price"": {""amount"": 1' + "0" * 400 + '}, ""max_variant_price"": {""amount"": 5}}"'
        result = ingestor.ingest("title,price_range\nA," + price + "\nB,3\n")

        assert [p.title for p in result.products] == ["A", "B"]
        assert result.summary.error_count == 0
        assert result.summary.row_errors == []
        assert result.products[0].price_range.max_variant_price.amount == 5.0

    def test_duplicate_ids_made_unique(self, ingestor):
        result = ingestor.ingest("id,title,price\n7,A,1\n7,B,2\n")
        ids = [p.id for p in result.products]
        assert ids == ["7", "7-2"]

    def test_synthetic_ids_unique(self, ingestor):
        result = ingestor.ingest("title,price\nA,1\nB,2\nC,3\n")
        ids = [p.id for p in result.products]
        assert len(set(ids)) == 3
        assert all(i.startswith("row-") for i in ids)


class TestIngestFatal:
    """Tests for whole-file failures."""

    def test_header_only(self, ingestor):
        result = ingestor.ingest("title,price\n")
        assert result.products == []
        assert result.summary.fatal is True
        assert result.summary.severity == SummarySeverity.ERROR
        assert "at least one data row" in result.summary.message

    def test_empty_content(self, ingestor):
        result = ingestor.ingest("")
        assert result.products == []
        assert result.summary.fatal is True
        assert result.summary.total_rows == 0

    def test_missing_required_column(self, ingestor):
        result = ingestor.ingest("title,vendor\nZinc,NOW\n")
        assert result.products == []
        assert result.summary.fatal is True
        assert "price_range" in result.summary.message
        assert "vendor" in result.summary.message

    def test_substring_header_does_not_satisfy_title(self, ingestor):
        result = ingestor.ingest("seo_title,price\nZinc,5\n")
        assert result.summary.fatal is True
        assert "title" in result.summary.message


class TestIngestResultSerialization:
    """Tests for the wire format."""

    def test_to_dict_uses_camel_case(self, ingestor, sample_csv):
        data = ingestor.ingest(sample_csv).to_dict()
        assert data["summary"]["successCount"] == 3
        assert "emptyFieldsReport" in data["summary"]
        assert "priceRange" in data["products"][0]
        assert data["products"][0]["priceRange"]["minVariantPrice"]["currencyCode"] == "USD"
