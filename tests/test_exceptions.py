"""Tests for custom exceptions."""

from catalog_explorer.exceptions import (
    CatalogError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    RowParseError,
    S3Error,
    SchemaError,
    StorageError,
    ValidationError,
)


class TestErrorContext:
    """Tests for ErrorContext."""

    def test_error_context_defaults(self):
        """Test ErrorContext has sensible defaults."""
        ctx = ErrorContext()
        assert ctx.correlation_id is None
        assert ctx.row_number is None
        assert ctx.timestamp is not None

    def test_error_context_to_dict(self):
        """Test ErrorContext serialization."""
        ctx = ErrorContext(
            correlation_id="test-123",
            row_number=4,
            field_name="price_range",
            additional_data={"extra": "value"},
        )
        result = ctx.to_dict()

        assert result["correlation_id"] == "test-123"
        assert result["row_number"] == 4
        assert result["field_name"] == "price_range"
        assert result["extra"] == "value"


class TestCatalogError:
    """Tests for CatalogError base class."""

    def test_catalog_error_creation(self):
        error = CatalogError(
            message="Test error",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.PARSING,
            retryable=True,
        )

        assert str(error) == "Test error"
        assert error.severity == ErrorSeverity.HIGH
        assert error.category == ErrorCategory.PARSING
        assert error.retryable is True

    def test_catalog_error_to_dict(self):
        original = ValueError("inner")
        error = CatalogError(message="Test error", original_exception=original)
        result = error.to_dict()

        assert result["error_type"] == "CatalogError"
        assert result["message"] == "Test error"
        assert result["severity"] == "medium"
        assert result["category"] == "parsing"
        assert result["original_exception"] == "inner"


class TestSubclasses:
    """Tests for the specific error types."""

    def test_validation_error_fields(self):
        error = ValidationError(
            message="Invalid field",
            field_name="pageSize",
            expected="integer",
            actual="abc",
        )

        assert error.field_name == "pageSize"
        assert error.context.actual_value == "abc"
        assert error.category == ErrorCategory.VALIDATION
        assert error.retryable is False

    def test_schema_error_columns(self):
        error = SchemaError(
            message="Missing required columns",
            missing_columns=["price_range"],
            found_columns=["title", "vendor"],
        )

        assert error.missing_columns == ["price_range"]
        assert error.context.additional_data["found_columns"] == ["title", "vendor"]
        assert error.severity == ErrorSeverity.HIGH
        assert error.category == ErrorCategory.SCHEMA

    def test_row_parse_error(self):
        error = RowParseError(message="bad row", row_number=7, field_name="tags")
        assert error.row_number == 7
        assert error.context.row_number == 7
        assert error.to_dict()["context"]["field_name"] == "tags"

    def test_storage_error(self):
        error = StorageError(message="quota", storage_key="product_search_data", operation="set")
        assert error.context.storage_key == "product_search_data"
        assert error.context.additional_data["operation"] == "set"
        assert error.category == ErrorCategory.STORAGE

    def test_s3_error(self):
        error = S3Error(message="Failed to download", bucket="uploads", key="export.csv")

        assert error.context.storage_key == "export.csv"
        assert error.context.additional_data["s3_bucket"] == "uploads"
        assert error.context.additional_data["aws_service"] == "S3"
        assert error.retryable is True

    def test_configuration_error(self):
        error = ConfigurationError(message="bad", config_key="PRICE_POLICY")
        assert error.config_key == "PRICE_POLICY"
        assert error.severity == ErrorSeverity.CRITICAL
