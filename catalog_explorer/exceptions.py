"""
Error types for the catalog explorer.

Every error carries an ErrorContext so it can be logged and returned to
API callers as structured data. Subclasses fix their severity, category
and retryability as class attributes.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from enum import Enum


class ErrorSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Where the error came from."""
    VALIDATION = "validation"
    SCHEMA = "schema"
    PARSING = "parsing"
    STORAGE = "storage"
    AWS_SERVICE = "aws_service"
    CONFIGURATION = "configuration"


@dataclass
class ErrorContext:
    """Details attached to an error: which import, row, field or object."""
    correlation_id: Optional[str] = None
    import_id: Optional[str] = None
    row_number: Optional[int] = None
    field_name: Optional[str] = None
    expected_type: Optional[str] = None
    actual_value: Optional[Any] = None
    filename: Optional[str] = None
    storage_key: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    additional_data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {
            "correlation_id": self.correlation_id,
            "import_id": self.import_id,
            "row_number": self.row_number,
            "field_name": self.field_name,
            "expected_type": self.expected_type,
            "actual_value": None if self.actual_value is None else str(self.actual_value),
            "filename": self.filename,
            "storage_key": self.storage_key,
            "timestamp": self.timestamp,
        }
        data.update(self.additional_data)
        return data


class CatalogError(Exception):
    """
    Base exception for all catalog explorer errors.

    Constructor arguments override the class defaults, which lets callers
    raise a plain CatalogError with any classification.
    """

    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    category: ErrorCategory = ErrorCategory.PARSING
    retryable: bool = False

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        severity: Optional[ErrorSeverity] = None,
        category: Optional[ErrorCategory] = None,
        retryable: Optional[bool] = None,
        original_exception: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        if severity is not None:
            self.severity = severity
        if category is not None:
            self.category = category
        if retryable is not None:
            self.retryable = retryable
        self.original_exception = original_exception

    def to_dict(self) -> dict:
        """Serialize for logs and API error bodies."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "retryable": self.retryable,
            "context": self.context.to_dict(),
            "original_exception": str(self.original_exception) if self.original_exception else None,
        }


class ValidationError(CatalogError):
    """A request parameter or uploaded value has the wrong shape."""

    severity = ErrorSeverity.LOW
    category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        field_name: str,
        expected: str,
        actual: Any,
        context: Optional[ErrorContext] = None,
    ):
        self.field_name = field_name
        self.expected = expected
        self.actual = actual

        context = context or ErrorContext()
        context.field_name = field_name
        context.expected_type = expected
        context.actual_value = actual
        super().__init__(message, context=context)


class SchemaError(CatalogError):
    """The CSV file as a whole cannot be ingested (no data rows, required columns absent)."""

    severity = ErrorSeverity.HIGH
    category = ErrorCategory.SCHEMA

    def __init__(
        self,
        message: str,
        missing_columns: Optional[list[str]] = None,
        found_columns: Optional[list[str]] = None,
        context: Optional[ErrorContext] = None,
    ):
        self.missing_columns = list(missing_columns or [])
        self.found_columns = list(found_columns or [])

        context = context or ErrorContext()
        context.additional_data.update(
            missing_columns=self.missing_columns,
            found_columns=self.found_columns,
        )
        super().__init__(message, context=context)


class RowParseError(CatalogError):
    """One CSV row could not be normalized. The rest of the file still imports."""

    severity = ErrorSeverity.LOW

    def __init__(
        self,
        message: str,
        row_number: int,
        field_name: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        original_exception: Optional[Exception] = None,
    ):
        self.row_number = row_number

        context = context or ErrorContext()
        context.row_number = row_number
        context.field_name = field_name
        super().__init__(message, context=context, original_exception=original_exception)


class StorageError(CatalogError):
    """The persisted catalog could not be read, written or removed."""

    category = ErrorCategory.STORAGE

    def __init__(
        self,
        message: str,
        storage_key: str,
        operation: str,
        retryable: bool = False,
        context: Optional[ErrorContext] = None,
        original_exception: Optional[Exception] = None,
    ):
        self.storage_key = storage_key
        self.operation = operation

        context = context or ErrorContext()
        context.storage_key = storage_key
        context.additional_data["operation"] = operation
        super().__init__(
            message,
            context=context,
            retryable=retryable,
            original_exception=original_exception,
        )


class AWSServiceError(CatalogError):
    """An AWS API call failed. Transport problems are worth retrying."""

    severity = ErrorSeverity.HIGH
    category = ErrorCategory.AWS_SERVICE
    retryable = True

    def __init__(
        self,
        message: str,
        service_name: str,
        operation: str,
        context: Optional[ErrorContext] = None,
        original_exception: Optional[Exception] = None,
    ):
        self.service_name = service_name
        self.operation = operation

        context = context or ErrorContext()
        context.additional_data.update(aws_service=service_name, operation=operation)
        super().__init__(message, context=context, original_exception=original_exception)


class S3Error(AWSServiceError):
    """An S3 object could not be fetched, written or deleted."""

    def __init__(
        self,
        message: str,
        bucket: str,
        key: str,
        operation: str = "GetObject",
        context: Optional[ErrorContext] = None,
        original_exception: Optional[Exception] = None,
    ):
        self.bucket = bucket
        self.key = key

        context = context or ErrorContext()
        context.storage_key = key
        context.additional_data["s3_bucket"] = bucket
        super().__init__(
            message,
            service_name="S3",
            operation=operation,
            context=context,
            original_exception=original_exception,
        )


class ConfigurationError(CatalogError):
    """An environment setting or incoming event is missing or malformed."""

    severity = ErrorSeverity.CRITICAL
    category = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, config_key: str, context: Optional[ErrorContext] = None):
        self.config_key = config_key

        context = context or ErrorContext()
        context.additional_data["config_key"] = config_key
        super().__init__(message, context=context)
