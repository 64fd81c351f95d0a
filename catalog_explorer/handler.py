"""
AWS Lambda handlers for the catalog explorer.

handler: triggered by S3 uploads of CSV exports, ingests the file and
persists the resulting catalog.
search_handler: API Gateway endpoint that searches, filters, sorts and
paginates the persisted catalog.
"""

import base64
import json
import math
import os
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import unquote_plus

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError as PydanticValidationError

from catalog_explorer.config import Settings, load_settings
from catalog_explorer.exceptions import (
    CatalogError,
    ConfigurationError,
    ErrorContext,
    S3Error,
    ValidationError,
)
from catalog_explorer.ingestion import CatalogIngestor
from catalog_explorer.logging_config import (
    configure_logging,
    set_correlation_id,
    set_import_id,
)
from catalog_explorer.models import PriceBounds, SearchFilters, SortKey
from catalog_explorer.retry import retry_with_backoff
from catalog_explorer.search import facet_options, paginate, search_products
from catalog_explorer.storage import AWSClientFactory, CatalogStorage, build_catalog_storage

settings = load_settings()

logger = configure_logging(
    level=settings.log_level,
    service_name="catalog-explorer",
)

_catalog_storage: Optional[CatalogStorage] = None


def get_catalog_storage() -> CatalogStorage:
    """Get or create the catalog storage gateway."""
    global _catalog_storage
    if _catalog_storage is None:
        _catalog_storage = build_catalog_storage(settings)
    return _catalog_storage


def set_catalog_storage(storage: Optional[CatalogStorage]) -> None:
    """Replace the storage gateway (useful for testing)."""
    global _catalog_storage
    _catalog_storage = storage


@retry_with_backoff(
    max_attempts=3,
    base_delay=1.0,
    retryable_exceptions=(BotoCoreError,),
)
def _get_object(bucket: str, key: str) -> bytes:
    s3 = AWSClientFactory.get_s3_client(settings)
    response = s3.get_object(Bucket=bucket, Key=key)
    return response["Body"].read()


def download_from_s3(bucket: str, key: str) -> str:
    """
    Download a CSV upload from S3 with retry logic.

    Raises:
        S3Error: If download fails after retries
        ValidationError: If the object is not UTF-8 text
    """
    try:
        raw = _get_object(bucket, key)
    except (BotoCoreError, ClientError) as e:
        raise S3Error(
            message=f"Failed to download from S3: {e}",
            bucket=bucket,
            key=key,
            original_exception=e,
        )

    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError(
            message=f"Uploaded file is not UTF-8 encoded text: {e}",
            field_name="file",
            expected="UTF-8 CSV",
            actual=key,
            context=ErrorContext(filename=key),
        )

    logger.info(
        f"Downloaded {len(raw)} bytes from S3",
        extra={"s3_bucket": bucket, "s3_key": key},
    )
    return content


def build_response(status_code: int, body: dict, start_time: float) -> dict:
    """Build Lambda response with timing metadata."""
    duration_ms = (time.perf_counter() - start_time) * 1000

    body["durationMs"] = round(duration_ms, 2)

    logger.info(
        "Lambda invocation complete",
        extra={"duration_ms": round(duration_ms, 2), "metrics": {"status_code": status_code}},
    )

    return {
        "statusCode": status_code,
        "body": body,
    }


def build_http_response(status_code: int, body: dict, start_time: float) -> dict:
    """API Gateway proxy response: JSON string body with content headers."""
    response = build_response(status_code, body, start_time)
    response["headers"] = {"Content-Type": "application/json"}
    response["body"] = json.dumps(response["body"], default=str)
    return response


def handler(event: dict, context: Any) -> dict:
    """
    Lambda handler for S3 CSV uploads.

    Ingests the uploaded file and replaces the stored catalog when at least
    one product was parsed. Row-level problems are reported in the summary;
    a file that cannot be ingested at all returns 422.

    Args:
        event: S3 event notification
        context: Lambda context

    Returns:
        Processing result summary
    """
    start_time = time.perf_counter()

    correlation_id = set_correlation_id()
    import_id = str(uuid.uuid4())
    set_import_id(import_id)

    logger.info(
        "Lambda invocation started",
        extra={"metrics": {"aws_request_id": getattr(context, "aws_request_id", None) if context else None}},
    )

    try:
        if not event.get("Records"):
            raise ConfigurationError(
                message="Invalid event structure: missing Records",
                config_key="event.Records",
            )

        try:
            s3_record = event["Records"][0]["s3"]
            bucket = s3_record["bucket"]["name"]
            key = unquote_plus(s3_record["object"]["key"])
        except (KeyError, IndexError, TypeError) as e:
            raise ConfigurationError(
                message=f"Invalid S3 record: missing {e}",
                config_key="event.Records[0].s3",
            )

        logger.info("Processing CSV upload", extra={"s3_bucket": bucket, "s3_key": key})

        content = download_from_s3(bucket, key)
        filename = os.path.basename(key)

        result = CatalogIngestor(settings=settings).ingest(content, filename=filename)
        summary = result.summary

        persisted = False
        if result.products:
            persisted = get_catalog_storage().save(result.products, filename=filename)
        else:
            logger.warning("No products parsed from upload", extra={"s3_key": key})

        return build_response(
            422 if summary.fatal else 200,
            {
                "message": summary.message,
                "correlationId": correlation_id,
                "importId": import_id,
                "source": {"bucket": bucket, "key": key},
                "summary": summary.to_dict(),
                "persisted": persisted,
            },
            start_time,
        )

    except CatalogError as e:
        logger.error(
            f"Ingestion error: {e.message}",
            extra={"error": e.to_dict()},
        )
        return build_response(
            500 if e.retryable else 400,
            {
                "error": e.to_dict(),
                "correlationId": correlation_id,
                "importId": import_id,
            },
            start_time,
        )

    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return build_response(
            500,
            {
                "error": {"type": type(e).__name__, "message": str(e)},
                "correlationId": correlation_id,
                "importId": import_id,
            },
            start_time,
        )


@dataclass
class SearchRequest:
    """Parsed search parameters."""
    query: str = ""
    filters: SearchFilters = field(default_factory=SearchFilters)
    sort_by: SortKey = SortKey.RELEVANCE
    page: int = 1
    page_size: int = 24


def _parse_number(value: Any, name: str, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = math.nan
    if math.isnan(number):
        raise ValidationError(
            message=f"{name} must be a number",
            field_name=name,
            expected="number",
            actual=value,
        )
    return number


def _parse_int(value: Any, name: str, default: int, minimum: int = 1, maximum: Optional[int] = None) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            message=f"{name} must be an integer",
            field_name=name,
            expected="integer",
            actual=value,
        )
    if number < minimum or (maximum is not None and number > maximum):
        raise ValidationError(
            message=f"{name} must be between {minimum} and {maximum or 'unbounded'}",
            field_name=name,
            expected=f"integer >= {minimum}",
            actual=value,
        )
    return number


def _parse_sort(value: Any) -> SortKey:
    if value is None or value == "":
        return SortKey.RELEVANCE
    try:
        return SortKey(value)
    except ValueError:
        raise ValidationError(
            message=f"sortBy must be one of: {', '.join(k.value for k in SortKey)}",
            field_name="sortBy",
            expected="sort key",
            actual=value,
        )


def _request_method(event: dict) -> str:
    method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method")
    return (method or "GET").upper()


def _header(event: dict, name: str) -> Optional[str]:
    """Header lookup ignoring case; REST API events keep the client's casing."""
    for key, value in (event.get("headers") or {}).items():
        if key.lower() == name:
            return value
    return None


def _request_body(event: dict) -> dict:
    raw = event.get("body") or "{}"
    try:
        if event.get("isBase64Encoded"):
            raw = base64.b64decode(raw).decode("utf-8")
        body = json.loads(raw)
    except ValueError as e:
        raise ValidationError(
            message=f"Request body is not valid JSON: {e}",
            field_name="body",
            expected="JSON object",
            actual=str(raw)[:200],
        )
    if not isinstance(body, dict):
        raise ValidationError(
            message="Request body must be a JSON object",
            field_name="body",
            expected="JSON object",
            actual=type(body).__name__,
        )
    return body


def parse_search_request(event: dict, app_settings: Optional[Settings] = None) -> SearchRequest:
    """
    Read search parameters from an API Gateway event.

    GET uses query string parameters (q, vendor, productType, minPrice,
    maxPrice, inStock, sortBy, page, pageSize); POST uses a JSON body
    with query, filters, sortBy, page and pageSize.

    Raises:
        ValidationError: If a parameter cannot be parsed
    """
    app_settings = app_settings or settings

    if _request_method(event) == "POST":
        body = _request_body(event)
        try:
            filters = SearchFilters.model_validate(body.get("filters") or {})
        except PydanticValidationError as e:
            raise ValidationError(
                message=f"Invalid filters: {e.errors()[0].get('msg', str(e))}",
                field_name="filters",
                expected="SearchFilters object",
                actual=body.get("filters"),
            )
        query = body.get("query") or ""
        sort_by = body.get("sortBy")
        page = body.get("page")
        page_size = body.get("pageSize")
    else:
        params = event.get("queryStringParameters") or {}
        try:
            filters = SearchFilters(
                vendor=params.get("vendor") or "",
                product_type=params.get("productType") or "",
                price_range=PriceBounds(
                    min=_parse_number(params.get("minPrice"), "minPrice", 0.0),
                    max=_parse_number(params.get("maxPrice"), "maxPrice", math.inf),
                ),
                in_stock=(params.get("inStock") or "").lower() == "true",
            )
        except PydanticValidationError as e:
            raise ValidationError(
                message=f"Invalid filters: {e.errors()[0].get('msg', str(e))}",
                field_name="filters",
                expected="finite minPrice",
                actual=params.get("minPrice"),
            )
        query = params.get("q") or ""
        sort_by = params.get("sortBy")
        page = params.get("page")
        page_size = params.get("pageSize")

    if not isinstance(query, str):
        raise ValidationError(
            message="query must be a string",
            field_name="query",
            expected="string",
            actual=query,
        )

    return SearchRequest(
        query=query,
        filters=filters,
        sort_by=_parse_sort(sort_by),
        page=_parse_int(page, "page", 1),
        page_size=_parse_int(
            page_size,
            "pageSize",
            app_settings.default_page_size,
            maximum=app_settings.max_page_size,
        ),
    )


def search_handler(event: dict, context: Any) -> dict:
    """
    Lambda handler for catalog search requests.

    Returns an empty result set when no catalog has been loaded.
    """
    start_time = time.perf_counter()
    correlation_id = set_correlation_id(_header(event, "x-correlation-id"))

    try:
        request = parse_search_request(event)
    except ValidationError as e:
        logger.warning(f"Invalid search request: {e.message}", extra={"error": e.to_dict()})
        return build_http_response(
            400,
            {"error": e.to_dict(), "correlationId": correlation_id},
            start_time,
        )

    try:
        loaded = get_catalog_storage().load()
        products = loaded.products if loaded else []

        results = search_products(products, request.query, request.filters, request.sort_by)
        page = paginate(results, request.page, request.page_size)

        logger.info(
            f"Search returned {len(results)} of {len(products)} products",
            extra={"metrics": {"total": len(results), "catalog_size": len(products)}},
        )

        return build_http_response(
            200,
            {
                "products": [p.to_dict() for p in page.items],
                "total": page.total,
                "page": page.page,
                "pageSize": page.page_size,
                "totalPages": page.total_pages,
                "query": request.query,
                "filters": request.filters.model_dump(mode="json", by_alias=True),
                "sortBy": request.sort_by.value,
                "facets": facet_options(products).model_dump(mode="json", by_alias=True),
                "filename": loaded.filename if loaded else None,
                "correlationId": correlation_id,
            },
            start_time,
        )

    except Exception as e:
        logger.error(f"Search failed: {e}", exc_info=True)
        return build_http_response(
            500,
            {
                "error": {"type": type(e).__name__, "message": "Failed to search products"},
                "correlationId": correlation_id,
            },
            start_time,
        )
