"""
Persistence gateway for the loaded product catalog.

The catalog is kept as a single versioned JSON record in a key-value store.
Stale or incompatible records are discarded on read. Store failures are
logged here and degrade to "no data"; they never propagate to callers.
"""

import json
import logging
import time
from datetime import timedelta
from typing import Callable, Iterable, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError as PydanticValidationError

from catalog_explorer.config import Settings
from catalog_explorer.exceptions import S3Error, StorageError
from catalog_explorer.models import LoadedCatalog, Product, StorageInfo, StoredCatalog
from catalog_explorer.retry import RetryConfig, call_with_retry

logger = logging.getLogger(__name__)

STORAGE_KEY = "product_search_data"
STORAGE_VERSION = "1.0"
MAX_AGE = timedelta(days=7)

boto_config = Config(
    retries={"max_attempts": 3, "mode": "adaptive"},
    connect_timeout=10,
    read_timeout=60,
)


class KeyValueStore(Protocol):
    """Minimal string key-value store the gateway writes through."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryStore:
    """Process-local store for tests and local runs."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class AWSClientFactory:
    """Factory for creating AWS clients with proper configuration."""

    _s3_client = None

    @classmethod
    def get_s3_client(cls, settings: Optional[Settings] = None):
        """Get or create S3 client."""
        if cls._s3_client is None:
            settings = settings or Settings()
            kwargs = {"config": boto_config, "region_name": settings.aws_region}
            if settings.localstack_endpoint:
                kwargs["endpoint_url"] = settings.localstack_endpoint
            cls._s3_client = boto3.client("s3", **kwargs)
        return cls._s3_client

    @classmethod
    def reset(cls):
        """Reset clients (useful for testing)."""
        cls._s3_client = None


class S3Store:
    """Stores each key as a JSON object under a bucket prefix."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        client=None,
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.bucket = bucket
        self.prefix = prefix
        self.client = client or AWSClientFactory.get_s3_client()
        self.retry_config = retry_config or RetryConfig(retryable_exceptions=(BotoCoreError,))
        self.sleep = sleep

    def object_key(self, key: str) -> str:
        return f"{self.prefix}{key}.json"

    def _call(self, operation: str, **kwargs):
        method = getattr(self.client, operation)
        return call_with_retry(method, config=self.retry_config, sleep=self.sleep, **kwargs)

    def get(self, key: str) -> Optional[str]:
        object_key = self.object_key(key)
        try:
            response = self._call("get_object", Bucket=self.bucket, Key=object_key)
            return response["Body"].read().decode("utf-8")
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            raise S3Error(
                message=f"Failed to read catalog from S3: {e}",
                bucket=self.bucket,
                key=object_key,
                original_exception=e,
            )
        except BotoCoreError as e:
            raise S3Error(
                message=f"Failed to read catalog from S3: {e}",
                bucket=self.bucket,
                key=object_key,
                original_exception=e,
            )

    def set(self, key: str, value: str) -> None:
        object_key = self.object_key(key)
        try:
            self._call(
                "put_object",
                Bucket=self.bucket,
                Key=object_key,
                Body=value.encode("utf-8"),
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            raise S3Error(
                message=f"Failed to write catalog to S3: {e}",
                bucket=self.bucket,
                key=object_key,
                operation="PutObject",
                original_exception=e,
            )

    def delete(self, key: str) -> None:
        object_key = self.object_key(key)
        try:
            self._call("delete_object", Bucket=self.bucket, Key=object_key)
        except (ClientError, BotoCoreError) as e:
            raise S3Error(
                message=f"Failed to delete catalog from S3: {e}",
                bucket=self.bucket,
                key=object_key,
                operation="DeleteObject",
                original_exception=e,
            )


class CatalogStorage:
    """
    Versioned read/write of the product catalog.

    Example:
        storage = CatalogStorage(InMemoryStore())
        storage.save(products, filename="export.csv")
        loaded = storage.load()
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = STORAGE_KEY,
        version: str = STORAGE_VERSION,
        max_age: timedelta = MAX_AGE,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.key = key
        self.version = version
        self.max_age = max_age
        self.clock = clock

    def _now_millis(self) -> int:
        return int(self.clock() * 1000)

    def save(self, products: Iterable[Product], filename: Optional[str] = None) -> bool:
        """Replace the stored catalog. Returns False if the record could not be built or written."""
        try:
            record = StoredCatalog(
                version=self.version,
                products=list(products),
                timestamp=self._now_millis(),
                filename=filename,
            )
            self.store.set(self.key, record.model_dump_json(by_alias=True))
        except Exception as e:
            logger.error(
                f"Failed to save catalog: {e}",
                extra={"storage_key": self.key},
                exc_info=True,
            )
            return False

        logger.info(
            f"Saved {len(record.products)} products to storage",
            extra={"storage_key": self.key, "source_file": filename},
        )
        return True

    def _read_raw(self) -> Optional[dict]:
        raw = self.store.get(self.key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise StorageError(
                message=f"Stored catalog is not valid JSON: {e}",
                storage_key=self.key,
                operation="decode",
                original_exception=e,
            )
        if not isinstance(data, dict):
            raise StorageError(
                message="Stored catalog is not a JSON object",
                storage_key=self.key,
                operation="decode",
            )
        return data

    def load(self) -> Optional[LoadedCatalog]:
        """
        Load the stored catalog.

        Returns None when nothing is stored, the store is unavailable, or the
        record is corrupt, from another version, or older than max_age. The
        last three also clear the record.
        """
        try:
            data = self._read_raw()
        except StorageError as e:
            logger.warning(
                f"Stored catalog is corrupt, clearing: {e.message}",
                extra={"storage_key": self.key, "error": e.to_dict()},
            )
            self.clear()
            return None
        except Exception as e:
            logger.error(
                f"Failed to load catalog: {e}",
                extra={"storage_key": self.key},
                exc_info=True,
            )
            return None

        if data is None:
            return None

        if data.get("version") != self.version:
            logger.warning(
                f"Storage version mismatch ({data.get('version')!r} != {self.version!r}), clearing old data",
                extra={"storage_key": self.key},
            )
            self.clear()
            return None

        try:
            record = StoredCatalog.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(
                f"Stored catalog failed validation, clearing: {e}",
                extra={"storage_key": self.key},
            )
            self.clear()
            return None

        max_age_ms = self.max_age.total_seconds() * 1000
        if self._now_millis() - record.timestamp > max_age_ms:
            logger.warning("Stored catalog is too old, clearing", extra={"storage_key": self.key})
            self.clear()
            return None

        logger.info(
            f"Loaded {len(record.products)} products from storage",
            extra={"storage_key": self.key},
        )
        return LoadedCatalog(
            products=record.products,
            filename=record.filename,
            timestamp=record.timestamp,
        )

    def clear(self) -> None:
        try:
            self.store.delete(self.key)
        except Exception as e:
            logger.error(
                f"Failed to clear catalog: {e}",
                extra={"storage_key": self.key},
                exc_info=True,
            )
            return
        logger.info("Cleared catalog from storage", extra={"storage_key": self.key})

    def info(self) -> StorageInfo:
        """Describe the stored record without validating it."""
        try:
            data = self._read_raw()
        except Exception as e:
            logger.warning(f"Could not read storage info: {e}", extra={"storage_key": self.key})
            return StorageInfo()

        if data is None:
            return StorageInfo()

        products = data.get("products")
        timestamp = data.get("timestamp")
        filename = data.get("filename")
        return StorageInfo(
            has_data=True,
            product_count=len(products) if isinstance(products, list) else 0,
            timestamp=timestamp if isinstance(timestamp, int) else None,
            filename=filename if isinstance(filename, str) else None,
        )


def build_catalog_storage(settings: Settings, store: Optional[KeyValueStore] = None) -> CatalogStorage:
    """Create the gateway: S3-backed when a bucket is configured, in-memory otherwise."""
    if store is None:
        if settings.catalog_bucket:
            store = S3Store(
                bucket=settings.catalog_bucket,
                prefix=settings.catalog_prefix,
                client=AWSClientFactory.get_s3_client(settings),
            )
        else:
            logger.warning("CATALOG_BUCKET not set, catalog is kept in memory only")
            store = InMemoryStore()
    return CatalogStorage(
        store=store,
        key=settings.storage_key,
        version=settings.storage_version,
        max_age=timedelta(days=settings.max_age_days),
    )
