"""
Runtime configuration loaded from environment variables.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from catalog_explorer.exceptions import ConfigurationError


class PricePolicy(str, Enum):
    """How rows with an empty price cell are handled."""
    STRICT = "strict"
    LENIENT = "lenient"


@dataclass(frozen=True)
class Settings:
    """Service settings. Defaults suit local runs and tests."""
    log_level: str = "INFO"
    aws_region: str = "us-east-1"
    localstack_endpoint: Optional[str] = None
    catalog_bucket: Optional[str] = None
    catalog_prefix: str = "catalog/"
    storage_key: str = "product_search_data"
    storage_version: str = "1.0"
    max_age_days: int = 7
    price_policy: PricePolicy = PricePolicy.STRICT
    default_currency: str = "USD"
    default_page_size: int = 24
    max_page_size: int = 100


def _int_setting(env: Mapping[str, str], key: str, default: int, minimum: int = 1) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(
            message=f"{key} must be an integer, got {raw!r}",
            config_key=key,
        )
    if value < minimum:
        raise ConfigurationError(
            message=f"{key} must be >= {minimum}, got {value}",
            config_key=key,
        )
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        env: Mapping to read instead of os.environ

    Raises:
        ConfigurationError: If a value cannot be parsed
    """
    env = os.environ if env is None else env

    policy_raw = env.get("PRICE_POLICY", PricePolicy.STRICT.value).strip().lower()
    try:
        price_policy = PricePolicy(policy_raw)
    except ValueError:
        raise ConfigurationError(
            message=f"PRICE_POLICY must be 'strict' or 'lenient', got {policy_raw!r}",
            config_key="PRICE_POLICY",
        )

    default_page_size = _int_setting(env, "DEFAULT_PAGE_SIZE", 24)
    max_page_size = _int_setting(env, "MAX_PAGE_SIZE", 100)
    if default_page_size > max_page_size:
        raise ConfigurationError(
            message="DEFAULT_PAGE_SIZE cannot exceed MAX_PAGE_SIZE",
            config_key="DEFAULT_PAGE_SIZE",
        )

    return Settings(
        log_level=env.get("LOG_LEVEL", "INFO"),
        aws_region=env.get("AWS_REGION", "us-east-1"),
        localstack_endpoint=env.get("LOCALSTACK_ENDPOINT") or None,
        catalog_bucket=env.get("CATALOG_BUCKET") or None,
        catalog_prefix=env.get("CATALOG_PREFIX", "catalog/"),
        storage_key=env.get("CATALOG_STORAGE_KEY", "product_search_data"),
        storage_version=env.get("CATALOG_STORAGE_VERSION", "1.0"),
        max_age_days=_int_setting(env, "CATALOG_MAX_AGE_DAYS", 7),
        price_policy=price_policy,
        default_currency=env.get("DEFAULT_CURRENCY", "USD").strip().upper() or "USD",
        default_page_size=default_page_size,
        max_page_size=max_page_size,
    )
