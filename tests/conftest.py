"""Pytest fixtures and configuration."""

import json
import os
import pytest

os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ.pop("CATALOG_BUCKET", None)

from catalog_explorer.models import Money, PriceRange, Product
from catalog_explorer.storage import CatalogStorage, InMemoryStore

FIXED_NOW = 1_760_000_000.0


def encode_price(low, high, currency="USD"):
    """Return a quoted CSV cell holding a JSON price range document."""
    doc = json.dumps({
        "min_variant_price": {"amount": str(low), "currency_code": currency},
        "max_variant_price": {"amount": str(high), "currency_code": currency},
    })
    return '"' + doc.replace('"', '""') + '"'


@pytest.fixture
def price_cell():
    return encode_price


@pytest.fixture
def sample_csv():
    """Return a clean CSV export with three complete rows."""
    header = (
        "ID,TITLE,HANDLE,VENDOR,PRODUCT_TYPE,PRICE_RANGE,TOTAL_INVENTORY,"
        "HAS_OUT_OF_STOCK_VARIANTS,CREATED_AT,UPDATED_AT,TAGS,STATUS,DESCRIPTION"
    )
    rows = [
        (
            f"8121622593775,Craving and Stress Support,craving-and-stress-support,Thorne,Stress Tablets,"
            f"{encode_price(18.55, 18.55)},30,false,2023-09-25T15:52:45.000Z,2025-03-21T13:10:43.000Z,"
            f"\"stress, supplements|health\",ACTIVE,\"Reduces stress, improves sleep quality\""
        ),
        (
            f"8121623478511,PharmaGABA-100,thorne-pharmagaba-100,Thorne,Vitamins & Supplements,"
            f"{encode_price(24.49, 24.49)},25,FALSE,2023-10-01T10:00:00.000Z,2025-03-21T13:10:43.000Z,"
            f"gaba,active,<p>Clinical studies on <b>GABA</b></p>"
        ),
        (
            f"8121624000001,Omega-3 Fish Oil,omega-3-fish-oil,Nordic Naturals,Vitamins & Supplements,"
            f"{encode_price(32.99, 39.99)},0,true,2024-01-15T08:30:00.000Z,2024-02-01T08:30:00.000Z,"
            f"omega|heart,ARCHIVED,Heart and brain health"
        ),
    ]
    return "\n".join([header, *rows]) + "\n"


@pytest.fixture
def make_product():
    """Return a factory building products with sensible defaults."""

    def _make(
        id="p-1",
        title="Test Product",
        low=10.0,
        high=None,
        with_price=True,
        **overrides,
    ):
        price_range = None
        if with_price:
            price_range = PriceRange(
                min_variant_price=Money(amount=low, currency_code="USD"),
                max_variant_price=Money(amount=low if high is None else high, currency_code="USD"),
            )
        data = {
            "id": id,
            "title": title,
            "handle": overrides.pop("handle", title.lower().replace(" ", "-")),
            "price_range": price_range,
            "total_inventory": 10,
            "created_at": "2024-01-01T00:00:00.000Z",
            "updated_at": "2024-01-01T00:00:00.000Z",
        }
        data.update(overrides)
        return Product(**data)

    return _make


@pytest.fixture
def sample_products(make_product):
    """Return a small catalog covering vendors, stock states and dates."""
    return [
        make_product(
            id="1",
            title="Craving and Stress Support",
            low=18.55,
            vendor="Thorne",
            product_type="Stress Tablets",
            total_inventory=30,
            created_at="2023-09-25T15:52:45.000Z",
            seo_tags=["stress", "supplements"],
            description="Reduces stress, improves sleep quality",
        ),
        make_product(
            id="2",
            title="PharmaGABA-100",
            low=24.49,
            vendor="Thorne",
            product_type="Vitamins & Supplements",
            total_inventory=25,
            created_at="2023-10-01T10:00:00.000Z",
            seo_tags=["gaba"],
        ),
        make_product(
            id="3",
            title="Omega-3 Fish Oil",
            low=32.99,
            high=39.99,
            vendor="Nordic Naturals",
            product_type="Vitamins & Supplements",
            total_inventory=0,
            created_at="2024-01-15T08:30:00.000Z",
            description="Heart and brain health",
        ),
        make_product(
            id="4",
            title="Magnesium Glycinate",
            low=15.99,
            vendor="NOW Foods",
            product_type="Minerals",
            total_inventory=12,
            has_out_of_stock_variants=True,
            created_at="not-a-date",
        ),
        make_product(
            id="5",
            title="Élan Probiotic",
            with_price=False,
            vendor="Garden of Life",
            product_type="Probiotics",
            total_inventory=20,
            created_at="2022-05-01T00:00:00Z",
        ),
    ]


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def clock():
    """Return a controllable clock (epoch seconds)."""

    class Clock:
        now = FIXED_NOW

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def catalog_storage(memory_store, clock):
    return CatalogStorage(memory_store, clock=clock)
