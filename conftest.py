"""Shared pytest fixtures for the catalog script tests."""

import pytest

from catalog import Product
from config import PLACEHOLDER_IMAGE
from scraper_logger import ScraperLogger


@pytest.fixture
def logger(tmp_path):
    """Logger writing its files under the test's temp directory."""
    return ScraperLogger(str(tmp_path / "logs"), name="TestScraper")


def make_products(count, image_url=PLACEHOLDER_IMAGE, buy_url="https://mulebuy.com/product?id={n}"):
    """Catalog of `count` products with ids 1..count."""
    return [
        Product(
            id=n,
            name=f"Test Item {n}",
            price=10.0 + n,
            price_text=f"{10 + n}.00$",
            category='Tops',
            buy_url=buy_url.format(n=n),
            image_url=image_url,
        )
        for n in range(1, count + 1)
    ]
