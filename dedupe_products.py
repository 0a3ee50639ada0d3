#!/usr/bin/env python3
"""
Remove duplicate products from data/products.json.

Products are identified by buyUrl; the first occurrence is kept and the
remaining products are renumbered 1..N.
"""

import argparse
import sys

from catalog import CatalogError, CatalogStore, dedupe_products
from config import DATA_DIR
from scraper_logger import ScraperLogger


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description='Remove duplicate products (same buyUrl) from data/products.json'
    )
    parser.parse_args(argv)

    logger = ScraperLogger(name="Dedupe")
    store = CatalogStore(DATA_DIR / "products.json")
    logger.banner("Product Deduplication")

    try:
        products = store.load()
    except CatalogError as e:
        logger.logger.error(f"Fatal: {e}")
        return 1
    logger.info(f"Loaded {len(products)} products")

    unique, duplicates = dedupe_products(products)

    logger.info(f"Unique products: {len(unique)}")
    logger.info(f"Duplicates removed: {len(duplicates)}")
    if products:
        logger.info(f"Reduction: {len(duplicates) / len(products) * 100:.1f}%")

    if duplicates:
        logger.info("\nSample duplicates removed:")
        for i, dup in enumerate(duplicates[:5], 1):
            logger.info(f"   {i}. \"{dup.name[:50]}...\" (ID: {dup.id})")
        if len(duplicates) > 5:
            logger.info(f"   ... and {len(duplicates) - 5} more")

    try:
        store.save(unique)
    except CatalogError as e:
        logger.logger.error(f"Fatal: {e}")
        return 1

    logger.info(f"\nSaved {len(unique)} unique products to {store.path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
