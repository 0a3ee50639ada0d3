#!/usr/bin/env python3
"""
CSV to Products Converter

Reads data/raw/Sheet1.csv (a Google Sheets export) and writes the valid
product rows to data/products.json.

The sheet groups products under category header rows (text in column A,
columns B-E empty). Product rows have columns
ignoreImage (A), name (B), price (C), buyUrl (D), realBuyUrl (E).
Names can span several lines inside quoted fields.

Images found by earlier scraper runs are kept, matched by buyUrl.
"""

import argparse
import csv
import json
import re
import sys
from pathlib import Path
from typing import Dict, List, Optional

from catalog import (
    CATEGORIES, CatalogError, CatalogStore, Product, clean_text,
)
from config import DATA_DIR, PLACEHOLDER_IMAGE
from scraper_logger import ScraperLogger

CSV_INPUT_PATH = DATA_DIR / "raw" / "Sheet1.csv"
UNCATEGORIZED_OUTPUT_PATH = DATA_DIR / "uncategorized-products.json"


# ============================================================================
# Category Mapping
# ============================================================================

# Substring rules for the sheet's own category headers, checked in order
CATEGORY_KEYWORDS = [
    ('Tops', ['shirt', 'polo', 'longsleeve', 'hoodie', 'zip-up', 'knit']),
    ('Shorts', ['short']),
    ('Pants', ['pant', 'jean', 'trouser', 'sweatpant']),
    ('Shoes', ['shoe', 'jordan', 'sneaker', 'boot']),
    ('Outerwear', ['jacket', 'coat', 'parka', 'bomber']),
    ('Accessories', ['bag', 'backpack', 'wallet', 'belt', 'hat', 'cap', 'beanie',
                     'balaclava', 'mask', 'glove', 'scarf', 'sock', 'jewelry',
                     'accessory', 'travel', 'crossbody', 'glasses']),
    ('Electronics', ['electronic', 'apple', 'phone', 'airpod']),
    ('Room decor', ['decor', 'lamp', 'poster', 'art']),
    ('Vehicle Modifications', ['vehicle', 'car', 'mod']),
]

# Whole-word rules for product names, checked in order
NAME_KEYWORDS = [
    ('Shoes', ['shoe', 'sneaker', 'boot', 'jordan', 'yeezy', 'dunk', 'air max',
               'foam', 'slide', 'loafer', 'chuck', 'geibasket', 'tabi']),
    ('Outerwear', ['jacket', 'coat', 'parka', 'bomber', 'windbreaker']),
    ('Pants', ['pant', 'jean', 'trouser', 'sweatpant', 'cargo', 'jogger']),
    ('Tops', ['shirt', 'tee', 't-shirt', 'hoodie', 'sweater', 'knit', 'polo',
              'longsleeve', 'crewneck', 'zip-up', 'zipup']),
    ('Shorts', ['short']),
    ('Accessories', ['bag', 'backpack', 'wallet', 'belt', 'hat', 'cap', 'beanie',
                     'glove', 'scarf', 'sock', 'jewelry', 'accessory', 'chain',
                     'ring', 'bracelet']),
    ('Electronics', ['phone', 'charger', 'electronic', 'airpod', 'iphone', 'ipad']),
    ('Room decor', ['decor', 'lamp', 'poster']),
]


def map_category(raw_category: Optional[str]) -> Optional[str]:
    """Map a category header from the sheet onto one of CATEGORIES."""
    if not raw_category:
        return None

    normalized = raw_category.strip().lower()
    if normalized == 'tops':
        return 'Tops'

    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in normalized for keyword in keywords):
            return category
    return None


def _has_word(text: str, word: str) -> bool:
    """Whole-word match where words are separated by whitespace or hyphens."""
    return re.search(rf'(^|[\s-]){re.escape(word)}([\s-]|$)', text, re.IGNORECASE) is not None


def infer_category(name: Optional[str]) -> Optional[str]:
    """Guess a category from the product name, or None when unsure."""
    if not name:
        return None

    normalized = name.lower()

    for category, words in NAME_KEYWORDS:
        if any(_has_word(name, word) for word in words):
            return category
        if category == 'Shoes' and ('doc martens' in normalized or 'converse' in normalized):
            return category
        if category == 'Electronics' and 'apple' in normalized and (
                _has_word(name, 'case') or _has_word(name, 'phone')):
            return category
        if category == 'Room decor' and 'wall' in normalized and _has_word(name, 'art'):
            return category

    if (_has_word(name, 'car') and (_has_word(name, 'mod') or _has_word(name, 'part'))) \
            or _has_word(name, 'vehicle') \
            or (_has_word(name, 'automotive') and _has_word(name, 'mod')):
        return 'Vehicle Modifications'

    return None


# ============================================================================
# Row Handling
# ============================================================================

def parse_price(price_text: Optional[str]) -> Optional[float]:
    """Parse a price like "90.00$" into 90.0, or None if there is no number."""
    if not price_text:
        return None

    cleaned = price_text.replace('$', '').strip()
    match = re.match(r'[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?', cleaned)
    if not match:
        return None
    return float(match.group(0))


def _field(fields: List[str], index: int) -> str:
    return fields[index] if index < len(fields) else ''


def is_category_header(fields: List[str]) -> bool:
    """Text in column A, columns B-E empty."""
    return bool(_field(fields, 0)) and not any(_field(fields, i) for i in range(1, 5))


def is_valid_product_row(fields: List[str]) -> bool:
    """Name and price present and realBuyUrl is a link."""
    return (
        bool(_field(fields, 1))
        and bool(_field(fields, 2))
        and _field(fields, 4).startswith('http')
    )


def read_rows(csv_path: Path) -> List[List[str]]:
    """Read every row of the sheet, stripping whitespace around fields."""
    with open(csv_path, 'r', encoding='utf-8', newline='') as f:
        return [[value.strip() for value in row] for row in csv.reader(f)]


def build_products(rows: List[List[str]], image_urls: Dict[str, str],
                   logger: Optional[ScraperLogger] = None) -> Dict:
    """Turn sheet rows (header row excluded) into products.

    Args:
        rows: Data rows of the sheet
        image_urls: buyUrl -> previously found image URL
        logger: Logger instance

    Returns:
        Dictionary with 'products', 'uncategorized', 'categories_found',
        'skipped' and 'duplicates' keys
    """
    products: List[Product] = []
    uncategorized = []
    seen_urls = set()
    categories_found = []
    current_category = None
    skipped = 0
    duplicates = 0

    for fields in rows:
        if is_category_header(fields):
            current_category = clean_text(fields[0])
            if current_category not in categories_found:
                categories_found.append(current_category)
            continue

        if not is_valid_product_row(fields):
            skipped += 1
            continue

        buy_url = fields[4]
        if buy_url in seen_urls:
            duplicates += 1
            continue
        seen_urls.add(buy_url)

        name = clean_text(fields[1])
        category = map_category(current_category) or infer_category(name)
        product = Product(
            id=len(products) + 1,
            name=name,
            price=parse_price(fields[2]),
            price_text=fields[2],
            category=category,
            buy_url=buy_url,
            image_url=image_urls.get(buy_url) or PLACEHOLDER_IMAGE,
        )
        products.append(product)

        if category is None:
            uncategorized.append({
                'id': product.id,
                'name': product.name,
                'originalCategory': current_category,
            })
            if logger:
                logger.debug(f"Uncategorized: {product.name} (header: {current_category})")

    return {
        'products': products,
        'uncategorized': uncategorized,
        'categories_found': categories_found,
        'skipped': skipped,
        'duplicates': duplicates,
    }


def existing_image_urls(store: CatalogStore, logger: ScraperLogger) -> Dict[str, str]:
    """Map buyUrl -> imageUrl for products that already have a real image.

    A catalog with stale records (e.g. categories that no longer exist) is
    read record by record so their images are not lost.
    """
    if not store.path.exists():
        logger.info(f"No existing catalog at {store.path}, starting fresh")
        return {}

    try:
        existing = store.load()
    except CatalogError as e:
        logger.warning(f"Existing catalog does not validate ({e}); reading raw records")
        return _raw_image_urls(store.path, logger)

    image_urls = {p.buy_url: p.image_url for p in existing if not p.needs_image()}
    logger.info(f"Found {len(image_urls)} existing product images to preserve")
    return image_urls


def _raw_image_urls(path: Path, logger: ScraperLogger) -> Dict[str, str]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.info(f"No usable existing catalog ({e}), starting fresh")
        return {}

    if not isinstance(raw, list):
        logger.info("Existing catalog is not a JSON array, starting fresh")
        return {}

    image_urls = {}
    for item in raw:
        if not isinstance(item, dict):
            continue
        buy_url = item.get('buyUrl')
        image_url = item.get('imageUrl')
        if not isinstance(buy_url, str) or not isinstance(image_url, str):
            continue
        if image_url and image_url != PLACEHOLDER_IMAGE and 'placeholder' not in image_url:
            image_urls[buy_url] = image_url

    logger.info(f"Found {len(image_urls)} existing product images to preserve")
    return image_urls


# ============================================================================
# Main Entry Point
# ============================================================================

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description='Convert data/raw/Sheet1.csv into data/products.json'
    )
    parser.parse_args(argv)

    logger = ScraperLogger(name="CsvImport")
    store = CatalogStore(DATA_DIR / "products.json")
    logger.banner("CSV to Products")

    image_urls = existing_image_urls(store, logger)

    logger.info(f"Reading CSV from: {CSV_INPUT_PATH}")
    try:
        rows = read_rows(CSV_INPUT_PATH)
    except (OSError, csv.Error) as e:
        logger.logger.error(f"Error reading CSV file: {e}")
        return 1
    logger.info(f"Total rows parsed: {len(rows)}")

    result = build_products(rows[1:], image_urls, logger)
    products = result['products']

    logger.info(f"Valid products found: {len(products)}")
    logger.info(f"Categories found in CSV: {len(result['categories_found'])}")
    logger.info(f"   {', '.join(result['categories_found'])}")
    logger.info(f"Skipped rows (empty/invalid): {result['skipped']}")
    logger.info(f"Duplicate products skipped: {result['duplicates']}")

    logger.info("\nProducts by category:")
    for category in CATEGORIES:
        count = sum(1 for p in products if p.category == category)
        logger.info(f"   {category}: {count}")
    logger.info(f"\nUncategorized products: {len(result['uncategorized'])}")

    if result['uncategorized']:
        try:
            with open(UNCATEGORIZED_OUTPUT_PATH, 'w', encoding='utf-8') as f:
                json.dump(result['uncategorized'], f, indent=2, ensure_ascii=False)
            logger.info(f"Uncategorized products saved to: {UNCATEGORIZED_OUTPUT_PATH}")
        except OSError as e:
            logger.warning(f"Error writing uncategorized products file: {e}")

    try:
        store.save(products)
    except CatalogError as e:
        logger.logger.error(f"Fatal: {e}")
        return 1

    logger.info(f"JSON written to: {store.path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
