#!/usr/bin/env python3
"""
Tests for the Google Sheets CSV import.
"""

import json

import pytest

from catalog import CatalogStore
from config import PLACEHOLDER_IMAGE
from conftest import make_products
from csv_to_products import (
    build_products,
    existing_image_urls,
    infer_category,
    is_category_header,
    is_valid_product_row,
    main,
    map_category,
    parse_price,
    read_rows,
)

SHEET = (
    'ignoreImage,name,price,buyUrl,realBuyUrl\n'
    'T-Shirts,,,,\n'
    ',"Stussy\n8 Ball   Tee",25.00$,https://l.example.com/1,https://mulebuy.com/product?id=1\n'
    ',Chrome Hearts Hoodie,$80,https://l.example.com/2,https://mulebuy.com/product?id=2\n'
    ',Stussy 8 Ball Tee (again),25.00$,https://l.example.com/1,https://mulebuy.com/product?id=1\n'
    ',No Price Item,,https://l.example.com/3,https://mulebuy.com/product?id=3\n'
    ',,,,\n'
    'Misc Finds,,,,\n'
    ',Mystery Box,15$,https://l.example.com/4,https://mulebuy.com/product?id=4\n'
    ',Nike Dunk Low Panda,60$,https://l.example.com/5,https://mulebuy.com/product?id=5\n'
    ',Bad Link Item,10$,https://l.example.com/6,see description\n'
)


@pytest.mark.parametrize("text, expected", [
    ("90.00$", 90.0),
    ("$12", 12.0),
    ("45.5$ (w/ box)", 45.5),
    ("free", None),
    ("", None),
    (None, None),
])
def test_parse_price(text, expected):
    assert parse_price(text) == expected


@pytest.mark.parametrize("header, expected", [
    ("TOPS", 'Tops'),
    ("T-Shirts", 'Tops'),
    ("Shorts", 'Shorts'),
    ("Jeans & Pants", 'Pants'),
    ("Sneakers", 'Shoes'),
    ("Jackets / Coats", 'Outerwear'),
    ("Bags & Wallets", 'Accessories'),
    ("Electronics", 'Electronics'),
    ("Posters", 'Room decor'),
    ("Misc Finds", None),
    ("", None),
])
def test_map_category(header, expected):
    assert map_category(header) == expected


@pytest.mark.parametrize("name, expected", [
    ("Nike Dunk Low Panda", 'Shoes'),
    ("Doc Martens 1460", 'Shoes'),
    ("Arc'teryx Beta Jacket", 'Outerwear'),
    ("Stussy 8 Ball Tee", 'Tops'),
    ("Chrome Hearts Cross Ring", 'Accessories'),
    ("Apple Watch Case", 'Electronics'),
    ("Wall Art Canvas", 'Room decor'),
    ("BMW Car Mod Kit", 'Vehicle Modifications'),
    ("Mystery Box", None),
    ("", None),
])
def test_infer_category(name, expected):
    assert infer_category(name) == expected


def test_infer_category_matches_whole_words():
    """'cap' inside 'Capybara' is not a cap."""
    assert infer_category("Capybara Plush") is None
    assert infer_category("Trucker Cap") == 'Accessories'


def test_row_detection():
    assert is_category_header(['TOPS', '', '', '', ''])
    assert is_category_header(['TOPS'])
    assert not is_category_header(['', '', '', '', ''])
    assert not is_category_header(['x', 'Tee', '20$', '', 'https://mulebuy.com/p'])

    assert is_valid_product_row(['', 'Tee', '20$', '', 'https://mulebuy.com/p'])
    assert not is_valid_product_row(['', 'Tee', '', '', 'https://mulebuy.com/p'])
    assert not is_valid_product_row(['', 'Tee', '20$', '', 'mulebuy.com/p'])
    assert not is_valid_product_row(['', 'Tee'])


def test_read_rows_handles_multiline_names(tmp_path):
    csv_path = tmp_path / "Sheet1.csv"
    csv_path.write_text(SHEET, encoding="utf-8")

    rows = read_rows(csv_path)

    assert rows[0][0] == 'ignoreImage'
    assert rows[2][1] == "Stussy\n8 Ball   Tee"
    assert len(rows) == 11


def test_build_products(tmp_path, logger):
    csv_path = tmp_path / "Sheet1.csv"
    csv_path.write_text(SHEET, encoding="utf-8")
    found = {"https://mulebuy.com/product?id=2": "https://cdn.example.com/hoodie.jpg"}

    result = build_products(read_rows(csv_path)[1:], found, logger)
    products = result['products']

    assert [p.name for p in products] == [
        "Stussy 8 Ball Tee", "Chrome Hearts Hoodie", "Mystery Box", "Nike Dunk Low Panda"
    ]
    assert [p.id for p in products] == [1, 2, 3, 4]
    assert [p.category for p in products] == ['Tops', 'Tops', None, 'Shoes']
    assert products[0].price == 25.0
    assert products[0].price_text == "25.00$"
    assert products[0].image_url == PLACEHOLDER_IMAGE
    assert products[1].image_url == "https://cdn.example.com/hoodie.jpg"

    assert result['duplicates'] == 1
    assert result['categories_found'] == ['T-Shirts', 'Misc Finds']
    assert result['uncategorized'] == [
        {'id': 3, 'name': 'Mystery Box', 'originalCategory': 'Misc Finds'}
    ]
    # No-price row, blank row and the row without a link
    assert result['skipped'] == 3
    print("✓ CSV import works!")


def test_main_writes_catalog(tmp_path, monkeypatch):
    """Existing images survive a re-import."""
    monkeypatch.chdir(tmp_path)
    raw_dir = tmp_path / "data" / "raw"
    raw_dir.mkdir(parents=True)
    (raw_dir / "Sheet1.csv").write_text(SHEET, encoding="utf-8")

    existing = make_products(1, buy_url="https://mulebuy.com/product?id=5")
    existing[0].image_url = "https://si.geilicdn.com/dunk_750_1.jpg"
    CatalogStore(tmp_path / "data" / "products.json").save(existing)

    assert main([]) == 0

    products = CatalogStore(tmp_path / "data" / "products.json").load()
    assert len(products) == 4
    assert products[3].image_url == "https://si.geilicdn.com/dunk_750_1.jpg"

    uncategorized = json.loads(
        (tmp_path / "data" / "uncategorized-products.json").read_text(encoding="utf-8"))
    assert [item['name'] for item in uncategorized] == ['Mystery Box']


def test_main_missing_csv(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    assert main([]) == 1


def test_reimport_keeps_images_when_a_record_is_stale(tmp_path, monkeypatch):
    """One record with a retired category does not wipe the other images."""
    monkeypatch.chdir(tmp_path)
    raw_dir = tmp_path / "data" / "raw"
    raw_dir.mkdir(parents=True)
    (raw_dir / "Sheet1.csv").write_text(SHEET, encoding="utf-8")

    existing = make_products(2)
    existing[0].buy_url = "https://mulebuy.com/product?id=2"
    existing[0].image_url = "https://si.geilicdn.com/a_750_1.jpg"
    records = [p.to_json() for p in existing]
    records[1]['category'] = "Jackets"
    (tmp_path / "data" / "products.json").write_text(json.dumps(records), encoding="utf-8")

    assert main([]) == 0

    products = CatalogStore(tmp_path / "data" / "products.json").load()
    hoodie = next(p for p in products if p.buy_url == "https://mulebuy.com/product?id=2")
    assert hoodie.image_url == "https://si.geilicdn.com/a_750_1.jpg"
    print("✓ Stale catalog records keep their images!")


def test_existing_image_urls_from_raw_records(tmp_path, logger):
    path = tmp_path / "products.json"
    path.write_text(json.dumps([
        {"id": 1, "buyUrl": "https://mulebuy.com/product?id=1",
         "imageUrl": "https://cdn.example.com/1.jpg", "category": "Jackets"},
        {"id": 2, "buyUrl": "https://mulebuy.com/product?id=2", "imageUrl": PLACEHOLDER_IMAGE},
        {"id": 3, "buyUrl": "https://mulebuy.com/product?id=3", "imageUrl": None},
        {"id": 4, "imageUrl": "https://cdn.example.com/4.jpg"},
        "not a record",
    ]), encoding="utf-8")

    assert existing_image_urls(CatalogStore(path), logger) == {
        "https://mulebuy.com/product?id=1": "https://cdn.example.com/1.jpg"
    }

    path.write_text("[{broken", encoding="utf-8")
    assert existing_image_urls(CatalogStore(path), logger) == {}
    assert existing_image_urls(CatalogStore(tmp_path / "missing.json"), logger) == {}
