#!/usr/bin/env python3
"""
Product catalog persistence.

The catalog is a JSON array of product records in data/products.json, and
it is the only artifact the scrapers modify. A checkpoint file holds a
snapshot of a run in progress so an interrupted run can pick up where it
left off.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from config import PLACEHOLDER_IMAGE

CATEGORIES = (
    'Tops',
    'Shorts',
    'Pants',
    'Shoes',
    'Outerwear',
    'Accessories',
    'Room decor',
    'Electronics',
    'Vehicle Modifications',
)

Category = Literal[
    'Tops',
    'Shorts',
    'Pants',
    'Shoes',
    'Outerwear',
    'Accessories',
    'Room decor',
    'Electronics',
    'Vehicle Modifications',
]


class CatalogError(Exception):
    """Raised when the catalog cannot be read or written."""


def clean_text(text: str) -> str:
    """Collapse newlines and runs of whitespace into single spaces."""
    return ' '.join(text.split())


# ============================================================================
# Records
# ============================================================================

class Product(BaseModel):
    """A single catalog entry linking out to an external seller."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: int = Field(gt=0)
    name: str
    price: Optional[float] = None
    price_text: str = Field(alias='priceText')
    category: Optional[Category] = None
    buy_url: str = Field(alias='buyUrl')
    image_url: Optional[str] = Field(default=None, alias='imageUrl')

    @field_validator('name')
    @classmethod
    def normalize_name(cls, v: str) -> str:
        """Names from spreadsheets can span several lines."""
        return clean_text(v)

    def needs_image(self, placeholder: str = PLACEHOLDER_IMAGE) -> bool:
        """True unless the product already has a real (non-placeholder) image."""
        if not self.image_url:
            return True
        return self.image_url == placeholder or 'placeholder' in self.image_url

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class Checkpoint(BaseModel):
    """Snapshot of an in-progress run."""

    model_config = ConfigDict(populate_by_name=True)

    last_processed_index: int = Field(alias='lastProcessedIndex', ge=-1)
    timestamp: str
    products: List[Product]

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        datetime.fromisoformat(v.replace('Z', '+00:00'))
        return v


def decode_products(raw: Any) -> List[Product]:
    """Validate raw JSON data as a list of products.

    Raises:
        CatalogError: if the data is not an array of well-formed products
    """
    if not isinstance(raw, list):
        raise CatalogError(f"Catalog must be a JSON array, got {type(raw).__name__}")

    products = []
    for index, item in enumerate(raw):
        try:
            products.append(Product.model_validate(item))
        except ValidationError as e:
            raise CatalogError(f"Invalid product at index {index}: {e}") from e
    return products


def encode_products(products: List[Product]) -> List[Dict[str, Any]]:
    return [product.to_json() for product in products]


def _write_json(path: Path, data: Any):
    """Write JSON next to `path` first, then swap it in.

    A failed write leaves the previous file untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + '.tmp')
    try:
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        tmp_path.replace(path)
    except BaseException:
        if tmp_path.exists():
            tmp_path.unlink()
        raise


# ============================================================================
# Stores
# ============================================================================

class CatalogStore:
    """Reads and writes the full product array."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> List[Product]:
        """Load and validate every product in the catalog.

        Raises:
            CatalogError: if the file is missing, not valid JSON, or has a bad record
        """
        if not self.path.exists():
            raise CatalogError(f"Catalog file not found: {self.path}")

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise CatalogError(f"Invalid JSON in {self.path}: {e}") from e
        except OSError as e:
            raise CatalogError(f"Cannot read {self.path}: {e}") from e

        return decode_products(raw)

    def save(self, products: List[Product]):
        """Overwrite the catalog with the given products.

        Raises:
            CatalogError: if the file cannot be written
        """
        try:
            _write_json(self.path, encode_products(products))
        except OSError as e:
            raise CatalogError(f"Cannot write {self.path}: {e}") from e


class CheckpointStore:
    """Persists partial progress of a scraping run."""

    def __init__(self, path: Path, logger=None):
        self.path = Path(path)
        self.logger = logger

    def save(self, last_processed_index: int, products: List[Product]):
        checkpoint = {
            'lastProcessedIndex': last_processed_index,
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'products': encode_products(products),
        }
        _write_json(self.path, checkpoint)

    def load(self) -> Optional[Checkpoint]:
        """Load the checkpoint, or None if there is no usable one."""
        if not self.path.exists():
            return None

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return Checkpoint.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            if self.logger:
                self.logger.warning(f"Ignoring unreadable checkpoint {self.path}: {e}")
            return None

    def exists(self) -> bool:
        return self.path.exists()

    def clear(self) -> bool:
        """Delete the checkpoint file. Returns True if a file was removed."""
        if self.path.exists():
            self.path.unlink()
            return True
        return False


class ResumableJob:
    """A batch job over the catalog that can be resumed after interruption.

    The job tracks a cursor (the last index fully processed) and writes a
    durable snapshot of the product array every `checkpoint_interval`
    indices. Resuming means loading the last snapshot and continuing from
    the index after its cursor.
    """

    def __init__(self, job_id: str, store: CheckpointStore,
                 checkpoint_interval: int = 100, logger=None):
        self.job_id = job_id
        self.store = store
        self.checkpoint_interval = checkpoint_interval
        self.logger = logger
        self.cursor = -1

    def start(self, products: List[Product],
              resume: bool = False) -> Tuple[List[Product], int]:
        """Determine the working product list and the first index to process."""
        if resume:
            checkpoint = self.store.load()
            if checkpoint:
                self.cursor = checkpoint.last_processed_index
                self._log(f"Resuming {self.job_id} from checkpoint "
                          f"(index {checkpoint.last_processed_index}, saved {checkpoint.timestamp})")
                return checkpoint.products, checkpoint.last_processed_index + 1
            self._log("No checkpoint found, starting from beginning")

        self.cursor = -1
        return products, 0

    def advance(self, index: int, products: List[Product]) -> bool:
        """Mark `index` as done; snapshot when it closes a checkpoint interval.

        Returns:
            True if a checkpoint was written
        """
        self.cursor = index
        if (index + 1) % self.checkpoint_interval != 0:
            return False

        try:
            self.store.save(index, products)
        except OSError as e:
            if self.logger:
                self.logger.warning(f"Could not save checkpoint at index {index}: {e}")
            return False

        self._log(f"Checkpoint saved at index {index}")
        return True

    def complete(self, test_mode: bool = False) -> bool:
        """Finish the job, removing the snapshot unless this was a test run.

        Returns:
            True if a checkpoint file was removed
        """
        if test_mode:
            return False
        removed = self.store.clear()
        if removed:
            self._log("Checkpoint file removed")
        return removed

    def _log(self, message: str):
        if self.logger:
            self.logger.info(message)


# ============================================================================
# Deduplication
# ============================================================================

def dedupe_products(products: List[Product]) -> Tuple[List[Product], List[Product]]:
    """Drop products whose buyUrl was already seen and renumber the rest.

    The first occurrence in array order is kept. Surviving products get
    sequential ids starting at 1.

    Returns:
        Tuple of (unique products, removed duplicates)
    """
    seen = set()
    unique = []
    duplicates = []

    for product in products:
        if product.buy_url in seen:
            duplicates.append(product)
            continue
        seen.add(product.buy_url)
        unique.append(product)

    for index, product in enumerate(unique, 1):
        product.id = index

    return unique, duplicates
