#!/usr/bin/env python3
"""
Configuration for the image scrapers.

Selector lists, blacklists, delays and checkpoint intervals live in frozen
config objects that are handed to the extractors and drivers when they are
built. Defaults match what the scrapers have always used; an optional JSON
file (camelCase keys, e.g. "requestDelayMs") can override any of them.
"""

import json
from pathlib import Path
from typing import Optional, Set, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

DATA_DIR = Path("data")
DEFAULT_CONFIG_PATH = DATA_DIR / "scraper-config.json"

PLACEHOLDER_IMAGE = "/images/placeholder-item.png"

BROWSER_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)
BROWSER_ACCEPT = 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8'

# Most site-specific first, generic fallbacks last
DEFAULT_SELECTORS = (
    # Mulebuy product containers
    '.product-image img',
    '.product-gallery img:first-child',
    '.gallery-wrapper img:first-child',
    '.main-image img',
    '.product-main-image img',

    # CDN hostnames
    'img[src*="img.alicdn"]',
    'img[src*="weidian"]',
    'img[src*="mulebuy"]',

    # Lazy loading attributes
    'img[data-src]',
    'img[data-lazy-src]',
    'img[data-original]',

    # Generic content areas
    '.product-detail img:first-child',
    '.item-image img',
    'article img:first-child',
    '.content img:first-child',
)


class _FrozenConfig(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra='ignore',
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ScraperConfig(_FrozenConfig):
    """Settings for the sequential, selector-based scraper."""

    products_path: Path = DATA_DIR / "products.json"
    checkpoint_path: Path = DATA_DIR / "images-checkpoint.json"

    selector_priority: Tuple[str, ...] = DEFAULT_SELECTORS
    candidate_attributes: Tuple[str, ...] = (
        'src', 'data-src', 'data-lazy-src', 'data-original'
    )
    rejected_substrings: Tuple[str, ...] = ('loading', 'placeholder')
    blacklist_patterns: Tuple[str, ...] = (
        'logo', 'icon', 'avatar', 'loading', 'placeholder'
    )
    min_candidate_length: int = Field(default=10, ge=0)
    min_fallback_length: int = Field(default=20, ge=0)

    request_delay_ms: int = Field(default=200, ge=0)
    request_timeout: float = Field(default=10.0, gt=0)
    accept_language: str = 'en-US,en;q=0.5'

    checkpoint_interval: int = Field(default=100, gt=0)
    progress_log_interval: int = Field(default=50, gt=0)
    test_limit: int = Field(default=10, gt=0)
    placeholder_image: str = PLACEHOLDER_IMAGE


class WeidianConfig(_FrozenConfig):
    """Settings for the concurrent Weidian scraper."""

    products_path: Path = DATA_DIR / "products.json"
    item_url_template: str = "https://weidian.com/item.html?itemID={item_id}"

    concurrency: int = Field(default=5, gt=0)
    request_delay_ms: int = Field(default=150, ge=0)
    request_timeout: float = Field(default=15.0, gt=0)
    accept_language: str = 'zh-CN,zh;q=0.9,en;q=0.8'

    blacklist_patterns: Tuple[str, ...] = (
        'poseidon-',
        'hz_img_',
        'default_headimg',
        'favicon',
        'logo',
        'unadjust_74',
        'unadjust_96',
    )
    # Size markers appear in CDN file names as _<size>_<n>
    small_image_sizes: Tuple[int, ...] = (74, 96, 52, 45, 42, 110)
    large_image_sizes: Tuple[int, ...] = (750, 800, 1000, 1200, 1600)
    cdn_image_sizes: Tuple[int, ...] = (750, 800, 1000, 1600, 2400, 3000)
    placeholder_image: str = PLACEHOLDER_IMAGE


ConfigT = TypeVar('ConfigT', bound=_FrozenConfig)


def _setting_names(*model_classes) -> Set[str]:
    """Field names and their camelCase aliases."""
    names = set()
    for model_cls in model_classes:
        for name, field in model_cls.model_fields.items():
            names.add(name)
            if field.alias:
                names.add(field.alias)
    return names


def load_config(model_cls: Type[ConfigT], config_file: Optional[Path] = None,
                logger=None) -> ConfigT:
    """Build a config object, applying overrides from a JSON file if present.

    Keys starting with "_" are treated as comments and ignored. A missing,
    unreadable or invalid file leaves every setting at its default.

    Args:
        model_cls: ScraperConfig or WeidianConfig
        config_file: Path to the JSON override file (default: data/scraper-config.json)
        logger: Logger instance for status output

    Returns:
        Config instance
    """
    config_path = Path(config_file) if config_file else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        if logger:
            logger.debug(f"Config file not found: {config_path}, using defaults")
        return model_cls()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            overrides = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        if logger:
            logger.warning(f"Invalid config file {config_path}: {e}; using defaults")
        return model_cls()

    if not isinstance(overrides, dict):
        if logger:
            logger.warning(f"Config file {config_path} must hold a JSON object; using defaults")
        return model_cls()

    # A single file can carry sections for both scrapers
    section = overrides.get(model_cls.__name__)
    if isinstance(section, dict):
        overrides = section
        known = _setting_names(model_cls)
    else:
        overrides = {k: v for k, v in overrides.items()
                     if k not in ('ScraperConfig', 'WeidianConfig')}
        # A flat file is shared, so keys for the other scraper are expected
        known = _setting_names(ScraperConfig, WeidianConfig)
    overrides = {k: v for k, v in overrides.items() if not k.startswith('_')}

    unknown = sorted(k for k in overrides if k not in known)
    if unknown and logger:
        logger.warning(f"Unknown setting(s) in {config_path} ignored: {', '.join(unknown)}")

    try:
        config = model_cls.model_validate(overrides)
    except ValidationError as e:
        if logger:
            logger.warning(f"Invalid settings in {config_path}: {e}; using defaults")
        return model_cls()

    if logger:
        logger.info(f"Loaded {len(overrides)} setting(s) from {config_path}")
    return config
