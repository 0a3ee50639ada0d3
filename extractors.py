#!/usr/bin/env python3
"""
Product image extraction from seller pages.

Each strategy takes raw HTML plus the URL it was fetched from and returns the
single most likely product image URL, or None. Strategies never raise: a page
that does not look the way we expect simply yields None.
"""

import re
from typing import Iterable, List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from config import ScraperConfig, WeidianConfig


def normalize_image_url(candidate: str, base_url: str) -> Optional[str]:
    """Turn a candidate image reference into an absolute http(s) URL.

    Protocol-relative URLs are forced to https, root-relative paths are
    resolved against the origin of `base_url`, and other relative paths are
    joined onto `base_url`.

    Returns:
        Absolute URL, or None if no absolute http(s) URL can be formed
    """
    if not candidate:
        return None

    candidate = candidate.strip()

    if candidate.startswith('//'):
        url = 'https:' + candidate
    elif candidate.startswith('/'):
        parsed = urlparse(base_url or '')
        if not parsed.scheme or not parsed.netloc:
            return None
        url = f"{parsed.scheme}://{parsed.netloc}{candidate}"
    elif candidate.lower().startswith(('http://', 'https://')):
        url = candidate
    elif candidate.startswith('data:'):
        return None
    else:
        url = urljoin(base_url or '', candidate)

    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        return None
    return url


class ImageExtractionStrategy:
    """Base class for page-specific image lookup."""

    name = "base"

    def __init__(self, logger=None):
        self.logger = logger

    def extract(self, html: Optional[str], base_url: str) -> Optional[str]:
        """Find the main product image in a page.

        Args:
            html: Raw page HTML
            base_url: URL the page was fetched from

        Returns:
            Absolute image URL or None
        """
        if not html:
            return None

        try:
            return self._extract(html, base_url)
        except Exception as e:
            # Odd markup should read as "no image", not stop the batch
            if self.logger:
                self.logger.debug(f"{self.name} extraction failed for {base_url}: {e}")
            return None

    def _extract(self, html: str, base_url: str) -> Optional[str]:
        raise NotImplementedError


# ============================================================================
# Selector priority (generic seller pages)
# ============================================================================

class SelectorPriorityStrategy(ImageExtractionStrategy):
    """Walks a list of CSS selectors from most to least specific.

    The first selector that matches an <img> with a usable URL wins. If none
    does, every <img> on the page is scanned and the first one that does not
    look like a logo, icon or placeholder is used.
    """

    name = "selector-priority"

    def __init__(self, config: Optional[ScraperConfig] = None, logger=None):
        super().__init__(logger)
        self.config = config or ScraperConfig()

    def _extract(self, html: str, base_url: str) -> Optional[str]:
        soup = BeautifulSoup(html, 'lxml')

        for selector in self.config.selector_priority:
            img = soup.select_one(selector)
            if img is None:
                continue

            candidate = self._candidate_url(img)
            if not candidate or self._is_rejected(candidate):
                continue

            url = normalize_image_url(candidate, base_url)
            if url:
                if self.logger:
                    self.logger.debug(f"Matched selector '{selector}' on {base_url}")
                return url

        return self._fallback(soup, base_url)

    def _candidate_url(self, img) -> Optional[str]:
        for attribute in self.config.candidate_attributes:
            value = img.get(attribute)
            if value:
                return value.strip() or None
        return None

    def _is_rejected(self, candidate: str) -> bool:
        """Placeholder, loading spinner, inline data or too short to be real."""
        lowered = candidate.lower()
        if any(pattern in lowered for pattern in self.config.rejected_substrings):
            return True
        if lowered.startswith('data:') or 'data:image' in lowered:
            return True
        return len(candidate) < self.config.min_candidate_length

    def _fallback(self, soup: BeautifulSoup, base_url: str) -> Optional[str]:
        for img in soup.find_all('img'):
            src = (img.get('src') or img.get('data-src') or '').strip()
            if not src:
                continue

            lowered = src.lower()
            if any(pattern in lowered for pattern in self.config.blacklist_patterns):
                continue
            if lowered.startswith('data:'):
                continue
            if len(src) <= self.config.min_fallback_length:
                continue

            url = normalize_image_url(src, base_url)
            if url:
                if self.logger:
                    self.logger.debug(f"Used fallback <img> scan on {base_url}")
                return url

        return None


# ============================================================================
# Embedded data (Weidian item pages)
# ============================================================================

# Weidian pages carry item data as JSON, sometimes HTML-encoded ("&#34;")
_QUOTE = r'(?:"|&#34;)'


def _sizes(sizes: Iterable[int]) -> str:
    return '|'.join(str(size) for size in sizes)


def is_valid_product_image(url: str, config: Optional[WeidianConfig] = None) -> bool:
    """Reject icon-sized images and known non-product assets."""
    config = config or WeidianConfig()

    if config.small_image_sizes and re.search(
            rf'_(?:{_sizes(config.small_image_sizes)})_\d+', url):
        return False

    return not any(pattern in url for pattern in config.blacklist_patterns)


def clean_image_url(url: str) -> str:
    """Strip compressed-format suffixes, query strings and regex over-capture."""
    url = re.sub(r'\.webp(\?.*)?$', '', url)
    url = re.sub(r'\?.*$', '', url)
    url = re.sub(r'&#34;.*$', '', url)
    url = re.sub(r'".*$', '', url)
    return url.strip()


class EmbeddedDataStrategy(ImageExtractionStrategy):
    """Pulls the main image out of the item data embedded in the page.

    Patterns are tried in order: the primary image field, the first entry
    of the image array, a preload link for a large image, and finally any
    large image URL on the seller's CDN.
    """

    name = "embedded-data"

    def __init__(self, config: Optional[WeidianConfig] = None, logger=None):
        super().__init__(logger)
        self.config = config or WeidianConfig()
        self.patterns = self._compile_patterns()

    def _compile_patterns(self) -> List[re.Pattern]:
        large = '|'.join(f'_{size}_' for size in self.config.large_image_sizes)
        cdn = _sizes(self.config.cdn_image_sizes)
        return [
            re.compile(rf'{_QUOTE}item_head{_QUOTE}\s*:\s*{_QUOTE}(https?://[^"&#]+)'),
            re.compile(rf'{_QUOTE}imgs{_QUOTE}\s*:\s*\[\s*{_QUOTE}(https?://[^"&#]+)'),
            re.compile(
                r'<link[^>]+rel="preload"[^>]+as="image"[^>]+'
                rf'href="(https?://[^"]+(?:{large})[^"]+)"'
            ),
            re.compile(
                rf'(https?://si\.geilicdn\.com/[^"\'\s]+_(?:{cdn})_\d+\.(?:jpg|jpeg|png))',
                re.IGNORECASE,
            ),
        ]

    def _extract(self, html: str, base_url: str) -> Optional[str]:
        for pattern in self.patterns:
            for match in pattern.finditer(html):
                candidate = match.group(1)
                if not is_valid_product_image(candidate, self.config):
                    # Only the CDN scan looks past its first hit
                    if pattern is self.patterns[-1]:
                        continue
                    break

                url = normalize_image_url(clean_image_url(candidate), base_url)
                if url:
                    return url
                break

        return None
