#!/usr/bin/env python3
"""
Weidian Image Fetcher (Async Version)

Fetches product images straight from Weidian item pages instead of going
through the Mulebuy buy links, which sit behind aggressive bot protection.

Strategy:
1. Extract the Weidian item id from each product's buyUrl (e.g. id=7611168397)
2. Fetch https://weidian.com/item.html?itemID=<id>
3. Read the main image out of the item data embedded in the page
4. Write found images back into data/products.json

Usage:
    python weidian_scraper_async.py             # Process all products needing images
    python weidian_scraper_async.py 0 100       # First 100 of them
    python weidian_scraper_async.py 100 200     # The next 100
"""

import argparse
import asyncio
import math
import re
import sys
import time
import warnings
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

# Suppress SSL warnings
warnings.filterwarnings('ignore', message='urllib3 v2 only supports OpenSSL')

import aiohttp

from catalog import CatalogError, CatalogStore, Product
from config import BROWSER_ACCEPT, BROWSER_USER_AGENT, WeidianConfig, load_config
from extractors import EmbeddedDataStrategy, ImageExtractionStrategy
from scraper_logger import ScraperLogger


def extract_weidian_id(buy_url: str) -> Optional[str]:
    """Get the Weidian item id from a buy link's `id` query parameter.

    Falls back to a regex for links that do not parse cleanly.
    """
    if not buy_url:
        return None

    try:
        values = parse_qs(urlparse(buy_url).query).get('id')
        if values and values[0].strip():
            return values[0].strip()
    except ValueError:
        pass

    match = re.search(r'[?&]id=(\d+)', buy_url)
    return match.group(1) if match else None


def build_weidian_url(item_id: str, config: Optional[WeidianConfig] = None) -> str:
    config = config or WeidianConfig()
    return config.item_url_template.format(item_id=item_id)


# ============================================================================
# Async HTTP Client with aiohttp
# ============================================================================

class AsyncPageFetcher:
    """Async page fetcher that blends in with regular browser traffic."""

    def __init__(self, logger: ScraperLogger, config: Optional[WeidianConfig] = None):
        """Initialize async page fetcher.

        Args:
            logger: Logger instance
            config: Weidian scraper settings
        """
        self.logger = logger
        self.config = config or WeidianConfig()
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """Open the aiohttp session."""
        connector = aiohttp.TCPConnector(
            limit=self.config.concurrency * 2,
            ttl_dns_cache=300,
        )
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)

        self.session = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers={
                'User-Agent': BROWSER_USER_AGENT,
                'Accept': BROWSER_ACCEPT,
                'Accept-Language': self.config.accept_language,
                'Accept-Encoding': 'gzip, deflate',
                'Connection': 'keep-alive',
                'Upgrade-Insecure-Requests': '1',
                'Cache-Control': 'max-age=0',
            }
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close the session."""
        if self.session:
            await self.session.close()

    async def fetch(self, url: str, product_id="") -> Optional[str]:
        """Fetch a page's HTML, following redirects.

        Args:
            url: URL to fetch
            product_id: Product id for error logging

        Returns:
            Decoded HTML, or None on any error
        """
        if not url:
            return None

        try:
            async with self.session.get(url, allow_redirects=True) as response:
                response.raise_for_status()
                return await response.text(errors='replace')

        except aiohttp.ClientResponseError as e:
            self.logger.log_error(product_id, url, f"HTTP {e.status}", e.message)
        except aiohttp.ClientError as e:
            self.logger.log_error(product_id, url, "Network", str(e))
        except asyncio.TimeoutError:
            self.logger.log_error(product_id, url, "Timeout", "Request timed out")

        return None


# ============================================================================
# Concurrent Batch Driver
# ============================================================================

class WeidianImageScraper:
    """Looks up images for products that still need one, a few at a time."""

    def __init__(self, config: Optional[WeidianConfig] = None,
                 logger: Optional[ScraperLogger] = None,
                 strategy: Optional[ImageExtractionStrategy] = None,
                 catalog: Optional[CatalogStore] = None):
        """Initialize the scraper.

        Args:
            config: Weidian scraper settings (defaults if omitted)
            logger: Logger instance
            strategy: Image extraction strategy (embedded data if omitted)
            catalog: Catalog store (config.products_path if omitted)
        """
        self.config = config or WeidianConfig()
        self.logger = logger or ScraperLogger(name="WeidianScraper")
        self.strategy = strategy or EmbeddedDataStrategy(self.config, self.logger)
        self.catalog = catalog or CatalogStore(self.config.products_path)

        self.stats = {
            'success': 0,
            'failed': 0,
            'updated': 0,
        }

    def select_products(self, products: List[Product], start: int = 0,
                        end: Optional[int] = None) -> List[Product]:
        """Products needing images, sliced to [start:end]."""
        needing = [p for p in products if p.needs_image(self.config.placeholder_image)]
        self.logger.info(f"{len(needing)} products need images")
        return needing[start:end]

    async def process_product(self, fetcher: AsyncPageFetcher,
                              product: Product) -> Tuple[int, Optional[str]]:
        """Fetch one product's Weidian page and extract its image.

        Returns:
            Tuple of (product id, image URL or None)
        """
        item_id = extract_weidian_id(product.buy_url)
        if not item_id:
            self.logger.log_error(product.id, product.buy_url, "MalformedURL",
                                  "No Weidian item id in buyUrl")
            return product.id, None

        url = build_weidian_url(item_id, self.config)
        html = await fetcher.fetch(url, product.id)
        if html is None:
            return product.id, None

        image_url = self.strategy.extract(html, url)
        if image_url is None:
            self.logger.log_error(product.id, url, "NoImage",
                                  "No product image in page data")
        return product.id, image_url

    async def process_batch(self, fetcher: AsyncPageFetcher, products: List[Product],
                            catalog: Optional[List[Product]] = None) -> Dict[int, str]:
        """Process products in fixed-size concurrent chunks.

        Every request in a chunk is issued at once and the whole chunk is
        awaited before the next one starts. When `catalog` is given, images
        found in a chunk are written into it as soon as that chunk joins.

        Returns:
            Mapping of product id to found image URL
        """
        results: Dict[int, str] = {}
        total = len(products)
        completed = 0
        start_time = time.time()
        chunk_size = self.config.concurrency

        for offset in range(0, total, chunk_size):
            chunk = products[offset:offset + chunk_size]
            outcomes = await asyncio.gather(
                *(self.process_product(fetcher, product) for product in chunk),
                return_exceptions=True,
            )

            chunk_found: Dict[int, str] = {}
            for product, outcome in zip(chunk, outcomes):
                completed += 1
                if isinstance(outcome, BaseException):
                    self.logger.log_error(product.id, product.buy_url,
                                          "UnexpectedError", str(outcome))
                    image_url = None
                else:
                    _, image_url = outcome

                if image_url:
                    chunk_found[product.id] = image_url
                    self.stats['success'] += 1
                else:
                    self.stats['failed'] += 1

            results.update(chunk_found)
            if catalog is not None:
                self._merge(catalog, chunk_found)

            elapsed = time.time() - start_time
            self.logger.info(
                f"{completed}/{total} ({completed / total * 100:.1f}%) | "
                f"found {self.stats['success']} | failed {self.stats['failed']} | "
                f"{elapsed:.0f}s"
            )

            # Small delay between chunks
            if offset + chunk_size < total:
                await asyncio.sleep(self.config.request_delay_ms / 1000)

        return results

    def _merge(self, catalog: List[Product], found: Dict[int, str]):
        """Write found images into catalog products with matching ids."""
        if not found:
            return
        for product in catalog:
            image_url = found.get(product.id)
            if image_url:
                product.image_url = image_url
                self.stats['updated'] += 1

    async def run(self, start: int = 0, end: Optional[int] = None) -> Dict[str, int]:
        """Execute the async scraping process.

        Args:
            start: First index into the products-needing-images list
            end: End index (exclusive) into that list, None for all

        Returns:
            Statistics dictionary

        Raises:
            CatalogError: if the catalog cannot be loaded or saved
        """
        self.logger.banner("Weidian Image Fetcher")

        products = self.catalog.load()
        self.logger.info(f"Loaded {len(products)} products from {self.catalog.path}")

        targets = self.select_products(products, start, end)
        self.logger.info(f"Processing products {start} to {start + len(targets) - 1}")
        estimate = math.ceil(
            len(targets) / self.config.concurrency
            * (self.config.request_delay_ms + 500) / 60000
        )
        self.logger.info(f"Estimated time: ~{estimate} minutes\n")

        start_time = time.time()
        async with AsyncPageFetcher(self.logger, self.config) as fetcher:
            await self.process_batch(fetcher, targets, catalog=products)

        self.catalog.save(products)
        self.logger.info(f"\nUpdated {self.stats['updated']} products in {self.catalog.path}")

        self._print_summary(len(targets), time.time() - start_time)
        return self.stats

    def _print_summary(self, attempted: int, elapsed: float):
        """Print final summary statistics."""
        self.logger.info("\n" + "=" * 60)
        self.logger.info("RESULTS SUMMARY")
        self.logger.info("=" * 60)
        self.logger.info(f"Success: {self.stats['success']} images found")
        self.logger.info(f"Failed: {self.stats['failed']} (no image found)")
        if attempted:
            rate = self.stats['success'] / attempted * 100
            self.logger.info(f"Success rate: {rate:.1f}%")
        self.logger.info(f"Total time: {elapsed / 60:.1f} minutes")
        self.logger.info(f"\nError log: {self.logger.error_log_path}")


# ============================================================================
# Main Entry Point
# ============================================================================

def main(argv=None) -> int:
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description='Fetch product images directly from Weidian item pages',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  # Process every product still needing an image
  python weidian_scraper_async.py

  # Process the first 100 of them
  python weidian_scraper_async.py 0 100
        '''
    )
    parser.add_argument(
        'start',
        type=int,
        nargs='?',
        default=0,
        help='First index into the products needing images (default: 0)'
    )
    parser.add_argument(
        'end',
        type=int,
        nargs='?',
        default=None,
        help='End index, exclusive (default: all)'
    )
    args = parser.parse_args(argv)

    logger = ScraperLogger(name="WeidianScraper")
    config = load_config(WeidianConfig, logger=logger)
    scraper = WeidianImageScraper(config=config, logger=logger)

    try:
        asyncio.run(scraper.run(start=args.start, end=args.end))
    except CatalogError as e:
        logger.logger.error(f"Fatal: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
