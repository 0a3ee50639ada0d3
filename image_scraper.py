#!/usr/bin/env python3
"""
Product Image Scraper

Fetches each product's seller page (Mulebuy buy links), picks out the main
product image and writes it back into data/products.json.

Usage:
    python image_scraper.py            # Process all products
    python image_scraper.py --test     # Only the first 10 products
    python image_scraper.py --resume   # Continue from the last checkpoint

Products that already have a real image are skipped. A failed lookup sets
imageUrl to null and the run moves on; progress is checkpointed every 100
products so a long run can be resumed after an interruption.
"""

import argparse
import math
import sys
import time
import warnings
from typing import Dict, List, Optional

# Suppress SSL warnings
warnings.filterwarnings('ignore', message='urllib3 v2 only supports OpenSSL')

import requests

from catalog import CatalogError, CatalogStore, CheckpointStore, Product, ResumableJob
from config import BROWSER_ACCEPT, BROWSER_USER_AGENT, ScraperConfig, load_config
from extractors import ImageExtractionStrategy, SelectorPriorityStrategy
from scraper_logger import ScraperLogger


# ============================================================================
# Page Fetching
# ============================================================================

class PageFetcher:
    """Retrieves seller pages with browser-like headers."""

    def __init__(self, logger: ScraperLogger, config: Optional[ScraperConfig] = None,
                 session: Optional[requests.Session] = None):
        """Initialize the fetcher.

        Args:
            logger: Logger instance
            config: Scraper settings (timeout, Accept-Language)
            session: Requests session for HTTP requests (created if omitted)
        """
        self.logger = logger
        self.config = config or ScraperConfig()
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': BROWSER_USER_AGENT,
            'Accept': BROWSER_ACCEPT,
            'Accept-Language': self.config.accept_language,
        })

    def fetch(self, url: str, product_id="") -> Optional[str]:
        """Fetch a page's HTML.

        Args:
            url: URL to fetch
            product_id: Product id for error logging

        Returns:
            Decoded HTML, or None on any network error, timeout or non-2xx status
        """
        if not url:
            return None

        try:
            response = self.session.get(url, timeout=self.config.request_timeout)
            response.raise_for_status()
            return response.text

        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else '?'
            self.logger.log_error(product_id, url, f"HTTP {status}", str(e))
        except requests.exceptions.Timeout:
            self.logger.log_error(product_id, url, "Timeout", "Request timed out")
        except requests.exceptions.RequestException as e:
            self.logger.log_error(product_id, url, "Network", str(e))

        return None


# ============================================================================
# Batch Driver
# ============================================================================

class ImageScraper:
    """Sequential image lookup over the catalog with checkpointing."""

    def __init__(self, config: Optional[ScraperConfig] = None,
                 logger: Optional[ScraperLogger] = None,
                 fetcher: Optional[PageFetcher] = None,
                 strategy: Optional[ImageExtractionStrategy] = None,
                 catalog: Optional[CatalogStore] = None,
                 checkpoints: Optional[CheckpointStore] = None,
                 sleep=time.sleep):
        """Initialize the scraper.

        Args:
            config: Scraper settings (defaults if omitted)
            logger: Logger instance
            fetcher: Page fetcher (a requests-based PageFetcher if omitted)
            strategy: Image extraction strategy (selector priority if omitted)
            catalog: Catalog store (config.products_path if omitted)
            checkpoints: Checkpoint store (config.checkpoint_path if omitted)
            sleep: Function used for the rate-limit delay
        """
        self.config = config or ScraperConfig()
        self.logger = logger or ScraperLogger()
        self.fetcher = fetcher or PageFetcher(self.logger, self.config)
        self.strategy = strategy or SelectorPriorityStrategy(self.config, self.logger)
        self.catalog = catalog or CatalogStore(self.config.products_path)
        self.checkpoints = checkpoints or CheckpointStore(
            self.config.checkpoint_path, self.logger
        )
        self.sleep = sleep

        self.job = ResumableJob(
            "fetch-images", self.checkpoints,
            checkpoint_interval=self.config.checkpoint_interval,
            logger=self.logger,
        )

        self.stats = {
            'success': 0,
            'failed': 0,
            'skipped': 0,
        }

    def process_product(self, product: Product) -> Optional[str]:
        """Look up the image for one product.

        Returns:
            Absolute image URL, or None if the page could not be fetched or
            no image was found
        """
        if not product.buy_url:
            self.logger.log_error(product.id, "", "MissingURL", "Product has no buyUrl")
            return None

        html = self.fetcher.fetch(product.buy_url, product.id)
        if html is None:
            return None

        image_url = self.strategy.extract(html, product.buy_url)
        if image_url is None:
            self.logger.log_error(product.id, product.buy_url, "NoImage",
                                  "No product image found on page")
        return image_url

    def run(self, test_mode: bool = False, resume: bool = False) -> Dict[str, int]:
        """Execute the scraping process.

        Args:
            test_mode: Only process the first `config.test_limit` products
            resume: Continue from the saved checkpoint if there is one

        Returns:
            Statistics dictionary with success/failed/skipped counts

        Raises:
            CatalogError: if the catalog cannot be loaded or saved
        """
        self.logger.banner("Product Image Scraper")

        self.logger.info(f"Loading products from: {self.catalog.path}")
        products = self.catalog.load()
        products, start_index = self.job.start(products, resume=resume)

        total = len(products)
        end_index = min(self.config.test_limit, total) if test_mode else total

        self.logger.info(f"Total products: {total}")
        self.logger.info(f"Processing: {start_index + 1} to {end_index}")
        if test_mode:
            self.logger.info(f"TEST MODE: Only processing first {self.config.test_limit} products")
        estimate = math.ceil(max(end_index - start_index, 0) * self.config.request_delay_ms / 1000 / 60)
        self.logger.info(f"Estimated time: ~{estimate} minutes\n")

        self._process_range(products, start_index, end_index)

        self.logger.info(f"\nSaving results to: {self.catalog.path}")
        self.catalog.save(products)
        self.job.complete(test_mode=test_mode)

        self._print_summary()
        return self.stats

    def _process_range(self, products: List[Product], start_index: int, end_index: int):
        processed = 0
        span = max(end_index - start_index, 1)

        for index in range(start_index, end_index):
            product = products[index]

            if not product.needs_image(self.config.placeholder_image):
                self.stats['skipped'] += 1
                self.job.advance(index, products)
                continue

            if processed % self.config.progress_log_interval == 0:
                progress = (index - start_index) / span * 100
                self.logger.info(
                    f"Processing {index + 1}/{end_index} ({progress:.1f}%) - "
                    f"\"{product.name[:40]}...\""
                )

            try:
                image_url = self.process_product(product)
            except Exception as e:
                self.logger.log_error(product.id, product.buy_url,
                                      "UnexpectedError", str(e))
                image_url = None

            product.image_url = image_url
            processed += 1
            if image_url:
                self.stats['success'] += 1
                self.logger.info(f"  Found image: {image_url[:60]}...")
            else:
                self.stats['failed'] += 1

            self.job.advance(index, products)

            # Rate limiting delay
            self.sleep(self.config.request_delay_ms / 1000)

    def _print_summary(self):
        """Print final summary statistics."""
        self.logger.info("\n" + "=" * 60)
        self.logger.info("SCRAPING COMPLETE")
        self.logger.info("=" * 60)
        self.logger.info(f"Success: {self.stats['success']} images found")
        self.logger.info(f"Failed: {self.stats['failed']} (no image found)")
        self.logger.info(f"Skipped: {self.stats['skipped']} (already had images)")
        total = sum(self.stats.values())
        self.logger.info(f"Total processed: {total}")
        self.logger.info(f"\nError log: {self.logger.error_log_path}")
        self.logger.info(f"Log directory: {self.logger.log_dir.absolute()}")


# ============================================================================
# Main Entry Point
# ============================================================================

def main(argv=None) -> int:
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description='Fetch product images from seller pages into data/products.json',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  # Process every product that still needs an image
  python image_scraper.py

  # Try the first 10 products only
  python image_scraper.py --test

  # Continue an interrupted run
  python image_scraper.py --resume
        '''
    )
    parser.add_argument(
        '--test',
        action='store_true',
        help='Only process the first 10 products'
    )
    parser.add_argument(
        '--resume',
        action='store_true',
        help='Resume from data/images-checkpoint.json if present'
    )
    args = parser.parse_args(argv)

    logger = ScraperLogger()
    config = load_config(ScraperConfig, logger=logger)
    scraper = ImageScraper(config=config, logger=logger)

    try:
        scraper.run(test_mode=args.test, resume=args.resume)
    except CatalogError as e:
        logger.logger.error(f"Fatal: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
