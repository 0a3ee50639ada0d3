#!/usr/bin/env python3
"""
Shared logging for the catalog maintenance scripts.

Console output is kept terse for operators running a job interactively,
while the log file keeps DEBUG detail and a CSV records every per-product
failure so a run can be reviewed afterwards.
"""

import csv
import logging
import sys
from datetime import datetime
from pathlib import Path


class ScraperLogger:
    """Centralized logging system for the image scrapers."""

    def __init__(self, log_dir: str = "logs", name: str = "ImageScraper"):
        """Initialize logger with separate error and activity logs.

        Args:
            log_dir: Directory to store log files
            name: Logger name, also used as the log file prefix
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False
        # One run per logger name; drop handlers left over from a previous instance
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)

        # Console handler for user-facing messages
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter('%(message)s'))

        # File handler for detailed logs
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        prefix = name.lower()
        file_handler = logging.FileHandler(
            self.log_dir / f"{prefix}_{timestamp}.log", encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

        self.logger.addHandler(console_handler)
        self.logger.addHandler(file_handler)

        # Error log CSV
        self.error_log_path = self.log_dir / f"{prefix}_errors_{timestamp}.csv"
        self.error_count = 0
        self._init_error_log()

    def _init_error_log(self):
        """Initialize the error log CSV file."""
        with open(self.error_log_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow([
                'timestamp', 'product_id', 'url', 'error_type', 'error_message'
            ])

    def log_error(self, product_id, url: str, error_type: str,
                  error_message: str):
        """Log a per-product failure to the console, log file and error CSV.

        Args:
            product_id: Catalog id of the product being processed ("" if none)
            url: URL that caused the error
            error_type: Type of error (e.g., 'HTTP 404', 'Timeout', 'NoImage')
            error_message: Detailed error message
        """
        self.error_count += 1
        self.logger.error(
            f"  Product {product_id}: {error_type} - {error_message}"
        )

        with open(self.error_log_path, 'a', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow([
                datetime.now().isoformat(), product_id, url, error_type,
                error_message
            ])

    def info(self, message: str):
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str):
        """Log a warning message."""
        self.logger.warning(message)

    def debug(self, message: str):
        """Log a debug message."""
        self.logger.debug(message)

    def banner(self, title: str):
        """Log a title framed by separator lines."""
        self.logger.info("=" * 60)
        self.logger.info(title)
        self.logger.info("=" * 60)
