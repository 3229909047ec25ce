"""Browser automation and scraping package"""
from lien_sync.scraping.base_scraper import BaseScraper, ScrapedLien
from lien_sync.scraping.config import ScraperConfig, deep_merge, merge_configs
from lien_sync.scraping.factory import create_scraper, detect_platform_from_config

__all__ = [
    "BaseScraper",
    "ScrapedLien",
    "ScraperConfig",
    "deep_merge",
    "merge_configs",
    "create_scraper",
    "detect_platform_from_config",
]
