"""Build the right platform scraper for a county"""
from typing import Optional
import asyncio
import logging

import httpx

from lien_sync.models import County, ScraperPlatform
from lien_sync.scraping.base_scraper import BaseScraper
from lien_sync.scraping.config import ScraperConfig, merge_configs
from lien_sync.scraping.platforms import DEFAULT_PLATFORM, PlatformKind, get_platform_class
from lien_sync.services.pdf_storage import PdfStore
from lien_sync.storage import LienStorage, get_storage

logger = logging.getLogger(__name__)


def detect_platform_from_config(config: ScraperConfig) -> PlatformKind:
    """Guess the platform for counties with no platform assigned"""
    base_url = (config.base_url or "").lower()

    if "maricopa" in base_url or "legacy.recorder" in base_url:
        return PlatformKind.MARICOPA_LEGACY
    if "landmarkweb" in base_url or "tylerhost" in base_url:
        return PlatformKind.LANDMARK_WEB
    # Iframe-based search forms are a legacy-site trait
    if config.requires_iframe or config.selectors.search_form_iframe:
        return PlatformKind.MARICOPA_LEGACY
    return DEFAULT_PLATFORM


def resolve_platform_kind(platform_id: Optional[str], config: ScraperConfig) -> PlatformKind:
    """Platform kind from an explicit id, else from the config; unknown ids fall back to the default"""
    if not platform_id:
        return detect_platform_from_config(config)
    try:
        return PlatformKind(platform_id)
    except ValueError:
        logger.warning(f'Unknown platform "{platform_id}", defaulting to {DEFAULT_PLATFORM.value}')
        return DEFAULT_PLATFORM


async def create_scraper(
    county: County,
    storage: Optional[LienStorage] = None,
    pdf_store: Optional[PdfStore] = None,
    stop_event: Optional[asyncio.Event] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BaseScraper:
    """
    Create a ready-to-initialize scraper for a county.

    Loads the county's platform (if any), merges its default config with the
    county's overrides, and picks the scraper class by platform id or, when
    none is set, by inspecting the merged config.
    """
    storage = storage or get_storage()

    platform: Optional[ScraperPlatform] = None
    if county.scraper_platform_id:
        platform = await storage.get_platform(county.scraper_platform_id)
        if platform is None:
            logger.warning(f"Platform {county.scraper_platform_id} not found, using county config only")

    config = merge_configs(platform.default_config if platform else None, county.config or {})
    kind = resolve_platform_kind(county.scraper_platform_id, config)
    scraper_cls = get_platform_class(kind)

    logger.info(
        f"Using {scraper_cls.__name__} for {county.name} "
        f"(platform: {county.scraper_platform_id or 'detected'}, base_url={config.base_url})"
    )
    return scraper_cls(
        county,
        platform,
        config,
        storage=storage,
        pdf_store=pdf_store,
        stop_event=stop_event,
        http_transport=http_transport,
    )
