"""Platform scrapers, one per family of county recorder websites"""
from enum import Enum
from typing import Dict, Type
import logging

from lien_sync.scraping.base_scraper import BaseScraper

logger = logging.getLogger(__name__)


class PlatformKind(str, Enum):
    """Known platform identifiers (ScraperPlatform.id values)"""
    MARICOPA_LEGACY = "maricopa-legacy"
    LANDMARK_WEB = "landmark-web"


# Used when a county names a platform we do not know
DEFAULT_PLATFORM = PlatformKind.MARICOPA_LEGACY

# Registry of platform scrapers
_PLATFORM_REGISTRY: Dict[PlatformKind, Type[BaseScraper]] = {}


def register_platform(kind: PlatformKind):
    """Decorator to register a platform scraper"""
    def decorator(cls: Type[BaseScraper]):
        _PLATFORM_REGISTRY[kind] = cls
        logger.debug(f"Registered scraper for {kind.value}: {cls.__name__}")
        return cls
    return decorator


def _load_platforms() -> None:
    # Importing the modules runs their register_platform decorators
    from lien_sync.scraping.platforms import landmark_web, legacy  # noqa: F401

    missing = [kind.value for kind in PlatformKind if kind not in _PLATFORM_REGISTRY]
    if missing:
        raise RuntimeError(f"No scraper registered for platform(s): {', '.join(missing)}")


def get_platform_class(kind: PlatformKind) -> Type[BaseScraper]:
    """Scraper class for a platform kind"""
    if len(_PLATFORM_REGISTRY) < len(PlatformKind):
        _load_platforms()
    return _PLATFORM_REGISTRY[kind]


def list_platforms() -> Dict[str, str]:
    """Map of platform id to scraper class name"""
    if len(_PLATFORM_REGISTRY) < len(PlatformKind):
        _load_platforms()
    return {kind.value: cls.__name__ for kind, cls in _PLATFORM_REGISTRY.items()}


__all__ = [
    "PlatformKind",
    "DEFAULT_PLATFORM",
    "register_platform",
    "get_platform_class",
    "list_platforms",
]
