"""Typed scraper configuration and platform/county config merging"""
from typing import Any, Dict, List, Literal, Mapping, Optional, Union
import logging

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

# Fallback delays in milliseconds when neither platform nor county sets one
DEFAULT_DELAYS_MS = {
    "page_load_wait": 3000,
    "between_requests": 300,
    "after_form_submit": 3000,
    "pdf_load_wait": 2000,
}

DEFAULT_MAX_PAGES_PER_RUN = 10
DEFAULT_RECORDING_NUMBER_PATTERN = r"^\d{10,12}$"
DEFAULT_AMOUNT_PATTERN = r"\$([\d,]+(?:\.\d{2})?)"

DateFormat = Literal["MM/DD/YYYY", "YYYY-MM-DD", "DD/MM/YYYY"]


class _ConfigSection(BaseModel):
    """Stored JSON uses camelCase keys; Python code uses snake_case"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SelectorConfig(_ConfigSection):
    search_form_iframe: Optional[str] = None
    start_date_field: Optional[str] = None
    end_date_field: Optional[str] = None
    document_type_dropdown: Optional[str] = None
    document_type_input: Optional[str] = None
    search_button: Optional[str] = None
    results_iframe: Optional[str] = None
    results_table: Optional[str] = None
    recording_number_links: Optional[str] = None
    next_page_button: Optional[str] = None
    no_results_indicator: Optional[str] = None
    pages_column_link: Optional[str] = None
    back_to_results_button: Optional[str] = None
    disclaimer_accept_button: Optional[str] = None


class ParsingConfig(_ConfigSection):
    recording_number_pattern: Optional[str] = None
    amount_pattern: Optional[str] = None
    debtor_pattern: Optional[str] = None
    creditor_pattern: Optional[str] = None
    address_pattern: Optional[str] = None


class DelayConfig(_ConfigSection):
    page_load_wait: Optional[int] = None
    between_requests: Optional[int] = None
    after_form_submit: Optional[int] = None
    pdf_load_wait: Optional[int] = None


class RateLimitConfig(_ConfigSection):
    max_requests_per_minute: Optional[int] = None
    max_pages_per_run: Optional[int] = None


class DocumentTypeConfig(_ConfigSection):
    code: str
    name: str
    description: Optional[str] = None


class AuthenticationConfig(_ConfigSection):
    type: Literal["none", "basic", "session", "cookie"] = "none"
    credentials: Optional[Dict[str, str]] = None


class ScraperConfig(_ConfigSection):
    """Merged configuration a platform scraper runs with"""
    scrape_type: Literal["puppeteer", "playwright", "api", "selenium"] = "playwright"

    # URLs
    base_url: str = ""
    search_form_url: Optional[str] = None
    search_results_url_pattern: Optional[str] = None
    document_detail_url_pattern: Optional[str] = None
    pdf_url_patterns: List[str] = Field(default_factory=list)

    # Document types
    document_types: List[DocumentTypeConfig] = Field(default_factory=list)
    default_document_type: Optional[str] = None

    date_format: DateFormat = "MM/DD/YYYY"

    selectors: SelectorConfig = Field(default_factory=SelectorConfig)
    parsing: ParsingConfig = Field(default_factory=ParsingConfig)
    delays: DelayConfig = Field(default_factory=DelayConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

    has_captcha: bool = False
    requires_iframe: bool = False
    requires_disclaimer: bool = False

    authentication: Optional[AuthenticationConfig] = None
    headers: Dict[str, str] = Field(default_factory=dict)

    def get_delay_ms(self, key: str) -> int:
        """Configured delay in milliseconds, falling back to the built-in default"""
        value = getattr(self.delays, key, None)
        return value if value is not None else DEFAULT_DELAYS_MS[key]

    def get_delay_seconds(self, key: str) -> float:
        return self.get_delay_ms(key) / 1000

    @property
    def max_pages_per_run(self) -> int:
        return self.rate_limit.max_pages_per_run or DEFAULT_MAX_PAGES_PER_RUN

    @property
    def recording_number_pattern(self) -> str:
        return self.parsing.recording_number_pattern or DEFAULT_RECORDING_NUMBER_PATTERN

    @property
    def amount_pattern(self) -> str:
        return self.parsing.amount_pattern or DEFAULT_AMOUNT_PATTERN


ConfigInput = Union[ScraperConfig, Mapping[str, Any], None]


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge override into base without mutating either.

    Nested mappings are merged key by key; lists and scalars in override
    replace the base value wholesale. None values in override are ignored.

    Example:
        deep_merge({"a": 1, "b": {"c": 2}}, {"b": {"c": 3, "d": 4}})
        -> {"a": 1, "b": {"c": 3, "d": 4}}
    """
    result: Dict[str, Any] = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = result.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = value
    return result


def _explicit_fields(config: ConfigInput) -> Dict[str, Any]:
    """Validate a config blob and return only the fields it actually sets"""
    if config is None:
        return {}
    if not isinstance(config, ScraperConfig):
        config = ScraperConfig.model_validate(dict(config))
    return config.model_dump(exclude_unset=True)


def merge_configs(platform_config: ConfigInput, county_config: ConfigInput) -> ScraperConfig:
    """
    Merge a platform's default config with a county's overrides.

    County values always win. Both inputs are validated against
    ScraperConfig first so malformed blobs fail here rather than mid-scrape.
    """
    merged = deep_merge(_explicit_fields(platform_config), _explicit_fields(county_config))
    return ScraperConfig.model_validate(merged)
