"""Source adapters for public company registries.

This module provides one adapter per upstream source:
- Registry search API: registry_search.RegistrySearchAdapter
- Pappers website scrape: html_scrape.HtmlScrapeAdapter
- Pappers keyed API: keyed_api.KeyedApiAdapter

Use the factory function to instantiate adapters:
    from lead_scanner.adapters.factory import get_adapter
    with get_adapter(source_config, app_config, env_config, options) as adapter:
        for page in adapter.iter_partition("44"):
            ...

Exception handling:
    from lead_scanner.adapters.exceptions import AdapterError, AdapterHTTPError, AdapterTimeoutError
"""

from .base import BaseAdapter, PartitionPage
from .exceptions import (
    AdapterConfigurationError,
    AdapterError,
    AdapterHTTPError,
    AdapterResponseError,
    AdapterTimeoutError,
)
from .factory import check_credentials, get_adapter
from .html_scrape import HtmlScrapeAdapter
from .keyed_api import KeyedApiAdapter
from .registry_search import RegistrySearchAdapter

__all__ = [
    # Base and factory
    "BaseAdapter",
    "PartitionPage",
    "get_adapter",
    "check_credentials",
    # Adapters
    "RegistrySearchAdapter",
    "HtmlScrapeAdapter",
    "KeyedApiAdapter",
    # Exceptions
    "AdapterError",
    "AdapterHTTPError",
    "AdapterTimeoutError",
    "AdapterResponseError",
    "AdapterConfigurationError",
]
