"""Factory function for instantiating source adapters."""

import threading
from typing import Iterable, Optional

from lead_scanner.config.environment import EnvironmentConfig
from lead_scanner.config.exceptions import MissingCredentialError
from lead_scanner.config.models import AppConfig, SourceConfig
from lead_scanner.domain.models import ScrapeOptions
from lead_scanner.logging import get_logger

from .base import BaseAdapter
from .exceptions import AdapterConfigurationError
from .html_scrape import HtmlScrapeAdapter
from .keyed_api import TOKEN_VARIABLE, KeyedApiAdapter
from .registry_search import RegistrySearchAdapter

logger = get_logger(__name__, component="adapter")

# Source type -> (environment variable, EnvironmentConfig attribute)
REQUIRED_CREDENTIALS = {
    "keyed_api": (TOKEN_VARIABLE, "pappers_api_token"),
}


def _source_type(source_config: SourceConfig) -> str:
    return str(getattr(source_config.type, "value", source_config.type)).lower()


def check_credentials(sources: Iterable[SourceConfig], env_config: EnvironmentConfig) -> None:
    """Fail fast when a source needs a credential that is not set.

    Called before any adapter is built, so no upstream request is made by a
    run that cannot complete.

    Raises:
        MissingCredentialError: For the first source whose credential is missing
    """
    for source_config in sources:
        required = REQUIRED_CREDENTIALS.get(_source_type(source_config))
        if required is None:
            continue
        variable, attribute = required
        if not (getattr(env_config, attribute, None) or "").strip():
            raise MissingCredentialError(source=_source_type(source_config), variable=variable)


def get_adapter(
    source_config: SourceConfig,
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    options: ScrapeOptions,
    cancel_event: Optional[threading.Event] = None,
) -> BaseAdapter:
    """Instantiate the adapter for a configured source.

    Shared settings (timeout, User-Agent pool, retry policy) come from the
    application config; variant-specific ones are added per source type.

    Args:
        source_config: Source to build an adapter for
        app_config: Validated application configuration
        env_config: Environment settings (API credentials)
        options: Scan options, used by sources that filter server-side
        cancel_event: Run-wide cancellation flag

    Returns:
        Adapter instance; the caller owns it and must close it

    Raises:
        AdapterConfigurationError: If the source type is not supported
        MissingCredentialError: If the source needs a credential that is not set

    Example:
        >>> source = SourceConfig(name="Registre", type="registry_search")
        >>> adapter = get_adapter(source, AppConfig(), EnvironmentConfig(), ScrapeOptions())
        >>> page = adapter.fetch_partition("44", adapter.first_cursor)
    """
    advanced = app_config.advanced
    common = {
        "timeout": advanced.http_request_timeout,
        "user_agents": advanced.user_agents,
        "retry_policy": app_config.retry,
        "cancel_event": cancel_event,
    }

    adapter_map = {
        "registry_search": lambda: RegistrySearchAdapter(max_pages=advanced.max_pages, **common),
        "html_scrape": lambda: HtmlScrapeAdapter(
            detail_workers=advanced.detail_workers,
            region=source_config.region,
            **common,
        ),
        "keyed_api": lambda: KeyedApiAdapter(
            api_token=env_config.pappers_api_token,
            days=options.days,
            city=options.city,
            max_pages=advanced.max_pages,
            **common,
        ),
    }

    source_type = _source_type(source_config)
    build = adapter_map.get(source_type)

    if build is None:
        supported_types = ", ".join(sorted(adapter_map.keys()))
        raise AdapterConfigurationError(
            f"Unknown source type: {source_config.type}. Supported types: {supported_types}"
        )

    adapter = build()

    logger.debug(
        "Created adapter instance",
        extra={
            "event": "adapter.created",
            "source_type": source_type,
            "source": source_config.name,
            "adapter_class": type(adapter).__name__,
        },
    )

    return adapter
