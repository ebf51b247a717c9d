"""Adapter for the Pappers v2 company search API (requires an API token)."""

from datetime import date, timedelta
from typing import Optional

from lead_scanner.config.exceptions import MissingCredentialError
from lead_scanner.domain.models import MAX_DAYS
from lead_scanner.logging import get_logger
from lead_scanner.utils.timestamps import format_date, utc_now

from .base import BaseAdapter, PartitionPage
from .exceptions import AdapterConfigurationError, AdapterResponseError

logger = get_logger(__name__, component="adapter")

TOKEN_VARIABLE = "PAPPERS_API_TOKEN"

# Response layouts seen across API versions
RESULT_KEYS = ("entreprises", "resultats", "results")


class KeyedApiAdapter(BaseAdapter):
    """Adapter for api.pappers.fr.

    Unlike the public registry, this API filters on creation date and city
    server-side, so the recency window and city filter are sent as query
    parameters.

    API Details:
        Endpoint: https://api.pappers.fr/v2/recherche
        Method: GET
        Authentication: api_token query parameter
        Response: JSON object with an 'entreprises' array (older layouts use
            'resultats' or 'results')
    """

    ADAPTER_NAME = "keyed_api"
    SOURCE_KIND = "keyed_api"
    API_URL = "https://api.pappers.fr/v2/recherche"
    PAGE_SIZE = 100

    def __init__(
        self,
        api_token: Optional[str],
        days: int = 30,
        city: Optional[str] = None,
        max_pages: int = 20,
        today: Optional[date] = None,
        **kwargs,
    ) -> None:
        """Initialize the adapter.

        Raises:
            MissingCredentialError: If no API token is configured
            AdapterConfigurationError: If days is outside 1..MAX_DAYS
        """
        if not api_token or not api_token.strip():
            raise MissingCredentialError(source=self.ADAPTER_NAME, variable=TOKEN_VARIABLE)
        if not 1 <= days <= MAX_DAYS:
            raise AdapterConfigurationError(
                f"days must be between 1 and {MAX_DAYS}, got {days}"
            )

        super().__init__(**kwargs)
        self._api_token = api_token.strip()
        self._secrets.append(self._api_token)
        self.days = days
        self.city = city
        self.max_pages = max_pages
        self.today = today or utc_now().date()

    def fetch_partition(self, partition_key: str, cursor: Optional[int]) -> PartitionPage:
        page = cursor or self.first_cursor
        params = {
            "api_token": self._api_token,
            "par_page": self.PAGE_SIZE,
            "page": page,
            "date_creation_min": format_date(self.today - timedelta(days=self.days)),
            "date_creation_max": format_date(self.today),
            "code_postal": f"{partition_key}*",
        }
        if self.city:
            params["ville"] = self.city

        logger.debug(
            "Querying keyed company API",
            extra={
                "event": "adapter.page.request",
                "adapter": self.ADAPTER_NAME,
                "page": page,
                "api_token": "***",
                "code_postal": params["code_postal"],
            },
        )

        response = self._make_request(self.API_URL, params=params)

        if not isinstance(response, dict):
            raise AdapterResponseError(
                f"Expected JSON object response, got {type(response).__name__}"
            )

        results = []
        for key in RESULT_KEYS:
            if response.get(key) is not None:
                results = response[key]
                break

        if not isinstance(results, list):
            raise AdapterResponseError(
                f"Expected result list in response, got {type(results).__name__}"
            )

        records = [record for record in results if isinstance(record, dict)]
        next_cursor = page + 1
        if len(results) < self.PAGE_SIZE or page >= self.max_pages:
            next_cursor = None

        logger.debug(
            "Fetched keyed API page",
            extra={
                "event": "adapter.page.fetched",
                "adapter": self.ADAPTER_NAME,
                "page": page,
                "count": len(records),
                "has_more": next_cursor is not None,
            },
        )

        return PartitionPage(records=records, next_cursor=next_cursor)
