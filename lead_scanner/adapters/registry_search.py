"""Adapter for the public French company registry search API."""

from typing import Optional

from lead_scanner.logging import get_logger

from .base import BaseAdapter, PartitionPage
from .exceptions import AdapterResponseError

logger = get_logger(__name__, component="adapter")


class RegistrySearchAdapter(BaseAdapter):
    """Adapter for recherche-entreprises.api.gouv.fr.

    The API cannot filter on creation date, so the adapter pages through the
    active companies of a department and leaves the recency cut to the
    pipeline.

    API Details:
        Endpoint: https://recherche-entreprises.api.gouv.fr/search
        Method: GET
        Authentication: None (public)
        Response: JSON object with a 'results' array, 25 records per page
    """

    ADAPTER_NAME = "registry_search"
    SOURCE_KIND = "registry_search"
    API_URL = "https://recherche-entreprises.api.gouv.fr/search"
    PAGE_SIZE = 25

    def __init__(self, max_pages: int = 20, **kwargs) -> None:
        super().__init__(**kwargs)
        self.max_pages = max_pages

    def fetch_partition(self, partition_key: str, cursor: Optional[int]) -> PartitionPage:
        page = cursor or self.first_cursor
        params = {
            "departement": partition_key,
            "etat_administratif": "A",
            "page": page,
            "per_page": self.PAGE_SIZE,
        }

        response = self._make_request(self.API_URL, params=params)

        if not isinstance(response, dict):
            raise AdapterResponseError(
                f"Expected JSON object response, got {type(response).__name__}"
            )

        results = response.get("results")
        if results is None:
            results = []
        if not isinstance(results, list):
            raise AdapterResponseError(
                f"Expected 'results' field to be array, got {type(results).__name__}"
            )

        records = [record for record in results if isinstance(record, dict)]
        if len(records) != len(results):
            logger.warning(
                "Skipping non-object entries in registry results",
                extra={
                    "event": "adapter.records.skipped",
                    "adapter": self.ADAPTER_NAME,
                    "skipped": len(results) - len(records),
                },
            )

        next_cursor = page + 1
        if len(results) < self.PAGE_SIZE or page >= self.max_pages:
            next_cursor = None
        else:
            total_pages = response.get("total_pages")
            if isinstance(total_pages, int) and page >= total_pages:
                next_cursor = None

        logger.debug(
            "Fetched registry page",
            extra={
                "event": "adapter.page.fetched",
                "adapter": self.ADAPTER_NAME,
                "page": page,
                "count": len(records),
                "has_more": next_cursor is not None,
            },
        )

        return PartitionPage(records=records, next_cursor=next_cursor)
