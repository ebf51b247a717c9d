"""Adapter that scrapes the Pappers public search and company pages.

Best-effort HTML extraction: the search page yields company links, each
detail page is fetched on a small worker pool and parsed with BeautifulSoup.
Layout changes degrade records instead of failing the partition.
"""

import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from lead_scanner.domain.models import RawRecord
from lead_scanner.logging import get_logger
from lead_scanner.logging.context import in_current_context

from .base import BaseAdapter, PartitionPage
from .exceptions import AdapterError

logger = get_logger(__name__, component="adapter")

SITE_ROOT = "https://www.pappers.fr"
DETAIL_PATH_PREFIX = "/entreprise/"

_SLUG_REGISTRY_ID = re.compile(r"(\d{9})/?$")

# Patterns applied to the page text, not to markup
_REGISTRY_ID = re.compile(r"SIREN[^\d]*(\d{9})")
_POSTAL_AND_CITY = re.compile(r"\b(\d{5})\s+([^\d]+)")
_POSTAL_CODE = re.compile(r"\b(\d{5})\b")
_CREATION_DATE = re.compile(r"Date de cr[ée]ation[^\d]*(\d{2}/\d{2}/\d{4})", re.IGNORECASE)
_SECTOR_CODE = re.compile(r"Code NAF[^\d]*(\d{2}\.\d{2}[A-Z])", re.IGNORECASE)

MIN_NAME_LENGTH = 3


def _collapse(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return " ".join(text.split()) or None


def parse_search_results(page_html: str) -> List[Tuple[str, str]]:
    """Extract ``(name, detail_url)`` pairs from a search results page.

    Names shorter than three characters are dropped and links are
    deduplicated by URL, keeping page order.
    """
    soup = BeautifulSoup(page_html, "html.parser")
    results = []
    seen = set()
    for anchor in soup.find_all("a", href=True):
        path = anchor["href"].strip()
        if not path.startswith(DETAIL_PATH_PREFIX):
            continue
        name = _collapse(anchor.get_text(" ", strip=True)) or ""
        url = f"{SITE_ROOT}{path}"
        if len(name) < MIN_NAME_LENGTH or url in seen:
            continue
        seen.add(url)
        results.append((name, url))
    return results


def _search(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    return _collapse(match.group(1)) if match else None


def _link_payload(soup: BeautifulSoup, scheme: str) -> Optional[str]:
    """Target of the first ``mailto:`` / ``tel:`` style link, query string dropped."""
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if href.lower().startswith(f"{scheme}:"):
            value = href.split(":", 1)[1].split("?")[0].strip()
            if value:
                return value
    return None


def _website_link(soup: BeautifulSoup) -> Optional[str]:
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        classes = " ".join(anchor.get("class") or [])
        if "site" in classes.lower() and href.lower().startswith(("http://", "https://")):
            return href
    return None


def _postal_and_city(soup: BeautifulSoup) -> Tuple[Optional[str], Optional[str]]:
    """First "NNNNN City" found in a single text node."""
    for text in soup.stripped_strings:
        match = _POSTAL_AND_CITY.search(text)
        if match:
            return match.group(1), _collapse(match.group(2))
    return None, None


def extract_detail_fields(page_html: str) -> Dict[str, Optional[str]]:
    """Mine a company detail page for the fields the normalizer reads.

    Every field is optional; a missing element or pattern leaves the field as None.
    """
    soup = BeautifulSoup(page_html, "html.parser")
    text = soup.get_text(" ", strip=True)

    postal_code, address_city = _postal_and_city(soup)
    city_node = soup.find("span", class_=lambda value: value and "ville" in value.lower())
    city = _collapse(city_node.get_text(" ", strip=True)) if city_node else None

    phone = _link_payload(soup, "tel")
    if phone:
        phone = re.sub(r"[^\d+]", "", phone) or None

    return {
        "registry_id": _search(_REGISTRY_ID, text),
        "city": city or address_city,
        "postal_code": postal_code or _search(_POSTAL_CODE, text),
        "creation_date": _search(_CREATION_DATE, text),
        "sector_code": _search(_SECTOR_CODE, text),
        "website_url": _website_link(soup),
        "email": _link_payload(soup, "mailto"),
        "phone": phone,
    }


class HtmlScrapeAdapter(BaseAdapter):
    """Adapter for the Pappers public website (no API key).

    One search page per partition, newest companies first; the partition is
    exhausted after that page.

    Endpoints:
        Search: https://www.pappers.fr/recherche?q=&sort=date_creation&order=desc&departement=<key>
        Detail: https://www.pappers.fr/entreprise/<slug>
    """

    ADAPTER_NAME = "html_scrape"
    SOURCE_KIND = "html_scrape"
    SEARCH_URL = f"{SITE_ROOT}/recherche"

    def __init__(self, detail_workers: int = 4, region: Optional[str] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.detail_workers = detail_workers
        self.region = region

    def fetch_partition(self, partition_key: str, cursor: Optional[int]) -> PartitionPage:
        params = {"q": "", "sort": "date_creation", "order": "desc"}
        if self.region:
            params["region"] = self.region
        params["departement"] = partition_key

        search_html = self._fetch_html(self.SEARCH_URL, params=params)
        links = parse_search_results(search_html)

        logger.info(
            "Parsed search results",
            extra={
                "event": "adapter.search.parsed",
                "adapter": self.ADAPTER_NAME,
                "count": len(links),
            },
        )

        return PartitionPage(records=self._fetch_details(links), next_cursor=None)

    def _fetch_details(self, links: List[Tuple[str, str]]) -> List[RawRecord]:
        """Fetch detail pages concurrently; results keep search order."""
        records: List[Optional[RawRecord]] = [None] * len(links)
        if not links:
            return []

        with ThreadPoolExecutor(max_workers=self.detail_workers) as pool:
            futures = {
                pool.submit(in_current_context(self._fetch_detail), name, url): index
                for index, (name, url) in enumerate(links)
            }
            for future in as_completed(futures):
                if self.cancelled:
                    for pending in futures:
                        pending.cancel()
                    break
                records[futures[future]] = future.result()

        return [record for record in records if record is not None]

    def _fetch_detail(self, name: str, url: str) -> RawRecord:
        """Build one record; failures leave the detail fields empty."""
        record: RawRecord = {"name": name, "detail_url": url}

        slug_id = _SLUG_REGISTRY_ID.search(url)
        if slug_id:
            record["registry_id"] = slug_id.group(1)

        if self.cancelled:
            return record

        try:
            detail_html = self._fetch_html(url)
        except AdapterError as e:
            logger.warning(
                "Detail page unavailable, keeping search data only",
                extra={
                    "event": "adapter.detail.failed",
                    "adapter": self.ADAPTER_NAME,
                    "url": url,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            return record

        fields = extract_detail_fields(detail_html)
        missing = sorted(key for key, value in fields.items() if value is None)
        if missing:
            logger.debug(
                "Detail page missing fields",
                extra={
                    "event": "adapter.detail.partial",
                    "adapter": self.ADAPTER_NAME,
                    "url": url,
                    "missing": missing,
                },
            )

        record.update({key: value for key, value in fields.items() if value is not None})
        return record
