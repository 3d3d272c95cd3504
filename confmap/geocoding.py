from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, List, Optional

import requests

logger = logging.getLogger(__name__)

GSI_ADDRESS_SEARCH_URL = "https://msearch.gsi.go.jp/address-search/AddressSearch"
MIN_QUERY_LENGTH = 2
MAX_RESULTS = 10
REQUEST_TIMEOUT = 10


@dataclass(frozen=True)
class AddressCandidate:
    title: str
    lat: float
    lng: float
    description: Optional[str] = None


def _parse_candidate(item: Any) -> Optional[AddressCandidate]:
    try:
        lng, lat = item["geometry"]["coordinates"][:2]
        props = item.get("properties") or {}
        title = props.get("title") or props.get("name")
        if not title:
            return None
        return AddressCandidate(title=str(title), lat=float(lat), lng=float(lng), description=props.get("dataSource"))
    except (KeyError, TypeError, ValueError, AttributeError):
        return None


class AddressSearchClient:
    """Forward address lookup against the GSI address-search API.

    Unreliable by nature: any failure is logged and reads as "no results".
    """

    def __init__(self, url: str = GSI_ADDRESS_SEARCH_URL, *, session: Optional[requests.Session] = None, timeout: float = REQUEST_TIMEOUT):
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout

    def search(self, query: str) -> List[AddressCandidate]:
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []
        try:
            resp = self.session.get(self.url, params={"q": query}, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Address search failed for %r: %s", query, exc)
            return []
        if not isinstance(data, list):
            return []
        candidates = (_parse_candidate(item) for item in data)
        return [c for c in candidates if c is not None][:MAX_RESULTS]


class AddressSearchSession:
    """Drops responses that arrive after a newer query was issued."""

    def __init__(self, client: AddressSearchClient):
        self._client = client
        self._generation = 0
        self._lock = threading.Lock()

    def search(self, query: str) -> Optional[List[AddressCandidate]]:
        """Results for `query`, or None when a newer search superseded it."""
        with self._lock:
            self._generation += 1
            generation = self._generation
        results = self._client.search(query)
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding stale address results for %r", query)
                return None
        return results
