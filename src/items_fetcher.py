"""
Gielinor Gains - Items Fetcher
Blocking HTTP client for GET <base>/items?limit=<n>.

Every failure is mapped to a failure ApiResponse; nothing raises out of
fetch():
    transport error      → "Network error: ..."
    non-2xx status       → "API request failed: <code>"
    bad JSON / schema    → "Invalid response structure"
    anything else        → "Unexpected error: ..."
"""

import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter

from config import (
    GAINS_ITEMS_URL,
    USER_AGENT,
    HTTP_CONNECT_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_CONNECT_RETRIES,
)
from models import ApiResponse, ItemSchemaError, parse_envelope

logger = logging.getLogger(__name__)

INVALID_RESPONSE = "Invalid response structure"


def create_session() -> requests.Session:
    """Session with our headers and connection-failure retries mounted."""
    session = requests.Session()
    session.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
    })
    # An integer max_retries only retries failed connects, never a response
    adapter = HTTPAdapter(max_retries=HTTP_CONNECT_RETRIES)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class ItemsFetcher:
    """
    Fetches the full /items list in one request.

    Usage:
        fetcher = ItemsFetcher()
        response = fetcher.fetch(limit=50)   # blocks; call off the UI thread
    """

    def __init__(self, url: str = GAINS_ITEMS_URL,
                 session: Optional[requests.Session] = None):
        self.url = url
        self._session = session or create_session()
        self._timeout = (HTTP_CONNECT_TIMEOUT, HTTP_READ_TIMEOUT)

    def fetch(self, limit: int) -> ApiResponse:
        try:
            return self._fetch(limit)
        except Exception as e:
            logger.error(f"Unexpected error fetching items: {e}", exc_info=True)
            return ApiResponse.failure(f"Unexpected error: {e}")

    def _fetch(self, limit: int) -> ApiResponse:
        logger.info(f"Fetching items from: {self.url}?limit={limit}")

        try:
            resp = self._session.get(self.url, params={"limit": limit},
                                     timeout=self._timeout)
        except requests.RequestException as e:
            logger.error(f"Network error fetching items from {self.url}: {e}")
            return ApiResponse.failure(f"Network error: {e}")

        if not 200 <= resp.status_code < 300:
            logger.error(f"API request failed with status: {resp.status_code}")
            return ApiResponse.failure(f"API request failed: {resp.status_code}")

        logger.debug(f"Received response: {len(resp.content)} bytes")

        try:
            payload = resp.json()
        except ValueError as e:
            logger.error(f"{INVALID_RESPONSE}: body is not JSON ({e})")
            return ApiResponse.failure(INVALID_RESPONSE)

        try:
            response = parse_envelope(payload)
        except ItemSchemaError as e:
            logger.error(f"{INVALID_RESPONSE}: {e}")
            return ApiResponse.failure(INVALID_RESPONSE)

        logger.info(f"Successfully fetched {len(response.items)} items")
        return response

    def close(self):
        self._session.close()
