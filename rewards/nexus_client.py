"""
Nexus REST client for fetching Oasis consensus data.
Handles limit/offset pagination and clipped total counts.
"""

import logging
import time
from typing import Any, Dict, Optional

import requests

from config import Config
from rewards.models import PagedResult
from rewards.utils import retry

logger = logging.getLogger(__name__)


class NexusAPIError(Exception):
    """A Nexus request failed (network error, HTTP error or undecodable body)."""


class NexusClient:
    """Client for querying the Oasis Nexus indexer."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        page_size: Optional[int] = None,
        page_delay: Optional[float] = None,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        """
        Initialize Nexus client.

        Args:
            api_url: Nexus base URL (e.g. https://nexus.oasis.io/v1)
            session: Optional requests session (shared across worker threads)
            page_size: Items requested per page
            page_delay: Seconds to wait between pages
            timeout: Per-request timeout in seconds
            max_retries: Attempts per request (1 disables retrying)
            retry_delay: Initial backoff delay between attempts
        """
        self.url = (api_url or Config.NEXUS_API_URL).rstrip("/")
        if not self.url:
            raise ValueError("NEXUS_API_URL not configured")

        self.session = session or requests.Session()
        self.page_size = page_size if page_size is not None else Config.PAGE_SIZE
        self.page_delay = page_delay if page_delay is not None else Config.PAGE_DELAY
        self.timeout = timeout if timeout is not None else Config.HTTP_TIMEOUT
        self.max_retries = max_retries if max_retries is not None else Config.HTTP_MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else Config.HTTP_RETRY_DELAY

        if self.page_size <= 0:
            raise ValueError("page_size must be positive")

    def get(self, path: str, params: Optional[dict] = None) -> Dict[str, Any]:
        """
        Execute a GET request against the API.

        Args:
            path: Endpoint path (e.g. /consensus/events)
            params: Query parameters

        Returns:
            Decoded JSON body

        Raises:
            NexusAPIError: If the request fails after all attempts
        """
        fetch = retry(self.max_retries, self.retry_delay)(self._get_once)
        try:
            return fetch(path, params or {})
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Nexus request {path} failed: {e}")
            raise NexusAPIError(f"GET {path} failed: {e}") from e

    def _get_once(self, path: str, params: dict) -> Dict[str, Any]:
        response = self.session.get(f"{self.url}{path}", params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def fetch_all_paginated(
        self,
        path: str,
        params: Optional[dict],
        items_key: str,
        page_size: Optional[int] = None,
    ) -> PagedResult:
        """
        Fetch all results with automatic pagination.

        The reported total_count is not used to stop: when the API clips it,
        it is lower than the real number of items. Paging stops on the first
        short page.

        Args:
            path: Endpoint path
            params: Filter parameters (limit/offset are added)
            items_key: Key of the result array in each page
            page_size: Results per page, defaults to the client's

        Returns:
            PagedResult with all items and the clipped flag
        """
        page_size = page_size or self.page_size
        if page_size <= 0:
            raise ValueError("page_size must be positive")

        result = PagedResult()
        offset = 0

        while True:
            page = self.get(path, {**(params or {}), "limit": page_size, "offset": offset})
            items = page.get(items_key) or []
            result.items.extend(items)

            if page.get("is_total_count_clipped"):
                result.was_clipped = True

            # Stop if we got fewer results than requested (last page)
            if len(items) < page_size:
                break

            offset += len(items)
            logger.debug(f"Fetched {len(result.items)} {items_key} so far...")
            time.sleep(self.page_delay)

        if result.was_clipped:
            logger.warning(f"{path} reported a clipped total count; results may be incomplete")

        return result

    def fetch_delegations(self, address: str) -> PagedResult:
        """
        Fetch the current (active) delegations of an account.

        Args:
            address: Delegator address

        Returns:
            PagedResult of delegation records (validator, shares, amount)
        """
        return self.fetch_all_paginated(
            f"/consensus/accounts/{address}/delegations", {}, "delegations"
        )

    def fetch_events(self, address: str, event_type: str) -> PagedResult:
        """
        Fetch consensus events related to an address.

        Args:
            address: Related account address
            event_type: Event type (e.g. staking.escrow.add)

        Returns:
            PagedResult of event records
        """
        return self.fetch_all_paginated(
            "/consensus/events", {"rel": address, "type": event_type}, "events"
        )

    def fetch_validator_history(
        self,
        validator: str,
        from_epoch: Optional[int] = None,
        to_epoch: Optional[int] = None,
    ) -> PagedResult:
        """
        Fetch pool snapshots of a validator.

        Args:
            validator: Validator entity address
            from_epoch: First epoch (inclusive)
            to_epoch: Last epoch (inclusive)

        Returns:
            PagedResult of unsorted history records
        """
        params = {}
        if from_epoch is not None:
            params["from"] = from_epoch
        if to_epoch is not None:
            params["to"] = to_epoch
        return self.fetch_all_paginated(
            f"/consensus/validators/{validator}/history", params, "history"
        )

    def fetch_epoch(self, epoch: int) -> Dict[str, Any]:
        """Fetch an epoch record (id, start_height, end_height)."""
        return self.get(f"/consensus/epochs/{epoch}")

    def fetch_block(self, height: int) -> Dict[str, Any]:
        """Fetch a block record (height, timestamp, ...)."""
        return self.get(f"/consensus/blocks/{height}")

    def fetch_latest_epoch(self) -> int:
        """
        Fetch the id of the most recent epoch.

        Raises:
            NexusAPIError: If the request fails or returns no epochs
        """
        epochs = self.get("/consensus/epochs", {"limit": 1}).get("epochs") or []
        if not epochs:
            raise NexusAPIError("No epochs returned by /consensus/epochs")
        return int(epochs[0]["id"])

    def fetch_epoch_start_timestamp(self, epoch: int) -> str:
        """
        Fetch the timestamp of the first block of an epoch.

        Raises:
            NexusAPIError: If either lookup fails or the records are incomplete
        """
        start_height = self.fetch_epoch(epoch).get("start_height")
        if start_height is None:
            raise NexusAPIError(f"Epoch {epoch} has no start_height")

        timestamp = self.fetch_block(start_height).get("timestamp")
        if not timestamp:
            raise NexusAPIError(f"Block {start_height} has no timestamp")
        return timestamp

    def fetch_epoch_timestamp(self, epoch: int) -> Optional[str]:
        """
        Fetch the start timestamp of an epoch, or None if it cannot be resolved.

        A missing timestamp only affects labelling, so failures are not fatal.
        """
        try:
            return self.fetch_epoch_start_timestamp(epoch)
        except NexusAPIError as e:
            logger.warning(f"Timestamp for epoch {epoch} unknown: {e}")
            return None
