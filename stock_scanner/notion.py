"""Notion database client: the inventory store behind every scan."""

import asyncio
from datetime import timezone
from typing import Optional

import aiohttp
import structlog

from stock_scanner.config import Settings
from stock_scanner.errors import LookupFailedError, UpdateFailedError
from stock_scanner.models import CounterUpdate, ProductRecord

logger = structlog.get_logger(__name__)

TITLE_PROPERTY = "Name"
QUANTITY = "Quantity"
PRICE = "Price"
TOTAL_CONSUMED = "Total Consumed"
MONTHLY_CONSUMED = "Consumed This Month"
LAST_CONSUMED = "Last Consumed"


def _number(properties: dict, key: str):
    prop = properties.get(key) or {}
    value = prop.get("number") or 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise LookupFailedError(f"malformed response body: {key} is {value!r}")
    return value


def _count(properties: dict, key: str) -> int:
    """Reads a counter property; counters must hold whole numbers."""
    value = _number(properties, key)
    if isinstance(value, float):
        if not value.is_integer():
            raise LookupFailedError(f"malformed response body: {key} is {value!r}, not a whole number")
        value = int(value)
    return value


def format_instant(moment) -> str:
    """ISO-8601 UTC instant with millisecond precision, e.g. 2026-01-05T09:30:00.000Z."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class NotionClient:
    """
    Thin async wrapper around the two Notion endpoints a scan needs.

    A single aiohttp session is shared by all requests of the process and
    created lazily inside the running event loop.
    """

    def __init__(self, settings: Settings, session: Optional[aiohttp.ClientSession] = None) -> None:
        self.settings = settings
        self._session = session

    @property
    def headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.settings.notion_token}",
            "Notion-Version": self.settings.notion_version,
            "Content-Type": "application/json",
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.settings.notion_timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Closes the underlying HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def find_product(self, name: str) -> Optional[ProductRecord]:
        """
        Returns the first record whose title equals ``name`` exactly.

        Returns:
            ProductRecord, or None when the query matched nothing.

        Raises:
            LookupFailedError: on transport failure, a non-2xx response
                or a body that is not a query result.
        """
        url = f"{self.settings.notion_api_url}/databases/{self.settings.notion_database_id}/query"
        body = {"filter": {"property": TITLE_PROPERTY, "title": {"equals": name}}}

        try:
            async with self._get_session().post(url, json=body, headers=self.headers) as response:
                if not response.ok:
                    error_text = await response.text()
                    logger.warning("Notion query rejected", status=response.status, error=error_text)
                    raise LookupFailedError(error_text)
                data = await response.json(content_type=None)
        except aiohttp.ClientError as exc:
            logger.warning("Notion query transport error", error=str(exc))
            raise LookupFailedError(str(exc)) from exc
        except asyncio.TimeoutError as exc:
            logger.warning("Notion query timed out")
            raise LookupFailedError("request timed out") from exc
        except ValueError as exc:
            raise LookupFailedError(f"malformed response body: {exc}") from exc

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise LookupFailedError(f"malformed response body: {data!r}")
        if not results:
            return None

        page = results[0]
        if not isinstance(page, dict) or not page.get("id"):
            raise LookupFailedError(f"malformed response body: {data!r}")
        properties = page.get("properties") or {}
        return ProductRecord(
            page_id=page["id"],
            name=name,
            quantity=_count(properties, QUANTITY),
            unit_price=_number(properties, PRICE),
            total_consumed=_count(properties, TOTAL_CONSUMED),
            monthly_consumed=_count(properties, MONTHLY_CONSUMED),
        )

    async def update_counters(self, page_id: str, update: CounterUpdate) -> None:
        """
        Writes the four scan properties to a page; all others are untouched.

        Raises:
            UpdateFailedError: on transport failure or a non-2xx response.
        """
        url = f"{self.settings.notion_api_url}/pages/{page_id}"
        body = {
            "properties": {
                QUANTITY: {"number": update.quantity},
                TOTAL_CONSUMED: {"number": update.total_consumed},
                MONTHLY_CONSUMED: {"number": update.monthly_consumed},
                LAST_CONSUMED: {"date": {"start": format_instant(update.consumed_at)}},
            }
        }

        try:
            async with self._get_session().patch(url, json=body, headers=self.headers) as response:
                if not response.ok:
                    error_text = await response.text()
                    logger.warning("Notion update rejected", status=response.status, error=error_text)
                    raise UpdateFailedError(error_text)
        except aiohttp.ClientError as exc:
            logger.warning("Notion update transport error", error=str(exc))
            raise UpdateFailedError(str(exc)) from exc
        except asyncio.TimeoutError as exc:
            logger.warning("Notion update timed out", page_id=page_id)
            raise UpdateFailedError("request timed out") from exc
