"""Scan transaction: find the record, compute the new counters, write them back."""

from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from stock_scanner.errors import GuardUnavailableError, MissingProductError, ProductNotFoundError
from stock_scanner.models import (
    LOW_STOCK_THRESHOLD,
    CounterUpdate,
    ProductRecord,
    ScanResult,
    StockStatus,
)
from stock_scanner.notion import NotionClient
from stock_scanner.scan_guard import ScanGuard

logger = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def compute_update(record: ProductRecord, now: datetime) -> CounterUpdate:
    """
    New property values for one consumed unit.

    Quantity is clamped at zero, but both consumption counters are
    incremented even when there was nothing left to consume.
    """
    return CounterUpdate(
        quantity=max(0, record.quantity - 1),
        total_consumed=record.total_consumed + 1,
        monthly_consumed=record.monthly_consumed + 1,
        consumed_at=now,
    )


def classify(new_quantity) -> StockStatus:
    if new_quantity <= LOW_STOCK_THRESHOLD:
        return StockStatus.LOW_STOCK
    return StockStatus.SUCCESS


class InventoryService:
    """
    The one transaction behind both the JSON endpoint and the scan page.

    Each call performs at most one lookup and one write against the store.
    The write is not conditional: if it fails the lookup has already
    happened and nothing is rolled back.
    """

    def __init__(
        self,
        notion: NotionClient,
        guard: ScanGuard,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.notion = notion
        self.guard = guard
        self.clock = clock

    async def perform_decrement(self, product: Optional[str], scan_id: Optional[str] = None) -> ScanResult:
        """
        Consumes one unit of ``product``.

        Args:
            product: Exact title of the record in the inventory database.
            scan_id: Optional correlation token; a token that already
                completed returns its stored result without touching the store.

        Raises:
            MissingProductError: ``product`` is empty, before any network call.
            ProductNotFoundError: no record matched; nothing is written.
            LookupFailedError, UpdateFailedError: the store call failed.
            ScanInProgressError: the token or the product is busy.
            GuardUnavailableError: Redis failed before the store was written.
        """
        if not product:
            raise MissingProductError()

        if scan_id:
            replay = await self.guard.claim(scan_id)
            if replay is not None:
                logger.info("Scan replayed", product=product, scan_id=scan_id)
                return replay

        try:
            async with self.guard.product_lock(product):
                result = await self._decrement(product)
        except Exception:
            if scan_id:
                await self._release(scan_id)
            raise

        if scan_id:
            try:
                await self.guard.complete(scan_id, result)
            except GuardUnavailableError:
                # The record is already written. The token stays pending until it
                # expires, so a reload gets 409 instead of a second decrement.
                logger.error("Scan result not stored", product=product, scan_id=scan_id)
        return result

    async def _release(self, scan_id: str) -> None:
        try:
            await self.guard.release(scan_id)
        except GuardUnavailableError:
            logger.error("Scan token not released", scan_id=scan_id)

    async def _decrement(self, product: str) -> ScanResult:
        logger.info("Scan started", product=product)

        record = await self.notion.find_product(product)
        if record is None:
            logger.info("Product not found", product=product)
            raise ProductNotFoundError(product)

        update = compute_update(record, self.clock())
        await self.notion.update_counters(record.page_id, update)

        result = ScanResult(
            product_name=product,
            previous_quantity=record.quantity,
            new_quantity=update.quantity,
            total_consumed=update.total_consumed,
            monthly_consumed=update.monthly_consumed,
            unit_price=record.unit_price,
            remaining_value=update.quantity * record.unit_price,
            stock_status=classify(update.quantity),
        )
        logger.info(
            "Scan completed",
            product=product,
            previous_quantity=result.previous_quantity,
            new_quantity=result.new_quantity,
            stock_status=result.stock_status.value,
        )
        return result
