"""Redis-backed guards around a scan: a per-product lock and scan tokens."""

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from stock_scanner.errors import GuardUnavailableError, ScanInProgressError
from stock_scanner.models import ScanResult

logger = structlog.get_logger(__name__)

PENDING = "pending"

# Deletes the lock only if it still belongs to the caller
RELEASE_LOCK_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


class ScanGuard:
    """
    Coordinates scans that share Redis.

    Notion offers no conditional update, so the read-modify-write of a
    record is only safe if no other scan of the same product runs in
    between. ``product_lock`` serializes scans of one product across all
    workers using this Redis; writers outside the service can still race.

    Scan tokens make a retried page load idempotent: a token is claimed
    once, and its stored result is replayed for any later request.
    """

    LOCK_PREFIX = "scan:lock:"
    TOKEN_PREFIX = "scan:token:"
    POLL_INTERVAL = 0.05

    def __init__(
        self,
        redis_client: Redis,
        *,
        lock_ttl: float = 30,
        lock_wait: float = 10,
        token_ttl: int = 86400,
    ) -> None:
        self.redis = redis_client
        self.lock_ttl = lock_ttl
        self.lock_wait = lock_wait
        self.token_ttl = token_ttl

    async def _call(self, command: str, *args, **kwargs):
        try:
            return await getattr(self.redis, command)(*args, **kwargs)
        except RedisError as exc:
            logger.warning("Redis command failed", command=command, error=str(exc))
            raise GuardUnavailableError(str(exc)) from exc

    @asynccontextmanager
    async def product_lock(self, product: str) -> AsyncIterator[None]:
        """
        Holds the lock of ``product`` for the duration of the block.

        Raises:
            ScanInProgressError: if the lock is still held by another scan
                after ``lock_wait`` seconds.
            GuardUnavailableError: if Redis cannot be reached.
        """
        key = f"{self.LOCK_PREFIX}{product}"
        owner = uuid.uuid4().hex
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.lock_wait

        while not await self._call("set", key, owner, nx=True, px=int(self.lock_ttl * 1000)):
            if loop.time() >= deadline:
                logger.warning("Product lock wait timed out", product=product)
                raise ScanInProgressError(f"Another scan of '{product}' is still running")
            await asyncio.sleep(self.POLL_INTERVAL)

        try:
            yield
        finally:
            try:
                await self._call("eval", RELEASE_LOCK_SCRIPT, 1, key, owner)
            except GuardUnavailableError:
                # The lock still expires after lock_ttl
                logger.warning("Product lock not released", product=product)

    async def claim(self, token: str) -> Optional[ScanResult]:
        """
        Claims a scan token for a new transaction.

        Returns:
            None if the caller now owns the token, or the stored result
            (marked as replayed) if a scan with this token already completed.

        Raises:
            ScanInProgressError: if the token is claimed but not completed.
            GuardUnavailableError: if Redis cannot be reached.
        """
        key = f"{self.TOKEN_PREFIX}{token}"
        if await self._call("set", key, PENDING, nx=True, ex=self.token_ttl):
            return None

        stored = await self._call("get", key)
        if stored is None:
            # Expired between SET and GET
            return await self.claim(token)
        if stored == PENDING:
            raise ScanInProgressError(f"Scan '{token}' is already being processed")

        return ScanResult.model_validate_json(stored).model_copy(update={"replayed": True})

    async def complete(self, token: str, result: ScanResult) -> None:
        """Stores the result of a claimed token for later replays."""
        await self._call("set", f"{self.TOKEN_PREFIX}{token}", result.model_dump_json(), ex=self.token_ttl)

    async def release(self, token: str) -> None:
        """Drops a claim so the same token can retry after a failure."""
        await self._call("delete", f"{self.TOKEN_PREFIX}{token}")
