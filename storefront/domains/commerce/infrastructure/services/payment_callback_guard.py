"""
Payment Callback Guard

Redis-based deduplication of gateway callbacks. Keeps a second delivery
of the same callback from calling the gateway's verify endpoint again
while the first is still being processed.

Key Design:
- Uses Redis SET with NX (only set if not exists) + PX (expire in milliseconds)
- Returns the previous transaction id if the callback was already processed
- The conditional pending -> completed update in the database stays the
  source of truth; losing Redis only costs duplicate gateway calls

Usage in the verify use case:
    guard = RedisPaymentCallbackGuard(redis)
    is_duplicate, previous_tx = await guard.check_and_lock(authority)
    if is_duplicate:
        return already_processed(previous_tx)
    ...
    await guard.mark_complete(authority, transaction_id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from storefront.domains.commerce.application.ports import IPaymentCallbackGuard

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

CALLBACK_KEY_PREFIX = "storefront:payment-callback"

# Processing lock TTL (5 minutes) - to prevent concurrent processing
PROCESSING_LOCK_TTL_MS = 5 * 60 * 1000

# Completed callback TTL (24 hours)
COMPLETED_TTL_MS = 24 * 60 * 60 * 1000

PROCESSING = "processing"
COMPLETED_PREFIX = "tx:"


class RedisPaymentCallbackGuard(IPaymentCallbackGuard):
    """
    Redis-based guard for gateway callback deduplication.

    States:
    - Not found: callback not seen before
    - "processing": callback is being processed by another worker
    - "tx:XXX": callback was processed, XXX is the gateway transaction id

    Redis outages degrade to "not a duplicate"; the database still
    prevents double completion.
    """

    def __init__(self, redis_client: Redis):
        self._redis = redis_client

    def _get_key(self, authority: str) -> str:
        return f"{CALLBACK_KEY_PREFIX}:{authority}"

    async def check_and_lock(self, authority: str) -> tuple[bool, str | None]:
        """
        Check whether the callback was already handled and take the lock.

        Returns:
            Tuple of (is_duplicate, previous_transaction_id_or_none)
        """
        key = self._get_key(authority)
        try:
            existing = await self._redis.get(key)

            if existing:
                existing_str = existing.decode() if isinstance(existing, bytes) else str(existing)

                if existing_str == PROCESSING:
                    logger.warning(f"[CALLBACK] Authority {authority} is currently being processed")
                    return (True, None)

                if existing_str.startswith(COMPLETED_PREFIX):
                    transaction_id = existing_str.split(":", 1)[1]
                    logger.info(f"[CALLBACK] Authority {authority} already processed: {transaction_id}")
                    return (True, transaction_id)

                logger.warning(f"[CALLBACK] Authority {authority} has unknown value: {existing_str}")
                return (True, None)

            acquired = await self._redis.set(key, PROCESSING, nx=True, px=PROCESSING_LOCK_TTL_MS)
        except RedisError as e:
            logger.error(f"[CALLBACK] Redis unavailable, skipping dedup for {authority}: {e}")
            return (False, None)

        if acquired:
            logger.debug(f"[CALLBACK] Acquired lock for authority {authority}")
            return (False, None)

        logger.info(f"[CALLBACK] Lost race for authority {authority}")
        return (True, None)

    async def mark_complete(self, authority: str, transaction_id: str) -> None:
        """Remember the processed callback for 24 hours."""
        try:
            await self._redis.set(self._get_key(authority), f"{COMPLETED_PREFIX}{transaction_id}", px=COMPLETED_TTL_MS)
        except RedisError as e:
            logger.error(f"[CALLBACK] Could not mark authority {authority} complete: {e}")
            return
        logger.info(f"[CALLBACK] Marked authority {authority} complete: {transaction_id}")

    async def mark_failed(self, authority: str) -> None:
        """Drop the lock so the callback can be retried."""
        try:
            await self._redis.delete(self._get_key(authority))
        except RedisError as e:
            logger.error(f"[CALLBACK] Could not release lock for authority {authority}: {e}")
            return
        logger.warning(f"[CALLBACK] Released lock for failed authority {authority}")


__all__ = ["RedisPaymentCallbackGuard"]
