"""Ledger change notifications.

Pages that show ledger data are cached by the frontend. After every
successful write the services bump a per-owner version key in Redis and
publish the owner id, so cached views can be revalidated. The signal is
fire-and-forget: a Redis outage is logged and the write still succeeds.
"""

from khata.db.redis import redis_client
import logging

logger = logging.getLogger(__name__)

LEDGER_CHANNEL = "ledger:changed"


def ledger_version_key(owner_id: str) -> str:
    return f"ledger:version:{owner_id}"


class LedgerInvalidator:

    def __init__(self, client=None):
        self.client = client if client is not None else redis_client

    async def ledger_changed(self, owner_id: str):
        try:
            await self.client.incr(ledger_version_key(owner_id))
            await self.client.publish(LEDGER_CHANNEL, owner_id)
        except Exception as e:
            logger.warning("Failed to signal ledger change for owner %s: %s", owner_id, e)


ledger_invalidator = LedgerInvalidator()
