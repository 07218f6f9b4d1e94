import asyncio

from sqlalchemy import delete

from libraxpert.core.config import settings
from libraxpert.core.logging import get_logger
from libraxpert.db.models import BlacklistedToken
from libraxpert.db.session import AsyncSessionLocal
from libraxpert.utils.timezone import utcnow

logger = get_logger("services.maintenance")


async def cleanup_expired_blacklisted_tokens() -> int:
    """Remove expired tokens from the blacklist table."""
    async with AsyncSessionLocal() as db:
        result = await db.execute(
            delete(BlacklistedToken).where(BlacklistedToken.expires_at < utcnow())
        )
        count = result.rowcount
        await db.commit()
        if count:
            logger.info(f"Cleaned up {count} expired blacklisted tokens")
        return count


async def maintenance_loop() -> None:
    """Background loop that periodically prunes the token blacklist."""
    logger.info(f"Maintenance loop started (interval={settings.MAINTENANCE_INTERVAL}s)")
    while True:
        try:
            await asyncio.sleep(settings.MAINTENANCE_INTERVAL)
            await cleanup_expired_blacklisted_tokens()
        except asyncio.CancelledError:
            logger.info("Maintenance loop cancelled")
            break
        except Exception as e:
            logger.error(f"Error in maintenance loop: {e}")
            await asyncio.sleep(60)
