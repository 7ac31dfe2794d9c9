import asyncio
import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from storefront.services.tokens import cleanup_expired_tokens

logger = logging.getLogger(__name__)


def _cleanup_once(session_factory: sessionmaker) -> int:
    db = session_factory()
    try:
        return cleanup_expired_tokens(db)
    finally:
        db.close()


async def _cleanup_loop(session_factory: sessionmaker, interval: int) -> None:
    while True:
        try:
            await run_in_threadpool(_cleanup_once, session_factory)
        except SQLAlchemyError:
            logger.exception("Expired token cleanup failed")
        await asyncio.sleep(interval)


def start_token_cleanup(session_factory: sessionmaker, interval: int) -> Optional[asyncio.Task]:
    """Purge expired refresh tokens every `interval` seconds; 0 disables it."""
    if interval <= 0:
        return None
    logger.info("Token cleanup scheduled every %ds", interval)
    return asyncio.create_task(_cleanup_loop(session_factory, interval))
