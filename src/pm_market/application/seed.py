"""Demo markets created at startup on an empty database (SEED_DEMO_MARKETS).

They are authored by the system sentinel, so any caller may delete them.
"""

import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_common.datetime_utils import utc_now
from src.pm_market.application.service import MarketService
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository

logger = logging.getLogger(__name__)

DEMO_CATEGORY = "Cricket"

# (question, options, time until close)
DEMO_MARKETS: list[tuple[str, list[str], timedelta]] = [
    (
        "Who will win the match: India vs Australia?",
        ["India", "Australia", "Draw"],
        timedelta(hours=24),
    ),
    (
        "How many runs will Kohli score today?",
        ["0-30", "31-50", "51-99", "Century (100+)"],
        timedelta(hours=4),
    ),
    (
        "Who will win the toss?",
        ["India", "Australia"],
        timedelta(minutes=30),
    ),
]


async def seed_demo_markets(
    db: AsyncSession,
    service: MarketService | None = None,
    repo: MarketRepositoryProtocol | None = None,
) -> int:
    """Create the demo markets unless any market exists. Returns the number created."""
    repo = repo or MarketRepository()
    if await repo.count_markets(db) > 0:
        return 0
    service = service or MarketService(repo=repo)
    now = utc_now()
    for question, options, closes_in in DEMO_MARKETS:
        await service.create_market(
            db,
            question=question,
            options=options,
            close_time=now + closes_in,
            creator_id=settings.SYSTEM_CREATOR_ID,
            category=DEMO_CATEGORY,
        )
    logger.info("Seeded %d demo markets", len(DEMO_MARKETS))
    return len(DEMO_MARKETS)
