"""Market creation and staking rules (pure functions, no I/O)."""

from datetime import datetime

from src.pm_common.datetime_utils import as_utc
from src.pm_common.enums import MarketStatus
from src.pm_common.errors import InvalidInputError
from src.pm_market.domain.models import Market

MIN_QUESTION_LENGTH = 10
MIN_OPTIONS = 2
MAX_OPTIONS = 6


def validate_new_market(
    question: str,
    options: list[str],
    close_time: datetime,
    creator_id: str,
    now: datetime,
) -> tuple[str, list[str]]:
    """Return the trimmed question and option texts, or raise InvalidInputError."""
    question = (question or "").strip()
    if len(question) < MIN_QUESTION_LENGTH:
        raise InvalidInputError(
            f"Question must be at least {MIN_QUESTION_LENGTH} characters"
        )
    if not MIN_OPTIONS <= len(options) <= MAX_OPTIONS:
        raise InvalidInputError(
            f"A market needs between {MIN_OPTIONS} and {MAX_OPTIONS} options, got {len(options)}"
        )
    texts = [(text or "").strip() for text in options]
    if any(not text for text in texts):
        raise InvalidInputError("Options must not be blank")
    if as_utc(close_time) <= now:
        raise InvalidInputError("closeTime must be in the future")
    if not (creator_id or "").strip():
        raise InvalidInputError("creatorId is required")
    return question, texts


def accepts_stakes(market: Market, now: datetime) -> bool:
    return market.status == MarketStatus.OPEN and as_utc(market.close_time) > now


def is_deletable(market: Market) -> bool:
    return market.status in (MarketStatus.OPEN, MarketStatus.CLOSED)


def may_delete(market: Market, requester_id: str, system_creator_id: str) -> bool:
    """Creator, or anyone for markets authored by the system sentinel (seed data)."""
    return market.creator_id in (requester_id, system_creator_id)
