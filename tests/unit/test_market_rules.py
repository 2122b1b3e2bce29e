"""Tests for pm_market.domain.rules."""

from datetime import timedelta

import pytest

from src.pm_common.datetime_utils import utc_now
from src.pm_common.errors import InvalidInputError
from src.pm_market.domain.models import Market
from src.pm_market.domain.rules import (
    accepts_stakes,
    is_deletable,
    may_delete,
    validate_new_market,
)


def _validate(**overrides):
    now = utc_now()
    args = dict(
        question="Will it rain tomorrow?",
        options=["Yes", "No"],
        close_time=now + timedelta(hours=1),
        creator_id="alice",
        now=now,
    )
    args.update(overrides)
    return validate_new_market(**args)


def _market(status: str = "open", creator: str = "alice", closes_in=timedelta(hours=1)) -> Market:
    now = utc_now()
    return Market(
        id="m1", question="Will it rain tomorrow?", description=None, category="General",
        banner_url=None, close_time=now + closes_in, status=status, winning_option_id=None,
        creator_id=creator, total_liquidity=0, created_at=now,
    )


class TestValidateNewMarket:
    def test_valid_trims(self) -> None:
        question, options = _validate(question="  Will it rain tomorrow?  ", options=[" Yes", "No "])
        assert question == "Will it rain tomorrow?"
        assert options == ["Yes", "No"]

    def test_short_question(self) -> None:
        with pytest.raises(InvalidInputError, match="at least 10"):
            _validate(question="Too short")

    def test_ten_characters_is_enough(self) -> None:
        question, _ = _validate(question="0123456789")
        assert question == "0123456789"

    @pytest.mark.parametrize("options", [["Only"], ["a", "b", "c", "d", "e", "f", "g"], []])
    def test_option_count(self, options) -> None:
        with pytest.raises(InvalidInputError, match="between 2 and 6"):
            _validate(options=options)

    def test_six_options_allowed(self) -> None:
        _, options = _validate(options=list("abcdef"))
        assert len(options) == 6

    def test_blank_option(self) -> None:
        with pytest.raises(InvalidInputError, match="blank"):
            _validate(options=["Yes", "   "])

    def test_close_time_must_be_strictly_future(self) -> None:
        now = utc_now()
        with pytest.raises(InvalidInputError, match="future"):
            _validate(close_time=now, now=now)

    def test_naive_close_time_treated_as_utc(self) -> None:
        now = utc_now()
        naive = (now + timedelta(hours=1)).replace(tzinfo=None)
        _validate(close_time=naive, now=now)

    def test_blank_creator(self) -> None:
        with pytest.raises(InvalidInputError, match="creatorId"):
            _validate(creator_id=" ")


class TestMarketPredicates:
    def test_accepts_stakes_open_future(self) -> None:
        assert accepts_stakes(_market(), utc_now())

    def test_rejects_after_close(self) -> None:
        assert not accepts_stakes(_market(closes_in=timedelta(seconds=-1)), utc_now())

    def test_rejects_non_open(self) -> None:
        assert not accepts_stakes(_market(status="closed"), utc_now())

    @pytest.mark.parametrize("status,expected", [
        ("open", True), ("closed", True), ("resolved", False),
        ("finalized", False), ("disputed", False),
    ])
    def test_is_deletable(self, status: str, expected: bool) -> None:
        assert is_deletable(_market(status=status)) is expected

    def test_may_delete(self) -> None:
        assert may_delete(_market(creator="alice"), "alice", "mock-user")
        assert not may_delete(_market(creator="alice"), "bob", "mock-user")
        assert may_delete(_market(creator="mock-user"), "bob", "mock-user")
