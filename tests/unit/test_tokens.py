"""Tests for the demo token desk price table."""

import pytest

from src.pm_common.errors import TokenTradingRestrictedError
from src.pm_ledger.domain.tokens import RESTRICTED_SYMBOLS, TOKEN_PRICES, quote


class TestQuote:
    @pytest.mark.parametrize("symbol,price", [
        ("LINERA", 1_250_000), ("MICRO", 850_000), ("SHARD", 2_100_000),
    ])
    def test_listed_prices(self, symbol: str, price: int) -> None:
        assert quote(symbol) == price

    @pytest.mark.parametrize("symbol", sorted(RESTRICTED_SYMBOLS))
    def test_institutional_assets_restricted(self, symbol: str) -> None:
        with pytest.raises(TokenTradingRestrictedError, match="institutional"):
            quote(symbol)

    def test_unknown_symbol_disabled(self) -> None:
        with pytest.raises(TokenTradingRestrictedError, match="disabled"):
            quote("DOGE")

    def test_restricted_never_priced(self) -> None:
        assert not RESTRICTED_SYMBOLS & TOKEN_PRICES.keys()
