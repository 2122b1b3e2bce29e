"""Demo token desk for the wallet side feature.

Prices are fixed (micros per whole token). Institutional assets are never
tradable here; anything not in the price table is disabled.
"""

from src.pm_common.errors import TokenTradingRestrictedError

TOKEN_PRICES: dict[str, int] = {
    "LINERA": 1_250_000,
    "MICRO": 850_000,
    "SHARD": 2_100_000,
}

RESTRICTED_SYMBOLS = frozenset({"BTC", "ETH", "SOL", "LINK", "POL", "MATIC"})


def quote(symbol: str) -> int:
    """Price in micros for one token of `symbol` (already upper-cased)."""
    if symbol in RESTRICTED_SYMBOLS:
        raise TokenTradingRestrictedError(symbol, "institutional asset trading is restricted")
    price = TOKEN_PRICES.get(symbol)
    if price is None:
        raise TokenTradingRestrictedError(symbol, "trading for this asset is disabled")
    return price
