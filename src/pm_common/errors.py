"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: User/Ledger
  3xxx: Market
  5xxx: Settlement
  9xxx: System

Category bases (InvalidInputError, NotFoundError, UnauthorizedError,
InvalidStateError, InsufficientFundsError) let callers handle a whole class of
failures without listing every concrete error.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- Categories ---

class InvalidInputError(AppError):
    def __init__(self, message: str, code: int = 3004) -> None:
        super().__init__(code, message, 400)


class NotFoundError(AppError):
    pass


class UnauthorizedError(AppError):
    pass


class InvalidStateError(AppError):
    pass


class InsufficientFundsError(AppError):
    def __init__(self, required: str, available: str) -> None:
        super().__init__(
            1002,
            f"Insufficient balance: required {required}, available {available}",
            422,
        )


# --- 1xxx: User/Ledger ---

class UserNotFoundError(NotFoundError):
    def __init__(self, address: str) -> None:
        super().__init__(1001, f"User not found: {address}", 404)


class TokenTradingRestrictedError(AppError):
    def __init__(self, symbol: str, reason: str) -> None:
        super().__init__(1003, f"Trading {symbol} is not allowed: {reason}", 403)


class InsufficientHoldingsError(AppError):
    def __init__(self, symbol: str, required: str, available: str) -> None:
        super().__init__(
            1004,
            f"Insufficient {symbol} balance: required {required}, available {available}",
            422,
        )


class BalanceLimitError(AppError):
    def __init__(self, address: str) -> None:
        super().__init__(1007, f"Credit would exceed the balance limit of {address}", 422)


# --- 3xxx: Market ---

class MarketNotFoundError(NotFoundError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3001, f"Market not found: {market_id}", 404)


class OptionNotFoundError(NotFoundError):
    def __init__(self, option_id: str, market_id: str) -> None:
        super().__init__(
            3002, f"Option {option_id} not found in market {market_id}", 404
        )


class MarketClosedError(InvalidStateError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3003, f"Market is closed: {market_id}", 422)


class NotMarketCreatorError(UnauthorizedError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3005, f"Only the creator can delete market {market_id}", 403)


class MarketAlreadyResolvedError(InvalidStateError):
    def __init__(self, market_id: str, winning_option_id: str | None) -> None:
        super().__init__(
            3006,
            f"Market {market_id} is already resolved (winner={winning_option_id})",
            409,
        )


class MarketNotDeletableError(InvalidStateError):
    def __init__(self, market_id: str, status: str) -> None:
        super().__init__(3007, f"Market {market_id} in status {status} cannot be deleted", 409)


class MarketNotResolvableError(InvalidStateError):
    def __init__(self, market_id: str, status: str) -> None:
        super().__init__(3008, f"Market {market_id} in status {status} cannot be resolved", 409)


# --- 5xxx: Settlement ---

class MarketNotResolvedError(InvalidStateError):
    def __init__(self, market_id: str) -> None:
        super().__init__(5001, f"Market not resolved: {market_id}", 422)


class NothingToClaimError(InvalidStateError):
    def __init__(self, market_id: str, user_address: str) -> None:
        super().__init__(
            5002, f"No unclaimed positions for {user_address} in market {market_id}", 422
        )


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
