"""FastAPI dependencies for the caller's self-declared identity.

There is no authentication: the web client sends its wallet address in the
X-User-Id header and the core trusts it. Privileged checks (market deletion)
compare this value with the market's creator.
"""

from typing import Annotated

from fastapi import Header

from src.pm_common.errors import UnauthorizedError


async def get_requester_id(
    x_user_id: Annotated[str | None, Header(alias="X-User-Id")] = None,
) -> str | None:
    if x_user_id is None or not x_user_id.strip():
        return None
    return x_user_id.strip()


async def require_requester_id(
    x_user_id: Annotated[str | None, Header(alias="X-User-Id")] = None,
) -> str:
    """Like get_requester_id but rejects anonymous callers."""
    requester = await get_requester_id(x_user_id)
    if requester is None:
        raise UnauthorizedError(1006, "X-User-Id header is required", 401)
    return requester
