"""Bearer credential gate for protected routes.

The gate only checks that a credential is presented in the expected form:
an ``Authorization`` header starting with ``"Bearer "``. Tokens are not
decoded, verified or checked for expiry here.

Usage:
    @router.get("/protected", dependencies=[Depends(require_bearer_token)])
    async def protected_endpoint():
        ...
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Header, Request

from app.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def has_bearer_credentials(authorization: str | None) -> bool:
    """Return True when the header value carries a ``Bearer`` credential.

    Examples:
        >>> has_bearer_credentials("Bearer abc")
        True
        >>> has_bearer_credentials("bearer abc")
        False
        >>> has_bearer_credentials(None)
        False
    """
    return bool(authorization) and authorization.startswith(BEARER_PREFIX)


async def require_bearer_token(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """FastAPI dependency rejecting requests without a bearer credential.

    Raises:
        AuthenticationAppError: 401 when the header is missing or malformed.
    """
    if has_bearer_credentials(authorization):
        return

    logger.warning(
        "auth.rejected",
        extra={
            "reason": "missing_header" if not authorization else "malformed_header",
            "request_path": request.url.path,
        },
    )
    raise AuthenticationAppError()
