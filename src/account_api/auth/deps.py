"""FastAPI dependencies for authentication.

Provides the bearer-token authenticator and the dependencies that hand the
shared issuer and account service to route handlers.
"""

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from account_api.auth.jwt import TokenError, TokenIssuer
from account_api.auth.service import AccountService

logger = logging.getLogger("account-api-auth")

BEARER_PREFIX = "Bearer "


def authenticate(authorization: str | None, issuer: TokenIssuer) -> str | None:
    """Resolve an ``Authorization`` header to a user id.

    Returns None when the header is absent, is not a ``Bearer`` credential,
    or carries a token that fails verification. Callers cannot tell these
    cases apart.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None

    token = authorization[len(BEARER_PREFIX) :]
    try:
        claims = issuer.verify(token)
    except TokenError as e:
        logger.debug("Bearer token rejected: %s", type(e).__name__)
        return None
    return claims.subject


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


async def get_current_user_id(
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """FastAPI dependency returning the authenticated user id.

    Raises:
        HTTPException: 401 if the request is not authenticated.
    """
    user_id = authenticate(authorization, issuer)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


AccountServiceDep = Annotated[AccountService, Depends(get_account_service)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]
