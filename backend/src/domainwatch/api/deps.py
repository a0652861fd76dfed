"""
Request dependencies: service container and caller identity.

Tokens are issued by the account service. This layer only verifies
the signature and resolves the "sub" claim to a known account.
"""

import logging
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from domainwatch.container import ServiceContainer
from domainwatch.domain.models import Account

logger = logging.getLogger(__name__)

BEARER_SECURITY = HTTPBearer(auto_error=False)


def get_container(request: Request) -> ServiceContainer:
    """Service container attached to the app at startup."""
    return request.app.state.container


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]


async def get_current_account(
    container: ContainerDep,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(BEARER_SECURITY)],
) -> Account:
    """
    Resolve the bearer token to an account.

    Raises:
        HTTPException 401: Missing, invalid or expired token, or unknown account
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    settings = container.settings
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        logger.warning("JWT token expired")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid JWT token: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    account_id = payload.get("sub")
    account = await container.repository.get_account(account_id) if account_id else None
    if account is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return account


CurrentAccount = Annotated[Account, Depends(get_current_account)]
