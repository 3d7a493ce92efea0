"""Identity resolver abstractions and FastAPI auth dependencies."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Annotated

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from src.config import settings
from src.models.user import Principal, Role
from src.services.errors import AuthenticationError, ForbiddenError

logger = logging.getLogger(__name__)


class IdentityResolver(ABC):
    """Turns a bearer credential into the calling principal."""

    @abstractmethod
    async def resolve_principal(self, credential: str) -> Principal:
        """Return the principal or raise ``AuthenticationError``."""


class JWTIdentityResolver(IdentityResolver):
    """Validates signed tokens issued by the identity service.

    Tokens carry the principal id in ``sub`` and its role in ``role``.
    """

    def __init__(self, *, secret: str, algorithm: str = "HS256") -> None:
        if not secret:
            raise ValueError("A signing secret is required to verify tokens")
        self._secret = secret
        self._algorithm = algorithm

    async def resolve_principal(self, credential: str) -> Principal:
        try:
            claims = jwt.decode(credential, self._secret, algorithms=[self._algorithm])
        except jwt.PyJWTError as exc:
            logger.info("Rejected bearer token: %s", exc)
            raise AuthenticationError("Authentication failed. Invalid token.") from exc

        try:
            return Principal(id=str(claims.get("sub", "")), role=claims.get("role"))
        except ValidationError as exc:
            raise AuthenticationError("Authentication failed. Invalid token.") from exc


_identity_resolver: IdentityResolver = JWTIdentityResolver(
    secret=settings.JWT_SECRET,
    algorithm=settings.JWT_ALGORITHM,
)


def get_identity_resolver() -> IdentityResolver:
    """FastAPI dependency returning the configured identity resolver."""

    return _identity_resolver


_bearer = HTTPBearer(auto_error=False)

ResolverDependency = Annotated[IdentityResolver, Depends(get_identity_resolver)]
CredentialsDependency = Annotated[
    HTTPAuthorizationCredentials | None, Depends(_bearer)
]


async def get_current_principal(
    credentials: CredentialsDependency,
    resolver: ResolverDependency,
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication failed. No token provided.")
    return await resolver.resolve_principal(credentials.credentials)


async def get_optional_principal(
    credentials: CredentialsDependency,
    resolver: ResolverDependency,
) -> Principal | None:
    """Resolve the caller when a valid token is present; guests get None."""

    if credentials is None or not credentials.credentials:
        return None
    try:
        return await resolver.resolve_principal(credentials.credentials)
    except AuthenticationError:
        return None


def require_roles(*roles: Role) -> Callable[..., Awaitable[Principal]]:
    """Build a dependency that admits only principals with one of ``roles``."""

    async def _dependency(
        principal: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        if principal.role not in roles:
            raise ForbiddenError("Access denied for this role")
        return principal

    return _dependency


PrincipalDependency = Annotated[Principal, Depends(get_current_principal)]
OptionalPrincipalDependency = Annotated[
    Principal | None, Depends(get_optional_principal)
]
BuyerDependency = Annotated[Principal, Depends(require_roles(Role.BUYER))]
SellerDependency = Annotated[Principal, Depends(require_roles(Role.SELLER))]
AdminDependency = Annotated[Principal, Depends(require_roles(Role.ADMIN))]
SellerOrAdminDependency = Annotated[
    Principal, Depends(require_roles(Role.SELLER, Role.ADMIN))
]
