"""Service that resolves who the current caller is."""

from __future__ import annotations

import logging
from typing import Protocol

from cqbot.core.errors import ApiError
from cqbot.core.models import AuthStatus, Identity

logger = logging.getLogger(__name__)


class IdentityApi(Protocol):
    async def get_identity(self) -> Identity: ...

    async def logout(self) -> None: ...


class IdentityGate:
    """Holds the authentication gate state: loading until resolved, then in or out."""

    def __init__(self, api: IdentityApi) -> None:
        self._api = api
        self._status = AuthStatus.LOADING
        self._identity = Identity.anonymous()

    @property
    def status(self) -> AuthStatus:
        return self._status

    @property
    def identity(self) -> Identity:
        return self._identity

    def is_authenticated(self) -> bool:
        return self._status is AuthStatus.AUTHENTICATED

    def is_instructor(self) -> bool:
        return self.is_authenticated() and self._identity.is_instructor

    async def resolve(self) -> Identity:
        """Ask the auth service once; any failure resolves to unauthenticated."""
        self._status = AuthStatus.LOADING
        try:
            identity = await self._api.get_identity()
        except ApiError as exc:
            logger.info("Identity check failed, treating caller as signed out: %s", exc)
            identity = Identity.anonymous()
        self._apply(identity)
        return self._identity

    async def logout(self) -> None:
        """Request remote invalidation, then sign out locally whatever the result."""
        try:
            await self._api.logout()
        except ApiError as exc:
            logger.warning("Remote logout failed; signing out locally anyway: %s", exc)
        finally:
            self._apply(Identity.anonymous())

    def _apply(self, identity: Identity) -> None:
        self._identity = identity
        self._status = AuthStatus.AUTHENTICATED if identity.authenticated else AuthStatus.UNAUTHENTICATED
