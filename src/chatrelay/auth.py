from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from .chat import ChatUser
from .errors import AuthRequired
from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ExternalIdentity:
    site: str
    name: str
    external_id: str
    token: str = field(default="", repr=False)


class AuthHandler(Protocol):
    """Links chat users to an identity on an external site.

    ``authorize`` raises ``AuthRequired`` when the user has to go through the
    site's authorization flow (again).
    """

    name: str

    async def authorize(self, user: ChatUser, role: str) -> ExternalIdentity: ...


class AuthRegistry:
    def __init__(self) -> None:
        self._handlers: dict[str, AuthHandler] = {}
        self._frozen = False

    def freeze(self) -> None:
        self._frozen = True

    @property
    def sites(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    def add(self, handler: AuthHandler) -> None:
        if self._frozen:
            raise RuntimeError("auth handlers are closed once the bot is built")
        site = handler.name
        if site in self._handlers:
            raise ValueError(f"duplicate auth handler for {site!r}")
        self._handlers[site] = handler

    async def authorize(
        self, user: ChatUser, site: str, role: str
    ) -> ExternalIdentity:
        handler = self._handlers.get(site)
        if handler is None:
            logger.warning("auth.unknown_site", site=site, user_id=user.id)
            raise AuthRequired(site)
        identity = await handler.authorize(user, role)
        logger.debug(
            "auth.authorized",
            site=site,
            role=role,
            user_id=user.id,
            external_id=identity.external_id,
        )
        return identity
