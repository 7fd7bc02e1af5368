from __future__ import annotations

from typing import TYPE_CHECKING

import msgspec

from ..auth import ExternalIdentity
from ..chat import ChatMessage, ChatUser
from ..errors import AuthRequired
from ..logging import get_logger
from ..options import with_optional_arg
from ..store import ItemNotFound, Store

if TYPE_CHECKING:
    from ..bot import BotBuilder

logger = get_logger(__name__)

SITE = "github"
AUTH_NAMESPACE = "github_auth_data"
LINK_COMMAND = "github link"
MAX_LOGINS = 5


class GithubAuthData(msgspec.Struct):
    user_id: str
    github_login: str = ""
    github_token: str = ""
    login_count: int = 0

    def store_id(self) -> str:
        return self.user_id

    def identity(self) -> ExternalIdentity:
        return ExternalIdentity(
            site=SITE,
            name=self.github_login,
            external_id=self.github_login,
            token=self.github_token,
        )


class GithubAuth:
    """Tracks linked github accounts.

    A link is rejected once it has been used more than ``max_logins`` times; the
    record is then dropped so the user links again from scratch.
    """

    name = SITE

    def __init__(self, store: Store, *, max_logins: int = MAX_LOGINS) -> None:
        self._namespace = store.namespace(AUTH_NAMESPACE)
        self._max_logins = max_logins

    async def authorize(self, user: ChatUser, role: str) -> ExternalIdentity:
        try:
            data = await self._namespace.find_by_id(user.id, GithubAuthData)
        except ItemNotFound:
            data = GithubAuthData(user_id=user.id, github_login=user.name)
            logger.info("github.onboard", user_id=user.id, role=role)

        if data.login_count > self._max_logins:
            await self._namespace.delete(user.id)
            raise AuthRequired(SITE)

        data.login_count += 1
        await self._namespace.save(data)
        return data.identity()


class GithubLinkHandler:
    name = "github_link"

    async def on_message(self, msg: ChatMessage) -> None:
        role = msg.args.string("team") or "someteam"
        identity = await msg.bot.auth_user(msg.user, SITE, role)
        msg.logger.info("github.linked", external_id=identity.external_id, role=role)
        await msg.reply_privately(f"linked to {SITE} as `{identity.name}` ({role})")


class GithubPlugin:
    name = "github"

    def register(self, builder: BotBuilder) -> None:
        builder.add_auth_handler(GithubAuth(builder.store))
        builder.add_message_handler(
            LINK_COMMAND,
            GithubLinkHandler(),
            with_optional_arg("team", "someteam", "team to request access for"),
        )
