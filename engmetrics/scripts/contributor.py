"""
Contributor Identity Resolver

Derives a canonical contributor from a provider user payload and upserts
it. The idempotency key is (provider, email); when the payload carries no
email a synthetic one is derived from the most stable identifier present:

    explicit email  ->  {accountId}@{provider}.local  ->  {login|username}@{provider}.local

Payloads of every provider shape are accepted (GitHub users, git commit
authors, Jira Cloud and Data Center users).
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from engmetrics.core.logging_config import get_logger
from engmetrics.domain.enums import Provider
from engmetrics.storage import StorageHandle

logger = get_logger(__name__)

HANDLE_FIELDS = ("login", "username", "key", "name")


@dataclass(frozen=True)
class ContributorIdentity:
    provider: str
    email: str
    name: str
    username: str | None = None
    provider_user_id: str | None = None
    avatar_url: str | None = None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _avatar(user: Mapping[str, Any]) -> str | None:
    if user.get("avatar_url"):
        return str(user["avatar_url"])
    avatars = user.get("avatarUrls")
    if isinstance(avatars, Mapping):
        return _text(avatars.get("48x48"))
    return None


def resolve_identity(provider: Provider | str, user: Mapping[str, Any] | None) -> ContributorIdentity | None:
    """
    Compute the canonical identity of a provider user.

    Args:
        provider: Provider enum or its value (e.g. "JIRA")
        user: Raw user payload; None means "no user" (unassigned issue)

    Returns:
        ContributorIdentity, or None only when there is no payload at all

    Example:
        >>> resolve_identity("JIRA", {"accountId": "user-123", "displayName": "Ada"}).email
        'user-123@jira.local'
    """
    if not user:
        return None

    provider_value = provider.value if isinstance(provider, Provider) else str(provider)
    domain = f"{provider_value.lower()}.local"

    account_id = _text(user.get("accountId"))
    handle = next((text for text in (_text(user.get(field)) for field in HANDLE_FIELDS) if text), None)
    numeric_id = _text(user.get("id"))

    email = _text(user.get("email")) or _text(user.get("emailAddress"))
    if not email:
        identifier = account_id or handle or numeric_id or "unknown"
        email = f"{identifier}@{domain}"

    name = (
        _text(user.get("displayName"))
        or _text(user.get("name"))
        or _text(user.get("login"))
        or _text(user.get("username"))
        or "Unknown"
    )

    return ContributorIdentity(
        provider=provider_value,
        email=email.lower(),
        name=name,
        username=_text(user.get("login")) or _text(user.get("username")) or _text(user.get("name")),
        provider_user_id=account_id or numeric_id or _text(user.get("key")),
        avatar_url=_avatar(user),
    )


class ContributorResolver:
    """
    Resolve provider users to contributor ids, upserting as needed.

    Resolutions are memoised for the lifetime of the resolver (one script
    run), so a user referenced by many records costs one upsert.

    Example:
        resolver = ContributorResolver(storage, Provider.JIRA)
        assignee_id = resolver.resolve(fields.get("assignee"))
    """

    def __init__(self, storage: StorageHandle, provider: Provider | str):
        self.storage = storage
        self.provider = provider
        self._cache: dict[str, str] = {}

    def resolve(self, user: Mapping[str, Any] | None) -> str | None:
        """
        Returns:
            Contributor id, or None when the payload is absent
        """
        identity = resolve_identity(self.provider, user)
        if identity is None:
            return None

        cached = self._cache.get(identity.email)
        if cached:
            return cached

        update: dict[str, Any] = {"name": identity.name}
        if identity.avatar_url:
            update["avatar_url"] = identity.avatar_url

        row = self.storage.contributors.upsert(
            {"provider": identity.provider, "email": identity.email},
            create={
                "name": identity.name,
                "username": identity.username,
                "provider_user_id": identity.provider_user_id,
                "avatar_url": identity.avatar_url,
            },
            update=update,
        )
        self._cache[identity.email] = row["id"]
        return row["id"]
