"""Account lookup with short-lived memoization.

Architectural role:
    Wraps the external persisted-user lookup behind `AccountDirectory` and puts a
    fixed-TTL cache in front of it for the chat coordinator.

Concurrency model:
    `IdentityCache` is only touched from the event loop thread, so every
    read/expiry check/write runs without interleaving. No lock is held across the
    awaited lookup: two concurrent misses for the same user may both hit the
    directory, and the later write simply wins.

Failure model:
    Directory exceptions propagate to the caller. Negative results (`None`) are
    never cached, so a newly created account is visible on the next request.
"""

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from app.core.settings import DEFAULT_SETTINGS


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Account:
    """Resolved user account."""

    user_id: str
    display_name: str | None = None


class AccountDirectory(Protocol):
    """Minimal async interface required from the persisted-user store."""

    async def find_account(self, user_id: str) -> Account | None:
        """Return the account for `user_id`, or `None` when unknown."""
        ...


class StaticAccountDirectory:
    """Directory backed by a fixed allow-list of user ids.

    An empty allow-list accepts every non-empty user id.
    """

    def __init__(self, allowed_user_ids=()):
        self._allowed = frozenset(allowed_user_ids)

    async def find_account(self, user_id: str) -> Account | None:
        if not user_id:
            return None
        if self._allowed and user_id not in self._allowed:
            return None
        return Account(user_id=user_id)


class IdentityCache:
    """Fixed-TTL memoization of account lookups.

    Entries are kept in insertion order, which is also expiry order because
    the TTL is fixed. Every write first drops expired entries from the front
    and then trims the oldest entries beyond `max_entries`, so rotating user
    ids cannot grow the map without bound.

    Args:
        ttl_seconds: Lifetime of a cached entry.
        clock: Monotonic time source, injectable for tests.
        max_entries: Upper bound on live entries.
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 10_000,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: dict[str, tuple[float, Account]] = {}

    def get(self, user_id: str) -> Account | None:
        """Return a fresh cached account, evicting it when expired."""
        entry = self._entries.get(user_id)
        if entry is None:
            return None

        expires_at, account = entry
        if self._clock() >= expires_at:
            del self._entries[user_id]
            return None
        return account

    def put(self, user_id: str, account: Account) -> None:
        now = self._clock()
        self._evict_expired(now)

        # Re-insert so the entry moves to the back of the expiry order.
        self._entries.pop(user_id, None)
        self._entries[user_id] = (now + self.ttl_seconds, account)

        while len(self._entries) > self.max_entries:
            del self._entries[next(iter(self._entries))]

    def _evict_expired(self, now: float) -> None:
        while self._entries:
            oldest = next(iter(self._entries))
            if self._entries[oldest][0] > now:
                break
            del self._entries[oldest]

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_load(
        self,
        user_id: str,
        loader: Callable[[str], Awaitable[Account | None]],
    ) -> Account | None:
        """Return a cached account or load, cache, and return a fresh one."""
        cached = self.get(user_id)
        if cached is not None:
            return cached

        account = await loader(user_id)
        if account is not None:
            self.put(user_id, account)
        return account

    def __len__(self) -> int:
        return len(self._entries)


# =========================================================
# PROCESS DEFAULTS
# =========================================================

_DEFAULT_DIRECTORY: AccountDirectory = StaticAccountDirectory(DEFAULT_SETTINGS.allowed_user_ids)
_IDENTITY_CACHE = IdentityCache(DEFAULT_SETTINGS.identity_cache_ttl_seconds)


def set_account_directory(directory: AccountDirectory) -> None:
    """Replace the process-wide account directory and drop cached accounts."""
    global _DEFAULT_DIRECTORY
    _DEFAULT_DIRECTORY = directory
    _IDENTITY_CACHE.clear()


def get_account_directory() -> AccountDirectory:
    return _DEFAULT_DIRECTORY


async def resolve_account(
    user_id: str | None,
    directory: AccountDirectory | None = None,
    cache: IdentityCache | None = None,
) -> Account | None:
    """Resolve `user_id` through the identity cache.

    Returns:
        The account, or `None` for a missing id or unknown account.
    """
    if not user_id:
        return None

    directory = directory or _DEFAULT_DIRECTORY
    cache = cache if cache is not None else _IDENTITY_CACHE

    account = await cache.get_or_load(user_id, directory.find_account)
    if account is None:
        logger.info("Account lookup returned no account for user_id=%r", user_id)
    return account
