from __future__ import annotations

import logging
import threading
from typing import Any, Awaitable, Callable, Dict, Iterable
from uuid import UUID

from src.services.hierarchy import TeamSet, normalize_id

logger = logging.getLogger(__name__)

ComputeTeam = Callable[[], Awaitable[TeamSet]]


class VisibilityCache:
    """
    In-process memo of team hierarchies, keyed per tenant and root user.

    Keys:
      {tenant_id}:{root_user_id}

    Entries never expire; they are dropped by invalidate_user(s) or clear_all.
    One instance is created at application startup (app.state.visibility_cache)
    and handed to request handlers; each process owns its own cache.

    The lock only guards dict access and is never held while a team is being
    computed. Two requests missing the same key both compute and store the same
    value.
    """

    def __init__(self, enabled: bool = True) -> None:
        self._entries: Dict[str, TeamSet] = {}
        self._lock = threading.Lock()
        self.enabled = enabled

    @staticmethod
    def cache_key(tenant_id: UUID | str, root_user_id: int) -> str:
        """Return the cache key for a tenant and root user."""
        return f"{tenant_id}:{root_user_id}"

    # PUBLIC_INTERFACE
    async def get_team(
        self,
        tenant_id: UUID | str,
        root_user_id: Any,
        compute_fn: ComputeTeam,
        *,
        bypass: bool = False,
    ) -> TeamSet:
        """
        Return the team for root_user_id, computing it on a miss.

        Parameters:
            tenant_id: tenant owning the hierarchy
            root_user_id: user whose team is requested
            compute_fn: coroutine factory that reads a fresh org snapshot and
                computes the team
            bypass: skip the cache entirely (reads inside an explicit transaction)
        Returns:
            frozenset of user ids, root inclusive; empty for an invalid root
        """
        root_id = normalize_id(root_user_id)
        if root_id is None:
            return frozenset()

        if bypass or not self.enabled:
            return frozenset(await compute_fn())

        key = self.cache_key(tenant_id, root_id)
        with self._lock:
            cached = self._entries.get(key)
        if cached is not None:
            logger.debug("Team cache hit key=%s size=%d", key, len(cached))
            return cached

        logger.debug("Team cache miss key=%s", key)
        # A failing compute propagates and leaves no entry behind.
        team = frozenset(await compute_fn())
        with self._lock:
            self._entries[key] = team
        return team

    # PUBLIC_INTERFACE
    def invalidate_user(self, user_id: Any) -> int:
        """
        Drop every entry rooted at user_id, in any tenant.

        Entries of other roots whose team contains user_id are kept.
        Returns the number of evicted entries.
        """
        normalized = normalize_id(user_id)
        if normalized is None:
            return 0
        suffix = f":{normalized}"
        with self._lock:
            stale = [key for key in self._entries if key.endswith(suffix)]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.info("Invalidated %d team cache entries for user_id=%s", len(stale), normalized)
        return len(stale)

    # PUBLIC_INTERFACE
    def invalidate_users(self, user_ids: Iterable[Any]) -> int:
        """Invalidate several users; returns the total number of evicted entries."""
        return sum(self.invalidate_user(user_id) for user_id in user_ids)

    # PUBLIC_INTERFACE
    def clear_all(self) -> int:
        """Drop every cached team; returns the number of evicted entries."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cleared team cache (%d entries)", count)
        return count

    def has(self, tenant_id: UUID | str, root_user_id: Any) -> bool:
        """Return True when a team for (tenant_id, root_user_id) is cached."""
        root_id = normalize_id(root_user_id)
        if root_id is None:
            return False
        with self._lock:
            return self.cache_key(tenant_id, root_id) in self._entries

    @property
    def size(self) -> int:
        """Number of cached teams."""
        with self._lock:
            return len(self._entries)
