"""Global, per-principal, and per-resource invalidation across both tiers.

Keys put the resource type first and the principal hash last (see
:mod:`hubcache.cache.keys`), so every invalidation here is a predicate on
those components and never touches another principal's entries.
"""

from __future__ import annotations

import logging
from typing import Callable

from hubcache.cache.durable import DurableTier, ScanResult
from hubcache.cache.keys import (
    ResourceTypeLike,
    Scope,
    build_principal_key,
    principal_of,
    resource_type_of,
    validate_resource_type,
)
from hubcache.cache.memory import MemoryTier
from hubcache.models import SCOPE_PARAMETERS, InvalidationResult

logger = logging.getLogger(__name__)


class InvalidationController:
    """Remove entries from the memory and durable tiers together.

    Memory is cleared before the durable scan starts. If the durable
    directory cannot be listed, :class:`~hubcache.exceptions.CacheDirectoryError`
    propagates after the memory tier has already been invalidated.
    """

    def __init__(self, memory: MemoryTier, durable: DurableTier) -> None:
        self._memory = memory
        self._durable = durable

    def invalidate_all(self) -> InvalidationResult:
        """Drop every entry in both tiers. Safe to repeat on an empty cache."""
        memory_removed = self._memory.clear()
        scan = self._durable.delete_all()
        logger.info(
            "Invalidated all cache entries (%d memory, %d durable)",
            memory_removed,
            scan.removed,
        )
        return InvalidationResult(
            requested_scope="all",
            applied_scope="all",
            memory_removed=memory_removed,
            durable_removed=scan.removed,
            failed=scan.failed,
        )

    def invalidate_scope(self, principal_hash: str) -> InvalidationResult:
        """Drop every entry that belongs to *principal_hash*."""
        return self._remove_matching(
            lambda key: principal_of(key) == principal_hash,
            requested_scope="principal",
            applied_scope="principal",
            principal_hash=principal_hash,
        )

    def invalidate_type(
        self, resource_type: ResourceTypeLike, scope: Scope, principal_hash: str
    ) -> InvalidationResult:
        """Drop entries of one resource type for one principal.

        * No scope: every entry of *resource_type* for the principal.
        * A scope naming every parameter the type needs: that single entry.
        * A partial scope: the key cannot be resolved, so this falls back to
          :meth:`invalidate_scope` and says so in ``applied_scope`` and
          ``note``.

        Raises:
            ValueError: If *scope* names a parameter a known type does not
                take (``repositories`` takes none).
        """
        rtype = validate_resource_type(resource_type)
        if not scope:
            return self._remove_matching(
                lambda key: resource_type_of(key) == rtype and principal_of(key) == principal_hash,
                requested_scope="type",
                applied_scope="type",
                principal_hash=principal_hash,
            )

        required = SCOPE_PARAMETERS.get(rtype)
        if required is not None:
            unknown = sorted(name for name in scope if name not in required)
            if unknown:
                accepted = ", ".join(required) or "none"
                raise ValueError(
                    f"'{rtype}' does not take scope parameter(s) {', '.join(unknown)} "
                    f"(accepted: {accepted})"
                )
        missing = [name for name in required if name not in scope] if required else []
        if missing:
            result = self.invalidate_scope(principal_hash)
            result.requested_scope = "entry"
            result.note = (
                f"Scope for '{rtype}' is missing {', '.join(missing)}; "
                "invalidated every entry for this principal instead."
            )
            logger.info("Widened %s invalidation to principal scope", rtype)
            return result

        key = build_principal_key(rtype, scope, principal_hash)
        memory_removed = int(self._memory.delete(key))
        durable_removed = failed = 0
        try:
            durable_removed = int(self._durable.delete(key))
        except OSError as exc:
            logger.warning("Failed to remove durable entry for %s: %s", rtype, exc)
            failed = 1
        return InvalidationResult(
            requested_scope="entry",
            applied_scope="entry",
            principal_hash=principal_hash,
            memory_removed=memory_removed,
            durable_removed=durable_removed,
            failed=failed,
        )

    def _remove_matching(
        self,
        predicate: Callable[[str], bool],
        requested_scope: str,
        applied_scope: str,
        principal_hash: str,
    ) -> InvalidationResult:
        memory_removed = self._memory.delete_matching(predicate)
        scan: ScanResult = self._durable.delete_matching(predicate)
        logger.info(
            "Invalidated %s cache entries for principal %s (%d memory, %d durable)",
            applied_scope,
            principal_hash,
            memory_removed,
            scan.removed,
        )
        return InvalidationResult(
            requested_scope=requested_scope,
            applied_scope=applied_scope,
            principal_hash=principal_hash,
            memory_removed=memory_removed,
            durable_removed=scan.removed,
            failed=scan.failed,
        )
