"""Device-index reconciliation — pure, store-free.

The index is a plain set and is not kept atomically consistent with the
session records it points to: records expire on their own TTL and a partial
revoke may leave ids behind. Readers reconcile opportunistically by
splitting the index into ids that still have a record and ids that do not.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable


@dataclass(frozen=True)
class IndexReconciliation:
    live: list[str] = field(default_factory=list)
    stale: list[str] = field(default_factory=list)

    @property
    def needs_cleanup(self) -> bool:
        return bool(self.stale)


def reconcile_device_index(
    index_ids: Iterable[str], exists: Callable[[str], bool]
) -> IndexReconciliation:
    """Partition *index_ids* by *exists*; output is sorted for determinism."""
    live: list[str] = []
    stale: list[str] = []
    for device_id in sorted(set(index_ids)):
        (live if exists(device_id) else stale).append(device_id)
    return IndexReconciliation(live=live, stale=stale)
