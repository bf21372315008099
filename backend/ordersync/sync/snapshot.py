"""
Value-comparable fingerprints of line item lists.

A snapshot ignores item IDs and item order: it is the sorted tuple of
(status, product, comment, exclusions, quantity) entries. The status is part
of every entry, so a pending item never equals a sent one.
"""

from typing import Iterable, NamedTuple, Optional, Tuple

from ordersync.models import LineItem


class SnapshotEntry(NamedTuple):
    status: str
    product_id: str
    comment: str
    excluded_ingredients: Tuple[str, ...]
    quantity: int


Snapshot = Tuple[SnapshotEntry, ...]

EMPTY_SNAPSHOT: Snapshot = ()


def _entry_for(item: LineItem) -> SnapshotEntry:
    return SnapshotEntry(
        status=item.status.value,
        product_id=item.product_id,
        comment=(item.comment or "").strip(),
        excluded_ingredients=tuple(sorted(item.excluded_ingredients or ())),
        quantity=item.quantity,
    )


def compute_snapshot(items: Optional[Iterable[LineItem]]) -> Snapshot:
    """Project items into a snapshot. Empty input returns EMPTY_SNAPSHOT itself."""
    if not items:
        return EMPTY_SNAPSHOT
    entries = sorted(_entry_for(item) for item in items)
    if not entries:
        return EMPTY_SNAPSHOT
    return tuple(entries)


def snapshots_equal(a: Snapshot, b: Snapshot) -> bool:
    return a is b or a == b


class SnapshotCache:
    """
    Holds the snapshot of one state slice, keyed by the slice's generation.

    The owner bumps its generation whenever it replaces the items; get() only
    recomputes when the generation it was last called with has changed.
    """

    def __init__(self) -> None:
        self._generation: Optional[int] = None
        self._snapshot: Snapshot = EMPTY_SNAPSHOT
        self.computations = 0

    def get(self, items: Optional[Iterable[LineItem]], generation: int) -> Snapshot:
        if self._generation == generation:
            return self._snapshot
        return self.store(compute_snapshot(items), generation)

    def store(self, snapshot: Snapshot, generation: int) -> Snapshot:
        self._snapshot = snapshot
        self._generation = generation
        self.computations += 1
        return snapshot

    def invalidate(self) -> None:
        self._generation = None
        self._snapshot = EMPTY_SNAPSHOT
