"""
In-memory state of the order being edited.

Four slices:
  current         what the screen shows, including unconfirmed local edits
  confirmed       last state acknowledged by both sides; baseline for "unsent changes"
  pending_server  server update held back while local edits were outstanding
  server          last order received from the server; removal baseline for syncs

current and confirmed each carry a generation counter that their setter bumps,
and their SnapshotCache is keyed on it.
"""

from typing import Optional

from ordersync.models import Order, clone_order
from ordersync.sync.snapshot import EMPTY_SNAPSHOT, Snapshot, SnapshotCache, snapshots_equal


class _Slice:
    def __init__(self) -> None:
        self.order: Optional[Order] = None
        self.generation = 0
        self.cache = SnapshotCache()

    def set(self, order: Optional[Order], snapshot: Optional[Snapshot] = None) -> None:
        self.order = order
        self.generation += 1
        if snapshot is not None:
            self.cache.store(snapshot, self.generation)

    def snapshot(self) -> Snapshot:
        if self.order is None:
            return EMPTY_SNAPSHOT
        return self.cache.get(self.order.items, self.generation)


class OrderStateStore:
    """Owned by the controller; nothing else writes to it."""

    def __init__(self) -> None:
        self._current = _Slice()
        self._confirmed = _Slice()
        self.pending_server: Optional[Order] = None
        self.server: Optional[Order] = None

    @property
    def current(self) -> Optional[Order]:
        return self._current.order

    @property
    def confirmed(self) -> Optional[Order]:
        return self._confirmed.order

    @property
    def current_generation(self) -> int:
        return self._current.generation

    def set_current(self, order: Optional[Order], snapshot: Optional[Snapshot] = None) -> None:
        self._current.set(order, snapshot)

    def set_confirmed(self, order: Optional[Order]) -> None:
        self._confirmed.set(clone_order(order) if order is not None else None)

    def adopt(self, order: Order, snapshot: Optional[Snapshot] = None) -> None:
        """Make order both the displayed and the confirmed state."""
        self.set_current(order, snapshot)
        self.set_confirmed(order)

    def remember_server(self, order: Optional[Order]) -> None:
        self.server = clone_order(order) if order is not None else None

    def current_snapshot(self) -> Snapshot:
        return self._current.snapshot()

    def confirmed_snapshot(self) -> Snapshot:
        return self._confirmed.snapshot()

    def is_synced(self) -> bool:
        """True when the displayed items match the confirmed ones (or either is missing)."""
        if self.current is None or self.confirmed is None:
            return True
        return snapshots_equal(self.confirmed_snapshot(), self.current_snapshot())

    @property
    def has_unsent_changes(self) -> bool:
        return not self.is_synced()

    def clear(self) -> None:
        self._current.set(None)
        self._confirmed.set(None)
        self.pending_server = None
        self.server = None
