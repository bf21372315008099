"""Client-side order synchronization engine."""

from ordersync.sync.controller import OrderSyncController
from ordersync.sync.ids import TempIdGenerator, is_persisted_id, is_temp_id, next_temp_id
from ordersync.sync.scheduler import CoalescingScheduler
from ordersync.sync.snapshot import EMPTY_SNAPSHOT, compute_snapshot, snapshots_equal
from ordersync.sync.state import OrderStateStore

__all__ = [
    "OrderSyncController",
    "OrderStateStore",
    "CoalescingScheduler",
    "TempIdGenerator",
    "next_temp_id",
    "is_persisted_id",
    "is_temp_id",
    "EMPTY_SNAPSHOT",
    "compute_snapshot",
    "snapshots_equal",
]
