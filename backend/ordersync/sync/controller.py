"""
Reconciliation controller for the order screen of one table.

Local edits are applied optimistically and written to the server after a
debounce; server refresh events are adopted right away when nothing local is
outstanding, otherwise held back as pending_server and replayed once the local
state is synced again.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Set, Union

from ordersync.client.base import OrderApi
from ordersync.config import Settings, get_settings
from ordersync.errors import OrderApiError
from ordersync.models import (
    CustomizationResult,
    KitchenStatus,
    LineItem,
    Order,
    OrderItemsUpdate,
    PaymentMethod,
    Product,
)
from ordersync.notifications import ORDERS_UPDATED
from ordersync.sync import merge
from ordersync.sync.ids import is_persisted_id, next_temp_id
from ordersync.sync.merge import IdGenerator
from ordersync.sync.scheduler import CoalescingScheduler
from ordersync.sync.snapshot import compute_snapshot, snapshots_equal
from ordersync.sync.state import OrderStateStore

logger = logging.getLogger(__name__)

ItemsUpdater = Union[Callable[[List[LineItem]], Iterable[LineItem]], Iterable[LineItem]]
ErrorCallback = Callable[[str, Exception], None]
ReceiptUploader = Callable[[str, bytes], Awaitable[str]]


def _unpersisted_pending(order: Order) -> List[LineItem]:
    return [item for item in order.pending_items() if not is_persisted_id(item.id)]


class OrderSyncController:
    """
    Keeps the displayed order of a table consistent with the server.

    Usage:
        controller = OrderSyncController(api, table_id, on_navigate=go_back)
        await controller.load()
        controller.add_product(product, CustomizationResult(quantity=2))
        ...
        await controller.close()
    """

    def __init__(
        self,
        api: OrderApi,
        table_id: str,
        *,
        settings: Optional[Settings] = None,
        id_generator: Optional[IdGenerator] = None,
        on_error: Optional[ErrorCallback] = None,
        on_navigate: Optional[Callable[[], None]] = None,
        receipt_uploader: Optional[ReceiptUploader] = None,
    ):
        self.api = api
        self.table_id = table_id
        self.settings = settings or get_settings()
        self.store = OrderStateStore()
        self.scheduler = CoalescingScheduler(
            self._run_scheduled_sync,
            default_delay=self.settings.sync_debounce_seconds,
        )
        self._id_generator = id_generator or next_temp_id
        self._on_error = on_error
        self._on_navigate = on_navigate
        self._receipt_uploader = receipt_uploader
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._refresh_tasks: Set[asyncio.Task] = set()
        self._detached = False
        self._leaving = False
        self.is_sending_to_kitchen = False

    # ---- derived views ----

    @property
    def order(self) -> Optional[Order]:
        return self.store.current

    @property
    def has_unsent_changes(self) -> bool:
        return self.store.has_unsent_changes

    def pending_quantities(self) -> Dict[str, int]:
        if self.store.current is None:
            return {}
        return merge.pending_quantities_by_product(self.store.current.items)

    def needs_exit_confirmation(self) -> bool:
        order = self.store.current
        if order is None:
            return False
        if order.kitchen_status == KitchenStatus.NOT_SENT and order.items:
            return True
        return self.store.has_unsent_changes

    # ---- server -> local ----

    async def load(self) -> Order:
        """Fetch (or open) the table's order and start listening for refresh events."""
        order = await self.api.create_or_get_order(self.table_id)
        self.store.pending_server = None
        self.store.remember_server(order)
        self.store.adopt(order)
        self._detached = False
        if self._unsubscribe is None:
            self._unsubscribe = self.api.notifications.subscribe(ORDERS_UPDATED, self._on_orders_updated)
        logger.info("Loaded order %s for table %s (%d items)", order.id, self.table_id, len(order.items))
        return order

    async def refresh(self, force: bool = False) -> Order:
        order = await self.api.create_or_get_order(self.table_id)
        self.receive_server_order(order, force=force)
        return order

    def receive_server_order(self, order: Order, force: bool = False) -> None:
        """Adopt, drop or defer an order pushed by the server."""
        self.store.remember_server(order)

        if force or self.store.is_synced():
            self.store.pending_server = None
            self.store.adopt(order)
            return

        if self.store.confirmed is not None and self.store.confirmed == order:
            self.store.pending_server = None
            return

        if self.store.pending_server is not None:
            logger.debug("Replacing deferred server update for order %s", order.id)
        self.store.pending_server = order.model_copy(deep=True)

    def _accepts_refresh(self) -> bool:
        return not (self._detached or self._leaving)

    def _on_orders_updated(self) -> None:
        if not self._accepts_refresh():
            return
        task = asyncio.ensure_future(self._refresh_in_background())
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    async def _refresh_in_background(self) -> None:
        # The screen may have been left between the event and this task running.
        if not self._accepts_refresh():
            return
        try:
            await self.refresh()
        except OrderApiError as exc:
            logger.warning("Background refresh of table %s failed: %s", self.table_id, exc)

    def _reconcile_pending(self) -> None:
        """Replay a deferred server order once local state is synced."""
        pending = self.store.pending_server
        if pending is None or not self.store.is_synced():
            return

        self.store.pending_server = None
        self.store.remember_server(pending)
        pending_snapshot = compute_snapshot(pending.items)
        if snapshots_equal(self.store.current_snapshot(), pending_snapshot):
            return
        self.store.adopt(pending, pending_snapshot)

    # ---- local edits ----

    def _apply_optimistic(self, updater: ItemsUpdater) -> Optional[Order]:
        current = self.store.current
        if current is None:
            return None
        items = updater(list(current.items)) if callable(updater) else updater
        self.store.set_current(current.with_items(items))
        self._reconcile_pending()
        return self.store.current

    def apply_local_edit(self, updater: ItemsUpdater) -> Optional[Order]:
        """Apply an edit immediately and (re)arm the debounced sync."""
        order = self._apply_optimistic(updater)
        if order is not None:
            self.scheduler.schedule()
        return order

    def add_product(
        self,
        product: Product,
        customization: Optional[CustomizationResult] = None,
        default_exclusions: Optional[Sequence[str]] = None,
    ) -> Optional[Order]:
        if customization is None:
            customization = CustomizationResult()
        if default_exclusions is None:
            default_exclusions = product.default_excluded_ingredients
        return self.apply_local_edit(
            lambda items: merge.merge_into_pending(
                items, product, customization, self._id_generator, default_exclusions
            )
        )

    def change_quantity(self, item_id: str, delta: int) -> Optional[Order]:
        return self.apply_local_edit(lambda items: merge.change_quantity(items, item_id, delta))

    def edit_comment(self, item_id: str, comment: str) -> Optional[str]:
        """
        Local-only comment edit; persist_comments() writes it.

        Returns the ID of the line carrying the comment (a new one when a unit
        was split off), or None when item_id is unknown.
        """
        current = self.store.current
        if current is None:
            return None
        items, edited_id = merge.set_comment(current.items, item_id, comment, self._id_generator)
        if edited_id is not None:
            self._apply_optimistic(items)
        return edited_id

    async def persist_comments(self) -> Optional[Order]:
        return await self.update_items()

    # ---- local -> server ----

    async def update_items(
        self,
        updater: Optional[ItemsUpdater] = None,
        removal_source: Optional[Sequence[LineItem]] = None,
    ) -> Optional[Order]:
        """
        Optionally apply updater, then write the current items.

        removal_source is the list whose persisted IDs are deleted when absent
        from the written items; it defaults to the items before updater ran.
        Items confirmed by the time the write runs count as well, so an item
        persisted by an earlier queued write and removed meanwhile is deleted.
        Writes are queued behind any write already in flight.
        """
        current = self.store.current
        if current is None:
            return None
        baseline = list(removal_source) if removal_source is not None else list(current.items)
        if updater is not None:
            self._apply_optimistic(updater)
        order_id = current.id
        return await self.scheduler.run_exclusive(lambda: self._sync_cycle(order_id, baseline))

    async def _run_scheduled_sync(self) -> None:
        current = self.store.current
        if current is None:
            return
        server = self.store.server
        baseline = server.items if server is not None else current.items
        await self.update_items(removal_source=list(baseline))

    async def _sync_cycle(self, order_id: str, removal_source: Sequence[LineItem]) -> Optional[Order]:
        current = self.store.current
        if current is None or current.id != order_id:
            return None

        generation = self.store.current_generation
        sent_items = list(current.items)
        sent_ids = {item.id for item in sent_items}
        baseline = list(removal_source)
        confirmed = self.store.confirmed
        if confirmed is not None and confirmed.id == order_id:
            baseline.extend(confirmed.items)
        removed_ids: List[str] = []
        for item in baseline:
            if is_persisted_id(item.id) and item.id not in sent_ids and item.id not in removed_ids:
                removed_ids.append(item.id)

        try:
            if self.store.server is None and self.store.pending_server is None:
                latest = await self.api.get_order(order_id)
                if latest is not None:
                    self.store.remember_server(latest)
            updated = await self.api.update_order(
                order_id,
                OrderItemsUpdate(items=sent_items, removed_item_ids=removed_ids),
                notify=False,
            )
        except OrderApiError as exc:
            logger.error("Failed to update order %s: %s", order_id, exc)
            self._report_error("The order could not be updated.", exc)
            await self._refetch_after_failure()
            return None

        self.store.remember_server(updated)
        if self.store.current_generation == generation:
            self.store.adopt(updated)
        else:
            # Edits made during the write stay in current; only IDs are carried over.
            self.store.set_confirmed(updated)
            id_map = merge.match_persisted_ids(sent_items, updated.items)
            latest_local = self.store.current
            if id_map and latest_local is not None:
                self.store.set_current(
                    latest_local.with_items(merge.migrate_temp_ids(latest_local.items, id_map))
                )
        self._reconcile_pending()
        logger.debug(
            "Synced order %s: %d items, %d removed", order_id, len(sent_items), len(removed_ids)
        )
        return self.store.current

    async def _refetch_after_failure(self) -> None:
        try:
            await self.refresh(force=True)
        except OrderApiError as exc:
            logger.error("Refetch after failed sync of table %s also failed: %s", self.table_id, exc)

    def _report_error(self, message: str, exc: Exception) -> None:
        if self._on_error is not None:
            self._on_error(message, exc)

    # ---- terminal actions ----

    async def send_to_kitchen(self) -> Optional[Order]:
        """Write outstanding edits, then send every pending item to the kitchen."""
        if self.store.current is None or self.is_sending_to_kitchen:
            return None

        self.is_sending_to_kitchen = True
        try:
            # An armed edit is written now; writes already queued land first.
            await self.scheduler.flush()
            attempts = 0
            latest = self.store.current
            while (
                latest is not None
                and (self.store.has_unsent_changes or _unpersisted_pending(latest))
                and attempts < self.settings.sync_drain_max_attempts
            ):
                attempts += 1
                await self.update_items()
                latest = self.store.current

            if latest is None:
                return None

            pending = latest.pending_items()
            if not pending:
                logger.info("Nothing to send to the kitchen for order %s", latest.id)
                return None

            unpersisted = _unpersisted_pending(latest)
            if unpersisted:
                logger.warning(
                    "Kitchen submission of order %s aborted: %d pending item(s) still without a "
                    "persisted ID after %d sync attempt(s)",
                    latest.id,
                    len(unpersisted),
                    attempts,
                )
                return None

            try:
                item_ids = [item.id for item in pending]
                updated = await self.scheduler.run_exclusive(
                    lambda: self.api.send_to_kitchen(latest.id, item_ids)
                )
            except OrderApiError as exc:
                logger.error("Failed to send order %s to the kitchen: %s", latest.id, exc)
                self._report_error("The order could not be sent to the kitchen.", exc)
                return None

            self.store.pending_server = None
            self.store.remember_server(updated)
            self.store.adopt(updated)
            logger.info("Sent %d item(s) of order %s to the kitchen", len(pending), updated.id)
            self._leave()
            return updated
        finally:
            self.is_sending_to_kitchen = False

    async def mark_served(self) -> Optional[Order]:
        current = self.store.current
        if current is None:
            return None
        try:
            updated = await self.api.mark_served(current.id)
        except OrderApiError as exc:
            logger.error("Failed to mark order %s as served: %s", current.id, exc)
            self._report_error("The order could not be marked as served.", exc)
            return None
        self.receive_server_order(updated)
        self._reconcile_pending()
        return self.store.current

    async def finalize(
        self,
        payment_method: PaymentMethod,
        receipt: Optional[bytes] = None,
    ) -> Optional[Order]:
        """Record payment (uploading an optional receipt first) and leave the screen."""
        current = self.store.current
        if current is None:
            return None

        receipt_url = current.payment_receipt_url
        if receipt is not None and self._receipt_uploader is not None:
            try:
                receipt_url = await self._receipt_uploader(current.id, receipt)
            except Exception as exc:
                logger.error("Receipt upload for order %s failed, finalizing without it: %r", current.id, exc)

        self._leaving = True
        try:
            final = await self.api.finalize(current.id, payment_method, receipt_url)
        except OrderApiError as exc:
            self._leaving = False
            logger.error("Failed to finalize order %s: %s", current.id, exc)
            self._report_error("The order could not be finalized.", exc)
            return None

        self.store.pending_server = None
        self.store.remember_server(final)
        self.store.adopt(final)
        logger.info("Finalized order %s (%s, total %.2f)", final.id, payment_method.value, final.total)
        self._leave()
        return final

    async def confirm_exit(self) -> None:
        """
        The waiter confirmed leaving with unsent work.

        A wholly unsent order is deleted server-side; otherwise the items are
        rolled back to the confirmed state. Failures are logged, and the screen
        is left regardless.
        """
        order = self.store.current
        confirmed = self.store.confirmed
        self._leaving = True
        self.scheduler.cancel()
        try:
            if order is not None and order.kitchen_status == KitchenStatus.NOT_SENT:
                await self.scheduler.run_exclusive(lambda: self.api.cancel_unsent_order(order.id))
            elif confirmed is not None and self.store.has_unsent_changes:
                await self.update_items(list(confirmed.items))
        except OrderApiError as exc:
            logger.error("Failed to discard unsent changes of table %s: %s", self.table_id, exc)
        finally:
            await self.close()
            self._leave()

    def _detach(self) -> None:
        self._detached = True
        self.scheduler.cancel()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _leave(self) -> None:
        self._detach()
        if self._on_navigate is not None:
            self._on_navigate()

    async def close(self) -> None:
        """Stop listening, drop the armed timer and wait for in-flight work."""
        self._detach()
        await self.scheduler.close()
        if self._refresh_tasks:
            await asyncio.gather(*list(self._refresh_tasks), return_exceptions=True)
