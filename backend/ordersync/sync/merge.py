"""
Pure edits of a line item list.

None of these functions mutate their input: they return a new list and leave
untouched items shared with the old one. ID generation is injected so the
results are deterministic under test.
"""

import math
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ordersync.models import CustomizationResult, ItemStatus, LineItem, Product

IdGenerator = Callable[[], str]


def normalize_comment(value: Optional[str]) -> str:
    """None -> "", otherwise stripped."""
    return (value or "").strip()


def normalize_quantity(value) -> int:
    """
    Finite numbers are floored with a minimum of 1; anything else becomes 1.

    Examples:
      2.7 -> 2, 0 -> 1, -3 -> 1, nan -> 1, None -> 1
    """
    if value is None or isinstance(value, bool):
        return 1
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(number):
        return 1
    return max(1, math.floor(number))


def same_excluded_ingredients(a: Optional[Iterable[str]], b: Optional[Iterable[str]]) -> bool:
    """Order-insensitive comparison of two exclusion lists."""
    return sorted(a or ()) == sorted(b or ())


def _combined_exclusions(explicit: Iterable[str], defaults: Iterable[str]) -> List[str]:
    combined: List[str] = []
    for name in list(defaults) + list(explicit):
        if name not in combined:
            combined.append(name)
    return combined


def merge_into_pending(
    items: Sequence[LineItem],
    product: Product,
    customization: CustomizationResult,
    id_generator: IdGenerator,
    default_exclusions: Iterable[str] = (),
) -> List[LineItem]:
    """
    Fold a customized product into the item list.

    A pending item with the same product, normalized comment and exclusion set
    absorbs the new quantity; otherwise a new pending item with a temporary ID
    is appended.
    """
    comment = normalize_comment(customization.comment)
    quantity = normalize_quantity(customization.quantity)
    exclusions = _combined_exclusions(customization.excluded_ingredients, default_exclusions)

    for index, item in enumerate(items):
        if (
            item.product_id == product.id
            and item.status == ItemStatus.PENDING
            and normalize_comment(item.comment) == comment
            and same_excluded_ingredients(item.excluded_ingredients, exclusions)
        ):
            merged = item.model_copy(update={"quantity": item.quantity + quantity})
            return [merged if i == index else existing for i, existing in enumerate(items)]

    new_item = LineItem(
        id=id_generator(),
        product_id=product.id,
        product_name=product.name,
        unit_price=product.price,
        quantity=quantity,
        comment=comment,
        excluded_ingredients=exclusions,
        status=ItemStatus.PENDING,
    )
    return [*items, new_item]


def change_quantity(items: Sequence[LineItem], item_id: str, delta: int) -> List[LineItem]:
    """Add delta to one item's quantity; a result <= 0 removes the item."""
    target = next((item for item in items if item.id == item_id), None)
    if target is None:
        return list(items)

    new_quantity = target.quantity + delta
    if new_quantity <= 0:
        return [item for item in items if item.id != item_id]

    return [
        item.model_copy(update={"quantity": new_quantity}) if item.id == item_id else item
        for item in items
    ]


def set_comment(
    items: Sequence[LineItem],
    item_id: str,
    comment: str,
    id_generator: IdGenerator,
) -> Tuple[List[LineItem], Optional[str]]:
    """
    Attach a comment to an item.

    Commenting one unit of an uncommented multi-unit line splits that unit off
    into its own line (with a new temporary ID) so the rest keep no comment.
    Returns the new list and the ID of the line that now carries the comment,
    or None when item_id is unknown.
    """
    index = next((i for i, item in enumerate(items) if item.id == item_id), None)
    if index is None:
        return list(items), None

    target = items[index]
    updated = list(items)
    if target.quantity > 1 and not target.comment and comment:
        updated[index] = target.model_copy(update={"quantity": target.quantity - 1})
        split = target.model_copy(update={"id": id_generator(), "quantity": 1, "comment": comment})
        updated.append(split)
        return updated, split.id

    updated[index] = target.model_copy(update={"comment": comment})
    return updated, target.id


def pending_quantities_by_product(items: Iterable[LineItem]) -> Dict[str, int]:
    """Total pending quantity per product, for cart badges on the product grid."""
    quantities: Dict[str, int] = {}
    for item in items:
        if item.status != ItemStatus.PENDING:
            continue
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
    return quantities


def _equivalence_key(item: LineItem) -> Tuple:
    return (
        item.product_id,
        normalize_comment(item.comment),
        tuple(sorted(item.excluded_ingredients or ())),
        item.quantity,
        item.status.value,
    )


def match_persisted_ids(sent: Sequence[LineItem], returned: Sequence[LineItem]) -> Dict[str, str]:
    """
    Map the IDs of items sent in a write to the IDs the server returned for them.

    Items keeping their ID are matched first; each remaining sent item takes
    the first unclaimed returned item with the same product, comment,
    exclusions, quantity and status.
    """
    returned_ids = {item.id for item in returned}
    unclaimed = [item for item in returned if item.id not in {s.id for s in sent}]
    mapping: Dict[str, str] = {}
    for item in sent:
        if item.id in returned_ids:
            continue
        key = _equivalence_key(item)
        match = next((candidate for candidate in unclaimed if _equivalence_key(candidate) == key), None)
        if match is not None:
            unclaimed.remove(match)
            mapping[item.id] = match.id
    return mapping


def migrate_temp_ids(items: Sequence[LineItem], id_map: Dict[str, str]) -> List[LineItem]:
    """
    Replace temporary IDs with the persisted IDs in id_map.

    A mapped ID already held by another item in the list is not reused: that
    item keeps its temporary ID and will be inserted by the next write.
    """
    taken = {item.id for item in items}
    migrated: List[LineItem] = []
    for item in items:
        new_id = id_map.get(item.id)
        if new_id is not None and new_id not in taken:
            taken.add(new_id)
            migrated.append(item.model_copy(update={"id": new_id}))
        else:
            migrated.append(item)
    return migrated
