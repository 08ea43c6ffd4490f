# equiploan/core/availability.py
"""
Stock arithmetic for items.

``available_quantity`` only moves through these helpers so that it always
stays within ``0 <= available_quantity <= quantity``.
"""
import logging

from equiploan.core.errors import InsufficientStockError
from equiploan.models.item import Item

logger = logging.getLogger(__name__)


def clamp_available(available: int, total: int) -> int:
    return max(0, min(available, total))


def can_request(item: Item, quantity: int) -> bool:
    """A new request may only be filed against an enabled item with enough units on hand."""
    return item.is_available and item.available_quantity >= quantity


def can_reserve(item: Item, quantity: int) -> bool:
    return item.available_quantity >= quantity


def reserve(available: int, quantity: int) -> int:
    """Units left after handing ``quantity`` out. Never goes negative."""
    remaining = available - quantity
    if remaining < 0:
        raise InsufficientStockError(f"Only {available} unit(s) available, {quantity} requested.")
    return remaining


def release(available: int, total: int, quantity: int) -> int:
    """Units available after ``quantity`` comes back, capped at the item's total."""
    restored = available + quantity
    if restored > total:
        logger.warning(f"Returned units would exceed total stock ({restored} > {total}); capping at {total}.")
    return clamp_available(restored, total)


def adjusted_available(available: int, old_total: int, new_total: int) -> int:
    """Shift availability by the change in total stock, keeping it within ``[0, new_total]``."""
    return clamp_available(available + (new_total - old_total), new_total)
