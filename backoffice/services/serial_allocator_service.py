"""
Serial allocator - picks exactly N serialized units for a quantity of N.

The available pool comes from the inventory API and is the only source of
truth: units outside the pool can never be chosen, and an empty or not yet
loaded pool means nothing is available.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from backoffice.exceptions import ValidationResult
from backoffice.models import Product, DEFAULT_BULK_CATEGORIES, is_bulk_category

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationState:
    """Read-only view of the allocator for callers and responses."""

    product_id: Optional[int]
    category: Optional[str]
    quantity: int
    chosen: Tuple[str, ...]
    available: Tuple[str, ...]
    pool_loaded: bool
    bulk: bool
    max_available: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'category': self.category,
            'quantity': self.quantity,
            'chosen': list(self.chosen),
            'available_serials': list(self.available),
            'pool_loaded': self.pool_loaded,
            'bulk': self.bulk,
            'max_available': self.max_available,
        }


def _parse_quantity(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 1


class SerialAllocator:
    """Available pool plus an ordered, duplicate-free selection for one product."""

    def __init__(self, bulk_categories: Optional[Iterable[str]] = None):
        self.bulk_categories = frozenset(
            DEFAULT_BULK_CATEGORIES if bulk_categories is None else bulk_categories
        )
        self.product: Optional[Product] = None
        self.quantity = 1
        self._pool: FrozenSet[str] = frozenset()
        self._pool_loaded = False
        self._chosen: List[str] = []

    @property
    def is_bulk(self) -> bool:
        return self.product is not None and is_bulk_category(self.product.category, self.bulk_categories)

    @property
    def available_pool(self) -> FrozenSet[str]:
        return self._pool

    @property
    def chosen(self) -> Tuple[str, ...]:
        return tuple(self._chosen)

    @property
    def max_available(self) -> int:
        if self.product is None:
            return 0
        if self.is_bulk:
            return max(self.product.qty, 0)
        return len(self._pool)

    def reserve_units(self, product: Product, quantity=1) -> AllocationState:
        """
        Start allocating for a product.

        The pool is emptied until `receive_pool` delivers the fetch result
        for this same product; the selection starts empty.
        """
        self.product = product
        self.quantity = max(1, _parse_quantity(quantity))
        self._pool = frozenset()
        self._pool_loaded = False
        self._chosen = []
        return self.state()

    def receive_pool(self, product_id: int, serials: Iterable[str]) -> bool:
        """
        Accept a pool fetch result.

        Results for any product other than the current selection are stale
        and ignored. The current selection is re-checked against the new
        pool, keeping its order.
        """
        if self.product is None or self.product.id != product_id:
            logger.info(f"[ALLOC] Ignoring stale pool for product {product_id}")
            return False

        if self.is_bulk:
            self._pool = frozenset()
        else:
            self._pool = frozenset(s.strip() for s in serials if s and s.strip())
        self._pool_loaded = True

        kept = [s for s in self._chosen if s in self._pool]
        if len(kept) != len(self._chosen):
            logger.info(
                f"[ALLOC] Dropped {len(self._chosen) - len(kept)} chosen serial(s) "
                f"no longer available for product {product_id}"
            )
        self._chosen = kept
        return True

    def pool_unavailable(self, product_id: int) -> None:
        """Pool fetch failed: degrade to an empty pool, keep nothing chosen."""
        if self.product is None or self.product.id != product_id:
            return
        self._pool = frozenset()
        self._pool_loaded = False
        self._chosen = []

    def toggle_unit(self, serial: str) -> bool:
        """
        Select or deselect one unit. Returns True if the selection changed.

        Units outside the pool, and selections beyond the quantity, are
        ignored.
        """
        serial = (serial or '').strip()
        if serial in self._chosen:
            self._chosen.remove(serial)
            return True
        if self.is_bulk or serial not in self._pool:
            return False
        if len(self._chosen) >= self.quantity:
            return False
        self._chosen.append(serial)
        return True

    def set_quantity(self, value) -> int:
        """
        Change the requested quantity, clamped to [1, available].

        Lowering it keeps the first chosen units; raising it only lifts the
        ceiling.
        """
        self.quantity = max(1, min(_parse_quantity(value), self.max_available))
        if len(self._chosen) > self.quantity:
            self._chosen = self._chosen[:self.quantity]
        return self.quantity

    def validate(self) -> ValidationResult:
        """Check the selection is ready to become a cart line."""
        if self.product is None:
            return ValidationResult.failure('Please select a product')

        result = ValidationResult()
        available = self.max_available
        if self.quantity <= 0 or self.quantity > available:
            result.add(f'Please enter a valid quantity. Available: {available} units')

        if self.is_bulk:
            return result

        selected = len(self._chosen)
        if selected < self.quantity:
            missing = self.quantity - selected
            result.add(
                f'Please select exactly {self.quantity} serial number(s): '
                f'{missing} more needed (currently selected: {selected})'
            )
        elif selected > self.quantity:
            # Unreachable through toggle_unit, set_quantity or from_dict; covers hand-built state
            excess = selected - self.quantity
            result.add(
                f'Please select exactly {self.quantity} serial number(s): '
                f'remove {excess} (currently selected: {selected})'
            )

        unavailable = [s for s in self._chosen if s not in self._pool]
        if unavailable:
            result.add(f'Serial number(s) no longer available: {", ".join(unavailable)}')
        return result

    def state(self) -> AllocationState:
        return AllocationState(
            product_id=self.product.id if self.product else None,
            category=self.product.category if self.product else None,
            quantity=self.quantity,
            chosen=self.chosen,
            available=tuple(sorted(self._pool)),
            pool_loaded=self._pool_loaded,
            bulk=self.is_bulk,
            max_available=self.max_available,
        )

    def to_dict(self) -> Dict[str, Any]:
        """User-entered part only; the pool is refetched on restore."""
        return {
            'product_id': self.product.id if self.product else None,
            'quantity': self.quantity,
            'chosen': list(self._chosen),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], product: Optional[Product],
                  bulk_categories: Optional[Iterable[str]] = None) -> 'SerialAllocator':
        """
        Restore a selection. Chosen units stay pending until the pool for
        `product` arrives and re-validates them.
        """
        allocator = cls(bulk_categories)
        data = data if isinstance(data, dict) else {}
        if product is None or data.get('product_id') != product.id:
            return allocator
        allocator.product = product
        allocator.quantity = max(1, _parse_quantity(data.get('quantity', 1)))
        seen = []
        chosen = data.get('chosen')
        for serial in chosen if isinstance(chosen, (list, tuple)) else []:
            if isinstance(serial, str) and serial.strip() and serial.strip() not in seen:
                seen.append(serial.strip())
        allocator._chosen = seen[:allocator.quantity]
        return allocator
