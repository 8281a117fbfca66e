"""Cart service - multi-line pending sale built from validated line items."""
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from backoffice.exceptions import ValidationResult
from backoffice.models import CustomerClass
from backoffice.services.pricing_service import PricingState, line_amounts
from backoffice.services.serial_allocator_service import SerialAllocator
from backoffice.utils.number_format import ZERO, coerce_decimal

logger = logging.getLogger(__name__)


def normalise_vehicle_numbers(quantity: int, vehicle_number: str = '',
                              vehicle_numbers: Optional[Sequence[str]] = None,
                              same_for_all: bool = True) -> Tuple[Optional[str], ...]:
    """
    One optional vehicle number per unit.

    With `same_for_all` (or a single unit) every unit gets `vehicle_number`;
    otherwise the per-unit list is padded or cut to `quantity`.
    """
    quantity = max(int(quantity), 0)
    if same_for_all or quantity <= 1:
        single = (vehicle_number or '').strip() or None
        return tuple([single] * quantity)

    values = [((v or '').strip() or None) for v in (vehicle_numbers or [])][:quantity]
    values.extend([None] * (quantity - len(values)))
    return tuple(values)


@dataclass(frozen=True)
class LineItem:
    """
    One cart entry.

    Product fields are copied at add time so later product edits do not
    change lines already in the cart.
    """

    line_id: str
    product_id: int
    product_name: str
    sku: str
    series: Optional[str]
    category: str
    customer_class: str
    quantity: int
    serials: Tuple[str, ...]
    vehicle_numbers: Tuple[Optional[str], ...]
    mrp: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    warranty: Optional[str] = None
    ah_va: Optional[str] = None

    @property
    def mrp_total(self) -> Decimal:
        return self.mrp * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            'line_id': self.line_id,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'sku': self.sku,
            'series': self.series,
            'category': self.category,
            'customer_class': self.customer_class,
            'quantity': self.quantity,
            'serials': list(self.serials),
            'vehicle_numbers': list(self.vehicle_numbers),
            'mrp': self.mrp,
            'discount_percent': self.discount_percent,
            'discount_amount': self.discount_amount,
            'final_amount': self.final_amount,
            'warranty': self.warranty,
            'ah_va': self.ah_va,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LineItem':
        return cls(
            line_id=str(data['line_id']),
            product_id=int(data['product_id']),
            product_name=str(data.get('product_name') or ''),
            sku=str(data.get('sku') or ''),
            series=data.get('series'),
            category=str(data.get('category') or ''),
            customer_class=CustomerClass.parse(data.get('customer_class', 'b2c')).value,
            quantity=int(data['quantity']),
            serials=tuple(data.get('serials') or ()),
            vehicle_numbers=tuple(data.get('vehicle_numbers') or ()),
            mrp=coerce_decimal(data.get('mrp')),
            discount_percent=coerce_decimal(data.get('discount_percent')),
            discount_amount=coerce_decimal(data.get('discount_amount')),
            final_amount=coerce_decimal(data.get('final_amount')),
            warranty=data.get('warranty'),
            ah_va=data.get('ah_va'),
        )


@dataclass(frozen=True)
class CartTotals:
    """Aggregates of the cart, computed on demand."""

    units: int
    total: Decimal
    mrp_total: Decimal
    savings: Decimal
    lines: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'units': self.units,
            'total': self.total,
            'mrp_total': self.mrp_total,
            'savings': self.savings,
            'lines': self.lines,
        }


@dataclass
class Cart:
    """Ordered line items of one pending sale."""

    lines: List[LineItem] = field(default_factory=list)

    def __len__(self):
        return len(self.lines)

    def reserved_serials(self, exclude_line: Optional[str] = None) -> Dict[str, str]:
        """Serial -> line_id for every unit already in the cart."""
        reserved = {}
        for line in self.lines:
            if line.line_id == exclude_line:
                continue
            for serial in line.serials:
                reserved[serial] = line.line_id
        return reserved

    def add_line(self, allocator: SerialAllocator, pricing: PricingState,
                 customer_class: CustomerClass = CustomerClass.B2C,
                 vehicle_numbers: Iterable[Optional[str]] = ()) -> Tuple[ValidationResult, Optional[LineItem]]:
        """
        Append a line built from the allocator's selection and the working
        pricing. Nothing is added unless every check passes.
        """
        result = allocator.validate()
        if not result.ok:
            return result, None

        product = allocator.product
        if pricing.mrp <= 0:
            result.add('MRP is required')

        serials = () if allocator.is_bulk else allocator.chosen
        if len(set(serials)) != len(serials):
            result.add('Duplicate serial numbers are not allowed')

        reserved = self.reserved_serials()
        already = [s for s in serials if s in reserved]
        if already:
            result.add(f'Serial number(s) already in cart: {", ".join(already)}')

        if not result.ok:
            return result, None

        amounts = line_amounts(pricing, allocator.quantity)
        vehicles = () if allocator.is_bulk else tuple(vehicle_numbers)
        line = LineItem(
            line_id=uuid.uuid4().hex,
            product_id=product.id,
            product_name=product.name,
            sku=product.sku,
            series=product.series,
            category=product.category,
            customer_class=CustomerClass.parse(customer_class).value,
            quantity=allocator.quantity,
            serials=tuple(serials),
            vehicle_numbers=vehicles,
            mrp=pricing.mrp,
            discount_percent=pricing.discount_percent,
            discount_amount=amounts['discount_amount'],
            final_amount=amounts['final_amount'],
            warranty=product.warranty,
            ah_va=product.ah_va,
        )
        self.lines.append(line)
        logger.info(f"[CART] Added line {line.line_id}: product={product.id} qty={line.quantity}")
        return result, line

    def remove_line(self, line_id: str) -> bool:
        """Remove a line. Its serials are not returned to any pool."""
        before = len(self.lines)
        self.lines = [line for line in self.lines if line.line_id != line_id]
        return len(self.lines) != before

    def clear(self) -> None:
        self.lines = []

    def totals(self) -> CartTotals:
        units = sum(line.quantity for line in self.lines)
        total = sum((line.final_amount for line in self.lines), ZERO)
        mrp_total = sum((line.mrp_total for line in self.lines), ZERO)
        savings = sum((line.discount_amount for line in self.lines), ZERO)
        return CartTotals(units=units, total=total, mrp_total=mrp_total,
                          savings=savings, lines=len(self.lines))

    def to_dict(self) -> Dict[str, Any]:
        return {'lines': [line.to_dict() for line in self.lines]}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Cart':
        """Restore lines; malformed entries are dropped."""
        cart = cls()
        lines = data.get('lines') if isinstance(data, dict) else None
        for raw in lines if isinstance(lines, list) else []:
            try:
                cart.lines.append(LineItem.from_dict(raw))
            except (AttributeError, KeyError, TypeError, ValueError, OverflowError) as e:
                logger.warning(f"[CART] Dropping malformed line from snapshot: {e}")
        return cart
