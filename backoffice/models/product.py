"""Product model (snapshot of the inventory API's product record)."""
import enum
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from backoffice.utils.number_format import ZERO, coerce_decimal


class Category(str, enum.Enum):
    """Product categories known to the shop."""
    CAR_TRUCK_TRACTOR = 'car-truck-tractor'
    BIKE = 'bike'
    UPS_INVERTER = 'ups-inverter'
    WATER = 'water'


DEFAULT_BULK_CATEGORIES = frozenset({Category.WATER.value})


def is_bulk_category(category, bulk_categories: Optional[Iterable[str]] = None) -> bool:
    """Bulk categories are sold by quantity only, without serial numbers."""
    if isinstance(category, Category):
        category = category.value
    bulk = DEFAULT_BULK_CATEGORIES if bulk_categories is None else frozenset(bulk_categories)
    return (category or '').strip().lower() in bulk


class CustomerClass(str, enum.Enum):
    """Customer class: retail (B2C) or wholesale (B2B)."""
    B2C = 'b2c'
    B2B = 'b2b'

    @classmethod
    def parse(cls, value) -> 'CustomerClass':
        """Accept 'b2c'/'b2b' as well as the tab names 'retail'/'wholesale'."""
        if isinstance(value, cls):
            return value
        normalized = str(value or '').strip().lower()
        if normalized in ('b2b', 'wholesale'):
            return cls.B2B
        if normalized in ('b2c', 'retail', 'customer'):
            return cls.B2C
        raise ValueError(f"Invalid customer type: {value}. Must be 'b2c' or 'b2b'.")


def _first(payload: Dict[str, Any], *keys):
    for key in keys:
        value = payload.get(key)
        if value is not None and value != '':
            return value
    return None


@dataclass(frozen=True)
class Product:
    """
    Product as returned by the inventory API.

    Stored discount fields are kept for reference only; pricing derives the
    working discount from `mrp` and the class's selling price.
    """

    id: int
    name: str
    category: str
    sku: str = ''
    series: Optional[str] = None
    mrp: Decimal = ZERO
    dp: Decimal = ZERO
    selling_price: Optional[Decimal] = None
    discount_percent: Decimal = ZERO
    discount_amount: Decimal = ZERO
    b2b_selling_price: Optional[Decimal] = None
    b2b_discount_percent: Decimal = ZERO
    b2b_discount_amount: Decimal = ZERO
    qty: int = 0
    warranty: Optional[str] = None
    ah_va: Optional[str] = None

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', sku='{self.sku}')>"

    @classmethod
    def from_api(cls, payload: Dict[str, Any], category: Optional[str] = None) -> 'Product':
        """Build a Product from the API's JSON product shape."""
        selling = _first(payload, 'selling_price', 'price')
        b2b_selling = _first(payload, 'b2b_selling_price', 'b2b_price')
        try:
            qty = int(coerce_decimal(_first(payload, 'qty', 'quantity')))
        except (ValueError, ArithmeticError):
            qty = 0
        return cls(
            id=int(payload['id']),
            name=str(payload.get('name') or ''),
            category=str(category or payload.get('category') or ''),
            sku=str(payload.get('sku') or ''),
            series=payload.get('series'),
            mrp=coerce_decimal(_first(payload, 'mrp_price', 'mrp')),
            dp=coerce_decimal(payload.get('dp')),
            selling_price=coerce_decimal(selling) if selling is not None else None,
            discount_percent=coerce_decimal(payload.get('discount_percent')),
            discount_amount=coerce_decimal(_first(payload, 'discount', 'discount_amount')),
            b2b_selling_price=coerce_decimal(b2b_selling) if b2b_selling is not None else None,
            b2b_discount_percent=coerce_decimal(payload.get('b2b_discount_percent')),
            b2b_discount_amount=coerce_decimal(_first(payload, 'b2b_discount', 'b2b_discount_amount')),
            qty=qty,
            warranty=payload.get('warranty'),
            ah_va=payload.get('ah_va'),
        )

    def selling_price_for(self, customer_class: CustomerClass) -> Optional[Decimal]:
        """Stored selling price of one class; None when never recorded."""
        if CustomerClass.parse(customer_class) == CustomerClass.B2B:
            return self.b2b_selling_price
        return self.selling_price

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
