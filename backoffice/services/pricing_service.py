"""
Pricing service - MRP / discount % / discount amount / selling price.

One pure derivation function keeps the four price fields consistent for a
single customer class. Product create, stock addition and sell-stock all
go through `derive`.
"""
import enum
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

from backoffice.models import Product, CustomerClass
from backoffice.utils.number_format import ZERO, TWO_PLACES, coerce_decimal

HUNDRED = Decimal('100')

DEFAULT_DISCOUNT_B2C = Decimal('12')
DEFAULT_DISCOUNT_B2B = Decimal('18')


def coerce_amount(value) -> Decimal:
    """User or API amount to Decimal; anything unusable is 0. Never raises."""
    return coerce_decimal(value)


def round2(value) -> Decimal:
    """Round to 2 places, half away from zero. Amounts out of range count as 0."""
    try:
        return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return ZERO


def _clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(value, high))


class PriceField(str, enum.Enum):
    """The field the user just edited."""
    MRP = 'mrp'
    DISCOUNT_PERCENT = 'discount_percent'
    DISCOUNT_AMOUNT = 'discount_amount'
    SELLING_PRICE = 'selling_price'


@dataclass(frozen=True)
class PricingState:
    """Consistent price quadruple for one customer class."""

    mrp: Decimal = ZERO
    discount_percent: Decimal = ZERO
    discount_amount: Decimal = ZERO
    selling_price: Decimal = ZERO

    @classmethod
    def from_mrp(cls, mrp, discount_percent=ZERO) -> 'PricingState':
        state = derive(cls(), PriceField.MRP, mrp)
        if coerce_decimal(discount_percent) > 0:
            state = derive(state, PriceField.DISCOUNT_PERCENT, discount_percent)
        return state

    def to_dict(self) -> Dict[str, str]:
        return {
            'mrp': str(self.mrp),
            'discount_percent': str(self.discount_percent),
            'discount_amount': str(self.discount_amount),
            'selling_price': str(self.selling_price),
        }

    @property
    def is_consistent(self) -> bool:
        return (
            ZERO <= self.discount_amount <= self.mrp
            and ZERO <= self.discount_percent <= HUNDRED
            and self.selling_price == self.mrp - self.discount_amount
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PricingState':
        """
        Rebuild from a snapshot.

        A consistent snapshot is restored as is; anything else is re-derived
        from its MRP and selling price.
        """
        data = data if isinstance(data, dict) else {}
        base = cls.from_mrp(data.get('mrp'))
        state = cls(
            base.mrp,
            round2(coerce_decimal(data.get('discount_percent'))),
            round2(coerce_decimal(data.get('discount_amount'))),
            round2(coerce_decimal(data.get('selling_price'))),
        )
        if state.is_consistent:
            return state
        if data.get('selling_price') not in (None, ''):
            return derive(base, PriceField.SELLING_PRICE, data.get('selling_price'))
        return base


def derive(state: PricingState, changed: PriceField, value) -> PricingState:
    """
    Recompute the derived fields after one field was edited.

    Never raises: non-numeric, non-finite or negative input counts as 0,
    and out-of-range values are clamped.
    """
    changed = PriceField(changed)
    new_value = coerce_amount(value)
    mrp = state.mrp

    if changed == PriceField.MRP:
        mrp = round2(new_value)
        pct = state.discount_percent
        if pct > 0:
            amount = round2(mrp * pct / HUNDRED)
            return PricingState(mrp, pct, amount, round2(mrp - amount))
        return PricingState(mrp, ZERO, ZERO, mrp)

    if changed == PriceField.DISCOUNT_PERCENT:
        pct = round2(_clamp(new_value, ZERO, HUNDRED))
        amount = round2(mrp * pct / HUNDRED)
        return PricingState(mrp, pct, amount, round2(mrp - amount))

    if changed == PriceField.DISCOUNT_AMOUNT:
        amount = round2(_clamp(new_value, ZERO, mrp))
        pct = round2(HUNDRED * amount / mrp) if mrp > 0 else ZERO
        return PricingState(mrp, pct, amount, round2(mrp - amount))

    selling = round2(_clamp(new_value, ZERO, mrp))
    amount = round2(mrp - selling)
    pct = round2(HUNDRED * amount / mrp) if mrp > 0 else ZERO
    return PricingState(mrp, pct, amount, selling)


def line_amounts(state: PricingState, quantity: int) -> Dict[str, Decimal]:
    """Totals of a cart line: unit figures scaled by quantity."""
    qty = max(int(quantity), 0)
    return {
        'mrp_total': round2(state.mrp * qty),
        'discount_amount': round2(state.discount_amount * qty),
        'final_amount': round2(state.selling_price * qty),
    }


@dataclass(frozen=True)
class PricingByClass:
    """A PricingState tagged with the customer class it belongs to."""

    customer_class: CustomerClass
    state: PricingState


@dataclass(frozen=True)
class ProductPricing:
    """Retail and wholesale pricing over one shared MRP."""

    mrp: Decimal
    b2c: PricingState
    b2b: PricingState

    @classmethod
    def from_mrp(cls, mrp) -> 'ProductPricing':
        base = PricingState.from_mrp(mrp)
        return cls(base.mrp, base, base)

    def for_class(self, customer_class: CustomerClass) -> PricingByClass:
        customer_class = CustomerClass.parse(customer_class)
        state = self.b2b if customer_class == CustomerClass.B2B else self.b2c
        return PricingByClass(customer_class, state)

    def derive(self, customer_class: CustomerClass, changed: PriceField, value) -> 'ProductPricing':
        """An MRP edit re-derives both classes; other edits touch one class only."""
        changed = PriceField(changed)
        if changed == PriceField.MRP:
            b2c = derive(self.b2c, changed, value)
            b2b = derive(self.b2b, changed, value)
            return ProductPricing(b2c.mrp, b2c, b2b)

        customer_class = CustomerClass.parse(customer_class)
        if customer_class == CustomerClass.B2B:
            return replace(self, b2b=derive(self.b2b, changed, value))
        return replace(self, b2c=derive(self.b2c, changed, value))

    def to_dict(self) -> Dict[str, Any]:
        return {'mrp': str(self.mrp), 'b2c': self.b2c.to_dict(), 'b2b': self.b2b.to_dict()}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ProductPricing':
        data = data if isinstance(data, dict) else {}
        mrp = data.get('mrp')

        def class_state(part) -> PricingState:
            return PricingState.from_dict(dict(part if isinstance(part, dict) else {}, mrp=mrp))

        b2c = class_state(data.get('b2c'))
        return cls(b2c.mrp, b2c, class_state(data.get('b2b')))


def discount_defaults_from(config) -> Dict[str, Any]:
    """Class default percents from app config."""
    return {
        'b2c': config.get('DEFAULT_DISCOUNT_B2C', DEFAULT_DISCOUNT_B2C),
        'b2b': config.get('DEFAULT_DISCOUNT_B2B', DEFAULT_DISCOUNT_B2B),
    }


def default_discount(customer_class: CustomerClass, defaults: Optional[Dict[str, Any]] = None) -> Decimal:
    """Class default discount percent (12 retail, 18 wholesale unless configured)."""
    defaults = defaults or {}
    if CustomerClass.parse(customer_class) == CustomerClass.B2B:
        return coerce_decimal(defaults.get('b2b', DEFAULT_DISCOUNT_B2B))
    return coerce_decimal(defaults.get('b2c', DEFAULT_DISCOUNT_B2C))


def seed_pricing(product: Product, customer_class: CustomerClass,
                 defaults: Optional[Dict[str, Any]] = None) -> PricingState:
    """
    Working pricing when a product is picked or the active class switches.

    The discount always comes from the MRP and that class's own selling
    price; stored discount fields are ignored. Without a usable selling
    price the class default percent applies.
    """
    customer_class = CustomerClass.parse(customer_class)
    base = PricingState.from_mrp(product.mrp)
    if base.mrp <= 0:
        return base

    selling = product.selling_price_for(customer_class)
    if selling is not None and ZERO < selling <= base.mrp:
        return derive(base, PriceField.SELLING_PRICE, selling)
    return derive(base, PriceField.DISCOUNT_PERCENT, default_discount(customer_class, defaults))


def product_pricing(product: Product, defaults: Optional[Dict[str, Any]] = None) -> ProductPricing:
    """Both class states of a product, seeded independently."""
    b2c = seed_pricing(product, CustomerClass.B2C, defaults)
    b2b = seed_pricing(product, CustomerClass.B2B, defaults)
    return ProductPricing(b2c.mrp, b2c, b2b)


def apply_category_discount(products: Iterable[Product], customer_class: CustomerClass,
                            discount_percent) -> List[Product]:
    """
    Apply one discount percent to every product of a category.

    Only the class's percent, amount and selling price change; each product
    keeps its own MRP. Products without a positive MRP are skipped.
    """
    customer_class = CustomerClass.parse(customer_class)
    updated = []
    for product in products:
        if product.mrp <= 0:
            continue
        state = derive(PricingState.from_mrp(product.mrp), PriceField.DISCOUNT_PERCENT, discount_percent)
        if customer_class == CustomerClass.B2B:
            updated.append(replace(
                product,
                b2b_discount_percent=state.discount_percent,
                b2b_discount_amount=state.discount_amount,
                b2b_selling_price=state.selling_price,
            ))
        else:
            updated.append(replace(
                product,
                discount_percent=state.discount_percent,
                discount_amount=state.discount_amount,
                selling_price=state.selling_price,
            ))
    return updated
