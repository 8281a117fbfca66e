"""
Stock service - add-stock form.

Purchased units are entered with their serial numbers (one per unit, except
for bulk categories). The purchase valuation runs through the same pricing
engine as sales, with the dealer price (DP) as the base price.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from backoffice.exceptions import SubmissionError, ValidationError, ValidationResult
from backoffice.models import Product, DEFAULT_BULK_CATEGORIES, is_bulk_category
from backoffice.services.draft_store_service import DraftKey, DraftStore
from backoffice.services.pricing_service import PricingState, PriceField, derive
from backoffice.utils.number_format import parse_quantity

logger = logging.getLogger(__name__)


def sync_serial_inputs(serials: Iterable[str], quantity: int) -> List[str]:
    """One input per unit: pad with blanks or keep the first `quantity`."""
    quantity = max(int(quantity), 0)
    values = [str(s or '') for s in serials][:quantity]
    values.extend([''] * (quantity - len(values)))
    return values


def dealer_price(product: Product):
    """DP, falling back to MRP for products without a recorded DP."""
    return product.dp if product.dp > 0 else product.mrp


class AddStockForm:
    """Working state of one stock addition."""

    def __init__(self, bulk_categories: Optional[Iterable[str]] = None):
        self.bulk_categories = frozenset(
            DEFAULT_BULK_CATEGORIES if bulk_categories is None else bulk_categories
        )
        self.product: Optional[Product] = None
        self.quantity = 1
        self.serials: List[str] = ['']
        self.purchase_date: Optional[str] = None
        self.purchased_from = ''
        self.valuation = PricingState()

    @property
    def is_bulk(self) -> bool:
        return self.product is not None and is_bulk_category(self.product.category, self.bulk_categories)

    def select_product(self, product: Product) -> None:
        """New product: DP becomes the base and any discount is reset."""
        self.product = product
        self.valuation = PricingState.from_mrp(dealer_price(product))
        self.serials = sync_serial_inputs(self.serials, self.quantity)

    def set_quantity(self, value) -> int:
        try:
            self.quantity = parse_quantity(value)
        except ValueError:
            self.quantity = 0
        self.serials = sync_serial_inputs(self.serials, self.quantity)
        return self.quantity

    def set_serial(self, index: int, value: str) -> None:
        if 0 <= index < len(self.serials):
            self.serials[index] = value or ''

    def edit_valuation(self, field: PriceField, value) -> PricingState:
        """Discount % / discount amount / purchase amount against the DP."""
        field = PriceField(field)
        if field == PriceField.MRP:
            raise ValueError('Dealer price comes from the product and cannot be edited here')
        self.valuation = derive(self.valuation, field, value)
        return self.valuation

    def cleaned_serials(self) -> List[str]:
        return [s.strip() for s in self.serials if s and s.strip()]

    def validate(self) -> ValidationResult:
        if self.product is None:
            return ValidationResult.failure('Please select a product')

        result = ValidationResult()
        if self.quantity <= 0:
            result.add('Please enter a valid quantity greater than 0')
            return result

        if not self.is_bulk:
            serials = self.cleaned_serials()
            if not serials:
                result.add('Please add at least one serial number')
            elif len(serials) != self.quantity:
                result.add(
                    f'Quantity ({self.quantity}) must exactly match the number of serial numbers '
                    f'({len(serials)}). Please add or remove serial numbers to match the quantity.'
                )
            elif len(set(serials)) != len(serials):
                result.add('Duplicate serial numbers are not allowed. Each serial number must be unique.')

        if self.valuation.selling_price <= 0:
            result.add('Please enter a valid purchase amount')
        elif self.valuation.selling_price > self.valuation.mrp:
            result.add('Purchase amount cannot exceed DP (Dealer Price)')
        return result

    def build_payload(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        valuation = self.valuation
        return {
            'productId': self.product.id,
            'quantity': self.quantity,
            'serialNumbers': [] if self.is_bulk else self.cleaned_serials(),
            'purchase_date': self.purchase_date or (now or datetime.now()).strftime('%Y-%m-%dT%H:%M'),
            'purchased_from': self.purchased_from.strip() or None,
            'amount': str(valuation.selling_price),
            'dp': str(valuation.mrp),
            'purchase_value': str(valuation.selling_price),
            'discount_amount': str(valuation.discount_amount),
            'discount_percent': str(valuation.discount_percent),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product': self.product.to_dict() if self.product else None,
            'quantity': self.quantity,
            'serials': list(self.serials),
            'purchase_date': self.purchase_date,
            'purchased_from': self.purchased_from,
            'valuation': self.valuation.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]],
                  bulk_categories: Optional[Iterable[str]] = None) -> 'AddStockForm':
        data = data if isinstance(data, dict) else {}
        form = cls(bulk_categories)
        if data.get('product'):
            try:
                form.product = Product.from_api(data['product'])
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"[STOCK] Dropping unusable product from draft: {e}")
        form.set_quantity(data.get('quantity', 1))
        serials = data.get('serials')
        form.serials = sync_serial_inputs(serials if isinstance(serials, (list, tuple)) else [], form.quantity)
        form.purchase_date = data.get('purchase_date') or None
        form.purchased_from = str(data.get('purchased_from') or '')
        if form.product is not None:
            # DP always comes from the product; the stored discount is re-applied to it
            valuation = data.get('valuation')
            valuation = dict(valuation if isinstance(valuation, dict) else {}, mrp=dealer_price(form.product))
            form.valuation = PricingState.from_dict(valuation)
        return form

    def view(self) -> Dict[str, Any]:
        payload = self.to_dict()
        payload['bulk'] = self.is_bulk
        payload['purchase_amount'] = self.valuation.selling_price
        return payload


def submit_stock_addition(form: AddStockForm, client, store: DraftStore) -> Dict[str, Any]:
    """
    Validate and record a stock addition; settles the draft on success.

    Raises:
        ValidationError: local checks failed
        SubmissionError: the inventory API rejected the addition
    """
    from backoffice.blueprints.metrics import stock_additions_total

    result = form.validate()
    if not result.ok:
        raise ValidationError(result.errors)

    try:
        response = client.submit_stock_addition(form.product.category, form.build_payload())
    except SubmissionError:
        stock_additions_total.labels(outcome='failure').inc()
        logger.warning(f"[STOCK] Submission failed, keeping draft for product {form.product.id}")
        raise
    stock_additions_total.labels(outcome='success').inc()
    store.mark_submitted(DraftKey.ADD_STOCK)
    logger.info(
        f"[STOCK] Added {form.quantity} unit(s) of product {form.product.id} "
        f"at {form.valuation.selling_price} each"
    )
    return response
