"""
Sale service - sell-stock form state and checkout.

The form composes the working product selection (allocator + pricing),
the cart, and the buyer blocks. Checkout validates the buyer side, builds
the transaction for the inventory API and settles the draft.
"""
import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from backoffice.exceptions import (
    BusinessLogicError, SubmissionError, ValidationError, ValidationResult
)
from backoffice.models import (
    Product, CustomerClass, SaleCustomer, GstInfo, CommissionInfo,
    normalize_payment_method, payment_status_for
)
from backoffice.services.cart_service import Cart, LineItem, normalise_vehicle_numbers
from backoffice.services.draft_store_service import DraftKey, DraftStore
from backoffice.services.pricing_service import (
    PricingState, PriceField, derive, seed_pricing
)
from backoffice.services.serial_allocator_service import SerialAllocator

logger = logging.getLogger(__name__)

MOBILE_PATTERN = re.compile(r'^\d{10}$')


class SellStockForm:
    """Everything the sell-stock screen holds between requests."""

    def __init__(self, customer_class: CustomerClass = CustomerClass.B2C,
                 bulk_categories: Optional[Iterable[str]] = None,
                 discount_defaults: Optional[Dict[str, Any]] = None):
        self.bulk_categories = bulk_categories
        self.discount_defaults = discount_defaults or {}
        self.customer_class = CustomerClass.parse(customer_class)
        self.category = ''
        self.product: Optional[Product] = None
        self.allocator = SerialAllocator(bulk_categories)
        self.pricing = PricingState()
        self.last_edited = PriceField.DISCOUNT_PERCENT
        self.vehicle_number = ''
        self.vehicle_numbers = []
        self.same_vehicle_for_all = True
        self.customer = SaleCustomer(is_b2b=self.customer_class == CustomerClass.B2B)
        self.gst = GstInfo()
        self.commission = CommissionInfo()
        self.payment_method = 'cash'
        self.purchase_date: Optional[str] = None
        self.cart = Cart()

    # -- product selection -------------------------------------------------

    def select_product(self, product: Product, quantity=1) -> None:
        """Pick a product; pool, selection, pricing and vehicles start over."""
        self.product = product
        self.category = product.category
        self.allocator.reserve_units(product, quantity)
        self.pricing = seed_pricing(product, self.customer_class, self.discount_defaults)
        self.last_edited = PriceField.DISCOUNT_PERCENT
        self.vehicle_number = ''
        self.vehicle_numbers = []
        self.same_vehicle_for_all = True

    def reset_selection(self) -> None:
        """Drop the working product but keep buyer info and cart."""
        self.product = None
        self.allocator = SerialAllocator(self.bulk_categories)
        self.pricing = PricingState()
        self.last_edited = PriceField.DISCOUNT_PERCENT
        self.vehicle_number = ''
        self.vehicle_numbers = []
        self.same_vehicle_for_all = True

    def switch_class(self, customer_class: CustomerClass) -> None:
        """
        Change the active tab.

        The selected customer is cleared and the working pricing is
        re-seeded from the new class's own stored selling price.
        """
        self.customer_class = CustomerClass.parse(customer_class)
        self.customer = SaleCustomer(is_b2b=self.customer_class == CustomerClass.B2B)
        self.gst = GstInfo()
        if self.product is not None:
            self.pricing = seed_pricing(self.product, self.customer_class, self.discount_defaults)
        self.last_edited = PriceField.DISCOUNT_PERCENT

    def edit_price(self, field: PriceField, value) -> PricingState:
        self.last_edited = PriceField(field)
        self.pricing = derive(self.pricing, self.last_edited, value)
        return self.pricing

    def set_quantity(self, value) -> int:
        quantity = self.allocator.set_quantity(value)
        self.vehicle_numbers = [v or '' for v in normalise_vehicle_numbers(
            quantity, self.vehicle_number, self.vehicle_numbers, same_for_all=False
        )]
        return quantity

    def set_vehicles(self, vehicle_number: str = '', vehicle_numbers=None, same_for_all: bool = True) -> None:
        self.vehicle_number = (vehicle_number or '').strip()
        self.same_vehicle_for_all = bool(same_for_all)
        self.vehicle_numbers = [v or '' for v in normalise_vehicle_numbers(
            self.allocator.quantity, self.vehicle_number, vehicle_numbers, same_for_all=False
        )]

    # -- cart ----------------------------------------------------------------

    def add_to_cart(self):
        """Returns (ValidationResult, LineItem|None); resets the selection on success."""
        vehicles = normalise_vehicle_numbers(
            self.allocator.quantity, self.vehicle_number, self.vehicle_numbers,
            same_for_all=self.same_vehicle_for_all,
        )
        result, line = self.cart.add_line(self.allocator, self.pricing, self.customer_class, vehicles)
        if line is not None:
            self.reset_selection()
        return result, line

    # -- buyer -----------------------------------------------------------------

    def update_buyer(self, data: Dict[str, Any]) -> None:
        """Apply buyer-side fields that are present in `data`."""
        for part in ('customer', 'gst', 'commission'):
            if data.get(part) is not None and not isinstance(data[part], dict):
                raise BusinessLogicError(f'Invalid buyer details: {part} must be an object')
        try:
            if 'customer' in data:
                self.customer = SaleCustomer.from_dict(data['customer'])
            if 'gst' in data:
                self.gst = GstInfo.from_dict(data['gst'])
            if 'commission' in data:
                self.commission = CommissionInfo.from_dict(data['commission'])
        except (TypeError, ValueError, OverflowError) as e:
            raise BusinessLogicError(f'Invalid buyer details: {e}')
        if 'payment_method' in data:
            try:
                self.payment_method = normalize_payment_method(data['payment_method'])
            except ValueError as e:
                raise BusinessLogicError(str(e))
        if 'purchase_date' in data:
            self.purchase_date = data['purchase_date'] or None

    # -- snapshots -------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            'customer_class': self.customer_class.value,
            'category': self.category,
            'product': self.product.to_dict() if self.product else None,
            'allocation': self.allocator.to_dict(),
            'pricing': self.pricing.to_dict(),
            'last_edited': self.last_edited.value,
            'vehicle_number': self.vehicle_number,
            'vehicle_numbers': list(self.vehicle_numbers),
            'same_vehicle_for_all': self.same_vehicle_for_all,
            'customer': self.customer.to_dict(),
            'gst': self.gst.to_dict(),
            'commission': self.commission.to_dict(),
            'payment_method': self.payment_method,
            'purchase_date': self.purchase_date,
            'cart': self.cart.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]],
                  bulk_categories: Optional[Iterable[str]] = None,
                  discount_defaults: Optional[Dict[str, Any]] = None) -> 'SellStockForm':
        """Restore a form; unusable parts fall back to their empty state."""
        data = data if isinstance(data, dict) else {}
        try:
            customer_class = CustomerClass.parse(data.get('customer_class', 'b2c'))
        except ValueError:
            customer_class = CustomerClass.B2C
        form = cls(customer_class, bulk_categories, discount_defaults)
        form.category = str(data.get('category') or '')

        product_data = data.get('product')
        if product_data:
            try:
                form.product = Product.from_api(product_data)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"[SALE] Dropping unusable product from draft: {e}")
        form.allocator = SerialAllocator.from_dict(data.get('allocation'), form.product, bulk_categories)
        if form.product is not None:
            form.pricing = PricingState.from_dict(data.get('pricing'))
        try:
            form.last_edited = PriceField(data.get('last_edited') or PriceField.DISCOUNT_PERCENT)
        except ValueError:
            form.last_edited = PriceField.DISCOUNT_PERCENT

        form.vehicle_number = str(data.get('vehicle_number') or '')
        vehicle_numbers = data.get('vehicle_numbers')
        if isinstance(vehicle_numbers, (list, tuple)):
            form.vehicle_numbers = [str(v or '') for v in vehicle_numbers]
        form.same_vehicle_for_all = bool(data.get('same_vehicle_for_all', True))
        form.customer = SaleCustomer.from_dict(data.get('customer'))
        form.gst = GstInfo.from_dict(data.get('gst'))
        form.commission = CommissionInfo.from_dict(data.get('commission'))
        try:
            form.payment_method = normalize_payment_method(data.get('payment_method'))
        except ValueError:
            form.payment_method = 'cash'
        form.purchase_date = data.get('purchase_date') or None
        form.cart = Cart.from_dict(data.get('cart'))
        return form

    def view(self) -> Dict[str, Any]:
        """Snapshot plus derived parts (pool, totals) for responses."""
        payload = self.to_dict()
        payload['allocation'] = self.allocator.state().to_dict()
        payload['totals'] = self.cart.totals().to_dict()
        return payload


def validate_checkout(form: SellStockForm) -> ValidationResult:
    """Buyer-side checks run before a sale is submitted."""
    result = ValidationResult()
    if not form.cart.lines:
        return ValidationResult.failure('Please add at least one product to the cart')

    customer = form.customer
    if not customer.name.strip():
        result.add('Please enter customer name')
    if not MOBILE_PATTERN.match(customer.mobile.strip()):
        result.add('Please enter a valid 10-digit mobile number')
    if not customer.email.strip() or '@' not in customer.email:
        result.add('Please enter a valid email address')

    gst = form.gst
    if gst.enabled:
        if not gst.gst_number.strip():
            result.add('GST number is required when "Has GST" is checked')
        if not gst.business_name.strip():
            result.add('Business / company name is required when "Has GST" is checked')
        if not gst.business_address.strip():
            result.add('Business address is required when "Has GST" is checked')

    commission = form.commission
    if commission.enabled:
        if commission.agent_id is None and (not commission.agent_name.strip() or not commission.agent_mobile.strip()):
            result.add('Please select an existing commission agent or provide agent name and mobile number')
        if commission.amount <= 0:
            result.add('Valid commission amount is required')
        agent_mobile = re.sub(r'\D', '', commission.agent_mobile)
        if commission.agent_mobile.strip() and not MOBILE_PATTERN.match(agent_mobile):
            result.add('Commission agent mobile number must be 10 digits')

    try:
        normalize_payment_method(form.payment_method)
    except ValueError as e:
        result.add(str(e))
    return result


def _money(value: Decimal) -> str:
    return str(value)


def _line_payload(line: LineItem) -> Dict[str, Any]:
    return {
        'productId': line.product_id,
        'category': line.category,
        'quantity': line.quantity,
        'serialNumber': list(line.serials),
        'customerVehicleNumber': (line.vehicle_numbers[0] if line.vehicle_numbers else None) if line.quantity == 1 else None,
        'vehicleNumbers': list(line.vehicle_numbers) if line.quantity > 1 else None,
        'mrp': _money(line.mrp),
        'discountAmount': _money(line.discount_amount),
        'finalAmount': _money(line.final_amount),
    }


def build_transaction(form: SellStockForm, now: Optional[datetime] = None) -> Dict[str, Any]:
    """The sale transaction in the inventory API's wire shape."""
    commission = form.commission
    gst = form.gst
    existing_agent = commission.agent_id is not None
    purchase_date = form.purchase_date or (now or datetime.now()).strftime('%Y-%m-%dT%H:%M')
    return {
        'items': [_line_payload(line) for line in form.cart.lines],
        'purchaseDate': purchase_date,
        'customerName': form.customer.name.strip(),
        'customerMobileNumber': form.customer.mobile.strip(),
        'customerEmail': form.customer.email.strip(),
        'customerId': form.customer.customer_id,
        'salesType': 'wholesale' if form.customer_class == CustomerClass.B2B else 'retail',
        'paymentMethod': form.payment_method,
        'paymentStatus': payment_status_for(form.payment_method),
        'customerBusinessName': gst.business_name.strip() if gst.enabled else None,
        'customerGstNumber': gst.gst_number.strip() if gst.enabled else None,
        'customerBusinessAddress': gst.business_address.strip() if gst.enabled else None,
        'hasCommission': commission.enabled,
        'commissionAgentId': commission.agent_id if commission.enabled else None,
        'commissionAgentName': commission.agent_name.strip() if commission.enabled and not existing_agent else None,
        'commissionAgentMobile': re.sub(r'\D', '', commission.agent_mobile) if commission.enabled and not existing_agent else None,
        'commissionAmount': _money(commission.amount) if commission.enabled else '0',
    }


def submit_sale(form: SellStockForm, client, store: DraftStore):
    """
    Validate, submit and settle the draft.

    On a confirmed success the draft is marked submitted and the cart is
    cleared. On SubmissionError the draft stays as it was.

    Raises:
        ValidationError: local checks failed
        SubmissionError: the inventory API rejected the sale
    """
    from backoffice.blueprints.metrics import sale_submissions_total

    result = validate_checkout(form)
    if not result.ok:
        raise ValidationError(result.errors)

    payload = build_transaction(form)
    units = form.cart.totals().units
    try:
        receipt = client.submit_sale(payload)
    except SubmissionError:
        sale_submissions_total.labels(outcome='failure').inc()
        logger.warning(f"[SALE] Submission failed, keeping draft ({len(form.cart)} line(s))")
        raise

    sale_submissions_total.labels(outcome='success').inc()
    store.mark_submitted(DraftKey.SELL_STOCK)
    lines = len(form.cart)
    form.cart.clear()
    form.reset_selection()
    logger.info(f"[SALE] Sold {lines} product(s), {units} unit(s): invoice={receipt.invoice_number}")
    return receipt, lines, units
