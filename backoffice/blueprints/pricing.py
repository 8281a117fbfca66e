"""Pricing blueprint - price derivation, per-product pricing and category discounts."""
import logging
from typing import Any, Dict

from flask import Blueprint, request, jsonify, current_app

from backoffice.exceptions import BusinessLogicError
from backoffice.models import CustomerClass
from backoffice.services.draft_store_service import DraftKey, get_draft_store
from backoffice.services.inventory_api_client import get_api_client
from backoffice.services.pricing_service import (
    PricingState, PriceField, ProductPricing, derive, product_pricing,
    apply_category_discount, discount_defaults_from, HUNDRED
)
from backoffice.utils.number_format import parse_inr_amount

logger = logging.getLogger(__name__)

pricing_bp = Blueprint('pricing', __name__, url_prefix='/pricing')


def _payload() -> Dict[str, Any]:
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def _price_field(value) -> PriceField:
    try:
        return PriceField(value)
    except ValueError:
        raise BusinessLogicError(f'Unknown price field: {value}')


def _customer_class(value) -> CustomerClass:
    try:
        return CustomerClass.parse(value or 'b2c')
    except ValueError as e:
        raise BusinessLogicError(str(e))


@pricing_bp.route('/derive', methods=['POST'])
def derive_price():
    """Stateless: apply one field edit to a price quadruple."""
    payload = _payload()
    state = PricingState.from_dict(payload.get('state'))
    state = derive(state, _price_field(payload.get('field')), payload.get('value'))
    return jsonify({'status': 'success', 'pricing': state.to_dict()})


def _management_snapshot(category: str, product_id: int, snapshot) -> ProductPricing:
    """Pricing from a matching draft, else seeded from the product."""
    if snapshot and snapshot.get('category') == category and snapshot.get('product_id') == product_id:
        return ProductPricing.from_dict(snapshot.get('pricing'))
    product = get_api_client().fetch_product(category, product_id)
    return product_pricing(product, discount_defaults_from(current_app.config))


def _respond(category: str, product_id: int, pricing: ProductPricing, **extra):
    body = {
        'status': 'success',
        'category': category,
        'product_id': product_id,
        'pricing': pricing.to_dict(),
    }
    body.update(extra)
    return jsonify(body)


@pricing_bp.route('/products/<category>/<int:product_id>', methods=['GET'])
def product_pricing_form(category: str, product_id: int):
    """Mount the pricing editor of one product (both customer classes)."""
    store = get_draft_store()
    snapshot = store.load(DraftKey.PRODUCT_MANAGEMENT)
    restored = bool(snapshot and snapshot.get('category') == category
                    and snapshot.get('product_id') == product_id)
    pricing = _management_snapshot(category, product_id, snapshot)
    store.save(DraftKey.PRODUCT_MANAGEMENT, {
        'category': category, 'product_id': product_id, 'pricing': pricing.to_dict(),
    })
    return _respond(category, product_id, pricing, restored=restored)


@pricing_bp.route('/products/<category>/<int:product_id>/edit', methods=['POST'])
def edit_product_pricing(category: str, product_id: int):
    """
    Edit one field. An MRP edit re-derives both classes; any other field
    only changes the given class.
    """
    payload = _payload()
    store = get_draft_store()
    pricing = _management_snapshot(category, product_id, store.current(DraftKey.PRODUCT_MANAGEMENT))
    pricing = pricing.derive(
        _customer_class(payload.get('customer_class')),
        _price_field(payload.get('field')),
        payload.get('value'),
    )
    store.save(DraftKey.PRODUCT_MANAGEMENT, {
        'category': category, 'product_id': product_id, 'pricing': pricing.to_dict(),
    })
    return _respond(category, product_id, pricing)


@pricing_bp.route('/products/<category>/<int:product_id>/save', methods=['POST'])
def save_product_pricing(category: str, product_id: int):
    store = get_draft_store()
    pricing = _management_snapshot(category, product_id, store.current(DraftKey.PRODUCT_MANAGEMENT))
    if pricing.mrp <= 0:
        raise BusinessLogicError('MRP is required')

    get_api_client().update_product_pricing(category, product_id, {
        'mrp_price': str(pricing.mrp),
        'selling_price': str(pricing.b2c.selling_price),
        'discount': str(pricing.b2c.discount_amount),
        'discount_percent': str(pricing.b2c.discount_percent),
        'b2b_selling_price': str(pricing.b2b.selling_price),
        'b2b_discount': str(pricing.b2b.discount_amount),
        'b2b_discount_percent': str(pricing.b2b.discount_percent),
    })
    store.mark_submitted(DraftKey.PRODUCT_MANAGEMENT)
    logger.info(f"[PRICING] Saved pricing of product {product_id} ({category})")
    return _respond(category, product_id, pricing, message='Pricing updated')


@pricing_bp.route('/categories/<category>/discount', methods=['POST'])
def category_discount(category: str):
    """
    Apply one discount percent to a whole category for one customer class.

    Each product keeps its own MRP; products without a positive MRP are
    left untouched.
    """
    payload = _payload()
    customer_class = _customer_class(payload.get('customer_class'))
    try:
        percent = parse_inr_amount(payload.get('discount_percent'))
    except ValueError as e:
        raise BusinessLogicError(f'Invalid discount percent: {e}')
    if percent > HUNDRED:
        raise BusinessLogicError('Discount percent cannot exceed 100')

    products = get_api_client().fetch_inventory(category)
    updated = apply_category_discount(products, customer_class, percent)
    get_api_client().update_category_discount(category, percent, customer_class.value)

    logger.info(
        f"[PRICING] {percent}% {customer_class.value} discount applied to "
        f"{len(updated)}/{len(products)} products in {category}"
    )
    return jsonify({
        'status': 'success',
        'discount_percent': str(percent),
        'customer_class': customer_class.value,
        'updated': len(updated),
        'skipped': len(products) - len(updated),
        'products': [p.to_dict() for p in updated],
    })
