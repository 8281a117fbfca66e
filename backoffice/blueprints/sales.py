"""Sales blueprint - sell-stock form, cart and checkout."""
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, request, session, jsonify, current_app

from backoffice.exceptions import (
    BusinessLogicError, DataUnavailableError, NotFoundError, ValidationError
)
from backoffice.blueprints.metrics import serial_pool_fetches_total
from backoffice.services.customer_service import select_customer
from backoffice.services.draft_store_service import DraftKey, get_draft_store
from backoffice.services.inventory_api_client import get_api_client
from backoffice.services.pricing_service import PriceField, discount_defaults_from
from backoffice.services.sale_service import SellStockForm, submit_sale
from backoffice.utils.formatters import money_inr

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')

# Last fetched pool per browser session; refetched whenever the product changes
POOL_SESSION_KEY = 'serial_pool'


def _payload() -> Dict[str, Any]:
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def _new_form(data: Optional[Dict[str, Any]] = None) -> SellStockForm:
    return SellStockForm.from_dict(
        data,
        bulk_categories=current_app.config.get('BULK_CATEGORIES'),
        discount_defaults=discount_defaults_from(current_app.config),
    )


def _restore_form(snapshot: Optional[Dict[str, Any]]) -> Tuple[SellStockForm, bool]:
    """Form rebuilt from a stored draft and whether it was restored; unusable drafts are discarded."""
    if snapshot is None:
        return _new_form(), False
    try:
        return _new_form(snapshot), True
    except (AttributeError, TypeError, ValueError, OverflowError) as e:
        current_app.logger.warning(f"[SALE] Discarding unusable sell-stock draft: {e}")
        get_draft_store().clear(DraftKey.SELL_STOCK)
        return _new_form(), False


def _cache_pool(product_id: int, serials) -> None:
    session[POOL_SESSION_KEY] = {'product_id': product_id, 'serials': list(serials)}


def _apply_cached_pool(form: SellStockForm) -> None:
    cached = session.get(POOL_SESSION_KEY) or {}
    if form.product is not None and cached.get('product_id') is not None:
        # A pool cached for another product is stale and ignored here
        form.allocator.receive_pool(cached['product_id'], cached.get('serials') or [])


def _fetch_pool(form: SellStockForm) -> None:
    """
    Load the available units of the working product.

    On failure the pool stays empty (nothing selectable) and the error
    propagates so the caller can offer a retry.
    """
    product = form.product
    if form.allocator.is_bulk:
        form.allocator.receive_pool(product.id, [])
        _cache_pool(product.id, [])
        return
    try:
        serials = get_api_client().fetch_available_serials(product.category, product.id)
    except DataUnavailableError:
        serial_pool_fetches_total.labels(outcome='failure').inc()
        form.allocator.pool_unavailable(product.id)
        session.pop(POOL_SESSION_KEY, None)
        raise
    serial_pool_fetches_total.labels(outcome='success').inc()
    form.allocator.receive_pool(product.id, serials)
    _cache_pool(product.id, serials)


def _load_form() -> SellStockForm:
    """Working form for a mid-session request (no mount rules)."""
    form, _ = _restore_form(get_draft_store().current(DraftKey.SELL_STOCK))
    _apply_cached_pool(form)
    return form


def _save_and_respond(form: SellStockForm, message: Optional[str] = None, **extra):
    get_draft_store().save(DraftKey.SELL_STOCK, form.to_dict())
    body = {'status': 'success', 'form': form.view()}
    if message:
        body['message'] = message
    body.update(extra)
    return jsonify(body)


@sales_bp.route('/', methods=['GET'])
def mount():
    """
    Open the sell-stock form.

    A draft is restored unless the page was reloaded or the last sale was
    submitted. Restored serial choices are re-checked against a fresh pool.
    """
    store = get_draft_store()
    form, restored = _restore_form(store.load(DraftKey.SELL_STOCK))
    session.pop(POOL_SESSION_KEY, None)

    pool_error = None
    if form.product is not None:
        try:
            _fetch_pool(form)
        except DataUnavailableError as e:
            current_app.logger.warning(f"[SALE] Could not reload serial pool on mount: {e.message}")
            pool_error = e.message

    if restored:
        store.save(DraftKey.SELL_STOCK, form.to_dict())

    return jsonify({
        'status': 'success',
        'restored': restored,
        'pool_error': pool_error,
        'search_debounce_ms': current_app.config.get('SEARCH_DEBOUNCE_MS', 300),
        'form': form.view(),
    })


@sales_bp.route('/class', methods=['POST'])
def switch_class():
    payload = _payload()
    form = _load_form()
    try:
        form.switch_class(payload.get('customer_class'))
    except ValueError as e:
        raise BusinessLogicError(str(e))
    return _save_and_respond(form)


@sales_bp.route('/product', methods=['POST'])
def select_product():
    """Pick a product and load its available units."""
    payload = _payload()
    category = (payload.get('category') or '').strip()
    try:
        product_id = int(payload.get('product_id'))
    except (TypeError, ValueError):
        raise BusinessLogicError('Please select a product')
    if not category:
        raise BusinessLogicError('Please select a category')

    form = _load_form()
    product = get_api_client().fetch_product(category, product_id)
    form.select_product(product, payload.get('quantity', 1))
    try:
        _fetch_pool(form)
    except DataUnavailableError:
        get_draft_store().save(DraftKey.SELL_STOCK, form.to_dict())
        raise

    current_app.logger.info(
        f"[SALE] Selected product {product.id} ({product.category}), "
        f"{len(form.allocator.available_pool)} unit(s) available"
    )
    return _save_and_respond(form)


@sales_bp.route('/serials/refresh', methods=['POST'])
def refresh_serials():
    form = _load_form()
    if form.product is None:
        raise BusinessLogicError('Please select a product')
    try:
        _fetch_pool(form)
    except DataUnavailableError:
        get_draft_store().save(DraftKey.SELL_STOCK, form.to_dict())
        raise
    return _save_and_respond(form)


@sales_bp.route('/serials/toggle', methods=['POST'])
def toggle_serial():
    payload = _payload()
    form = _load_form()
    changed = form.allocator.toggle_unit(payload.get('serial'))
    return _save_and_respond(form, changed=changed)


@sales_bp.route('/quantity', methods=['POST'])
def set_quantity():
    payload = _payload()
    form = _load_form()
    if form.product is None:
        raise BusinessLogicError('Please select a product')
    form.set_quantity(payload.get('quantity'))
    return _save_and_respond(form)


@sales_bp.route('/price', methods=['POST'])
def edit_price():
    """Edit one of MRP / discount % / discount amount / selling price."""
    payload = _payload()
    try:
        field = PriceField(payload.get('field'))
    except ValueError:
        raise BusinessLogicError(f"Unknown price field: {payload.get('field')}")
    form = _load_form()
    form.edit_price(field, payload.get('value'))
    return _save_and_respond(form)


@sales_bp.route('/vehicles', methods=['POST'])
def set_vehicles():
    payload = _payload()
    form = _load_form()
    same_for_all = payload.get('same_for_all', True)
    if isinstance(same_for_all, str):
        same_for_all = same_for_all.lower() in ('1', 'true', 'on', 'yes')
    form.set_vehicles(payload.get('vehicle_number', ''), payload.get('vehicle_numbers'), same_for_all)
    return _save_and_respond(form)


@sales_bp.route('/cart/add', methods=['POST'])
def cart_add():
    form = _load_form()
    result, line = form.add_to_cart()
    if line is None:
        raise ValidationError(result.errors)
    session.pop(POOL_SESSION_KEY, None)
    return _save_and_respond(
        form, f'Added {line.quantity} unit(s) of {line.product_name} to cart', line=line.to_dict()
    )


@sales_bp.route('/cart/remove', methods=['POST'])
def cart_remove():
    payload = _payload()
    form = _load_form()
    if not form.cart.remove_line(str(payload.get('line_id') or '')):
        raise NotFoundError('Cart line not found')
    return _save_and_respond(form)


@sales_bp.route('/cart/clear', methods=['POST'])
def cart_clear():
    form = _load_form()
    form.cart.clear()
    return _save_and_respond(form)


@sales_bp.route('/buyer', methods=['POST'])
def update_buyer():
    """Customer, GST, commission, payment method and purchase date."""
    form = _load_form()
    form.update_buyer(_payload())
    return _save_and_respond(form)


@sales_bp.route('/buyer/select', methods=['POST'])
def select_existing_customer():
    """Fill buyer and GST blocks from an existing customer record."""
    payload = _payload()
    customer = payload.get('customer')
    if not isinstance(customer, dict):
        raise BusinessLogicError('Please select a customer')
    form = _load_form()
    form.customer, form.gst = select_customer(customer)
    return _save_and_respond(form)


@sales_bp.route('/submit', methods=['POST'])
def submit():
    form = _load_form()
    total = form.cart.totals().total
    receipt, lines, units = submit_sale(form, get_api_client(), get_draft_store())
    session.pop(POOL_SESSION_KEY, None)
    return jsonify({
        'status': 'success',
        'message': f'Successfully sold {lines} product(s) with total of {units} unit(s) ({money_inr(total)})',
        'invoice_number': receipt.invoice_number,
        'form': form.view(),
    })


@sales_bp.route('/cancel', methods=['POST'])
def cancel():
    get_draft_store().clear(DraftKey.SELL_STOCK)
    session.pop(POOL_SESSION_KEY, None)
    return jsonify({'status': 'success', 'form': _new_form().view()})
