"""Stock blueprint - add-stock form."""
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, request, jsonify, current_app

from backoffice.exceptions import BusinessLogicError
from backoffice.services.draft_store_service import DraftKey, get_draft_store
from backoffice.services.inventory_api_client import get_api_client
from backoffice.services.pricing_service import PriceField
from backoffice.services.stock_service import AddStockForm, submit_stock_addition

stock_bp = Blueprint('stock', __name__, url_prefix='/stock')


def _payload() -> Dict[str, Any]:
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def _new_form(data: Optional[Dict[str, Any]] = None) -> AddStockForm:
    return AddStockForm.from_dict(data, bulk_categories=current_app.config.get('BULK_CATEGORIES'))


def _restore_form(snapshot: Optional[Dict[str, Any]]) -> Tuple[AddStockForm, bool]:
    if snapshot is None:
        return _new_form(), False
    try:
        return _new_form(snapshot), True
    except (AttributeError, TypeError, ValueError, OverflowError) as e:
        current_app.logger.warning(f"[STOCK] Discarding unusable add-stock draft: {e}")
        get_draft_store().clear(DraftKey.ADD_STOCK)
        return _new_form(), False


def _load_form() -> AddStockForm:
    form, _ = _restore_form(get_draft_store().current(DraftKey.ADD_STOCK))
    return form


def _save_and_respond(form: AddStockForm):
    get_draft_store().save(DraftKey.ADD_STOCK, form.to_dict())
    return jsonify({'status': 'success', 'form': form.view()})


@stock_bp.route('/', methods=['GET'])
def mount():
    """Open the add-stock form, restoring a draft when the mount rules allow it."""
    store = get_draft_store()
    form, restored = _restore_form(store.load(DraftKey.ADD_STOCK))
    if restored:
        store.save(DraftKey.ADD_STOCK, form.to_dict())
    return jsonify({'status': 'success', 'restored': restored, 'form': form.view()})


@stock_bp.route('/product', methods=['POST'])
def select_product():
    payload = _payload()
    category = (payload.get('category') or '').strip()
    try:
        product_id = int(payload.get('product_id'))
    except (TypeError, ValueError):
        raise BusinessLogicError('Please select a product')
    if not category:
        raise BusinessLogicError('Please select a category')

    form = _load_form()
    form.select_product(get_api_client().fetch_product(category, product_id))
    return _save_and_respond(form)


@stock_bp.route('/quantity', methods=['POST'])
def set_quantity():
    form = _load_form()
    form.set_quantity(_payload().get('quantity'))
    return _save_and_respond(form)


@stock_bp.route('/serials', methods=['POST'])
def set_serials():
    """Either one input ({index, value}) or the whole list ({serials})."""
    payload = _payload()
    form = _load_form()
    if 'serials' in payload:
        serials = payload.get('serials') or []
        if isinstance(serials, str):
            serials = serials.splitlines()
        for index, value in enumerate(serials[:form.quantity]):
            form.set_serial(index, value)
    else:
        try:
            index = int(payload.get('index'))
        except (TypeError, ValueError):
            raise BusinessLogicError('Serial number position is required')
        form.set_serial(index, payload.get('value'))
    return _save_and_respond(form)


@stock_bp.route('/valuation', methods=['POST'])
def edit_valuation():
    """Discount % / discount amount / purchase amount, all against DP."""
    payload = _payload()
    try:
        field = PriceField(payload.get('field'))
        form = _load_form()
        form.edit_valuation(field, payload.get('value'))
    except ValueError as e:
        raise BusinessLogicError(str(e))
    return _save_and_respond(form)


@stock_bp.route('/details', methods=['POST'])
def update_details():
    payload = _payload()
    form = _load_form()
    if 'purchase_date' in payload:
        form.purchase_date = payload.get('purchase_date') or None
    if 'purchased_from' in payload:
        form.purchased_from = str(payload.get('purchased_from') or '')
    return _save_and_respond(form)


@stock_bp.route('/submit', methods=['POST'])
def submit():
    form = _load_form()
    submit_stock_addition(form, get_api_client(), get_draft_store())
    current_app.logger.info(f"[STOCK] Stock addition submitted for product {form.product.id}")
    return jsonify({
        'status': 'success',
        'message': f'Successfully added {form.quantity} unit(s) of {form.product.name}',
        'form': _new_form().view(),
    })


@stock_bp.route('/cancel', methods=['POST'])
def cancel():
    get_draft_store().clear(DraftKey.ADD_STOCK)
    return jsonify({'status': 'success', 'form': _new_form().view()})
