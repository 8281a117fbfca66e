from flask import Blueprint, request, jsonify, current_app

from backoffice.exceptions import BusinessLogicError, DataUnavailableError
from backoffice.models import CustomerClass
from backoffice.services.customer_service import load_customers, filter_customers
from backoffice.services.inventory_api_client import get_api_client

customers_bp = Blueprint('customers', __name__, url_prefix='/customers')


@customers_bp.route('/', methods=['GET'])
def list_customers():
    """
    One page of customers, optionally narrowed by query and class.

    Query params: search, page, customer_class (b2c/b2b).
    """
    search = request.args.get('search', '').strip()
    try:
        page = max(int(request.args.get('page', 1)), 1)
    except ValueError:
        raise BusinessLogicError('Invalid page number')

    customer_class = request.args.get('customer_class')
    if customer_class:
        try:
            customer_class = CustomerClass.parse(customer_class)
        except ValueError as e:
            raise BusinessLogicError(str(e))
    else:
        customer_class = None

    limit = current_app.config.get('CUSTOMER_PAGE_SIZE', 500)
    try:
        data = load_customers(get_api_client(), search=search, page=page, limit=limit)
    except DataUnavailableError as e:
        # The buyer form stays usable; the client offers a retry
        current_app.logger.warning(f"[CUSTOMERS] Could not load customers: {e.message}")
        return jsonify({
            'status': 'success',
            'customers': [],
            'pagination': {'page': page, 'limit': limit},
            'error': e.message,
            'retry': True,
        })
    customers = filter_customers(data['customers'], search, customer_class)
    return jsonify({
        'status': 'success',
        'customers': customers,
        'pagination': data['pagination'],
    })
