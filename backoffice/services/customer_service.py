"""Customer service - lookup of existing buyers for the sell-stock form."""
import logging
from typing import Any, Dict, Iterable, List, Optional

from backoffice.models import CustomerClass, GstInfo, SaleCustomer
from backoffice.utils.debounce import Debouncer

logger = logging.getLogger(__name__)


def is_b2b_customer(customer: Dict[str, Any]) -> bool:
    """
    Wholesale buyers are flagged explicitly (is_b2b or user_type).

    Having a GST number does not make a customer B2B.
    """
    if customer.get('is_b2b'):
        return True
    return str(customer.get('user_type') or '').strip().lower() == 'b2b'


def matches_class(customer: Dict[str, Any], customer_class: CustomerClass) -> bool:
    """Only B2B customers on the wholesale tab, only retail ones on the retail tab."""
    wanted_b2b = CustomerClass.parse(customer_class) == CustomerClass.B2B
    return is_b2b_customer(customer) == wanted_b2b


def filter_customers(customers: Iterable[Dict[str, Any]], query: str = '',
                     customer_class: Optional[CustomerClass] = None) -> List[Dict[str, Any]]:
    """Case-insensitive match on name, mobile number or business name."""
    needle = (query or '').strip().lower()
    result = []
    for customer in customers:
        if customer_class is not None and not matches_class(customer, customer_class):
            continue
        if needle:
            haystack = (
                str(customer.get('name') or ''),
                str(customer.get('mobile_number') or customer.get('phone') or ''),
                str(customer.get('business_name') or ''),
            )
            if not any(needle in field.lower() for field in haystack):
                continue
        result.append(customer)
    return result


def display_name(customer: Dict[str, Any]) -> str:
    name = str(customer.get('name') or customer.get('business_name') or '')
    return f"{name} (B2B)" if is_b2b_customer(customer) else name


def select_customer(customer: Dict[str, Any]):
    """
    Pre-fill the buyer and GST blocks from a stored customer profile.

    Returns (SaleCustomer, GstInfo). The GST block is turned on when the
    profile carries a GST number.
    """
    buyer = SaleCustomer(
        name=str(customer.get('name') or ''),
        mobile=str(customer.get('mobile_number') or customer.get('phone') or ''),
        email=str(customer.get('email') or ''),
        customer_id=customer.get('id'),
        is_b2b=is_b2b_customer(customer),
    )
    gst_number = str(customer.get('gst_number') or '').strip()
    gst = GstInfo(
        enabled=bool(gst_number),
        business_name=str(customer.get('business_name') or ''),
        gst_number=gst_number,
        business_address=str(customer.get('business_address') or customer.get('address') or ''),
    )
    return buyer, gst


class CustomerSearch:
    """
    Debounced search over one loaded page of customers.

    Keystrokes go through `type`; `results` filters with the last settled
    query only.
    """

    def __init__(self, customers: Iterable[Dict[str, Any]], delay: float = 0.3,
                 debouncer: Optional[Debouncer] = None):
        self.customers = list(customers)
        self.debouncer = debouncer or Debouncer(delay)
        self.query = ''

    def type(self, text: str) -> None:
        self.debouncer.push(text)

    def results(self, customer_class: Optional[CustomerClass] = None) -> List[Dict[str, Any]]:
        settled = self.debouncer.due()
        if settled is not None:
            self.query = settled
        return filter_customers(self.customers, self.query, customer_class)


def load_customers(client, search: str = '', page: int = 1, limit: int = 500) -> Dict[str, Any]:
    """Fetch one page of customers and decorate each with its class."""
    data = client.fetch_customers(search=search, page=page, limit=limit)
    customers = []
    for customer in data['customers']:
        customers.append(dict(customer, is_b2b=is_b2b_customer(customer), display_name=display_name(customer)))
    logger.info(f"[CUSTOMERS] Loaded {len(customers)} customers (page {page})")
    return {'customers': customers, 'pagination': data.get('pagination') or {}}
