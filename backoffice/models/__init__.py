"""Models package - exports the domain records exchanged with the inventory API."""
from backoffice.models.product import (
    Product, Category, CustomerClass, DEFAULT_BULK_CATEGORIES, is_bulk_category
)
from backoffice.models.customer import (
    SaleCustomer, GstInfo, CommissionInfo, PaymentMethod,
    normalize_payment_method, payment_status_for
)

__all__ = [
    'Product', 'Category', 'CustomerClass', 'DEFAULT_BULK_CATEGORIES', 'is_bulk_category',
    'SaleCustomer', 'GstInfo', 'CommissionInfo', 'PaymentMethod',
    'normalize_payment_method', 'payment_status_for',
]
