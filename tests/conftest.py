import pytest
from decimal import Decimal

from backoffice import create_app
from backoffice.exceptions import DataUnavailableError, NotFoundError, SubmissionError
from backoffice.models import Product
from backoffice.services.draft_storage import MemoryDraftStorage
from backoffice.services.draft_store_service import DraftStore
from backoffice.services.inventory_api_client import SaleReceipt
from config import TestingConfig


class FakeInventoryApi:
    """In-memory stand-in for the inventory API client."""

    def __init__(self):
        self.products = {}
        self.serials = {}
        self.customers = []
        self.sales = []
        self.stock_additions = []
        self.pricing_updates = []
        self.category_discounts = []
        self.fail_serials = False
        self.fail_customers = False
        self.fail_submit = False
        self.invoice_counter = 0

    def add_product(self, product, serials=()):
        self.products[(product.category, product.id)] = product
        self.serials[product.id] = list(serials)
        return product

    def fetch_inventory(self, category):
        return [p for (cat, _), p in self.products.items() if cat == category]

    def fetch_product(self, category, product_id):
        try:
            return self.products[(category, product_id)]
        except KeyError:
            raise NotFoundError(f'Product {product_id} not found in {category}')

    def fetch_available_serials(self, category, product_id):
        if self.fail_serials:
            raise DataUnavailableError('Inventory service is unreachable')
        return list(self.serials.get(product_id, []))

    def fetch_customers(self, search='', page=1, limit=500):
        if self.fail_customers:
            raise DataUnavailableError('Inventory service is unreachable')
        return {'customers': list(self.customers), 'pagination': {'page': page, 'limit': limit}}

    def submit_sale(self, payload):
        if self.fail_submit:
            raise SubmissionError('Serial number SN-1 is already sold')
        self.sales.append(payload)
        self.invoice_counter += 1
        return SaleReceipt(success=True, invoice_number=f'INV-{self.invoice_counter:04d}')

    def submit_stock_addition(self, category, payload):
        if self.fail_submit:
            raise SubmissionError('Duplicate serial number')
        self.stock_additions.append((category, payload))
        return {'success': True}

    def update_product_pricing(self, category, product_id, pricing):
        self.pricing_updates.append((category, product_id, pricing))
        return {'success': True}

    def update_category_discount(self, category, discount_percent, customer_type='b2c'):
        self.category_discounts.append((category, discount_percent, customer_type))
        return {'success': True}


@pytest.fixture
def battery():
    """Serialized product: MRP 1000, retail 880, wholesale 820."""
    return Product(
        id=101,
        name='Exide Mileage 35Ah',
        category='car-truck-tractor',
        sku='EX-35',
        series='Mileage',
        mrp=Decimal('1000.00'),
        dp=Decimal('700.00'),
        selling_price=Decimal('880.00'),
        b2b_selling_price=Decimal('820.00'),
        qty=3,
        warranty='24 months',
    )


@pytest.fixture
def bike_battery():
    return Product(
        id=202,
        name='Bike Battery 9Ah',
        category='bike',
        sku='BK-9',
        mrp=Decimal('500.00'),
        dp=Decimal('350.00'),
        selling_price=Decimal('500.00'),
        qty=2,
    )


@pytest.fixture
def water_can():
    """Bulk product sold by quantity only."""
    return Product(
        id=303,
        name='Distilled Water 5L',
        category='water',
        sku='DW-5',
        mrp=Decimal('120.00'),
        dp=Decimal('80.00'),
        selling_price=Decimal('100.00'),
        qty=40,
    )


@pytest.fixture
def fake_api(battery, bike_battery, water_can):
    api = FakeInventoryApi()
    api.add_product(battery, ['S1', 'S2', 'S3'])
    api.add_product(bike_battery, ['B1', 'B2'])
    api.add_product(water_can)
    return api


@pytest.fixture
def app(fake_api):
    """Create application instance for testing."""
    class _Config(TestingConfig):
        SHOP_API_CLIENT = fake_api

    app = create_app(_Config)
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def storage():
    return MemoryDraftStorage()


@pytest.fixture
def reload_flag():
    """Mutable page-reload answer for DraftStore tests."""
    return {'reloaded': False}


@pytest.fixture
def draft_store(storage, reload_flag):
    return DraftStore(storage, lambda: reload_flag['reloaded'])
