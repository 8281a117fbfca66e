"""
Unit tests for models.
"""

import pytest
from decimal import Decimal

from backoffice.models import (
    Category, CustomerClass, Product, SaleCustomer, GstInfo, CommissionInfo,
    is_bulk_category, normalize_payment_method, payment_status_for
)


class TestProductModel:
    """Tests for Product model."""

    def test_from_api(self):
        """Test building a product from the API shape."""
        product = Product.from_api({
            'id': '7',
            'name': 'Exide 35Ah',
            'mrp_price': '1,000',
            'price': '880',
            'b2b_price': '820',
            'discount': '120',
            'quantity': '3',
        }, category='bike')

        assert product.id == 7
        assert product.category == 'bike'
        assert product.mrp == Decimal('1000')
        assert product.selling_price == Decimal('880')
        assert product.b2b_selling_price == Decimal('820')
        assert product.discount_amount == Decimal('120')
        assert product.qty == 3

    def test_missing_prices_stay_none(self):
        product = Product.from_api({'id': 1, 'name': 'x', 'mrp': 'abc'})
        assert product.mrp == Decimal('0')
        assert product.selling_price is None
        assert product.b2b_selling_price is None

    def test_round_trip(self, battery):
        assert Product.from_api(battery.to_dict()) == battery

    def test_selling_price_per_class(self, battery, bike_battery):
        assert battery.selling_price_for('b2b') == Decimal('820.00')
        assert battery.selling_price_for(CustomerClass.B2C) == Decimal('880.00')
        assert bike_battery.selling_price_for('b2b') is None

    def test_missing_id(self):
        with pytest.raises(KeyError):
            Product.from_api({'name': 'x'})


class TestCategories:
    """Tests for bulk categories and customer classes."""

    def test_water_is_bulk(self):
        assert is_bulk_category(Category.WATER)
        assert is_bulk_category(' Water ')
        assert not is_bulk_category('bike')

    def test_configured_bulk_categories(self):
        assert is_bulk_category('ups-inverter', ['ups-inverter'])
        assert not is_bulk_category('water', [])

    @pytest.mark.parametrize('raw,expected', [
        ('b2b', CustomerClass.B2B),
        ('Wholesale', CustomerClass.B2B),
        ('retail', CustomerClass.B2C),
        (CustomerClass.B2C, CustomerClass.B2C),
    ])
    def test_parse_class(self, raw, expected):
        assert CustomerClass.parse(raw) == expected

    def test_unknown_class(self):
        with pytest.raises(ValueError):
            CustomerClass.parse('vip')


class TestSaleModels:
    """Tests for buyer-side models."""

    @pytest.mark.parametrize('raw,expected', [(None, 'cash'), ('UPI ', 'upi'), ('credit', 'credit')])
    def test_payment_method(self, raw, expected):
        assert normalize_payment_method(raw) == expected

    def test_invalid_payment_method(self):
        with pytest.raises(ValueError):
            normalize_payment_method('cheque')

    def test_credit_is_pending(self):
        assert payment_status_for('credit') == 'pending'
        assert payment_status_for('cash') == 'paid'

    def test_customer_from_dict(self):
        customer = SaleCustomer.from_dict({'name': 'Ravi', 'customer_id': '12'})
        assert customer.customer_id == 12
        assert customer.mobile == ''

    @pytest.mark.parametrize('data', ['x', ['a'], 5])
    def test_non_object_restores_empty(self, data):
        assert SaleCustomer.from_dict(data) == SaleCustomer()
        assert GstInfo.from_dict(data) == GstInfo()
        assert CommissionInfo.from_dict(data) == CommissionInfo()

    def test_commission_amount(self):
        assert CommissionInfo.from_dict({'amount': '₹1,500'}).amount == Decimal('1500')
        assert CommissionInfo.from_dict({'amount': 'lots'}).amount == Decimal('0')
