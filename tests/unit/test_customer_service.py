"""
Unit tests for customer lookup.
"""

import pytest

from backoffice.models import CustomerClass
from backoffice.services.customer_service import (
    CustomerSearch, display_name, filter_customers, is_b2b_customer, load_customers, select_customer
)
from backoffice.utils.debounce import Debouncer

CUSTOMERS = [
    {'id': 1, 'name': 'Ravi Kumar', 'mobile_number': '9876543210', 'gst_number': '29ABCDE1234F1Z5',
     'business_name': 'Ravi Motors', 'address': 'MG Road'},
    {'id': 2, 'name': 'Anita Fleet', 'phone': '9123456780', 'user_type': 'b2b',
     'business_name': 'Anita Logistics'},
    {'id': 3, 'name': 'Suresh', 'mobile_number': '9000000001', 'is_b2b': True},
]


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestCustomerClass:
    """Tests for is_b2b_customer / display_name."""

    def test_gst_does_not_make_b2b(self):
        assert is_b2b_customer(CUSTOMERS[0]) is False

    @pytest.mark.parametrize('customer', CUSTOMERS[1:])
    def test_explicit_flags(self, customer):
        assert is_b2b_customer(customer) is True

    def test_display_name(self):
        assert display_name(CUSTOMERS[1]) == 'Anita Fleet (B2B)'
        assert display_name(CUSTOMERS[0]) == 'Ravi Kumar'


class TestFilterCustomers:
    """Tests for filter_customers."""

    def test_by_class(self):
        assert [c['id'] for c in filter_customers(CUSTOMERS, '', CustomerClass.B2B)] == [2, 3]
        assert [c['id'] for c in filter_customers(CUSTOMERS, '', 'retail')] == [1]

    @pytest.mark.parametrize('query,expected', [
        ('ravi', [1]),
        ('MOTORS', [1]),
        ('91234', [2]),
        ('logistics', [2]),
        ('  ', [1, 2, 3]),
        ('nobody', []),
    ])
    def test_query(self, query, expected):
        assert [c['id'] for c in filter_customers(CUSTOMERS, query)] == expected


class TestSelectCustomer:
    """Tests for select_customer."""

    def test_prefills_gst_block(self):
        buyer, gst = select_customer(CUSTOMERS[0])
        assert buyer.customer_id == 1
        assert buyer.mobile == '9876543210'
        assert gst.enabled is True
        assert gst.business_address == 'MG Road'

    def test_without_gst(self):
        buyer, gst = select_customer(CUSTOMERS[1])
        assert buyer.is_b2b is True
        assert buyer.mobile == '9123456780'
        assert gst.enabled is False


class TestCustomerSearch:
    """Tests for the debounced CustomerSearch."""

    def test_only_settled_query_applies(self):
        clock = FakeClock()
        search = CustomerSearch(CUSTOMERS, debouncer=Debouncer(0.3, clock=clock))
        search.type('r')
        search.type('ravi')
        assert len(search.results()) == 3

        clock.now = 0.31
        assert [c['id'] for c in search.results()] == [1]

    def test_last_keystroke_wins(self):
        clock = FakeClock()
        search = CustomerSearch(CUSTOMERS, debouncer=Debouncer(0.3, clock=clock))
        search.type('ravi')
        clock.now = 0.2
        search.type('anita')
        clock.now = 0.4
        assert [c['id'] for c in search.results()] == [1, 2, 3]
        clock.now = 0.5
        assert [c['id'] for c in search.results()] == [2]


class TestDebouncer:
    """Tests for Debouncer."""

    def test_due_consumes(self):
        clock = FakeClock()
        debouncer = Debouncer(0.3, clock=clock)
        debouncer.push('a')
        assert debouncer.due() is None
        clock.now = 1
        assert debouncer.due() == 'a'
        assert debouncer.due() is None
        assert debouncer.pending is False

    def test_cancel(self):
        debouncer = Debouncer(0)
        debouncer.push('a')
        debouncer.cancel()
        assert debouncer.due() is None


class TestLoadCustomers:
    """Tests for load_customers."""

    def test_decorates_entries(self, fake_api):
        fake_api.customers = list(CUSTOMERS)
        data = load_customers(fake_api, page=2, limit=50)
        assert [c['is_b2b'] for c in data['customers']] == [False, True, True]
        assert data['customers'][2]['display_name'] == 'Suresh (B2B)'
        assert data['pagination'] == {'page': 2, 'limit': 50}
