"""
Unit tests for the cart aggregator.
"""

import pytest
from dataclasses import replace
from decimal import Decimal

from backoffice.models import CustomerClass
from backoffice.services.cart_service import Cart, LineItem, normalise_vehicle_numbers
from backoffice.services.pricing_service import PricingState, seed_pricing
from backoffice.services.serial_allocator_service import SerialAllocator

D = Decimal


def ready_allocator(product, serials, quantity=None):
    allocator = SerialAllocator()
    allocator.reserve_units(product, quantity or len(serials) or 1)
    allocator.receive_pool(product.id, list(serials))
    for serial in serials:
        allocator.toggle_unit(serial)
    return allocator


class TestAddLine:
    """Tests for Cart.add_line."""

    def test_line_snapshot(self, battery):
        cart = Cart()
        pricing = seed_pricing(battery, CustomerClass.B2C)
        result, line = cart.add_line(ready_allocator(battery, ['S1', 'S2']), pricing,
                                     vehicle_numbers=['KA01', None])
        assert result.ok
        assert line.serials == ('S1', 'S2')
        assert line.quantity == 2
        assert line.mrp == D('1000.00')
        assert line.discount_amount == D('240.00')
        assert line.final_amount == D('1760.00')
        assert line.vehicle_numbers == ('KA01', None)
        assert line.product_name == battery.name

    def test_later_product_edit_does_not_change_line(self, battery):
        cart = Cart()
        _, line = cart.add_line(ready_allocator(battery, ['S1']), seed_pricing(battery, 'b2c'))
        edited = replace(battery, name='Renamed', mrp=D('5000'))
        assert edited.name == 'Renamed'
        assert cart.lines[0].product_name == 'Exide Mileage 35Ah'
        assert cart.lines[0].mrp == D('1000.00')

    def test_incomplete_selection_rejected(self, battery):
        cart = Cart()
        allocator = ready_allocator(battery, ['S1'], quantity=2)
        result, line = cart.add_line(allocator, seed_pricing(battery, 'b2c'))
        assert line is None
        assert not result.ok
        assert len(cart) == 0

    def test_serial_already_in_cart_rejected(self, battery):
        cart = Cart()
        cart.add_line(ready_allocator(battery, ['S1']), seed_pricing(battery, 'b2c'))
        result, line = cart.add_line(ready_allocator(battery, ['S1']), seed_pricing(battery, 'b2c'))
        assert line is None
        assert result.errors == ['Serial number(s) already in cart: S1']
        assert len(cart) == 1

    def test_mrp_required(self, battery):
        cart = Cart()
        result, line = cart.add_line(ready_allocator(battery, ['S1']), PricingState.from_mrp(0))
        assert line is None
        assert 'MRP is required' in result.errors

    def test_bulk_line_has_no_serials(self, water_can):
        cart = Cart()
        allocator = SerialAllocator()
        allocator.reserve_units(water_can, 5)
        allocator.receive_pool(water_can.id, [])
        result, line = cart.add_line(allocator, seed_pricing(water_can, 'b2c'), vehicle_numbers=['X'])
        assert result.ok
        assert line.serials == ()
        assert line.vehicle_numbers == ()
        assert line.final_amount == D('500.00')

    def test_customer_class_recorded(self, battery):
        cart = Cart()
        _, line = cart.add_line(ready_allocator(battery, ['S3']), seed_pricing(battery, 'b2b'),
                                customer_class='wholesale')
        assert line.customer_class == 'b2b'
        assert line.final_amount == D('820.00')


class TestTotals:
    """Tests for Cart.totals and line removal."""

    def test_totals_follow_removal(self, battery, bike_battery):
        cart = Cart()
        _, bikes = cart.add_line(ready_allocator(bike_battery, ['B1', 'B2']), PricingState.from_mrp(500))
        cart.add_line(ready_allocator(battery, ['S1']), PricingState.from_mrp(500))

        totals = cart.totals()
        assert (totals.units, totals.total, totals.lines) == (3, D('1500.00'), 2)

        assert cart.remove_line(bikes.line_id) is True
        totals = cart.totals()
        assert (totals.units, totals.total) == (1, D('500.00'))

    def test_savings_and_mrp_total(self, battery):
        cart = Cart()
        cart.add_line(ready_allocator(battery, ['S1', 'S2']), seed_pricing(battery, 'b2c'))
        totals = cart.totals()
        assert totals.mrp_total == D('2000.00')
        assert totals.savings == D('240.00')
        assert totals.total == totals.mrp_total - totals.savings

    def test_removed_serials_can_be_added_again(self, battery):
        cart = Cart()
        _, line = cart.add_line(ready_allocator(battery, ['S1']), seed_pricing(battery, 'b2c'))
        cart.remove_line(line.line_id)
        result, _ = cart.add_line(ready_allocator(battery, ['S1']), seed_pricing(battery, 'b2c'))
        assert result.ok

    def test_unknown_line(self):
        assert Cart().remove_line('nope') is False

    def test_empty_cart(self):
        totals = Cart().totals()
        assert (totals.units, totals.total, totals.lines) == (0, D('0'), 0)

    def test_clear(self, battery):
        cart = Cart()
        cart.add_line(ready_allocator(battery, ['S1']), seed_pricing(battery, 'b2c'))
        cart.clear()
        assert len(cart) == 0


class TestCartSnapshot:
    """Tests for Cart.to_dict / from_dict."""

    def test_round_trip(self, battery, water_can):
        cart = Cart()
        cart.add_line(ready_allocator(battery, ['S1', 'S2']), seed_pricing(battery, 'b2c'),
                      vehicle_numbers=['KA01', 'KA02'])
        restored = Cart.from_dict(cart.to_dict())
        assert restored.lines == cart.lines

    def test_malformed_lines_dropped(self, battery):
        cart = Cart()
        cart.add_line(ready_allocator(battery, ['S1']), seed_pricing(battery, 'b2c'))
        data = cart.to_dict()
        data['lines'].append({'product_name': 'no id'})
        restored = Cart.from_dict(data)
        assert len(restored) == 1

    @pytest.mark.parametrize('data', ['x', {'lines': 5}, {'lines': ['x', 7]}])
    def test_wrong_shapes_restore_empty(self, data):
        assert Cart.from_dict(data).lines == []

    def test_line_from_string_amounts(self):
        line = LineItem.from_dict({
            'line_id': 'a', 'product_id': '7', 'quantity': '2', 'mrp': '100.00',
            'discount_amount': '20.00', 'final_amount': '180.00', 'customer_class': 'retail',
        })
        assert line.product_id == 7
        assert line.final_amount == D('180.00')
        assert line.customer_class == 'b2c'


class TestVehicleNumbers:
    """Tests for normalise_vehicle_numbers."""

    def test_same_for_all(self):
        assert normalise_vehicle_numbers(3, ' KA01 ') == ('KA01', 'KA01', 'KA01')

    def test_blank_is_none(self):
        assert normalise_vehicle_numbers(2, '') == (None, None)

    @pytest.mark.parametrize('given,expected', [
        (['A'], ('A', None, None)),
        (['A', '', 'C', 'D'], ('A', None, 'C')),
    ])
    def test_per_unit_list_fitted_to_quantity(self, given, expected):
        assert normalise_vehicle_numbers(3, vehicle_numbers=given, same_for_all=False) == expected
