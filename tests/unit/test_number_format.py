"""
Unit tests for number parsing and formatting.
"""

import pytest
from decimal import Decimal

from backoffice.utils.formatters import money_inr, num_in
from backoffice.utils.number_format import coerce_decimal, parse_inr_amount, parse_quantity


class TestParseInrAmount:
    """Tests for parse_inr_amount."""

    @pytest.mark.parametrize('raw,expected', [
        ('1,23,456.78', '123456.78'),
        ('₹ 1,500', '1500.00'),
        ('Rs. 250.5', '250.50'),
        ('12345', '12345.00'),
        (99, '99.00'),
        (12.5, '12.50'),
    ])
    def test_valid(self, raw, expected):
        assert parse_inr_amount(raw) == Decimal(expected)

    @pytest.mark.parametrize('raw', [None, '', 'abc', '1,2,3', '-5', Decimal('-1'), Decimal('NaN')])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            parse_inr_amount(raw)


class TestParseQuantity:
    """Tests for parse_quantity."""

    @pytest.mark.parametrize('raw,expected', [('3', 3), (2, 2), (' 10 ', 10), ('4.0', 4)])
    def test_valid(self, raw, expected):
        assert parse_quantity(raw) == expected

    @pytest.mark.parametrize('raw', ['0', '-1', '2.5', 'x', None, True])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            parse_quantity(raw)


class TestCoerceDecimal:
    """Tests for coerce_decimal."""

    @pytest.mark.parametrize('raw,expected', [
        ('880', '880'), (1.5, '1.5'), ('₹1,000', '1000'), ('1e2', '100'),
        ('abc', '0'), ('-1', '0'), ('Infinity', '0'), (None, '0'), (False, '0'),
        ('1e15', '1e15'), ('1e30', '0'), (10 ** 20, '0'),
    ])
    def test_values(self, raw, expected):
        assert coerce_decimal(raw) == Decimal(expected)


class TestFormatters:
    """Tests for Indian-style display formatting."""

    @pytest.mark.parametrize('raw,expected', [
        (1500, '1,500'),
        (123456.5, '1,23,456.5'),
        (12345678, '1,23,45,678'),
        (-1234, '-1,234'),
        (None, '-'),
        ('abc', '-'),
    ])
    def test_num_in(self, raw, expected):
        assert num_in(raw) == expected

    def test_money(self):
        assert money_inr(Decimal('123456.785')) == '₹1,23,456.79'
        assert money_inr(0) == '₹0.00'
        assert money_inr(-50) == '-₹50.00'
        assert money_inr(None) == '-'
