"""
Unit tests for the serial number lookup.
"""

import pytest

from salesdesk.exceptions import ValidationError
from salesdesk.services.inventory_service import search_product_by_serial


def test_finds_by_partial_serial_case_insensitive(session, product):
    result = search_product_by_serial(session, 'sn-s23')

    assert result['found'] is True
    assert result['product'].id == product.id


def test_not_found(session, product):
    assert search_product_by_serial(session, 'XYZ') == {'found': False, 'product': None}


def test_wildcards_are_literal(session, product):
    assert search_product_by_serial(session, '%')['found'] is False


def test_blank_serial_rejected(session):
    with pytest.raises(ValidationError):
        search_product_by_serial(session, '  ')
