"""Inventory lookup for sale item entry."""
from salesdesk.exceptions import ValidationError
from salesdesk.models import Product
from salesdesk.utils.search import LIKE_ESCAPE, contains_pattern


def search_product_by_serial(session, serial_number: str) -> dict:
    """
    Find a stocked product by serial number (case-insensitive, partial match).

    Returns:
        {'found': True, 'product': Product} or {'found': False, 'product': None}

    Raises:
        ValidationError: If serial_number is blank
    """
    serial_number = (serial_number or '').strip()
    if not serial_number:
        raise ValidationError('Serial number is required')

    product = session.query(Product).filter(
        Product.serial_number.ilike(contains_pattern(serial_number), escape=LIKE_ESCAPE)
    ).order_by(Product.id.asc()).first()

    if not product:
        return {'found': False, 'product': None}

    return {'found': True, 'product': product}
