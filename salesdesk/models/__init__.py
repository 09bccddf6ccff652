"""Models package - exports all SQLAlchemy models."""
from salesdesk.models.customer import Customer
from salesdesk.models.product import Product, ProductStatus
from salesdesk.models.sale import (
    Sale, SaleStatus, PaymentStatus, ReturnStatus,
    derive_payment_status, derive_return_status, combine_status
)
from salesdesk.models.sale_item import SaleItem
from salesdesk.models.sale_payment import SalePayment

__all__ = [
    'Customer',
    'Product', 'ProductStatus',
    'Sale', 'SaleStatus', 'PaymentStatus', 'ReturnStatus',
    'derive_payment_status', 'derive_return_status', 'combine_status',
    'SaleItem', 'SalePayment',
]
