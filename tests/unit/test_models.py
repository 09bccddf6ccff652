"""
Unit tests for SQLAlchemy models.
"""

import pytest
from decimal import Decimal
from sqlalchemy.exc import IntegrityError

from salesdesk.models import (
    Customer, Product, Sale, SaleItem, SalePayment,
    SaleStatus, PaymentStatus, ReturnStatus,
    derive_payment_status, derive_return_status, combine_status,
)


def _sale(total, paid_amounts=(), returned=()):
    sale = Sale(customer_id=1, customer_name='Test', total_amount=Decimal(total))
    sale.items = [
        SaleItem(position=i, serial_number=f'SN-{i}', product_name='Item',
                 quantity=1, price=Decimal('10'), is_returned=flag)
        for i, flag in enumerate(returned or (False,))
    ]
    sale.payments = [
        SalePayment(position=i, amount=Decimal(amount))
        for i, amount in enumerate(paid_amounts)
    ]
    sale.recalculate()
    return sale


class TestStatusDerivation:
    """Tests for the payment/return status rules."""

    def test_payment_status(self):
        assert derive_payment_status(Decimal('250'), Decimal('0')) == PaymentStatus.PENDING
        assert derive_payment_status(Decimal('250'), Decimal('0.01')) == PaymentStatus.PARTIAL
        assert derive_payment_status(Decimal('250'), Decimal('250')) == PaymentStatus.PAID
        assert derive_payment_status(Decimal('250'), Decimal('300')) == PaymentStatus.PAID

    def test_zero_total_unpaid_sale_is_pending(self):
        assert derive_payment_status(Decimal('0'), Decimal('0')) == PaymentStatus.PENDING

    def test_return_status(self):
        item = lambda returned: SaleItem(is_returned=returned)
        assert derive_return_status([]) == ReturnStatus.NONE
        assert derive_return_status([item(False), item(False)]) == ReturnStatus.NONE
        assert derive_return_status([item(True), item(False)]) == ReturnStatus.PARTIAL
        assert derive_return_status([item(True), item(True)]) == ReturnStatus.RETURNED

    def test_returned_overrides_payment_status(self):
        assert combine_status(PaymentStatus.PAID, ReturnStatus.RETURNED) == SaleStatus.RETURNED
        assert combine_status(PaymentStatus.PENDING, ReturnStatus.RETURNED) == SaleStatus.RETURNED
        assert combine_status(PaymentStatus.PARTIAL, ReturnStatus.PARTIAL) == SaleStatus.PARTIAL


class TestSaleRecalculate:
    """Tests for Sale.recalculate()."""

    def test_amounts_follow_payments(self):
        sale = _sale('250', ['100', '50'])

        assert sale.paid_amount == Decimal('150')
        assert sale.remaining_amount == Decimal('100')
        assert sale.status == 'partial'

    def test_overpayment_gives_negative_remaining(self):
        sale = _sale('250', ['300'])

        assert sale.status == 'paid'
        assert sale.remaining_amount == Decimal('-50')

    def test_all_items_returned(self):
        sale = _sale('20', ['20'], returned=(True, True))

        assert sale.payment_status == 'paid'
        assert sale.return_status == 'returned'
        assert sale.status == 'returned'
        assert sale.is_fully_returned is True

    def test_partial_return_keeps_payment_status(self):
        sale = _sale('20', [], returned=(True, False))

        assert sale.return_status == 'partial'
        assert sale.status == 'pending'

    def test_to_dict_is_camel_case(self):
        data = _sale('250', ['250']).to_dict()

        assert data['totalAmount'] == 250.0
        assert data['paidAmount'] == 250.0
        assert data['remainingAmount'] == 0.0
        assert data['status'] == 'paid'
        assert data['items'][0]['serialNumber'] == 'SN-0'
        assert data['payments'][0]['amount'] == 250.0


class TestPersistence:
    """Tests for table constraints and cascades."""

    def test_sale_with_children_persists(self, session):
        sale = _sale('250', ['100'])
        session.add(sale)
        session.commit()

        assert sale.id is not None
        assert sale.version == 1
        assert len(sale.items) == 1
        assert sale.payments[0].method == 'cash'

    def test_deleting_sale_removes_items_and_payments(self, session):
        sale = _sale('250', ['100'])
        session.add(sale)
        session.commit()

        session.delete(sale)
        session.commit()

        assert session.query(SaleItem).count() == 0
        assert session.query(SalePayment).count() == 0

    def test_payment_amount_must_be_positive(self, session):
        sale = _sale('250')
        sale.payments.append(SalePayment(position=0, amount=Decimal('0')))
        session.add(sale)

        with pytest.raises(IntegrityError):
            session.commit()

    def test_item_quantity_must_be_positive(self, session):
        sale = _sale('250')
        sale.items[0].quantity = 0
        session.add(sale)

        with pytest.raises(IntegrityError):
            session.commit()

    def test_product_serial_number_unique(self, session, product):
        session.add(Product(name='Copy', serial_number=product.serial_number, price=Decimal('1')))

        with pytest.raises(IntegrityError):
            session.commit()

    def test_customer_totals_default_to_zero(self, session):
        customer = Customer(name='New Customer')
        session.add(customer)
        session.commit()

        assert customer.total_purchases == 0
        assert customer.total_spent == Decimal('0')
        assert customer.to_dict()['totalSpent'] == 0.0
