"""
Unit tests for the customer directory service.
"""

import pytest
from decimal import Decimal

from salesdesk.exceptions import ValidationError, NotFoundError
from salesdesk.models import Customer, Sale
from salesdesk.services import customer_service


class TestSearchOrCreate:

    def test_creates_new_customer(self, session):
        customer = customer_service.search_or_create(
            session, '  Bruno Diaz ', phone='555-1234', email='Bruno@Mail.com'
        )

        assert customer.id is not None
        assert customer.name == 'Bruno Diaz'
        assert customer.email == 'bruno@mail.com'
        assert customer.total_purchases == 0

    def test_finds_existing_by_partial_name(self, session, customer):
        found = customer_service.search_or_create(session, 'Ana')

        assert found.id == customer.id
        assert customer_service.search_or_create(session, 'torres').id == customer.id
        assert session.query(Customer).count() == 1

    def test_wildcards_in_name_match_literally(self, session, customer):
        created = customer_service.search_or_create(session, '%')

        assert created.id != customer.id
        assert created.name == '%'
        assert customer_service.search_or_create(session, 'a_a').id not in (customer.id, created.id)

    def test_phone_narrows_the_match(self, session, customer):
        other = customer_service.search_or_create(session, 'Ana Torres', phone='555-9999')

        assert other.id != customer.id
        assert session.query(Customer).count() == 2
        assert customer_service.search_or_create(session, 'Ana Torres', phone='555-0001').id == customer.id

    def test_blank_name_rejected(self, session):
        with pytest.raises(ValidationError):
            customer_service.search_or_create(session, '   ')


class TestAdjustTotals:

    def test_increments_atomically(self, session, customer):
        assert customer_service.adjust_totals(session, customer.id, 1, Decimal('99.90')) is True
        assert customer_service.adjust_totals(session, customer.id, 1, Decimal('0.10')) is True
        session.commit()

        customer = session.get(Customer, customer.id)
        assert customer.total_purchases == 2
        assert customer.total_spent == Decimal('100.00')

    def test_does_not_commit(self, session, customer):
        customer_service.adjust_totals(session, customer.id, 1, Decimal('10'))
        session.rollback()

        assert session.get(Customer, customer.id).total_purchases == 0

    def test_missing_customer_returns_false(self, session):
        assert customer_service.adjust_totals(session, 424242, -1, Decimal('-5')) is False


class TestDirectory:

    def test_get_customer(self, session, customer):
        assert customer_service.get_customer(session, customer.id).name == 'Ana Torres'

        with pytest.raises(NotFoundError):
            customer_service.get_customer(session, 9999)
        with pytest.raises(ValidationError):
            customer_service.get_customer(session, 2 ** 63)
        with pytest.raises(ValidationError):
            customer_service.get_customer(session, 0)

    def test_list_customers_search_treats_wildcards_literally(self, session, customer):
        customer_service.search_or_create(session, 'Shop_100%')

        result = customer_service.list_customers(session, q='_100%')

        assert result['total'] == 1
        assert result['customers'][0].name == 'Shop_100%'
        assert customer_service.list_customers(session, q='%')['total'] == 1

    def test_list_customers_search(self, session, customer):
        customer_service.search_or_create(session, 'Carlos Paz', email='carlos@paz.com')

        result = customer_service.list_customers(session, q='PAZ.COM')

        assert result['total'] == 1
        assert result['customers'][0].name == 'Carlos Paz'
        assert customer_service.list_customers(session)['total'] == 2

    def test_update_identity_fields(self, session, customer):
        updated = customer_service.update_customer(
            session, customer.id, {'phone': '555-7777', 'email': 'ANA@NEW.COM'}
        )

        assert updated.phone == '555-7777'
        assert updated.email == 'ana@new.com'

    def test_totals_are_not_editable(self, session, customer):
        with pytest.raises(ValidationError):
            customer_service.update_customer(session, customer.id, {'total_spent': 1000})

    def test_delete_keeps_sales(self, session, customer, sale):
        customer_id = customer.id
        customer_service.delete_customer(session, customer_id)

        assert session.get(Customer, customer_id) is None
        remaining = session.get(Sale, sale.id)
        assert remaining.customer_name == 'Ana Torres'


class TestRecomputeTotals:

    def test_repairs_drift(self, session, customer, sale):
        session.get(Customer, customer.id).total_spent = Decimal('1.00')
        session.commit()

        drifted = customer_service.recompute_totals(session)

        assert len(drifted) == 1
        assert drifted[0]['customer_id'] == customer.id
        assert drifted[0]['actual_spent'] == Decimal('250')
        assert session.get(Customer, customer.id).total_spent == Decimal('250.00')
        assert customer_service.recompute_totals(session) == []

    def test_customer_without_sales_is_zeroed(self, session, customer):
        session.get(Customer, customer.id).total_purchases = 4
        session.commit()

        drifted = customer_service.recompute_totals(session, customer_id=customer.id)

        assert drifted[0]['actual_purchases'] == 0
        assert session.get(Customer, customer.id).total_purchases == 0
