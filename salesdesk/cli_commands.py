"""
Flask CLI commands for database maintenance.

Commands:
- flask init-db: Create tables and indexes
- flask reconcile-customer-totals: Rebuild customer running totals from sales
- flask seed-sales: Load demo customers, products and sales
"""
from decimal import Decimal

import click

from salesdesk.database import get_session, init_schema
from salesdesk.exceptions import PosError
from salesdesk.models import Product
from salesdesk.services import customer_service, sale_service

DEMO_PRODUCTS = [
    ('Samsung Galaxy A54', 'SN-A54-0001', 'Samsung', Decimal('389.99')),
    ('iPhone 13 128GB', 'SN-IP13-0002', 'Apple', Decimal('629.00')),
    ('Xiaomi Redmi Note 12', 'SN-RN12-0003', 'Xiaomi', Decimal('219.50')),
    ('Motorola G84', 'SN-G84-0004', 'Motorola', Decimal('249.90')),
]

DEMO_CUSTOMERS = [
    ('Lucia Fernandez', '555-0101', 'lucia@example.com'),
    ('Martin Gomez', '555-0102', None),
    ('Sofia Ruiz', None, 'sofia@example.com'),
]


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables and indexes."""
        init_schema()
        click.echo(click.style('Database schema created.', fg='green'))

    @app.cli.command('reconcile-customer-totals')
    @click.option('--customer-id', type=int, default=None, help='Only reconcile this customer')
    def reconcile_customer_totals(customer_id):
        """Recompute totalPurchases/totalSpent from the sales table."""
        drifted = customer_service.recompute_totals(get_session(), customer_id=customer_id)

        if not drifted:
            click.echo(click.style('All customer totals match their sales.', fg='green'))
            return

        for row in drifted:
            click.echo(
                f"#{row['customer_id']} {row['name']}: "
                f"purchases {row['stored_purchases']} -> {row['actual_purchases']}, "
                f"spent {row['stored_spent']} -> {row['actual_spent']}"
            )
        click.echo(click.style(f'{len(drifted)} customer(s) corrected.', fg='yellow'))

    @app.cli.command('seed-sales')
    @click.option('--operator-id', default='seed', show_default=True, help='createdBy for the demo sales')
    def seed_sales(operator_id):
        """Load demo customers, products and a few sales in every payment state."""
        session = get_session()
        init_schema()

        products = []
        for name, serial, brand, price in DEMO_PRODUCTS:
            product = session.query(Product).filter_by(serial_number=serial).first()
            if not product:
                product = Product(name=name, serial_number=serial, brand=brand, price=price, stock=5)
                session.add(product)
            products.append(product)
        session.commit()

        customers = [
            customer_service.search_or_create(session, name, phone=phone, email=email)
            for name, phone, email in DEMO_CUSTOMERS
        ]

        # (customer, products, paid up front) -> pending, partial and paid sales
        plans = [
            (customers[0], [products[0]], None),
            (customers[1], [products[1], products[2]], Decimal('300.00')),
            (customers[2], [products[3]], products[3].price),
        ]

        try:
            for customer, sold, paid in plans:
                sale = sale_service.create_sale(
                    session,
                    customer_id=customer.id,
                    customer_name=customer.name,
                    items=[{
                        'serial_number': p.serial_number,
                        'product_name': p.name,
                        'product_id': p.id,
                        'quantity': 1,
                        'price': p.price,
                    } for p in sold],
                    payments=[{'amount': paid}] if paid else None,
                    notes='Demo sale',
                    created_by=operator_id,
                )
                click.echo(f"Sale #{sale.id} for {customer.name}: {sale.total_amount} ({sale.status})")
        except PosError as e:
            click.echo(click.style(f'Seeding failed: {e.message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style('Demo data loaded.', fg='green'))
