"""
Reporting service.
Provides aggregated sales statistics, customer statements and database health
for the admin dashboard. Read-only.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import aliased

from salesdesk.database import get_declared_indexes, get_existing_indexes
from salesdesk.exceptions import ValidationError
from salesdesk.models import Customer, Product, Sale
from salesdesk.services.customer_service import get_customer

logger = logging.getLogger(__name__)

PERIODS = {
    '7d': timedelta(days=7),
    '30d': timedelta(days=30),
    '90d': timedelta(days=90),
    '1y': timedelta(days=365),
}
DEFAULT_PERIOD = '30d'


def _to_decimal(value) -> Decimal:
    """Safe conversion to Decimal (handle None and float aggregates)."""
    if value is None:
        return Decimal('0')
    return Decimal(str(value))


def _day_label(value) -> str:
    # PostgreSQL returns a date, SQLite an ISO string
    return value.isoformat() if hasattr(value, 'isoformat') else str(value)


def get_period_range(period: str = DEFAULT_PERIOD, now: datetime = None):
    """
    Get the datetime window for a period key.

    Unknown keys fall back to the last 30 days.

    Returns:
        tuple: (period, start_dt, end_dt)
    """
    now = now or datetime.now()
    if period not in PERIODS:
        period = DEFAULT_PERIOD
    return period, now - PERIODS[period], now


def get_sales_statistics(session, period: str = DEFAULT_PERIOD, start: datetime = None,
                         end: datetime = None, top_limit: int = 10) -> dict:
    """
    Get sales statistics for a date window.

    Args:
        session: SQLAlchemy session
        period: '7d', '30d', '90d' or '1y' (ignored when start is given)
        start: Window start (inclusive)
        end: Window end (inclusive, default now; only applied with start)
        top_limit: Number of top customers to return

    Returns:
        dict with keys:
            - period, start_date, end_date
            - summary: totalSales, totalPaid, totalRemaining, salesCount,
              avgSaleAmount, maxSaleAmount, minSaleAmount
            - status_breakdown: {status: {count, totalAmount}}
            - top_customers: list of {customerId, customerName, totalSpent, purchaseCount}
            - sales_by_day: list of {day, totalAmount, salesCount}
    """
    if start is not None:
        end = end or datetime.now()
        if start > end:
            raise ValidationError('startDate must be before endDate')
        period = 'custom'
    else:
        period, start, end = get_period_range(period)

    # Period windows are open-ended so future-dated sales still count
    window = [Sale.sale_date >= start]
    if period == 'custom':
        window.append(Sale.sale_date <= end)

    # 1. Summary
    row = session.query(
        func.coalesce(func.sum(Sale.total_amount), 0).label('total_sales'),
        func.coalesce(func.sum(Sale.paid_amount), 0).label('total_paid'),
        func.coalesce(func.sum(Sale.remaining_amount), 0).label('total_remaining'),
        func.count(Sale.id).label('sales_count'),
        func.avg(Sale.total_amount).label('avg_amount'),
        func.max(Sale.total_amount).label('max_amount'),
        func.min(Sale.total_amount).label('min_amount'),
    ).filter(*window).first()

    summary = {
        'totalSales': _to_decimal(row.total_sales),
        'totalPaid': _to_decimal(row.total_paid),
        'totalRemaining': _to_decimal(row.total_remaining),
        'salesCount': int(row.sales_count or 0),
        'avgSaleAmount': _to_decimal(row.avg_amount).quantize(Decimal('0.01')),
        'maxSaleAmount': _to_decimal(row.max_amount),
        'minSaleAmount': _to_decimal(row.min_amount),
    }

    # 2. Status breakdown
    status_rows = session.query(
        Sale.status,
        func.count(Sale.id).label('count'),
        func.coalesce(func.sum(Sale.total_amount), 0).label('total_amount'),
    ).filter(*window).group_by(Sale.status).all()

    status_breakdown = {
        r.status: {'count': int(r.count), 'totalAmount': _to_decimal(r.total_amount)}
        for r in status_rows
    }

    # 3. Top customers by spend (current name, or the latest snapshot once deleted)
    latest = aliased(Sale)
    latest_name = (
        select(latest.customer_name)
        .where(latest.customer_id == Sale.customer_id)
        .order_by(latest.sale_date.desc(), latest.id.desc())
        .limit(1)
        .correlate(Sale)
        .scalar_subquery()
    )
    total_spent = func.sum(Sale.total_amount).label('total_spent')
    top_rows = session.query(
        Sale.customer_id,
        func.coalesce(func.max(Customer.name), latest_name).label('customer_name'),
        total_spent,
        func.count(Sale.id).label('purchase_count'),
    ).outerjoin(
        Customer, Customer.id == Sale.customer_id
    ).filter(*window).group_by(Sale.customer_id).order_by(
        total_spent.desc(), Sale.customer_id.asc()
    ).limit(top_limit).all()

    top_customers = [
        {
            'customerId': r.customer_id,
            'customerName': r.customer_name,
            'totalSpent': _to_decimal(r.total_spent),
            'purchaseCount': int(r.purchase_count),
        }
        for r in top_rows
    ]

    # 4. Sales by day
    day = func.date(Sale.sale_date).label('day')
    day_rows = session.query(
        day,
        func.coalesce(func.sum(Sale.total_amount), 0).label('total_amount'),
        func.count(Sale.id).label('sales_count'),
    ).filter(*window).group_by(day).order_by(day.asc()).all()

    sales_by_day = [
        {
            'day': _day_label(r.day),
            'totalAmount': _to_decimal(r.total_amount),
            'salesCount': int(r.sales_count),
        }
        for r in day_rows
    ]

    logger.debug(f"Sales statistics: period={period}, sales={summary['salesCount']}")

    return {
        'period': period,
        'start_date': start,
        'end_date': end,
        'summary': summary,
        'status_breakdown': status_breakdown,
        'top_customers': top_customers,
        'sales_by_day': sales_by_day,
    }


def get_customer_statement(session, customer_id: int) -> dict:
    """
    All sales of one customer with running balance, oldest first.

    Returns:
        dict with customer, sales (list of Sale), and totals
        (total_amount, paid_amount, remaining_amount, returned_items)
    """
    customer = get_customer(session, customer_id)

    sales = session.query(Sale).filter(
        Sale.customer_id == customer.id
    ).order_by(Sale.sale_date.asc(), Sale.id.asc()).all()

    totals = {
        'total_amount': sum((_to_decimal(s.total_amount) for s in sales), Decimal('0')),
        'paid_amount': sum((_to_decimal(s.paid_amount) for s in sales), Decimal('0')),
        'remaining_amount': sum((_to_decimal(s.remaining_amount) for s in sales), Decimal('0')),
        'returned_items': sum(1 for s in sales for item in s.items if item.is_returned),
    }

    return {
        'customer': customer,
        'sales': sales,
        'totals': totals,
    }


def get_database_health(session) -> dict:
    """
    Row counts and index status per table.

    Returns:
        dict with collections (counts), indexes (names per table) and
        indexes_valid (every declared index exists in the database)
    """
    counts = {
        'customers': session.query(func.count(Customer.id)).scalar() or 0,
        'sales': session.query(func.count(Sale.id)).scalar() or 0,
        'products': session.query(func.count(Product.id)).scalar() or 0,
    }

    declared = get_declared_indexes()
    existing = get_existing_indexes()

    missing = {
        table: sorted(set(names) - set(existing.get(table, [])))
        for table, names in declared.items()
    }
    missing = {table: names for table, names in missing.items() if names}
    if missing:
        logger.warning(f"Missing indexes: {missing}")

    return {
        'collections': {name: {'count': count} for name, count in counts.items()},
        'indexes': {
            table: {'count': len(names), 'indexes': names}
            for table, names in existing.items()
        },
        'indexes_valid': not missing,
        'missing_indexes': missing,
    }
