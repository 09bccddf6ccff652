"""Customer directory service: lookup, registration and running totals."""
import logging
import math
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError

from salesdesk.exceptions import ValidationError, NotFoundError
from salesdesk.models import Customer, Sale
from salesdesk.utils.limits import MAX_ID
from salesdesk.utils.search import LIKE_ESCAPE, contains_pattern

logger = logging.getLogger(__name__)

# Fields a caller may overwrite; totals are maintained by the sale lifecycle only
EDITABLE_FIELDS = ('name', 'phone', 'email', 'address', 'notes')


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def search_or_create(session, name: str, phone: str = None, email: str = None) -> Customer:
    """
    Return the first customer matching name (and phone, when given), or create one.

    The name match is a case-insensitive partial match on the trimmed name
    ("ana" finds "Ana Torres"); LIKE wildcards in the input match literally.
    When several customers match, the oldest wins. Two concurrent identical
    calls can both miss and create duplicate customers: there is no
    uniqueness constraint on customer names.

    Args:
        session: SQLAlchemy session
        name: Customer name (required)
        phone: Optional phone, narrows the match when given
        email: Optional email, only used when creating

    Returns:
        Customer (existing or newly created)

    Raises:
        ValidationError: If name is blank
    """
    name = _clean(name)
    if not name:
        raise ValidationError('Customer name is required')
    phone = _clean(phone)

    query = session.query(Customer).filter(Customer.name.ilike(contains_pattern(name), escape=LIKE_ESCAPE))
    if phone:
        query = query.filter(Customer.phone == phone)

    customer = query.order_by(Customer.id.asc()).first()
    if customer:
        logger.debug(f"Customer lookup hit: id={customer.id}, name={name}")
        return customer

    email = _clean(email)
    try:
        customer = Customer(
            name=name,
            phone=phone,
            email=email.lower() if email else None,
            total_purchases=0,
            total_spent=Decimal('0'),
        )
        session.add(customer)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise

    logger.info(f"Customer created: id={customer.id}, name={name}")
    return customer


def adjust_totals(session, customer_id: int, delta_purchases: int, delta_spent: Decimal) -> bool:
    """
    Increment a customer's running totals inside the caller's transaction.

    Issues a single UPDATE ... SET total = total + delta, so concurrent
    adjustments never overwrite each other. Does not commit.

    Returns:
        True if the customer row exists, False otherwise (orphaned reference)
    """
    result = session.execute(
        update(Customer)
        .where(Customer.id == customer_id)
        .values(
            total_purchases=Customer.total_purchases + delta_purchases,
            total_spent=Customer.total_spent + Decimal(str(delta_spent)),
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        logger.warning(f"adjust_totals: customer {customer_id} not found (delta={delta_purchases}, {delta_spent})")
        return False

    logger.debug(f"adjust_totals: customer={customer_id}, purchases{delta_purchases:+d}, spent{Decimal(str(delta_spent)):+}")
    return True


def get_customer(session, customer_id: int) -> Customer:
    """Get a customer by id or raise NotFoundError."""
    if not 1 <= customer_id <= MAX_ID:
        raise ValidationError(f'Invalid customerId: {customer_id}')
    customer = session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError('Customer not found')
    return customer


def list_customers(session, q: str = None, page: int = 1, limit: int = 20) -> Dict[str, Any]:
    """List customers, newest first, optionally searching name/phone/email."""
    page = max(int(page or 1), 1)
    limit = max(int(limit or 20), 1)

    query = session.query(Customer)
    q = _clean(q)
    if q:
        pattern = contains_pattern(q)
        query = query.filter(or_(
            Customer.name.ilike(pattern, escape=LIKE_ESCAPE),
            Customer.phone.ilike(pattern, escape=LIKE_ESCAPE),
            Customer.email.ilike(pattern, escape=LIKE_ESCAPE),
        ))

    total = query.count()
    customers = (
        query.order_by(Customer.created_at.desc(), Customer.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        'customers': customers,
        'total': total,
        'page': page,
        'pages': math.ceil(total / limit),
    }


def update_customer(session, customer_id: int, data: Dict[str, Any]) -> Customer:
    """
    Update a customer's identity fields.

    Raises:
        ValidationError: For unknown/non-editable fields or a blank name
        NotFoundError: If the customer does not exist
    """
    unknown = sorted(set(data) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")

    customer = get_customer(session, customer_id)

    if 'name' in data and not _clean(data['name']):
        raise ValidationError('Customer name is required')

    try:
        for key, value in data.items():
            value = _clean(value)
            if key == 'email' and value:
                value = value.lower()
            setattr(customer, key, value)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise

    logger.info(f"Customer updated: id={customer_id}, fields={sorted(data)}")
    return customer


def delete_customer(session, customer_id: int) -> None:
    """Delete a customer. Its sales keep their id reference and name snapshot."""
    customer = get_customer(session, customer_id)
    try:
        session.delete(customer)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise
    logger.info(f"Customer deleted: id={customer_id}")


def recompute_totals(session, customer_id: int = None) -> List[Dict[str, Any]]:
    """
    Rebuild customers' running totals from the sales table.

    Args:
        session: SQLAlchemy session
        customer_id: Only reconcile this customer (default: all)

    Returns:
        List of dicts describing each customer whose stored totals had drifted:
        customer_id, name, stored/actual purchases and spent.
    """
    sales_query = session.query(
        Sale.customer_id,
        func.count(Sale.id).label('purchases'),
        func.coalesce(func.sum(Sale.total_amount), 0).label('spent'),
    ).group_by(Sale.customer_id)

    customers_query = session.query(Customer)
    if customer_id is not None:
        sales_query = sales_query.filter(Sale.customer_id == customer_id)
        customers_query = customers_query.filter(Customer.id == customer_id)

    actual = {
        row.customer_id: (int(row.purchases), Decimal(str(row.spent)))
        for row in sales_query.all()
    }

    drifted = []
    try:
        for customer in customers_query.all():
            purchases, spent = actual.get(customer.id, (0, Decimal('0')))
            stored_spent = Decimal(str(customer.total_spent or 0))
            if customer.total_purchases == purchases and stored_spent == spent:
                continue

            drifted.append({
                'customer_id': customer.id,
                'name': customer.name,
                'stored_purchases': customer.total_purchases,
                'actual_purchases': purchases,
                'stored_spent': stored_spent,
                'actual_spent': spent,
            })
            customer.total_purchases = purchases
            customer.total_spent = spent

        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise

    if drifted:
        logger.warning(f"Reconciled totals for {len(drifted)} customer(s): {[d['customer_id'] for d in drifted]}")
    return drifted
