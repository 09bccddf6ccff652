"""
Sales service with transactional logic.
Handles sale creation, partial payments, item returns, edits and deletion.

Every mutation re-derives the sale's paid/remaining amounts and status via
Sale.recalculate(). Creating or deleting a sale adjusts the customer's
running totals in the same transaction as the sale write.
"""
import logging
import math
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Dict, Optional, Any, Tuple

from flask import current_app, has_app_context
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from salesdesk.exceptions import PosError, ValidationError, NotFoundError, ConsistencyError
from salesdesk.models import Customer, Sale, SaleItem, SalePayment, SaleStatus
from salesdesk.services.customer_service import adjust_totals
from salesdesk.utils.limits import MAX_AMOUNT, MAX_ID, MAX_QUANTITY
from salesdesk.utils.search import LIKE_ESCAPE, contains_pattern
from salesdesk.utils.serializers import parse_datetime

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')

# Top-level fields callers may overwrite. Amounts, statuses, items and
# payments only change through the dedicated operations.
UPDATABLE_FIELDS = ('notes', 'customer_name', 'sale_date')


# =====================================================
# INPUT PARSING
# =====================================================

def _parse_id(value, field: str) -> int:
    if value is None or isinstance(value, bool) or str(value).strip() == '':
        raise ValidationError(f'{field} is required')
    try:
        parsed = int(str(value).strip())
    except ValueError:
        raise ValidationError(f'Invalid {field}: {value}')
    if parsed < 1 or parsed > MAX_ID:
        raise ValidationError(f'Invalid {field}: {value}')
    return parsed


def _parse_money(value, field: str) -> Decimal:
    if value is None or isinstance(value, bool) or str(value).strip() == '':
        raise ValidationError(f'{field} is required')
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f'Invalid {field}: {value}')
    if not amount.is_finite():
        raise ValidationError(f'Invalid {field}: {value}')
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f'{field} is out of range: {value}')
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def _parse_payment_amount(value) -> Decimal:
    try:
        amount = _parse_money(value, 'amount')
    except ValidationError:
        raise ValidationError('Valid payment amount is required')
    if amount <= 0:
        raise ValidationError('Valid payment amount is required')
    return amount


def _parse_quantity(value) -> int:
    if value is None:
        return 1
    if isinstance(value, bool):
        raise ValidationError(f'Invalid quantity: {value}')
    try:
        quantity = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f'Invalid quantity: {value}')
    if not quantity.is_finite() or quantity != quantity.to_integral_value():
        raise ValidationError(f'Quantity must be a whole number: {value}')
    if quantity < 1:
        raise ValidationError('Quantity must be at least 1')
    if quantity > MAX_QUANTITY:
        raise ValidationError(f'Quantity is too large: {value}')
    return int(quantity)


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _reject_overpayment(override: Optional[bool]) -> bool:
    if override is not None:
        return override
    if has_app_context():
        return bool(current_app.config.get('REJECT_OVERPAYMENT', False))
    return False


def _default_payment_method() -> str:
    if has_app_context():
        return current_app.config.get('DEFAULT_PAYMENT_METHOD', 'cash')
    return 'cash'


def _build_items(items: List[Dict[str, Any]]) -> Tuple[List[SaleItem], Decimal]:
    """Validate item dicts and return SaleItem rows with the sale total."""
    sale_items = []
    total = Decimal('0.00')

    for position, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f'Invalid item at position {position + 1}')

        serial_number = _clean(item.get('serial_number'))
        product_name = _clean(item.get('product_name'))
        if not serial_number:
            raise ValidationError(f'Item {position + 1}: serial number is required')
        if not product_name:
            raise ValidationError(f'Item {position + 1}: product name is required')

        quantity = _parse_quantity(item.get('quantity'))
        price = _parse_money(item.get('price'), 'price')
        if price < 0:
            raise ValidationError(f'Item {position + 1}: price cannot be negative')

        product_id = item.get('product_id')
        sale_items.append(SaleItem(
            position=position,
            product_id=_parse_id(product_id, 'productId') if product_id not in (None, '') else None,
            serial_number=serial_number,
            product_name=product_name,
            quantity=quantity,
            price=price,
            is_returned=False,
        ))
        total += price * quantity

    if total > MAX_AMOUNT:
        raise ValidationError(f'Sale total is out of range: {total}')
    return sale_items, total.quantize(CENTS)


def _build_payment(payment: Dict[str, Any], position: int) -> SalePayment:
    if not isinstance(payment, dict):
        raise ValidationError(f'Invalid payment at position {position + 1}')
    return SalePayment(
        position=position,
        amount=_parse_payment_amount(payment.get('amount')),
        date=parse_datetime(payment.get('date'), 'payment date') or datetime.now(),
        method=_clean(payment.get('method')) or _default_payment_method(),
        notes=_clean(payment.get('notes')),
    )


# =====================================================
# PRIVATE HELPERS
# =====================================================

def _get_sale_for_update(session, sale_id) -> Sale:
    """Load a sale and lock its row FOR UPDATE until the transaction ends."""
    sale_id = _parse_id(sale_id, 'Sale ID')
    sale = (
        session.query(Sale)
        .filter(Sale.id == sale_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not sale:
        raise NotFoundError('Sale not found')
    return sale


def _commit(session, sale_id=None, action: str = 'update', paired: bool = False):
    """
    Commit the pending sale write.

    A lost optimistic-lock race (StaleDataError) is reported as
    ConsistencyError. Any other database failure is reported as
    ConsistencyError when the sale write was paired with a customer totals
    adjustment (paired=True), otherwise re-raised.
    """
    try:
        session.commit()
    except StaleDataError as e:
        session.rollback()
        logger.warning(f"Concurrent modification on sale {sale_id} during {action}: {e}")
        raise ConsistencyError(
            f'Sale #{sale_id} was modified by another request. Reload it and try again.'
        ) from e
    except SQLAlchemyError as e:
        session.rollback()
        if not paired:
            raise
        logger.error(f"Error during {action} of sale {sale_id}: {e}", exc_info=True)
        raise ConsistencyError(
            'The sale and the customer totals could not be saved together. No changes were applied.'
        ) from e


# =====================================================
# OPERATIONS
# =====================================================

def create_sale(
    session,
    customer_id,
    customer_name: str,
    items: List[Dict[str, Any]],
    payments: Optional[List[Dict[str, Any]]] = None,
    notes: Optional[str] = None,
    sale_date=None,
    created_by=None,
    reject_overpayment: Optional[bool] = None,
) -> Sale:
    """
    Create a sale and add it to the customer's running totals.

    Args:
        session: SQLAlchemy session
        customer_id: Customer ID (required)
        customer_name: Customer display name snapshot (required)
        items: Non-empty list of dicts with serial_number, product_name,
            quantity (default 1), price and optional product_id
        payments: Optional initial payments (amount, method, notes, date)
        notes: Free-text notes
        sale_date: Business date of the sale (default: now)
        created_by: Operator id
        reject_overpayment: Override REJECT_OVERPAYMENT

    Returns:
        The persisted Sale with derived fields populated

    Raises:
        ValidationError: Missing customer or items, or invalid item/payment data
        NotFoundError: If the customer does not exist
        ConsistencyError: If the sale and customer totals could not both be written
    """
    if not customer_id or not _clean(customer_name) or not items:
        raise ValidationError('Customer and items are required')

    customer_id = _parse_id(customer_id, 'customerId')
    sale_items, total_amount = _build_items(items)
    sale_payments = [_build_payment(p, i) for i, p in enumerate(payments or [])]

    try:
        if not session.get(Customer, customer_id):
            raise NotFoundError(f'Customer #{customer_id} not found')

        sale = Sale(
            customer_id=customer_id,
            customer_name=_clean(customer_name),
            total_amount=total_amount,
            notes=_clean(notes),
            created_by=str(created_by) if created_by is not None else None,
            sale_date=parse_datetime(sale_date, 'saleDate') or datetime.now(),
            updated_at=datetime.now(),
        )
        sale.items = sale_items
        sale.payments = sale_payments
        sale.recalculate()

        if _reject_overpayment(reject_overpayment) and sale.paid_amount > sale.total_amount:
            raise ValidationError('Payments exceed the sale total')

        session.add(sale)
        session.flush()
        adjust_totals(session, customer_id, 1, total_amount)

    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error creating sale for customer {customer_id}: {e}", exc_info=True)
        raise ConsistencyError(
            'The sale and the customer totals could not be saved together. No changes were applied.'
        ) from e

    _commit(session, sale.id, 'create', paired=True)

    logger.info(
        f"Sale created: id={sale.id}, customer={customer_id}, total={total_amount}, "
        f"paid={sale.paid_amount}, status={sale.status}"
    )
    return sale


def add_payment(
    session,
    sale_id,
    amount,
    method: Optional[str] = None,
    notes: Optional[str] = None,
    reject_overpayment: Optional[bool] = None,
) -> Sale:
    """
    Append a payment to a sale and re-derive its balance and status.

    Payments above the remaining balance are accepted (the sale becomes
    'paid' with a negative remaining amount) unless overpayment rejection is
    configured.

    Raises:
        ValidationError: If amount is missing or not positive, or exceeds the
            remaining balance while overpayment rejection is on
        NotFoundError: If the sale does not exist
        ConsistencyError: If the sale changed concurrently
    """
    amount = _parse_payment_amount(amount)

    try:
        sale = _get_sale_for_update(session, sale_id)

        if _reject_overpayment(reject_overpayment) and amount > sale.remaining_amount:
            raise ValidationError(
                f'Payment of {amount} exceeds the remaining balance of {sale.remaining_amount}'
            )

        sale.payments.append(SalePayment(
            position=len(sale.payments),
            amount=amount,
            date=datetime.now(),
            method=_clean(method) or _default_payment_method(),
            notes=_clean(notes),
        ))
        sale.recalculate()
        sale.touch()
    except PosError:
        session.rollback()
        raise

    _commit(session, sale.id, 'payment')

    logger.info(
        f"Payment recorded: sale={sale.id}, amount={amount}, paid={sale.paid_amount}, "
        f"remaining={sale.remaining_amount}, status={sale.status}"
    )
    return sale


def return_item(session, sale_id, item_serial_number: str, return_reason: Optional[str] = None) -> Sale:
    """
    Mark the first item with the given serial number as returned.

    Returning an already returned item refreshes its return date and reason.
    Paid and remaining amounts are not affected; when every item is returned
    the sale status becomes 'returned'.

    Raises:
        ValidationError: If sale id or serial number is missing
        NotFoundError: If the sale does not exist or has no such item
        ConsistencyError: If the sale changed concurrently
    """
    item_serial_number = _clean(item_serial_number)
    if not sale_id or not item_serial_number:
        raise ValidationError('Sale ID and item serial number are required')

    try:
        sale = _get_sale_for_update(session, sale_id)

        item = next((i for i in sale.items if i.serial_number == item_serial_number), None)
        if not item:
            raise NotFoundError('Item not found in this sale')

        item.is_returned = True
        item.return_date = datetime.now()
        item.return_reason = _clean(return_reason)

        sale.recalculate()
        sale.touch()
    except PosError:
        session.rollback()
        raise

    _commit(session, sale.id, 'return')

    logger.info(
        f"Item returned: sale={sale.id}, serial={item_serial_number}, "
        f"return_status={sale.return_status}, status={sale.status}"
    )
    return sale


def update_sale(session, sale_id, fields: Dict[str, Any]) -> Sale:
    """
    Overwrite a sale's editable top-level fields (notes, customer_name, sale_date).

    Derived fields, the total, items and payments cannot be written here.

    Raises:
        ValidationError: If no fields are given, a field is not editable or a value is invalid
        NotFoundError: If the sale does not exist
    """
    if not fields:
        raise ValidationError('No fields to update')

    blocked = sorted(set(fields) - set(UPDATABLE_FIELDS))
    if blocked:
        raise ValidationError(f"Fields cannot be updated: {', '.join(blocked)}")

    changes = {}
    if 'customer_name' in fields:
        changes['customer_name'] = _clean(fields['customer_name'])
        if not changes['customer_name']:
            raise ValidationError('Customer name cannot be empty')
    if 'sale_date' in fields:
        changes['sale_date'] = parse_datetime(fields['sale_date'], 'saleDate')
        if changes['sale_date'] is None:
            raise ValidationError('saleDate cannot be empty')
    if 'notes' in fields:
        changes['notes'] = _clean(fields['notes'])

    try:
        sale = _get_sale_for_update(session, sale_id)
        for key, value in changes.items():
            setattr(sale, key, value)
        sale.recalculate()
        sale.touch()
    except PosError:
        session.rollback()
        raise

    _commit(session, sale.id, 'update')

    logger.info(f"Sale updated: id={sale.id}, fields={sorted(changes)}")
    return sale


def delete_sale(session, sale_id) -> dict:
    """
    Delete a sale and remove it from the customer's running totals.

    The customer adjustment and the delete commit together.

    Returns:
        dict with success message and details

    Raises:
        NotFoundError: If the sale does not exist
        ConsistencyError: If the delete and the customer adjustment could not both be written
    """
    try:
        sale = _get_sale_for_update(session, sale_id)
        sale_id = sale.id
        customer_id = sale.customer_id
        total_amount = Decimal(str(sale.total_amount))

        customer_found = adjust_totals(session, customer_id, -1, -total_amount)
        session.delete(sale)
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error deleting sale {sale_id}: {e}", exc_info=True)
        raise ConsistencyError(
            'The sale and the customer totals could not be saved together. No changes were applied.'
        ) from e

    _commit(session, sale_id, 'delete', paired=True)

    logger.info(f"Sale deleted: id={sale_id}, customer={customer_id}, total={total_amount}")
    return {
        'success': True,
        'message': 'Sale deleted successfully',
        'sale_id': sale_id,
        'customer_id': customer_id,
        'customer_found': customer_found,
        'total_amount': total_amount,
    }


def get_sale(session, sale_id) -> Sale:
    """Get a sale by id or raise NotFoundError."""
    sale = session.get(Sale, _parse_id(sale_id, 'Sale ID'))
    if not sale:
        raise NotFoundError('Sale not found')
    return sale


def list_sales(
    session,
    q: Optional[str] = None,
    customer_id=None,
    status: Optional[str] = None,
    start_date=None,
    end_date=None,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    """
    List sales, newest sale date first.

    Args:
        q: Case-insensitive partial match on customer name or item serial number
        customer_id: Only this customer's sales
        status: One of pending / partial / paid / returned
        start_date, end_date: Inclusive sale date window (date-only end covers the whole day)
        page, limit: Pagination

    Returns:
        dict with sales, total, page, pages
    """
    try:
        page = max(int(page or 1), 1)
        limit = max(int(limit or 20), 1)
    except (TypeError, ValueError):
        raise ValidationError('page and limit must be numbers')

    query = session.query(Sale)

    q = _clean(q)
    if q:
        pattern = contains_pattern(q)
        query = query.filter(or_(
            Sale.customer_name.ilike(pattern, escape=LIKE_ESCAPE),
            Sale.items.any(SaleItem.serial_number.ilike(pattern, escape=LIKE_ESCAPE)),
        ))

    if customer_id not in (None, ''):
        query = query.filter(Sale.customer_id == _parse_id(customer_id, 'customerId'))

    if status:
        valid = [s.value for s in SaleStatus]
        if status not in valid:
            raise ValidationError(f"Invalid status '{status}'. Expected one of: {', '.join(valid)}")
        query = query.filter(Sale.status == status)

    start = parse_datetime(start_date, 'startDate')
    end = parse_datetime(end_date, 'endDate', end_of_day=True)
    if start:
        query = query.filter(Sale.sale_date >= start)
    if end:
        query = query.filter(Sale.sale_date <= end)

    total = query.count()
    sales = (
        query.order_by(Sale.sale_date.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        'sales': sales,
        'total': total,
        'page': page,
        'pages': math.ceil(total / limit),
    }
