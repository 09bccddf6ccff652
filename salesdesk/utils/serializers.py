"""
JSON helpers for the API layer.
Converts Decimal/datetime values for responses and maps camelCase request
payloads onto the snake_case arguments the services take.
"""
from decimal import Decimal
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional

from salesdesk.exceptions import ValidationError


def parse_datetime(value, field: str, end_of_day: bool = False) -> Optional[datetime]:
    """Accept datetime, date or ISO-8601 strings. Date-only values cover the whole day when end_of_day."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min)
    text = str(value).strip()
    try:
        if len(text) == 10:
            day = date.fromisoformat(text)
            return datetime.combine(day, time.max if end_of_day else time.min)
        parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f'Invalid {field}: {value}')
    # Columns are naive.
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def money(value: Optional[Decimal]) -> float:
    """Decimal amount as a JSON number (None -> 0)."""
    if value is None:
        return 0.0
    return float(value)


def iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def jsonable(value: Any) -> Any:
    """Recursively convert Decimal and datetime values for jsonify."""
    if isinstance(value, Decimal):
        return money(value)
    if isinstance(value, (datetime, date)):
        return iso(value)
    if isinstance(value, dict):
        return {k: jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    return value


def pick(data: Dict[str, Any], *keys: str, default=None):
    """First present key among aliases (e.g. 'customerId', 'customer_id')."""
    for key in keys:
        if key in data:
            return data[key]
    return default


def item_from_json(data: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(data, dict):
        return data
    return {
        'serial_number': pick(data, 'serialNumber', 'serial_number'),
        'product_name': pick(data, 'productName', 'product_name'),
        'quantity': pick(data, 'quantity'),
        'price': pick(data, 'price'),
        'product_id': pick(data, 'productId', 'product_id'),
    }


def items_from_json(items: Any) -> Optional[List[Any]]:
    if items is None:
        return None
    if not isinstance(items, list):
        return [items]
    return [item_from_json(i) for i in items]


# camelCase body key -> service field
SALE_UPDATE_KEYS = {
    'notes': 'notes',
    'customerName': 'customer_name',
    'saleDate': 'sale_date',
    'customerId': 'customer_id',
    'items': 'items',
    'payments': 'payments',
    'totalAmount': 'total_amount',
    'paidAmount': 'paid_amount',
    'remainingAmount': 'remaining_amount',
    'status': 'status',
    'createdBy': 'created_by',
}


def sale_update_from_json(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map an update body to service fields; unknown keys pass through unchanged."""
    return {SALE_UPDATE_KEYS.get(key, key): value for key, value in data.items()}
