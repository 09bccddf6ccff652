"""Sales blueprint: sale lifecycle endpoints (JSON)."""
from typing import Tuple

from flask import Blueprint, request, jsonify, g, current_app, Response

from salesdesk.blueprints.metrics import (
    sales_created_total, sales_deleted_total, payments_recorded_total,
    items_returned_total, consistency_conflicts_total, payment_method_label
)
from salesdesk.database import get_session
from salesdesk.exceptions import ConsistencyError, ValidationError
from salesdesk.middleware import require_auth, require_role
from salesdesk.services import sale_service
from salesdesk.services.inventory_service import search_product_by_serial
from salesdesk.utils.serializers import pick, items_from_json, sale_update_from_json

sales_bp = Blueprint('sales', __name__, url_prefix='/api/sales')

SALES_ROLES = ['admin', 'staff']


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _count_conflict(error: ConsistencyError):
    consistency_conflicts_total.inc()
    current_app.logger.warning(f"Consistency conflict on {request.endpoint}: {error.message}")


@sales_bp.route('/search-product', methods=['GET'])
@require_auth
@require_role(SALES_ROLES)
def search_product() -> Response:
    """Look up a stocked product by serial number."""
    result = search_product_by_serial(get_session(), request.args.get('serialNumber', ''))
    product = result['product']
    return jsonify({
        'found': result['found'],
        'product': product.to_dict() if product else None,
    })


@sales_bp.route('/', methods=['POST'])
@require_auth
@require_role(SALES_ROLES)
def create_sale() -> Tuple[Response, int]:
    """Create a sale for a customer."""
    data = _json_body()
    try:
        sale = sale_service.create_sale(
            get_session(),
            customer_id=pick(data, 'customerId', 'customer_id'),
            customer_name=pick(data, 'customerName', 'customer_name'),
            items=items_from_json(data.get('items')),
            payments=data.get('payments'),
            notes=data.get('notes'),
            sale_date=pick(data, 'saleDate', 'sale_date'),
            created_by=g.operator['_id'],
        )
    except ConsistencyError as e:
        _count_conflict(e)
        raise

    sales_created_total.inc()
    return jsonify(sale.to_dict()), 201


@sales_bp.route('/', methods=['GET'])
@require_auth
@require_role(SALES_ROLES)
def list_sales() -> Response:
    """List sales with search, filters and pagination."""
    args = request.args
    result = sale_service.list_sales(
        get_session(),
        q=args.get('q'),
        customer_id=args.get('customerId'),
        status=args.get('status'),
        start_date=args.get('startDate'),
        end_date=args.get('endDate'),
        page=args.get('page', 1),
        limit=args.get('limit', current_app.config.get('SALES_PAGE_SIZE', 20)),
    )
    return jsonify({
        'sales': [sale.to_dict() for sale in result['sales']],
        'total': result['total'],
        'page': result['page'],
        'pages': result['pages'],
    })


@sales_bp.route('/<int:sale_id>', methods=['GET'])
@require_auth
@require_role(SALES_ROLES)
def get_sale(sale_id: int) -> Response:
    """Show one sale."""
    sale = sale_service.get_sale(get_session(), sale_id)
    return jsonify(sale.to_dict())


@sales_bp.route('/<int:sale_id>/payment', methods=['POST'])
@require_auth
@require_role(SALES_ROLES)
def add_payment(sale_id: int) -> Response:
    """Record a (partial) payment on a sale."""
    data = _json_body()
    try:
        sale = sale_service.add_payment(
            get_session(),
            sale_id,
            amount=data.get('amount'),
            method=data.get('method'),
            notes=data.get('notes'),
        )
    except ConsistencyError as e:
        _count_conflict(e)
        raise

    payments_recorded_total.labels(method=payment_method_label(sale.payments[-1].method)).inc()
    return jsonify(sale.to_dict())


@sales_bp.route('/return-item', methods=['POST'])
@require_auth
@require_role(SALES_ROLES)
def return_item() -> Response:
    """Mark one item of a sale as returned."""
    data = _json_body()
    try:
        sale = sale_service.return_item(
            get_session(),
            pick(data, 'saleId', 'sale_id'),
            pick(data, 'itemSerialNumber', 'item_serial_number'),
            return_reason=pick(data, 'returnReason', 'return_reason'),
        )
    except ConsistencyError as e:
        _count_conflict(e)
        raise

    items_returned_total.inc()
    return jsonify(sale.to_dict())


@sales_bp.route('/<int:sale_id>', methods=['PUT'])
@require_auth
@require_role(SALES_ROLES)
def update_sale(sale_id: int) -> Response:
    """Edit a sale's notes, customer name snapshot or sale date."""
    data = _json_body()
    try:
        sale = sale_service.update_sale(get_session(), sale_id, sale_update_from_json(data))
    except ConsistencyError as e:
        _count_conflict(e)
        raise
    return jsonify(sale.to_dict())


@sales_bp.route('/<int:sale_id>', methods=['DELETE'])
@require_auth
@require_role(SALES_ROLES)
def delete_sale(sale_id: int) -> Response:
    """Delete a sale and reverse the customer's totals."""
    try:
        result = sale_service.delete_sale(get_session(), sale_id)
    except ConsistencyError as e:
        _count_conflict(e)
        raise

    sales_deleted_total.inc()
    current_app.logger.info(f"Operator {g.operator['_id']} deleted sale #{sale_id}")
    return jsonify({'message': result['message'], 'saleId': result['sale_id']})
