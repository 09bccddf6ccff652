from flask import Blueprint, request, jsonify, current_app, Response
from typing import Dict, Any

from salesdesk.database import get_session
from salesdesk.exceptions import ValidationError
from salesdesk.middleware import require_auth, require_role
from salesdesk.services import customer_service
from salesdesk.services.report_service import get_customer_statement
from salesdesk.utils.serializers import jsonable

customers_bp = Blueprint('customers', __name__, url_prefix='/api/customers')

CUSTOMER_ROLES = ['admin', 'staff']


def _get_customer_data_from_json() -> Dict[str, Any]:
    """Extract customer fields from the JSON body (only keys that were sent)."""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


@customers_bp.route('/search-or-create', methods=['POST'])
@require_auth
@require_role(CUSTOMER_ROLES)
def search_or_create() -> Response:
    """Find a customer by name (and phone) or register a new one."""
    data = _get_customer_data_from_json()
    customer = customer_service.search_or_create(
        get_session(),
        name=data.get('name'),
        phone=data.get('phone'),
        email=data.get('email'),
    )
    return jsonify(customer.to_dict())


@customers_bp.route('/', methods=['GET'])
@require_auth
@require_role(CUSTOMER_ROLES)
def list_customers() -> Response:
    """List customers (search by name, phone or email)."""
    result = customer_service.list_customers(
        get_session(),
        q=request.args.get('q'),
        page=request.args.get('page', 1, type=int),
        limit=request.args.get('limit', 20, type=int),
    )
    return jsonify({
        'customers': [c.to_dict() for c in result['customers']],
        'total': result['total'],
        'page': result['page'],
        'pages': result['pages'],
    })


@customers_bp.route('/<int:customer_id>', methods=['GET'])
@require_auth
@require_role(CUSTOMER_ROLES)
def get_customer(customer_id: int) -> Response:
    customer = customer_service.get_customer(get_session(), customer_id)
    return jsonify(customer.to_dict())


@customers_bp.route('/<int:customer_id>', methods=['PUT'])
@require_auth
@require_role(CUSTOMER_ROLES)
def update_customer(customer_id: int) -> Response:
    """Update a customer's contact details."""
    customer = customer_service.update_customer(
        get_session(), customer_id, _get_customer_data_from_json()
    )
    return jsonify(customer.to_dict())


@customers_bp.route('/<int:customer_id>', methods=['DELETE'])
@require_auth
@require_role(CUSTOMER_ROLES)
def delete_customer(customer_id: int) -> Response:
    customer_service.delete_customer(get_session(), customer_id)
    current_app.logger.info(f"Customer #{customer_id} deleted")
    return jsonify({'message': 'Customer deleted successfully'})


@customers_bp.route('/<int:customer_id>/statement', methods=['GET'])
@require_auth
@require_role(CUSTOMER_ROLES)
def statement(customer_id: int) -> Response:
    """All sales of a customer with totals (source data for the spreadsheet export)."""
    result = get_customer_statement(get_session(), customer_id)
    totals = result['totals']
    return jsonify({
        'customer': result['customer'].to_dict(),
        'sales': [sale.to_dict() for sale in result['sales']],
        'totals': jsonable({
            'totalAmount': totals['total_amount'],
            'paidAmount': totals['paid_amount'],
            'remainingAmount': totals['remaining_amount'],
            'returnedItems': totals['returned_items'],
        }),
    })
