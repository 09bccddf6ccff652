"""
Reports blueprint (admin only).
Exposes sales statistics and database health for the admin dashboard.
"""
from flask import Blueprint, jsonify, request, current_app, Response

from salesdesk.database import get_session
from salesdesk.middleware import require_auth, require_role
from salesdesk.services.report_service import get_sales_statistics, get_database_health
from salesdesk.utils.serializers import jsonable, parse_datetime

reports_bp = Blueprint('reports', __name__, url_prefix='/api/database')


@reports_bp.route('/health', methods=['GET'])
@require_auth
@require_role(['admin'])
def health() -> Response:
    """Row counts and index status."""
    data = get_database_health(get_session())
    return jsonify({
        'success': True,
        'data': {
            'collections': data['collections'],
            'indexes': data['indexes'],
            'indexesValid': data['indexes_valid'],
            'missingIndexes': data['missing_indexes'],
        }
    })


@reports_bp.route('/sales-stats', methods=['GET'])
@require_auth
@require_role(['admin'])
def sales_stats() -> Response:
    """
    Sales statistics for the dashboard.

    Query params:
    - period: 7d, 30d (default), 90d, 1y
    - startDate / endDate: explicit window (overrides period)
    """
    stats = get_sales_statistics(
        get_session(),
        period=request.args.get('period', '30d'),
        start=parse_datetime(request.args.get('startDate'), 'startDate'),
        end=parse_datetime(request.args.get('endDate'), 'endDate', end_of_day=True),
        top_limit=current_app.config.get('TOP_CUSTOMERS_LIMIT', 10),
    )
    return jsonify({
        'success': True,
        'data': jsonable({
            'period': stats['period'],
            'startDate': stats['start_date'],
            'endDate': stats['end_date'],
            'summary': stats['summary'],
            'statusBreakdown': stats['status_breakdown'],
            'topCustomers': stats['top_customers'],
            'salesByDay': stats['sales_by_day'],
        })
    })
