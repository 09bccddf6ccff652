"""Middleware for operator authentication."""
from functools import wraps

import jwt
from flask import g, request, current_app

from salesdesk.exceptions import UnauthorizedError, ForbiddenError


def load_operator():
    """
    Load the current operator into g (Flask's per-request global).

    Called before each request. Reads a Bearer token issued by the auth
    service and sets g.operator (dict with _id, email, role) when it verifies.
    """
    g.operator = None
    g.auth_error = None

    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return

    token = auth_header.split(' ', 1)[1].strip()
    try:
        payload = jwt.decode(
            token,
            current_app.config['JWT_ACCESS_SECRET'],
            algorithms=[current_app.config.get('JWT_ALGORITHM', 'HS256')],
        )
    except jwt.ExpiredSignatureError:
        g.auth_error = 'Token expired'
        return
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f"Rejected operator token: {e}")
        g.auth_error = 'Invalid token'
        return

    g.operator = {
        '_id': str(payload.get('_id') or payload.get('sub') or ''),
        'email': payload.get('email'),
        'role': payload.get('role'),
    }


def require_auth(f):
    """
    Decorator: Require a verified operator token.

    Raises UnauthorizedError (401) when the request has no valid token.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get('operator') or not g.operator.get('_id'):
            raise UnauthorizedError(g.get('auth_error') or 'No token provided')
        return f(*args, **kwargs)
    return decorated_function


def require_role(roles):
    """
    Decorator: Require the operator's role to be one of roles.

    Args:
        roles: Allowed roles, e.g. ['admin', 'staff']

    Must be used AFTER require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            role = (g.get('operator') or {}).get('role')
            if role not in roles:
                current_app.logger.warning(
                    f"Operator {(g.get('operator') or {}).get('_id')} with role {role} denied {request.endpoint}"
                )
                raise ForbiddenError()
            return f(*args, **kwargs)
        return decorated_function
    return decorator
