"""Middleware for the customer/admin identity placed in the session by the login flow."""
from functools import wraps
from flask import session, g, current_app
from storefront.exceptions import UnauthorizedError, StorefrontError


def load_current_user():
    """
    Load current user into g (Flask's per-request global).

    Sets g.user_id (None for guests) and g.is_admin. The identity itself is
    issued by the external authentication service; only its session keys are
    read here.
    """
    g.user_id = None
    g.is_admin = False

    user_id = session.get('user_id')
    if user_id:
        g.user_id = str(user_id)
        g.is_admin = bool(session.get('is_admin', False))
        current_app.logger.debug(f"[AUTH] user={g.user_id} admin={g.is_admin}")


def require_login(f):
    """Decorator: Require an authenticated customer."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get('user_id'):
            raise StorefrontError('Please sign in to continue', status_code=401)
        return f(*args, **kwargs)
    return decorated_function


def require_admin(f):
    """
    Decorator: Require the admin role.

    Anonymous callers get 401, signed-in customers without the role get 403.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get('user_id'):
            raise StorefrontError('Please sign in to continue', status_code=401)
        if not g.get('is_admin'):
            current_app.logger.warning(f"[AUTH] Non-admin user {g.user_id} tried to access admin endpoint")
            raise UnauthorizedError("You don't have permission to access this page.")
        return f(*args, **kwargs)
    return decorated_function
