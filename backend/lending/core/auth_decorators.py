"""
Authentication helpers for this application.

Identity comes from the authentication service as a Bearer JWT whose ``sub``
claim is the member id. ``main.create_app`` installs a Flask-Login
``request_loader`` that resolves the token to a member, so controllers use
``@login_required`` and ``current_user`` like any Flask-Login application.

DECORATOR GUIDE:
- @login_required: any authenticated member
- @require_roles("ADMIN", "LIBRARIAN"): staff-only endpoints

Example:
    @loans_bp.route("/", methods=["GET"])
    @login_required
    @require_roles("ADMIN", "LIBRARIAN")
    def list_loans():
        ...
"""

from functools import wraps

from flask_login import current_user

from lending.core.api_utils import api_response


def require_roles(*roles: str):
    """Allow the wrapped view only for authenticated members holding one of ``roles``.

    Returns:
        - 401 if not authenticated
        - 403 if authenticated with another role
    """

    allowed = {role.upper() for role in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user or not current_user.is_authenticated:
                return api_response(
                    False, "Authentication required", None, 401, code="UNAUTHORIZED"
                )
            role = str(getattr(current_user, "role", "") or "").upper()
            if role not in allowed:
                return api_response(
                    False,
                    "You do not have permission to perform this action",
                    None,
                    403,
                    code="FORBIDDEN",
                )
            return f(*args, **kwargs)

        return decorated_function

    return decorator
