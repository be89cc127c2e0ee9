"""Authorization decorators for staff-only endpoints."""
from functools import wraps

from flask import abort, current_app, request
from flask_login import current_user, login_required

from models import STAFF_ROLES


def roles_required(*roles):
    allowed = {r.lower() for r in roles}

    def decorator(view_func):
        @wraps(view_func)
        @login_required
        def wrapped(*args, **kwargs):
            role_name = (current_user.role or "").lower()
            if role_name in allowed:
                return view_func(*args, **kwargs)

            current_app.logger.warning(
                "Unauthorized role access attempt",
                extra={"user_id": current_user.id, "role": current_user.role, "path": request.path},
            )
            abort(403)

        return wrapped

    return decorator


def staff_required(view_func):
    return roles_required(*STAFF_ROLES)(view_func)
