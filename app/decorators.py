from functools import wraps

from flask import abort, current_app, request
from flask_login import current_user


def role_required(*roles):
    def wrapper(func):
        @wraps(func)
        def inner(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            if current_user.role not in roles:
                current_app.logger.warning(
                    "User #%s (%s) denied access to %s", current_user.id, current_user.role, request.path
                )
                abort(403)
            return func(*args, **kwargs)

        return inner

    return wrapper
