from functools import wraps

from flask import current_app
from flask_login import current_user

from utils.errors import Unauthorized


def admin_required(f):
    """Reject the request unless the admin session is logged in.

    Skipped entirely when ``LOGIN_REQUIRED`` is off.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_app.config.get('LOGIN_REQUIRED', True) and not current_user.is_authenticated:
            raise Unauthorized('Login required')
        return f(*args, **kwargs)
    return decorated_function
