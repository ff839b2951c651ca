from functools import wraps

from flask import abort
from flask_login import current_user

from aquahome.permissions import Actor, Role


def role_required(*roles):
    allowed = {Role.parse(role) for role in roles}

    def wrapper(func):
        @wraps(func)
        def inner(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            if Role.parse(current_user.role) not in allowed:
                abort(403)
            return func(*args, **kwargs)

        return inner

    return wrapper


def current_actor():
    if not current_user.is_authenticated:
        abort(401)
    return Actor.from_user(current_user)
