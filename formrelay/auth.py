# formrelay/auth.py

import hmac
import logging
from functools import wraps

from flask import Response, jsonify, request

REALM = "Form Relay Admin"


def basic_credentials():
    """Returns (username, password) from the request's Basic Authorization header, or None if missing or malformed."""
    auth = request.authorization
    if auth is None or auth.type != 'basic' or not auth.username:
        return None
    return auth.username, auth.password or ''


def secrets_match(given, expected):
    if given is None or expected is None:
        return False
    return hmac.compare_digest(str(given).encode('utf-8'), str(expected).encode('utf-8'))


def check_credentials(store, username, password):
    expected_user, expected_password = store.admin_credentials()
    # Evaluate both so a wrong username and a wrong password take the same path
    user_ok = secrets_match(username, expected_user)
    password_ok = secrets_match(password, expected_password)
    return user_ok and password_ok


def authentication_required():
    return Response(
        'Authentication required.', 401,
        {'WWW-Authenticate': f'Basic realm="{REALM}"'}
    )


def requires_auth(store):
    """Decorator factory guarding a view with the admin Basic Auth credentials."""
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            credentials = basic_credentials()
            if credentials is None:
                return authentication_required()
            if not check_credentials(store, *credentials):
                logging.warning(f"Rejected admin login for user '{credentials[0]}' from {request.remote_addr}")
                return jsonify({'error': 'Invalid credentials'}), 403
            return view(*args, **kwargs)
        return wrapper
    return decorator
