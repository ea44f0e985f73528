# tabletop/auth.py
# Shared GM authentication helpers

import hmac
import logging
from functools import wraps

from flask import session, redirect, url_for, request, current_app


def is_gm_session():
    return bool(session.get('is_gm'))


def check_gm_password(candidate):
    expected = current_app.config.get('GM_PASSWORD') or ''
    if not isinstance(candidate, str) or not expected:
        return False
    return hmac.compare_digest(candidate.encode('utf-8'), expected.encode('utf-8'))


def gm_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        if not is_gm_session():
            logging.warning(f"Unauthenticated request to GM route {request.path} — redirecting to login.")
            return redirect(url_for('auth.gm_login'))
        return f(*args, **kwargs)
    return decorated
