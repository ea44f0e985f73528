# tabletop/routes_auth.py
# Blueprint: GM login/logout and the GM page

import logging

from flask import Blueprint, request, session, redirect, url_for, current_app, send_from_directory, make_response

from tabletop.auth import gm_required, check_gm_password

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/gm-login', methods=['GET'])
def gm_login():
    return send_from_directory(current_app.config['PUBLIC_FOLDER'], 'gm-login.html')


@auth_bp.route('/gm-login', methods=['POST'])
def gm_login_submit():
    body = request.get_json(silent=True) if request.is_json else None
    password = body.get('password') if isinstance(body, dict) else request.form.get('password')
    if check_gm_password(password):
        session['is_gm'] = True
        logging.info(f"GM logged in from {request.remote_addr}")
        return redirect(url_for('auth.gm_page'))
    logging.warning(f"Failed GM login from {request.remote_addr}")
    response = make_response('Incorrect password. <a href="/gm-login">Try again</a>', 401)
    response.mimetype = 'text/html'
    return response


@auth_bp.route('/gm-logout', methods=['POST'])
def gm_logout():
    session.pop('is_gm', None)
    return redirect(url_for('auth.gm_login'))


@auth_bp.route('/gm')
@gm_required
def gm_page():
    return send_from_directory(current_app.config['PUBLIC_FOLDER'], 'gm.html')
