import logging
from flask import Blueprint, request, jsonify
from flask_login import LoginManager, login_user, logout_user, login_required, current_user
from models import db, User
from errors import error_response

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__, url_prefix='/auth')
login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return error_response('Silakan login terlebih dahulu.', 401)


@bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or request.form
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    user = User.query.filter_by(username=username, is_active_user=True).first()
    if user and user.check_password(password):
        login_user(user)
        logger.info("Login: %s", username)
        return jsonify({'success': True, 'data': user.to_dict()})
    logger.warning("Login gagal untuk %s", username)
    return error_response('Username atau password salah.', 401)


@bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'success': True, 'data': current_user.to_dict()})


@bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})
