from flask import Blueprint, redirect, url_for, jsonify, request

from testprep.decorators import auth_required, get_current_user

bp = Blueprint('main', __name__)


@bp.route('/health')
def health():
    return jsonify({'status': 'ok'}), 200


@bp.route('/')
def index():
    if request.args.get('health') == '1':
        return 'OK', 200
    user = get_current_user()
    if user.is_authenticated:
        return redirect(url_for('main.dashboard'))
    return jsonify({
        'name': 'testprep',
        'login': url_for('auth.login'),
        'register': url_for('auth.register'),
    })


@bp.route('/dashboard')
@auth_required
def dashboard():
    user = get_current_user()
    if user.is_admin():
        return redirect(url_for('admin.index'))
    return jsonify({'user': user.to_dict()})
