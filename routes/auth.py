from flask import Blueprint, jsonify, request
from flask_login import login_user, logout_user, login_required, current_user
from werkzeug.datastructures import MultiDict

from errors import ValidationError
from forms.auth_forms import LoginForm, RegisterForm
from routes.products import get_store

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def _form(form_cls):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = request.form
    form = form_cls(formdata=MultiDict({k: str(v) for k, v in data.items()}), meta={'csrf': False})
    if not form.validate():
        raise ValidationError(form.errors)
    return form


@auth_bp.route('/register', methods=['POST'])
def register():
    form = _form(RegisterForm)
    user = get_store().create_user(form.username.data, form.password.data)
    return jsonify({'success': True, 'message': 'Cuenta creada, ya puedes iniciar sesión', 'user': user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    form = _form(LoginForm)
    user = get_store().get_user_by_username(form.username.data)
    if user and user.check_password(form.password.data):
        login_user(user)
        return jsonify({'success': True, 'message': 'Sesión iniciada', 'user': user.to_dict()})
    return jsonify({'success': False, 'message': 'Usuario o contraseña incorrectos'}), 401


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True, 'message': 'Sesión cerrada'})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify(current_user.to_dict())
