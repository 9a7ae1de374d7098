from flask import current_app, jsonify
from flask_login import login_user, logout_user, login_required

from . import bp
from .forms import LoginForm
from ...models.user import User
from ...utils.forms import validated


@bp.route("/login", methods=["POST"])
def login():
    form = validated(LoginForm)
    user = User.query.filter_by(email=form.email.data.strip().lower()).first()
    if not user or not user.check_password(form.password.data):
        current_app.logger.info('failed login for %s', form.email.data)
        return jsonify({"error": "Invalid credentials", "code": "INVALID_CREDENTIALS"}), 401
    login_user(user)
    return jsonify({"id": user.id, "email": user.email, "role": user.role.value})


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})
