import logging

from flask import Flask, jsonify
from flask_migrate import Migrate

from .extensions import db, login_manager, rq
from .errors import register_error_handlers

migrate = Migrate()


def create_app(config_object='config.Config'):
    """App factory. Tests pass ``config.TestingConfig``."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    rq.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        from .models.user import User
        return db.session.get(User, int(user_id))

    @login_manager.request_loader
    def load_user_from_request(req):
        from .auth import user_from_bearer
        return user_from_bearer(req.headers.get('Authorization'))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Unauthorized", "code": "UNAUTHORIZED"}), 401

    from .blueprints.auth import bp as auth_bp
    from .blueprints.check_ins import bp as check_ins_bp
    from .blueprints.introductions import bp as introductions_bp
    from .blueprints.employer import bp as employer_bp
    from .blueprints.admin import bp as admin_bp
    from .blueprints.cron import bp as cron_bp

    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(check_ins_bp, url_prefix="/api/check-in")
    app.register_blueprint(introductions_bp, url_prefix="/api/introductions")
    app.register_blueprint(employer_bp, url_prefix="/api/employer")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")
    app.register_blueprint(cron_bp, url_prefix="/api/cron")

    register_error_handlers(app)

    @app.get('/healthz')
    def healthz():
        return jsonify({"ok": True, "rq": rq.is_async})

    return app
