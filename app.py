import atexit
import weakref

from flask import Flask, current_app, jsonify
from flask_babel import Babel
from flask_login import LoginManager
from sqlalchemy.exc import SQLAlchemyError

from config import Config
from errors import ProductNotFound, ValidationError
from log import get_logger
from models import db
from scanner import CaptureSurfaces
from signals import product_changed
from storage import ProductStore

LOG = get_logger("app")

# Initialize extensions
login_manager = LoginManager()
babel = Babel()


def _bump_revision(sender, action=None, product=None):
    # Los clientes vuelven a pedir el listado cuando cambia la revisión
    current_app.extensions['catalog_revision'] += 1


product_changed.connect(_bump_revision)

_live_surfaces = weakref.WeakSet()


@atexit.register
def _close_surfaces():
    # las cámaras se liberan al salir del proceso
    for surfaces in list(_live_surfaces):
        surfaces.close_all()


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    db.init_app(app)
    login_manager.init_app(app)

    def get_locale():
        return app.config['BABEL_DEFAULT_LOCALE']
    babel.init_app(app, locale_selector=get_locale)

    store = ProductStore()
    app.extensions['product_store'] = store
    surfaces = CaptureSurfaces.from_config(app.config)
    app.extensions['capture_surfaces'] = surfaces
    _live_surfaces.add(surfaces)
    app.extensions['catalog_revision'] = 0

    # Flask-Login user loader
    @login_manager.user_loader
    def load_user(user_id):
        return store.get_user(int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'message': 'Debes iniciar sesión'}), 401

    # Register Blueprints
    from routes.auth import auth_bp
    app.register_blueprint(auth_bp)
    from routes.products import products_bp
    app.register_blueprint(products_bp)
    from routes.exports import exports_bp
    app.register_blueprint(exports_bp)
    from routes.scanner import scanner_bp
    app.register_blueprint(scanner_bp)

    from routes.products import json_errors

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return jsonify({'success': False, 'message': 'Datos no válidos', 'errors': json_errors(e.errors)}), 400

    @app.errorhandler(ProductNotFound)
    def handle_not_found(e):
        return jsonify({'success': False, 'message': 'Producto no encontrado'}), 404

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e):
        db.session.rollback()
        LOG.error("Database error: %s", e)
        return jsonify({'success': False, 'message': 'No se pudo completar la operación'}), 500

    @app.route("/api/health")
    def health():
        return jsonify({'status': 'ok', 'revision': app.extensions['catalog_revision']})

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
