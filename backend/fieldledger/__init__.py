from decimal import Decimal
from flask import Flask
from flask.json.provider import DefaultJSONProvider
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging

from .errors import error_payload
from .models.base import money_number

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


class LedgerJSONProvider(DefaultJSONProvider):
    """Render ``Decimal`` money as a JSON number instead of Flask's string."""

    @staticmethod
    def default(o):
        if isinstance(o, Decimal):
            return money_number(o)
        return DefaultJSONProvider.default(o)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    from .config.settings import load_settings
    app = Flask(__name__)
    app.json = LedgerJSONProvider(app)

    app.config.update(load_settings())
    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    if db_url.startswith('sqlite'):
        # SQLite leaves ON DELETE actions off unless asked per connection
        event.listen(db_engine, 'connect', _enable_sqlite_foreign_keys)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .routes.auth import auth_bp
    from .routes.admins import admins_bp
    from .routes.products import products_bp
    from .routes.employees import employees_bp
    from .routes.requests import requests_bp
    from .routes.sales import sales_bp
    from .routes.invoices import invoices_bp
    from .routes.dashboard import dashboard_bp
    from .routes.mobile import mobile_bp
    from .routes.customers import customers_bp
    from .routes.product_requests import product_requests_bp
    from .routes.organization_settings import organization_settings_bp
    from .routes.customer_app import customer_app_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(admins_bp, url_prefix='/admins')
    app.register_blueprint(products_bp, url_prefix='/products')
    app.register_blueprint(employees_bp, url_prefix='/employees')
    app.register_blueprint(requests_bp, url_prefix='/requests')
    app.register_blueprint(sales_bp, url_prefix='/sales')
    app.register_blueprint(invoices_bp, url_prefix='/invoices')
    app.register_blueprint(dashboard_bp, url_prefix='/dashboard')
    app.register_blueprint(mobile_bp, url_prefix='/mobile')
    app.register_blueprint(customers_bp, url_prefix='/customers')
    app.register_blueprint(product_requests_bp, url_prefix='/product-requests')
    app.register_blueprint(organization_settings_bp, url_prefix='/organization-settings')
    app.register_blueprint(customer_app_bp, url_prefix='/mobile/customer')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    # JWT failures share the unified error shape
    @jwt.unauthorized_loader
    def _missing_token(reason):
        return {'error': {'status': 401, 'title': 'Unauthorized', 'detail': 'Authentication required'}}, 401

    @jwt.invalid_token_loader
    def _invalid_token(reason):
        return {'error': {'status': 401, 'title': 'Unauthorized', 'detail': 'Invalid token'}}, 401

    @jwt.expired_token_loader
    def _expired_token(header, payload):
        return {'error': {'status': 401, 'title': 'Unauthorized', 'detail': 'Token expired'}}, 401

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if SessionLocal is not None:
            SessionLocal().rollback()
        if isinstance(e, HTTPException):
            if e.code and e.code >= 500:
                app.logger.error('%s: %s', e.name, e.description)
            return error_payload(e), e.code
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error'
            }
        }, 500

    if app.config.get('SEED_SUPER_ADMIN'):
        from .models.base import Base
        from .services.admins import seed_super_admin
        Base.metadata.create_all(db_engine)
        session = SessionLocal()
        seed_super_admin(session, app.config['DEFAULT_ADMIN_EMAIL'], app.config['DEFAULT_ADMIN_PASSWORD'])
        SessionLocal.remove()

    return app


def get_db():
    return SessionLocal()
