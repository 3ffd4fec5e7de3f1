from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging
import os

from .core.errors import DomainError, ForbiddenError

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def _error_payload(status: int, title: str, detail: str):
    return {'error': {'status': status, 'title': title, 'detail': detail}}, status


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    app.config['LOG_JSON'] = _env_bool('LOG_JSON', True)
    app.config['STORE_CACHE_TTL_SECONDS'] = int(os.getenv('STORE_CACHE_TTL_SECONDS', '300'))
    app.config['HAND_BILL_OVERDUE_DAYS'] = int(os.getenv('HAND_BILL_OVERDUE_DAYS', '1'))
    app.config['SALES_ORDER_OVERDUE_DAYS'] = int(os.getenv('SALES_ORDER_OVERDUE_DAYS', '7'))
    app.config['DSR_CLOCK'] = None

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    from .logging_config import configure_logging
    configure_logging(app.config['LOG_LEVEL'], app.config['LOG_JSON'])

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
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    # Time source and the store dropdown cache share one injected clock
    from .core.clock import SYSTEM_CLOCK
    from .core.cache import TimedCache
    clock = app.config['DSR_CLOCK'] or SYSTEM_CLOCK
    app.extensions['dsr.clock'] = clock
    app.extensions['dsr.store_cache'] = TimedCache(app.config['STORE_CACHE_TTL_SECONDS'], clock)

    from .routes.auth import auth_bp
    from .routes.stores import stores_bp
    from .routes.users import users_bp
    from .routes.customers import customers_bp
    from .routes.sales import sales_bp
    from .routes.expenses import expenses_bp
    from .routes.convertibles import hand_bills_bp, sales_orders_bp
    from .routes.vouchers import vouchers_bp
    from .routes.returns import returns_bp
    from .routes.deposits import deposits_bp
    from .routes.approvals import approvals_bp
    from .routes.reports import reports_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(stores_bp, url_prefix='/stores')
    app.register_blueprint(users_bp, url_prefix='/users')
    app.register_blueprint(customers_bp, url_prefix='/customers')
    app.register_blueprint(sales_bp, url_prefix='/sales')
    app.register_blueprint(expenses_bp, url_prefix='/expenses')
    app.register_blueprint(hand_bills_bp, url_prefix='/hand-bills')
    app.register_blueprint(sales_orders_bp, url_prefix='/sales-orders')
    app.register_blueprint(vouchers_bp, url_prefix='/vouchers')
    app.register_blueprint(returns_bp, url_prefix='/returns')
    app.register_blueprint(deposits_bp, url_prefix='/deposits')
    app.register_blueprint(approvals_bp, url_prefix='/approvals')
    app.register_blueprint(reports_bp, url_prefix='/reports')

    from .cli import register_commands
    register_commands(app)

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.teardown_appcontext
    def remove_session(exc=None):  # type: ignore
        SessionLocal.remove()

    # Token problems use the same error envelope as everything else
    @jwt.unauthorized_loader
    def missing_token(reason):  # type: ignore
        return _error_payload(401, 'Unauthorized', reason)

    @jwt.invalid_token_loader
    def invalid_token(reason):  # type: ignore
        return _error_payload(401, 'Unauthorized', reason)

    @jwt.expired_token_loader
    def expired_token(header, payload):  # type: ignore
        return _error_payload(401, 'Unauthorized', 'Token has expired')

    @app.errorhandler(DomainError)
    def handle_domain_error(e):  # type: ignore
        get_db().rollback()
        level = logging.WARNING if isinstance(e, ForbiddenError) else logging.INFO
        app.logger.log(level, '%s: %s', type(e).__name__, e.message)
        return {'error': e.to_dict()}, e.status_code

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            return _error_payload(e.code, e.name, e.description)
        # Unhandled exception
        get_db().rollback()
        app.logger.exception('Unhandled exception')
        return _error_payload(500, 'Internal Server Error', 'Unexpected error')

    return app


def get_db():
    return SessionLocal()
