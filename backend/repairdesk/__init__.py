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

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    app.config['LOW_STOCK_THRESHOLD'] = int(os.getenv('LOW_STOCK_THRESHOLD', '5'))
    app.config['SHOP_NAME'] = os.getenv('SHOP_NAME', 'RepairDesk')
    app.config['SHOP_ADDRESS'] = os.getenv('SHOP_ADDRESS', '')

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

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

    # Token failures use the same error body as every other failure
    def _auth_error(detail: str, status: int = 401):
        return {'error': {'status': status, 'title': 'Unauthorized', 'detail': detail}}, status

    @jwt.unauthorized_loader
    def _missing_token(reason):
        return _auth_error(reason)

    @jwt.invalid_token_loader
    def _invalid_token(reason):
        return _auth_error(reason)

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return _auth_error('token expired')

    from .routes.iam import iam_bp
    from .routes.customers import cust_bp
    from .routes.jobs import jobs_bp
    from .routes.parts import parts_bp
    from .routes.repair_log import log_bp
    from .routes.inventory import inv_bp
    from .routes.invoices import invoices_bp
    from .routes.messages import msg_bp
    from .routes.reports import rpt_bp
    from .routes.state import state_bp
    app.register_blueprint(iam_bp, url_prefix='/iam')
    app.register_blueprint(cust_bp, url_prefix='/customers')
    app.register_blueprint(jobs_bp, url_prefix='/jobs')
    app.register_blueprint(parts_bp, url_prefix='/jobs')  # ledger endpoints nest under jobs
    app.register_blueprint(log_bp, url_prefix='/jobs')
    app.register_blueprint(inv_bp, url_prefix='/inventory')
    app.register_blueprint(invoices_bp, url_prefix='/invoices')
    app.register_blueprint(msg_bp, url_prefix='/messages')
    app.register_blueprint(rpt_bp, url_prefix='/reports')
    app.register_blueprint(state_bp, url_prefix='/state')

    @app.teardown_appcontext
    def remove_session(exc=None):
        SessionLocal.remove()

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        # Discard anything a failed handler left pending in the shared session
        SessionLocal.rollback()
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                }
            }
            return payload, e.code
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error'
            }
        }, 500

    from .openapi import build_openapi_spec

    @app.route('/openapi.json')
    def openapi_spec():
        return build_openapi_spec()

    @app.route('/docs')
    def docs_index():
        return (
            "<!DOCTYPE html><html><head><title>RepairDesk API</title>"
            "<link rel=\"stylesheet\" href=\"https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.css\" />"
            "</head><body><redoc spec-url='/openapi.json'></redoc>"
            "<script src='https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.js'></script>"
            "</body></html>"
        )

    return app


def get_db():
    return SessionLocal()
