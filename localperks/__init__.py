"""
LocalPerks Points Engine
Flask application factory
"""
import os
import logging
from flask import Flask
from flask_cors import CORS

from .extensions import db, migrate
from .config import get_config, validate_config
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()
    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Configure CORS - allow frontend origins
    cors_origins = [
        o.strip() for o in os.getenv(
            'CORS_ORIGINS',
            'http://localhost:5173,http://127.0.0.1:5173'
        ).split(',') if o.strip()
    ]
    CORS(
        app,
        resources={r'/api/*': {'origins': cors_origins}},
        supports_credentials=True,
        allow_headers=['Content-Type', 'Authorization', 'X-Request-ID']
    )

    # Initialize request ID tracking for request tracing
    from .middleware import init_request_id_tracking
    init_request_id_tracking(app)

    # Register blueprints
    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    # Register error handlers
    register_error_handlers(app)

    # Health check endpoint
    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'localperks'}

    logger.info(f'LocalPerks app created ({config_name})')
    return app


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints."""
    from .api.points import points_bp
    from .api.transactions import transactions_bp
    from .api.admin import admin_bp, tenants_bp
    from .api.rewards import rewards_bp
    from .api.vouchers import vouchers_bp

    # Customer points
    app.register_blueprint(points_bp, url_prefix='/api/points')

    # Partner point-of-sale
    app.register_blueprint(transactions_bp, url_prefix='/api/transactions')

    # Review queue and tenant configuration
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(tenants_bp, url_prefix='/api/tenants')

    # Rewards catalog and discounts (/api/rewards, /api/discounts)
    app.register_blueprint(rewards_bp, url_prefix='/api')

    # Vouchers
    app.register_blueprint(vouchers_bp, url_prefix='/api/vouchers')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from .utils.exceptions import LoyaltyError
    from .utils.errors import loyalty_error_response, error_response, ErrorCode

    @app.errorhandler(LoyaltyError)
    def handle_loyalty_error(error):
        return loyalty_error_response(error)

    @app.errorhandler(400)
    def bad_request(error):
        return error_response('Bad request', ErrorCode.INVALID_REQUEST, 400, log_error=False)

    @app.errorhandler(404)
    def not_found(error):
        return error_response('Not found', ErrorCode.NOT_FOUND, 404, log_error=False)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response('Method not allowed', ErrorCode.INVALID_REQUEST, 405, log_error=False)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return error_response('Internal server error', ErrorCode.INTERNAL_ERROR, 500)
