from flask import jsonify, request
from flask_openapi3 import OpenAPI, Info
from decouple import config
from datetime import timedelta
import urllib.parse
from dotenv import load_dotenv
import logging

# Import extensions ONLY (not models at module level)
from payroll_core.addons.extensions import db, jwt, cors
from payroll_core.addons.exceptions import PayrollError
from payroll_core.addons.functions import jsonifyFormat

# Import controllers
from payroll_core.controllers.payroll.payroll_management import payroll_bp
from payroll_core.controllers.deductions.deduction_types import deductions_bp
from payroll_core.controllers.loans.loans import loans_bp
from payroll_core.controllers.notifications.notifications import notifications_bp


def _database_uri():
    database_url = config('DATABASE_URL', default='')
    if database_url:
        return database_url
    db_password = config('DB_PASSWORD', default='password')
    db_user = config('DB_USERNAME', default='root')
    db_host = config('DB_HOST', default='localhost')
    db_name = config('DB_NAME', default='barangay_payroll')
    db_port = config('DB_PORT', default='3306')
    encoded_password = urllib.parse.quote_plus(db_password)
    return f'mysql+pymysql://{db_user}:{encoded_password}@{db_host}:{db_port}/{db_name}'


def create_app(test_config=None):
    """
    Application factory for creating and configuring the Flask app
    """
    # Load environment variables FIRST
    load_dotenv()

    # Register every model with SQLAlchemy before db.init_app()
    from payroll_core import models  # noqa: F401

    info = Info(
        title="Barangay Payroll API",
        version="1.0.0",
        description="Payroll computation, release and reconciliation for barangay personnel"
    )

    # JWT Bearer Sample
    jwt_scheme = {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
    security_schemes = {
        "jwt": jwt_scheme,
    }

    app = OpenAPI(
        __name__,
        info=info,
        security_schemes=security_schemes,
    )

    environment = config('ENVIRONMENT', default='Development')
    app.config.update(
        ENVIRONMENT=environment,
        SQLALCHEMY_DATABASE_URI=_database_uri(),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        SECRET_KEY=config("SECRET_KEY", default="change-me-in-production"),
        JWT_SECRET_KEY=config("JWT_SECRET_KEY", default="change-me-in-production"),
        JWT_TOKEN_LOCATION=["headers"],
        JWT_ACCESS_TOKEN_EXPIRES=timedelta(minutes=30),
        JWT_ALGORITHM="HS256",
        JWT_HEADER_NAME="Authorization",
        JWT_HEADER_TYPE="Bearer",
        LOG_FILE=config('LOG_FILE', default='app.log'),
        LOG_LEVEL=config('LOG_LEVEL', default='DEBUG'),
        PAYROLL_PERIOD_CONVENTION=config('PAYROLL_PERIOD_CONVENTION', default='semi-monthly'),
        PAYROLL_WORKING_DAYS_PER_MONTH=config('PAYROLL_WORKING_DAYS_PER_MONTH', default=22, cast=int),
        RECONCILIATION_TOLERANCE=config('RECONCILIATION_TOLERANCE', default='0.01'),
    )
    if test_config:
        app.config.update(test_config)
    environment = app.config['ENVIRONMENT']
    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('mysql'):
        app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
            'pool_pre_ping': True,
            'pool_recycle': 3600,
        }

    # Configure detailed logging
    log_format = "%(asctime)s %(levelname)s: %(message)s"
    log_level = getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.DEBUG)
    if app.config.get('LOG_FILE'):
        logging.basicConfig(filename=app.config['LOG_FILE'], level=log_level, format=log_format, force=True)
    else:
        logging.basicConfig(level=log_level, format=log_format, force=True)
    logger = logging.getLogger(__name__)

    # Initialize extensions with app
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app)

    # Request logging middleware
    @app.before_request
    def log_request():
        """Log all incoming requests"""
        logger.debug(f"Method: {request.method} Path: {request.path}")

    @app.after_request
    def log_response(response):
        """Log all outgoing responses"""
        if not response.direct_passthrough and response.content_type and 'application/json' in response.content_type:
            logger.debug(f"Response: {response.status_code} Data: {response.get_data(as_text=True)[:500]}")
        return response

    if environment == "Development":
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    # Error handlers
    @app.errorhandler(PayrollError)
    def payroll_error(error):
        """Render engine errors with their own status code"""
        logger.warning(f"{error.__class__.__name__}: {error.message}")
        return jsonifyFormat(error.to_dict(), error.status_code)

    @app.errorhandler(405)
    def method_not_allowed(error):
        """Handle method not allowed errors"""
        resp = jsonify({
            "status": 405,
            "isError": True,
            "message": "The method is not allowed for this request",
        })
        return jsonifyFormat(resp, 405)

    @app.errorhandler(404)
    def not_found(error):
        """Handle not found errors"""
        resp = jsonify({
            "status": 404,
            "isError": True,
            "message": "The requested resource was not found",
        })
        return jsonifyFormat(resp, 404)

    @app.errorhandler(500)
    def internal_server_error(error):
        """Handle internal server errors"""
        logger.error(f"Internal server error: {error}")
        resp = jsonify({
            "status": 500,
            "isError": True,
            "message": "An internal server error occurred",
        })
        return jsonifyFormat(resp, 500)

    # Register all blueprints
    app.register_api(payroll_bp)
    app.register_api(deductions_bp)
    app.register_api(loans_bp)
    app.register_api(notifications_bp)

    # Audit listeners attach to the payroll models on import
    from payroll_core.addons import listeners  # noqa: F401

    # Health check endpoint
    @app.route("/health", methods=["GET"])
    def health_check():
        """Health check endpoint for monitoring"""
        try:
            from sqlalchemy import text
            db.session.execute(text('SELECT 1'))
            db_status = "healthy"
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            db_status = "unhealthy"

        return jsonify({
            "status": "online",
            "database": db_status,
            "environment": environment
        })

    # Create missing tables; schema changes go through migrations
    with app.app_context():
        try:
            db.create_all()
            logger.info(f"Database ready: {list(db.metadata.tables.keys())}")
        except Exception as e:
            logger.error(f"Database setup failed: {e}")
            raise

    return app
