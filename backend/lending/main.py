import logging
import os

from flask import Flask
from flask_login import LoginManager
from werkzeug.exceptions import HTTPException

from lending.core import config
from lending.core.api_utils import api_response, error_response
from lending.core.exceptions import LendingError


def create_app(loan_service=None):
    """Application factory.

    Args:
        loan_service: Optional ``LoanService`` to serve requests with. When
            omitted one is built over the configured database.
    """
    app = Flask(__name__)
    env = os.getenv("FLASK_ENV", "development")
    is_production = config.is_production()

    if config.is_test_mode():
        app.config["TESTING"] = True

    # Configure structured logging (after app creation so we can register hooks)
    from lending.core.logging_config import setup_logging

    setup_logging(
        app=app,  # Pass app to register request/response hooks
        log_level=config.get_log_level(),
        log_to_file=config.get_log_to_file(),
        use_json_format=is_production,  # JSON logs in production, colored in dev
    )

    logger = logging.getLogger(__name__)
    logger.info("Starting lending service", extra={"context": {"environment": env}})
    config.log_lending_config()

    # Sentry Integration: error tracking when SENTRY_DSN is set
    sentry_dsn = os.getenv("SENTRY_DSN")
    if sentry_dsn:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            environment=env,
            release=os.getenv("GIT_SHA", "unknown"),
            integrations=[FlaskIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=0.1,
            send_default_pii=False,
        )
        logger.info("Sentry initialized", extra={"context": {"environment": env}})
    else:
        logger.info(
            "Sentry not initialized (SENTRY_DSN not set)",
            extra={"context": {"environment": env}},
        )

    # Prometheus Metrics: /metrics endpoint, initialized BEFORE the limiter
    from prometheus_client import CollectorRegistry
    from prometheus_flask_exporter import PrometheusMetrics

    # Test apps get a private registry; metric names register once per registry
    registry = CollectorRegistry() if app.testing else None
    metrics = PrometheusMetrics(app, registry=registry)
    try:
        metrics.info(
            "lending_app_info",
            "Application information",
            version=os.getenv("GIT_SHA", "unknown"),
            environment=env,
        )
    except ValueError as e:
        # Metric already registered (create_app called more than once per process)
        logger.debug(
            "lending_app_info metric already registered",
            extra={"context": {"error": str(e)}},
        )

    app.config["SECRET_KEY"] = os.getenv("FLASK_SECRET_KEY", "dev-secret-change-me")

    # Flask-Limiter (rate limiting)
    from lending.core.limiter_config import limiter

    app.config["RATELIMIT_STORAGE_URI"] = config.get_limiter_storage_uri()
    app.config["RATELIMIT_ENABLED"] = config.get_rate_limit_enabled()
    limiter.init_app(app)
    limiter.enabled = app.config["RATELIMIT_ENABLED"]
    if not limiter.enabled:
        logger.info(
            "Rate limiting disabled", extra={"context": {"test_mode": app.testing}}
        )

    # Database and lending core
    from lending.db.session import get_sessionmaker
    from lending.services.loan_service import LoanService

    if loan_service is None:
        loan_service = LoanService(get_sessionmaker())
    app.extensions["loan_service"] = loan_service

    # Flask-Login: identity comes from the Authorization bearer token only
    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.unauthorized_handler
    def unauthorized():
        return api_response(
            False, "Authentication required", None, 401, code="UNAUTHORIZED"
        )

    from lending.db.base import Member

    def _load_member(member_id):
        factory = loan_service.session_factory or get_sessionmaker()
        with factory() as db:
            member = db.get(Member, member_id)
            if member and member.is_active:
                return member
        return None

    @login_manager.user_loader
    def load_user(user_id):
        return _load_member(user_id)

    @login_manager.request_loader
    def load_user_from_request(request):
        """Load the member named by the ``sub`` claim of a Bearer token."""
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return None

        from lending.core.security import get_member_id_from_token

        member_id = get_member_id_from_token(auth_header.split(" ", 1)[1].strip())
        if not member_id:
            return None
        return _load_member(member_id)

    # Error handlers: one status and code per error kind
    @app.errorhandler(LendingError)
    def handle_lending_error(error: LendingError):
        return error_response(error)

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        return api_response(
            False,
            error.description or error.name,
            None,
            error.code or 500,
            code=error.name.upper().replace(" ", "_"),
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.error(
            f"Unhandled error: {error}",
            extra={"context": {"error_type": type(error).__name__}},
            exc_info=True,
        )
        return api_response(
            False, "Internal server error", None, 500, code="INTERNAL_ERROR"
        )

    # Register blueprints
    from lending.controllers.health_controller import health_bp
    from lending.controllers.loan_controller import loans_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(loans_bp)

    logger.info(
        "Application created",
        extra={"context": {"blueprints": list(app.blueprints.keys())}},
    )
    return app
