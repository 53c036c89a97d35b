"""
Health controller - health check endpoint for monitoring.
"""

import logging

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from lending.db.session import get_sessionmaker

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/health")


@health_bp.route("", methods=["GET"])
def health_check():
    """
    Report service and database liveness.

    Status codes:
        200: Database reachable
        503: Database unreachable

    Note:
        - No authentication required (monitoring endpoint)
        - Probes the database the loan service is bound to
    """
    factory = current_app.extensions["loan_service"].session_factory
    db = (factory or get_sessionmaker())()
    try:
        db.execute(text("SELECT 1"))
        return jsonify({"status": "healthy", "database": "ok"}), 200
    except SQLAlchemyError as e:
        logger.error(
            "Health check failed: database unreachable",
            extra={"context": {"endpoint": "/api/health", "error": str(e)}},
            exc_info=True,
        )
        return jsonify({"status": "unhealthy", "database": "unreachable"}), 503
    finally:
        db.close()
