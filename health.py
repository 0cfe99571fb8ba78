import logging

from flask import Blueprint, jsonify
from sqlalchemy import text

from app_models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint('health', __name__)


@health_bp.route('/health')
def health_check():
    """Health check endpoint for the load balancer"""
    try:
        db.session.execute(text('SELECT 1'))
        database = 'ok'
    except Exception as e:
        logger.error("Health check database query failed: %s", e)
        database = 'unavailable'
    status_code = 200 if database == 'ok' else 503
    return jsonify({
        'status': 'ok' if database == 'ok' else 'degraded',
        'database': database,
        'message': 'Service is running',
        'version': '1.0.0'
    }), status_code
