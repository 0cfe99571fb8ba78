#!/usr/bin/env python3
"""
Build script for Render deployment.
This script initializes the database and creates the platform superadmin.
"""
import logging

from app import create_app, init_database

logger = logging.getLogger(__name__)


def initialize_database():
    """Initialize database for production deployment."""
    app = create_app('production')
    logger.info("Creating database tables and default superadmin...")
    init_database(app)
    logger.info("Database initialization completed successfully!")


if __name__ == "__main__":
    initialize_database()
