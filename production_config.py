"""
Configuration classes for ChildCare Pro
"""
import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
INSTANCE_PATH = os.path.join(BASE_DIR, 'instance')


def database_uri():
    database_url = os.environ.get('DATABASE_URL')
    if database_url and database_url.startswith("postgres://"):
        # Hosted Postgres URLs use the old scheme name SQLAlchemy no longer accepts
        return database_url.replace("postgres://", "postgresql://", 1)
    if database_url:
        return database_url
    # Use SQLite for local development, placing the DB in the 'instance' folder
    return f"sqlite:///{os.path.join(INSTANCE_PATH, 'childcare.db')}"


class Config:
    # Flask
    DEBUG = False
    TESTING = False
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-me')

    # Session
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 3600  # 1 hour

    # Database
    SQLALCHEMY_DATABASE_URI = database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Application
    SUPERADMIN_USERNAME = os.environ.get('SUPERADMIN_USERNAME')
    SUPERADMIN_PASSWORD = os.environ.get('SUPERADMIN_PASSWORD')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.path.join(BASE_DIR, 'logs')
    PORTAL_TOKEN_TTL_HOURS = int(os.environ.get('PORTAL_TOKEN_TTL_HOURS', 72))

    @staticmethod
    def init_app(app):
        pass


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    PREFERRED_URL_SCHEME = 'https'

    # Security
    SESSION_COOKIE_SECURE = True

    # Database
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 10,
        'pool_timeout': 30,
        'pool_recycle': 1800,  # Recycle connections after 30 minutes
        'max_overflow': 2
    }

    @staticmethod
    def init_app(app):
        app.config['SQLALCHEMY_DATABASE_URI'] = database_uri()
        if not os.environ.get('SECRET_KEY'):
            app.logger.warning("SECRET_KEY is not set; using a random key, sessions will not survive restarts")
            app.config['SECRET_KEY'] = os.urandom(24)


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False
    SUPERADMIN_USERNAME = 'superadmin'
    SUPERADMIN_PASSWORD = 'superadmin-pass'
    LOG_LEVEL = 'WARNING'
    LOG_DIR = None


config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
}


def get_config(name=None):
    name = name or os.environ.get('APP_ENV', 'development')
    return config_by_name.get(name, DevelopmentConfig)
