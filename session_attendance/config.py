import os
from urllib.parse import urlparse, urlunparse

from dotenv import load_dotenv

load_dotenv()

SQLITE_FALLBACK_URI = 'sqlite:///session_attendance.db'

# PyMySQL connection parameters appended to MySQL URIs (seconds)
MYSQL_URI_PARAMS = {
    'charset': 'utf8mb4',
    'connect_timeout': '30',
    'read_timeout': '30',
    'write_timeout': '30',
}


def database_settings(uri):
    """
    Work out the SQLAlchemy URI and engine options for a DATABASE_URL value.

    MySQL URIs get PyMySQL timeouts and a pooled engine; anything else is used
    as given. No URI at all falls back to a local SQLite file.

    Returns:
        tuple: (database_uri, engine_options)
    """
    uri = uri or SQLITE_FALLBACK_URI
    if not uri.startswith('mysql'):
        return uri, {"pool_pre_ping": True}

    parsed = urlparse(uri)
    extra = '&'.join(f"{k}={v}" for k, v in MYSQL_URI_PARAMS.items())
    query = f"{parsed.query}&{extra}" if parsed.query else extra

    engine_options = {
        "pool_recycle": 3600,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
    }
    return urlunparse(parsed._replace(query=query)), engine_options


class Config:
    """Settings shared by every environment."""

    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your-secret-key-here'
    DEBUG = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'
    VERSION = '1.0.0'

    # Identity header set by the portal gateway
    PORTAL_USER_HEADER = os.environ.get('PORTAL_USER_HEADER', 'X-Portal-User')

    SQLALCHEMY_DATABASE_URI, SQLALCHEMY_ENGINE_OPTIONS = database_settings(os.environ.get('DATABASE_URL'))
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    DB_CONNECTION_RETRIES = 3
    DB_RETRY_DELAY = 2  # seconds
    ENABLE_DB_HEALTH_MONITOR = True
    DB_HEALTH_CHECK_INTERVAL = 300  # 5 minutes

    LOG_TO_FILE = os.environ.get('LOG_TO_FILE', 'true').lower() == 'true'

    # Geofence and timing thresholds
    ATTENDANCE_RADIUS_METERS = float(os.environ.get('ATTENDANCE_RADIUS_METERS', 15.0))
    ATTENDANCE_ON_TIME_MINUTES = int(os.environ.get('ATTENDANCE_ON_TIME_MINUTES', 10))

    SESSION_CODE_LENGTH = 6
    SESSION_CODE_MAX_ATTEMPTS = 5

    # Clients poll the discovery endpoint at this interval
    DISCOVERY_POLL_SECONDS = int(os.environ.get('DISCOVERY_POLL_SECONDS', 30))


class DevelopmentConfig(Config):
    DEBUG = True
    ENABLE_DB_HEALTH_MONITOR = False
    SQLALCHEMY_ECHO = os.environ.get('SQL_DEBUG', 'false').lower() == 'true'


class ProductionConfig(Config):
    DEBUG = False
    SECRET_KEY = os.environ.get('SECRET_KEY')

    # Optional syslog target for error reports, e.g. "/dev/log"
    SYSLOG_SERVER = os.environ.get('SYSLOG_SERVER')

    @classmethod
    def validate(cls):
        """Refuse to start without a real secret key and database."""
        if not cls.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable must be set in production")
        if not os.environ.get('DATABASE_URL'):
            raise ValueError("DATABASE_URL environment variable must be set in production")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    WTF_CSRF_ENABLED = False
    ENABLE_DB_HEALTH_MONITOR = False
    LOG_TO_FILE = False


config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}

