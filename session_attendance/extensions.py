# extensions.py
"""
Flask extensions, created unbound and attached to the app by the factory.
Also home to the database connection monitoring shared by the health endpoints.
"""

import time
import logging
import threading

from flask import current_app, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_wtf.csrf import CSRFProtect
from flask_login import LoginManager
from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError

db = SQLAlchemy()
migrate = Migrate()
csrf = CSRFProtect()
login_manager = LoginManager()

logger = logging.getLogger(__name__)

# MySQL "server has gone away" / "lost connection" client error numbers
MYSQL_CONNECTION_LOST = (2006, 2013, 2014, 2045, 2055)

connection_stats = {
    'total_connections': 0,
    'failed_connections': 0,
    'last_check': 0,
    'healthy': True
}
connection_lock = threading.Lock()


def _record(healthy=None, connected=False, failed=False, checked=False):
    with connection_lock:
        if healthy is not None:
            connection_stats['healthy'] = healthy
        if connected:
            connection_stats['total_connections'] += 1
        if failed:
            connection_stats['failed_connections'] += 1
        if checked:
            connection_stats['last_check'] = time.time()


def _connection_lost(err):
    args = getattr(getattr(err, 'orig', None), 'args', None)
    return bool(args) and args[0] in MYSQL_CONNECTION_LOST


def add_connection_retry(engine, retries=3, delay=1):
    """
    Ping every checked-out MySQL connection and retry when the server went away.

    Args:
        engine: SQLAlchemy engine instance
        retries (int): Reconnect attempts before giving up
        delay (int): Base delay in seconds, multiplied by the attempt number
    """

    @event.listens_for(engine, "engine_connect")
    def ping_connection(connection):
        try:
            connection.execute(text("SELECT 1"))
            _record(healthy=True, connected=True)
            return
        except OperationalError as err:
            if not _connection_lost(err):
                raise
            logger.warning(f"Database connection lost: {err}. Reconnecting")
            _record(failed=True)

        for attempt in range(1, retries + 1):
            time.sleep(delay * attempt)
            try:
                connection.execute(text("SELECT 1"))
            except OperationalError:
                if attempt == retries:
                    logger.error(f"Database still unreachable after {retries} attempts")
                    _record(healthy=False)
                    raise
                continue
            logger.info(f"Database reconnected on attempt {attempt}")
            _record(healthy=True)
            return


def get_connection_stats():
    """Snapshot of the connection counters reported by /health/database."""
    with connection_lock:
        return dict(connection_stats)


def check_database_health():
    """
    Run ``SELECT 1`` on a fresh connection. Needs an application context.

    Returns:
        tuple: (healthy, message)
    """
    try:
        with db.engine.connect() as connection:
            connection.execute(text("SELECT 1")).fetchone()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        _record(healthy=False, checked=True)
        return False, f"Database connection failed: {str(e)}"

    _record(healthy=True, checked=True)
    return True, "Database connection is healthy"


def register_portal_identity(app):
    """
    Resolve the caller from the user id the portal gateway forwards.

    Credentials are issued by the portal, so there is no login view here; a
    missing, unknown or deactivated user is simply anonymous.
    """

    @login_manager.request_loader
    def load_user_from_request(req):
        from session_attendance.models import User

        user_id = req.headers.get(current_app.config.get('PORTAL_USER_HEADER', 'X-Portal-User'))
        if not user_id:
            return None

        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            logger.warning(f"Rejected unknown or inactive portal user {user_id}")
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        logger.info(f"Unauthenticated request to {request.path}")
        return jsonify({
            'success': False,
            'error_code': 'authentication_required',
            'message': 'Authentication required'
        }), 401


def init_extensions(app):
    """
    Bind the extensions to the app: database first, then identity, then CSRF.

    Args:
        app: Flask application instance
    """
    db.init_app(app)
    migrate.init_app(app, db)

    login_manager.init_app(app)
    register_portal_identity(app)

    csrf.init_app(app)

    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('mysql'):
        retries = app.config.get('DB_CONNECTION_RETRIES', 3)
        delay = app.config.get('DB_RETRY_DELAY', 2)
        with app.app_context():
            add_connection_retry(db.engine, retries=retries, delay=delay)
        app.logger.info(f"MySQL connection retry enabled ({retries} retries, {delay}s base delay)")

    app.logger.info("Extensions initialized")


def start_database_health_monitor(app, interval=300):
    """
    Start a daemon thread that runs the health check every ``interval`` seconds.

    Does nothing unless ENABLE_DB_HEALTH_MONITOR is set.
    """
    if not app.config.get('ENABLE_DB_HEALTH_MONITOR', False):
        return

    def monitor():
        while True:
            try:
                with app.app_context():
                    healthy, message = check_database_health()
                if not healthy:
                    logger.warning(f"Database health monitor: {message}")
            except Exception as e:
                logger.error(f"Database health monitor error: {e}")
            time.sleep(interval)

    threading.Thread(target=monitor, name='db-health-monitor', daemon=True).start()
    logger.info(f"Started database health monitor (every {interval}s)")
