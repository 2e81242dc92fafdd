# __init__.py
"""
Session attendance service.

``create_app`` assembles the Flask app: config, logging, extensions, the
sessions / check-in / discovery blueprints, JSON error handlers, health
endpoints and the housekeeping CLI.
"""

import os
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from session_attendance.config import config_by_name
from session_attendance.extensions import init_extensions, db, csrf

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(threadName)s : %(message)s'


def setup_logging(app):
    """
    Send app and service logs (claim_ledger, session_registry, ...) to the
    console and, when LOG_TO_FILE is set, to a rotating ``logs/app.log``.
    """
    formatter = logging.Formatter(LOG_FORMAT)
    level = logging.DEBUG if app.debug else logging.INFO

    handlers = [logging.StreamHandler()]
    handlers[0].setLevel(level)

    if app.config.get('LOG_TO_FILE', True):
        log_dir = os.path.join(app.root_path, 'logs')
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, 'app.log'),
            maxBytes=1024 * 1024 * 10,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(logging.INFO)
        handlers.append(file_handler)

    app.logger.setLevel(level)

    # Service loggers propagate to the root; attach handlers once per process
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if not getattr(root_logger, '_session_attendance_handlers', False):
        for handler in handlers:
            handler.setFormatter(formatter)
            root_logger.addHandler(handler)
        root_logger._session_attendance_handlers = True

    sa_logger = logging.getLogger('sqlalchemy.engine')
    sa_logger.setLevel(logging.WARNING)
    sa_logger.propagate = False


def register_blueprints(app):
    from .controllers.sessions import sessions_bp
    from .controllers.check_in import check_in_bp
    from .controllers.discovery import discovery_bp

    # JSON API; identity comes from the gateway header, not a browser cookie
    for blueprint in (sessions_bp, check_in_bp, discovery_bp):
        csrf.exempt(blueprint)

    app.register_blueprint(sessions_bp, url_prefix='/sessions')
    app.register_blueprint(check_in_bp, url_prefix='/check-in')
    app.register_blueprint(discovery_bp, url_prefix='/discovery')

    app.logger.info("Registered sessions, check-in and discovery blueprints")


def register_error_handlers(app):
    """Answer every error in the same JSON shape the services use."""

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({
            'success': False,
            'error_code': e.name.lower().replace(' ', '_'),
            'message': e.description
        }), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        app.logger.error(f"Unhandled exception: {str(e)}", exc_info=True)
        return jsonify({
            'success': False,
            'error_code': 'server_error',
            'message': str(e) if app.debug else 'Internal server error'
        }), 500


def register_shell_context(app):

    @app.shell_context_processor
    def make_shell_context():
        from session_attendance.models import User, Course, Enrollment, ClassSession, AttendanceClaim
        return {
            'db': db,
            'User': User,
            'Course': Course,
            'Enrollment': Enrollment,
            'ClassSession': ClassSession,
            'AttendanceClaim': AttendanceClaim
        }


def register_health_checks(app):
    """``/health`` for the load balancer, ``/health/database`` for monitoring."""

    @app.route('/health')
    def health_check():
        return jsonify({
            'status': 'ok',
            'version': app.config.get('VERSION', '1.0.0'),
            'radius_meters': app.config.get('ATTENDANCE_RADIUS_METERS'),
            'on_time_minutes': app.config.get('ATTENDANCE_ON_TIME_MINUTES'),
            'timestamp': datetime.now().isoformat()
        })

    @app.route('/health/database')
    def database_health_check():
        from session_attendance.extensions import check_database_health, get_connection_stats

        healthy, message = check_database_health()
        return jsonify({
            'status': 'healthy' if healthy else 'unhealthy',
            'message': message,
            'stats': get_connection_stats(),
            'timestamp': datetime.now().isoformat()
        }), 200 if healthy else 503


def create_app(config_name=None):
    """
    Build the attendance service.

    Args:
        config_name (str): 'development', 'production' or 'testing'; defaults to FLASK_ENV

    Returns:
        Flask: the configured app
    """
    load_dotenv()

    config_name = config_name or os.environ.get('FLASK_ENV', 'development')
    config_class = config_by_name[config_name]
    if hasattr(config_class, 'validate'):
        config_class.validate()

    app = Flask(__name__)
    app.config.from_object(config_class)

    setup_logging(app)
    app.logger.info(f"Starting session attendance service with config: {config_name}")

    init_extensions(app)

    # Register models with the SQLAlchemy metadata
    from session_attendance import models  # noqa: F401

    from session_attendance.extensions import start_database_health_monitor
    start_database_health_monitor(app, interval=app.config.get('DB_HEALTH_CHECK_INTERVAL', 300))

    register_blueprints(app)
    register_error_handlers(app)
    register_shell_context(app)
    register_health_checks(app)

    from .cli import register_cli_commands
    register_cli_commands(app)

    return app
