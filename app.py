# app.py
"""
WSGI entry point, e.g. ``gunicorn -c gunicorn_config.py app:app``.
"""

import os
import logging
from logging.handlers import SysLogHandler

from session_attendance import create_app
from session_attendance.services.geofence import GeofencePolicy


def create_application():
    """Build the app for the environment named by FLASK_ENV."""
    config_name = os.environ.get('FLASK_ENV', 'development')
    app = create_app(config_name)

    if config_name == 'production':
        attach_syslog(app)

    app.logger.info(f"Attendance policy: {GeofencePolicy.from_config(app.config)}")
    return app


def attach_syslog(app):
    """Forward errors to syslog when SYSLOG_SERVER is configured."""
    address = app.config.get('SYSLOG_SERVER')
    if not address:
        return

    handler = SysLogHandler(address=address)
    handler.setLevel(logging.ERROR)
    app.logger.addHandler(handler)
    app.logger.info(f"Error reports forwarded to syslog at {address}")


app = create_application()


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.logger.info(f"Starting development server on port {port}")
    app.run(host='0.0.0.0', port=port, debug=app.debug, threaded=True)
