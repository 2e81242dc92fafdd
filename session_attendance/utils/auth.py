# utils/auth.py
from functools import wraps
from flask import jsonify
from flask_login import current_user


def presenter_required(f):
    """Decorator to require a presenter (or admin) account."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'success': False, 'error_code': 'authentication_required',
                            'message': 'Authentication required'}), 401

        if not current_user.is_presenter():
            return jsonify({'success': False, 'error_code': 'forbidden',
                            'message': 'Presenter access required'}), 403

        return f(*args, **kwargs)

    return decorated_function


def participant_required(f):
    """Decorator to require a participant account."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'success': False, 'error_code': 'authentication_required',
                            'message': 'Authentication required'}), 401

        if not current_user.is_participant():
            return jsonify({'success': False, 'error_code': 'forbidden',
                            'message': 'Participant access required'}), 403

        return f(*args, **kwargs)

    return decorated_function
