# controllers/sessions.py
"""
Presenter-facing session routes: open, close, inspect sessions and render their QR codes.
"""

import io
import logging

from flask import Blueprint, jsonify, request, send_file
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from session_attendance.controllers.forms import OpenSessionForm, SessionDateForm
from session_attendance.services.claim_ledger import ClaimLedgerService
from session_attendance.services.errors import AttendanceError, failure, http_status_for
from session_attendance.services.qr_code_service import QRCodeService
from session_attendance.services.session_registry import SessionRegistryService
from session_attendance.utils.auth import presenter_required

sessions_bp = Blueprint('sessions', __name__)

logger = logging.getLogger('sessions')


def storage_unavailable():
    return jsonify(failure(
        AttendanceError.STORAGE_UNAVAILABLE,
        'Attendance storage is temporarily unavailable, please retry'
    )), 503


@sessions_bp.route('/', methods=['POST'])
@presenter_required
def open_session():
    """Open a new session anchored at the presenter's current location."""
    form = OpenSessionForm()
    if not form.validate():
        return jsonify(form.error_result()), 400

    try:
        result = SessionRegistryService.open_session(
            course_id=form.course_id.data,
            presenter_id=current_user.id,
            session_date=form.date.data,
            start_time=form.start_time.data,
            end_time=form.end_time.data,
            anchor_latitude=form.latitude.data,
            anchor_longitude=form.longitude.data,
            room_label=form.room_label.data or None,
            topic=form.topic.data or None
        )
    except SQLAlchemyError:
        logger.error("Storage error opening session", exc_info=True)
        return storage_unavailable()

    status = 201 if result['success'] else http_status_for(result)
    return jsonify(result), status


@sessions_bp.route('/mine')
@presenter_required
def my_sessions():
    form = SessionDateForm(formdata=request.args)
    if not form.validate():
        return jsonify(form.error_result()), 400

    sessions = SessionRegistryService.list_for_presenter(current_user.id, on_date=form.date.data)
    return jsonify({
        'success': True,
        'sessions': [s.to_dict() for s in sessions]
    })


@sessions_bp.route('/<session_id>')
@login_required
def get_session(session_id):
    result = SessionRegistryService.get_session(session_id)
    return jsonify(result), http_status_for(result)


@sessions_bp.route('/<session_id>/close', methods=['POST'])
@presenter_required
def close_session(session_id):
    try:
        result = SessionRegistryService.close_session(session_id, presenter_id=current_user.id)
    except SQLAlchemyError:
        logger.error(f"Storage error closing session {session_id}", exc_info=True)
        return storage_unavailable()

    return jsonify(result), http_status_for(result)


@sessions_bp.route('/<session_id>/claims')
@presenter_required
def session_claims(session_id):
    """Claims recorded for one of the presenter's sessions."""
    lookup = SessionRegistryService.get_session(session_id)
    if not lookup['success']:
        return jsonify(lookup), http_status_for(lookup)

    if lookup['session']['presenter_id'] != current_user.id:
        result = failure(AttendanceError.FORBIDDEN, 'Only the presenter can view these claims')
        return jsonify(result), http_status_for(result)

    claims = ClaimLedgerService.list_claims_for_session(session_id)
    return jsonify({
        'success': True,
        'session': lookup['session'],
        'claims': [c.to_dict() for c in claims]
    })


@sessions_bp.route('/<session_id>/qr.png')
@presenter_required
def session_qr(session_id):
    result = QRCodeService.render_session_qr(session_id, presenter_id=current_user.id)
    if not result['success']:
        return jsonify(result), http_status_for(result)

    return send_file(
        io.BytesIO(result['png']),
        mimetype='image/png',
        download_name=f'session-{session_id}.png'
    )
