# services/qr_code_service.py
"""
QR code generation for session check-in tokens.
The QR payload is compact JSON carrying the session id and its human code.
"""

import io
import json
import logging

import qrcode

from session_attendance.extensions import db
from session_attendance.models.class_session import ClassSession
from session_attendance.services.errors import AttendanceError, failure


def build_qr_payload(session):
    return json.dumps({'session_id': session.id, 'code': session.code}, separators=(',', ':'))


def parse_qr_payload(qr_data):
    """
    Extract (session_id, code) from scanned QR data.

    Anything other than a JSON object, including text that happens to parse
    as a JSON number, is treated as a bare session code.
    """
    try:
        payload = json.loads(qr_data)
    except (TypeError, ValueError):
        payload = None

    if not isinstance(payload, dict):
        return None, (qr_data or '').strip() or None
    return payload.get('session_id'), payload.get('code')


class QRCodeService:
    """Service for rendering session check-in QR codes."""

    @staticmethod
    def render_session_qr(session_id, presenter_id=None):
        """
        Render the QR code for a session as PNG bytes.

        Args:
            session_id: Session to encode
            presenter_id: When given, must match the session presenter

        Returns:
            dict: success flag with ``png`` bytes and ``payload``, or an error code
        """
        logger = logging.getLogger('qr_code_service')

        session = db.session.get(ClassSession, session_id)
        if not session:
            return failure(AttendanceError.SESSION_NOT_FOUND, 'Session not found')

        if presenter_id and session.presenter_id != presenter_id:
            return failure(AttendanceError.FORBIDDEN, 'Permission denied to render QR code')

        payload = build_qr_payload(session)

        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_H,
            box_size=10,
            border=4,
        )
        qr.add_data(payload)
        qr.make(fit=True)

        buffer = io.BytesIO()
        qr.make_image(fill_color="black", back_color="white").save(buffer, format='PNG')

        logger.info(f"Rendered QR code for session {session.id}")
        return {
            'success': True,
            'payload': payload,
            'png': buffer.getvalue()
        }
