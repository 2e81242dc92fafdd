# controllers/check_in.py
"""
Participant check-in routes.
Accepts a session code typed by hand, a scanned QR payload, or a session id picked
from discovery, together with a location sample. The server clock, not the client's,
decides the on-time/late classification.
"""

import logging
from datetime import datetime

from flask import Blueprint, jsonify, request
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from session_attendance.controllers.forms import ClaimForm, DateRangeForm
from session_attendance.controllers.sessions import storage_unavailable
from session_attendance.models.attendance_claim import CheckInMethod
from session_attendance.services.claim_ledger import ClaimLedgerService
from session_attendance.services.errors import http_status_for
from session_attendance.services.qr_code_service import parse_qr_payload
from session_attendance.utils.auth import participant_required

check_in_bp = Blueprint('check_in', __name__)

logger = logging.getLogger('check_in')


@check_in_bp.route('/verify', methods=['POST'])
@participant_required
def verify():
    """Verify and record the current participant's attendance claim."""
    # Stamp on arrival so validation time never counts against the participant
    received_at = datetime.now()

    form = ClaimForm()
    if not form.validate():
        return jsonify(form.error_result()), 400

    session_id = form.session_id.data or None
    code = form.code.data or None
    check_in_method = CheckInMethod.SESSION_ID if session_id else CheckInMethod.CODE

    if form.qr_data.data:
        qr_session_id, qr_code = parse_qr_payload(form.qr_data.data)
        session_id = qr_session_id or session_id
        code = qr_code or code
        check_in_method = CheckInMethod.QR_CODE
        logger.info(f"QR check-in payload parsed: session={qr_session_id} code={qr_code}")

    logger.info(f"Attendance claim: participant={current_user.id} session={session_id} "
                f"code={code} method={check_in_method}")

    claim_args = dict(
        participant_id=current_user.id,
        latitude=form.latitude.data,
        longitude=form.longitude.data,
        submitted_at=received_at,
        client_timestamp=form.client_time,
        accuracy_meters=form.accuracy.data,
        check_in_method=check_in_method
    )

    try:
        if session_id:
            result = ClaimLedgerService.submit_claim(session_id=session_id, **claim_args)
        else:
            result = ClaimLedgerService.submit_claim_by_code(code=code, **claim_args)
    except SQLAlchemyError:
        logger.error(f"Storage error recording claim for {current_user.id}", exc_info=True)
        return storage_unavailable()

    return jsonify(result), http_status_for(result)


@check_in_bp.route('/history')
@participant_required
def history():
    """The current participant's claims, optionally bounded by date."""
    form = DateRangeForm(formdata=request.args)
    if not form.validate():
        return jsonify(form.error_result()), 400

    claims = ClaimLedgerService.list_claims_for_participant(
        current_user.id,
        start_date=form.start.data,
        end_date=form.end.data
    )
    return jsonify({
        'success': True,
        'claims': [c.to_dict() for c in claims]
    })
