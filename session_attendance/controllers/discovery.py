# controllers/discovery.py
"""
Discovery polling endpoint. Clients call it every few seconds; it never writes.
"""

from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user

from session_attendance.controllers.forms import PollForm
from session_attendance.services.discovery_service import DiscoveryService
from session_attendance.utils.auth import participant_required

discovery_bp = Blueprint('discovery', __name__)


@discovery_bp.route('/poll')
@participant_required
def poll():
    form = PollForm(formdata=request.args)
    if not form.validate():
        return jsonify(form.error_result()), 400

    sessions = DiscoveryService.poll(
        participant_id=current_user.id,
        course_ids=request.args.getlist('course_id'),
        as_of=form.as_of_time
    )
    return jsonify({
        'success': True,
        'sessions': sessions,
        'poll_interval_seconds': current_app.config.get('DISCOVERY_POLL_SECONDS', 30)
    })
