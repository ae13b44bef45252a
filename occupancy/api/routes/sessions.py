from flask import Blueprint, request, jsonify, current_app
from occupancy.services import get_engine
from occupancy.services.projection import session_view
from occupancy.utils.decorators import token_required, staff_required, json_errors, STAFF_ROLES
from occupancy.api.routes.common import request_deadline, optional_int, optional_date

sessions_bp = Blueprint('sessions', __name__)


@sessions_bp.route('/', methods=['GET'])
@token_required
@staff_required
@json_errors
def session_history(current_user):
    engine = get_engine()
    result = engine.lifecycle.session_history(
        status=request.args.get('status'),
        date_from=optional_date('date_from'),
        date_to=optional_date('date_to'),
        space_id=optional_int('space_id'),
        page=optional_int('page') or 1,
        page_size=optional_int('page_size') or 20,
    )
    cache = {}
    result['sessions'] = [
        session_view(s, engine.lifecycle, engine.bookings, engine.spaces, cache) for s in result['sessions']
    ]
    result['count'] = len(result['sessions'])
    return jsonify(result), 200


@sessions_bp.route('/active', methods=['GET'])
@token_required
@staff_required
@json_errors
def active_sessions(current_user):
    engine = get_engine()
    sessions = engine.lifecycle.list_active_sessions(space_id=optional_int('space_id'))
    cache = {}
    return jsonify({
        'active_sessions': [session_view(s, engine.lifecycle, engine.bookings, engine.spaces, cache) for s in sessions],
        'count': len(sessions),
    }), 200


@sessions_bp.route('/<int:session_id>', methods=['GET'])
@token_required
@staff_required
@json_errors
def session_detail(current_user, session_id):
    engine = get_engine()
    session = engine.store.get(session_id)
    return jsonify(session_view(session, engine.lifecycle, engine.bookings, engine.spaces)), 200


@sessions_bp.route('/<int:session_id>/status', methods=['GET'])
@token_required
@json_errors
def session_status(current_user, session_id):
    engine = get_engine()
    session = engine.store.get(session_id)
    if current_user['role'] not in STAFF_ROLES:
        reservation = engine.bookings.get_reservation(session.reservation_id)
        if reservation is None or reservation.owner.id != current_user['id']:
            return jsonify({'message': 'Unauthorized.'}), 403
    return jsonify(engine.lifecycle.get_live_status(session_id)), 200


@sessions_bp.route('/<int:session_id>/check-out', methods=['POST'])
@token_required
@staff_required
@json_errors
def check_out(current_user, session_id):
    data = request.get_json(silent=True) or {}
    engine = get_engine()
    session = engine.lifecycle.check_out(
        session_id,
        actor=current_user['id'],
        notes=data.get('notes'),
        deadline=request_deadline(),
    )
    current_app.logger.info(f"User {current_user['id']} checked out session {session_id}")
    return jsonify({
        'success': True,
        'session': session_view(session, engine.lifecycle, engine.bookings, engine.spaces),
        'actual_duration_hours': session.actual_duration_hours,
        'overtime_hours': session.overtime_hours,
        'base_cost': session.base_cost,
        'overtime_cost': session.overtime_cost,
        'total_cost': session.total_cost,
        'message': 'Check-out successful.',
    }), 200


@sessions_bp.route('/<int:session_id>/cancel', methods=['POST'])
@token_required
@staff_required
@json_errors
def cancel(current_user, session_id):
    data = request.get_json(silent=True) or {}
    session = get_engine().lifecycle.cancel(
        session_id, actor=current_user['id'], reason=data.get('reason'), deadline=request_deadline()
    )
    return jsonify({'success': True, 'session': session.to_dict()}), 200
