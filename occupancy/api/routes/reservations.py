from flask import Blueprint, request, jsonify, current_app
from occupancy.services import get_engine
from occupancy.services.projection import session_view
from occupancy.utils.decorators import token_required, staff_required, json_errors, STAFF_ROLES
from occupancy.errors import ReservationNotFound
from occupancy.api.routes.common import request_deadline

reservations_bp = Blueprint('reservations', __name__)


def _owned_reservation(engine, current_user, reservation_id):
    reservation = engine.bookings.get_reservation(reservation_id)
    if reservation is None:
        raise ReservationNotFound(f"Reservation {reservation_id} not found.", reservation_id=reservation_id)
    if current_user['role'] not in STAFF_ROLES and reservation.owner.id != current_user['id']:
        return reservation, (jsonify({'message': 'Unauthorized.'}), 403)
    return reservation, None


@reservations_bp.route('/<int:reservation_id>/verify', methods=['GET'])
@token_required
@staff_required
@json_errors
def verify_reservation(current_user, reservation_id):
    engine = get_engine()
    result = engine.lifecycle.verify_reservation(
        reservation_id,
        email=request.args.get('email'),
        event_name=request.args.get('event_name'),
    )
    return jsonify(result), 200


@reservations_bp.route('/<int:reservation_id>/check-in', methods=['POST'])
@token_required
@staff_required
@json_errors
def check_in(current_user, reservation_id):
    data = request.get_json(silent=True) or {}
    engine = get_engine()
    session = engine.lifecycle.check_in(
        reservation_id,
        actor=current_user['id'],
        notes=data.get('notes'),
        verification=data.get('user_verification'),
        deadline=request_deadline(),
    )
    current_app.logger.info(f"User {current_user['id']} checked in reservation {reservation_id}")
    return jsonify({
        'success': True,
        'session': session_view(session, engine.lifecycle, engine.bookings, engine.spaces),
        'message': 'Check-in successful.',
    }), 201


@reservations_bp.route('/<int:reservation_id>/session', methods=['GET'])
@token_required
@json_errors
def reservation_session(current_user, reservation_id):
    engine = get_engine()
    _, denied = _owned_reservation(engine, current_user, reservation_id)
    if denied:
        return denied
    session = engine.lifecycle.get_session_for_reservation(reservation_id)
    if session is None:
        return jsonify({'session': None, 'message': 'No session for this reservation yet.'}), 200
    return jsonify({'session': session_view(session, engine.lifecycle, engine.bookings, engine.spaces)}), 200


@reservations_bp.route('/<int:reservation_id>/extension-options', methods=['GET'])
@token_required
@json_errors
def extension_options(current_user, reservation_id):
    engine = get_engine()
    reservation, denied = _owned_reservation(engine, current_user, reservation_id)
    if denied:
        return denied
    options = engine.resolver.find_extension_options(reservation)
    return jsonify({
        'success': True,
        'available_extensions': engine.resolver.serialize(options),
    }), 200


@reservations_bp.route('/<int:reservation_id>/extend', methods=['POST'])
@token_required
@json_errors
def extend(current_user, reservation_id):
    data = request.get_json(silent=True) or {}
    if not data.get('start') or not data.get('end'):
        return jsonify({'error': 'BadRequest', 'message': "'start' and 'end' are required."}), 400

    engine = get_engine()
    _, denied = _owned_reservation(engine, current_user, reservation_id)
    if denied:
        return denied
    result = engine.committer.commit(
        reservation_id,
        {'start': data['start'], 'end': data['end'], 'space_id': data.get('space_id')},
        deadline=request_deadline(),
    )
    result['success'] = True
    return jsonify(result), 200
