from datetime import time

from tests.conftest import auth_header, at


def test_health(client):
    assert client.get('/health').get_json() == {"status": "ok", "app": "occupancy"}


def test_token_required(client, reservation):
    response = client.post(f'/api/reservations/{reservation.id}/check-in', json={})
    assert response.status_code == 401


def test_check_in_requires_staff(client, reservation):
    response = client.post(f'/api/reservations/{reservation.id}/check-in', json={},
                           headers=auth_header(user_id=7, role='user'))
    assert response.status_code == 403


def test_check_in_status_check_out_flow(client, clock, reservation):
    staff = auth_header()
    response = client.post(f'/api/reservations/{reservation.id}/check-in',
                           json={'notes': 'front desk', 'user_verification': {'email': 'ada@example.com'}},
                           headers=staff)
    assert response.status_code == 201
    body = response.get_json()
    session = body['session']
    assert session['status'] == 'checked_in'
    assert session['user_name'] == 'Ada Lovelace'
    assert session['space_name'] == 'Open Space'
    assert session['event_name'] == 'Team sync'

    clock.set(at(15, 0))
    status = client.get(f"/api/sessions/{session['id']}/status", headers=staff).get_json()
    assert status['current_duration_hours'] == 0.92
    assert status['remaining_reserved_time_hours'] == 1.08
    assert status['is_overtime'] is False

    clock.set(at(16, 30))
    response = client.post(f"/api/sessions/{session['id']}/check-out", json={'notes': 'bye'}, headers=staff)
    assert response.status_code == 200
    body = response.get_json()
    assert body['actual_duration_hours'] == 2.42
    assert body['overtime_hours'] == 0.42
    assert body['base_cost'] == 6000
    assert body['overtime_cost'] == 1260
    assert body['total_cost'] == 7260

    again = client.post(f"/api/sessions/{session['id']}/check-out", json={}, headers=staff).get_json()
    assert again['total_cost'] == 7260


def test_error_kinds_in_responses(client, reservation):
    staff = auth_header()
    client.post(f'/api/reservations/{reservation.id}/check-in', json={}, headers=staff)

    response = client.post(f'/api/reservations/{reservation.id}/check-in', json={}, headers=staff)
    assert response.status_code == 409
    assert response.get_json()['error'] == 'AlreadyCheckedIn'

    response = client.post('/api/reservations/999/check-in', json={}, headers=staff)
    assert response.status_code == 404
    assert response.get_json()['error'] == 'ReservationNotFound'

    response = client.post('/api/sessions/999/check-out', json={}, headers=staff)
    assert response.status_code == 404
    assert response.get_json()['error'] == 'SessionNotFound'


def test_verification_mismatch_response(client, reservation):
    response = client.post(f'/api/reservations/{reservation.id}/check-in',
                           json={'user_verification': {'event_name': 'Wrong'}},
                           headers=auth_header())
    assert response.status_code == 403
    body = response.get_json()
    assert body['error'] == 'VerificationMismatch'
    assert body['category'] == 'validation'


def test_verify_endpoint(client, reservation):
    body = client.get(f'/api/reservations/{reservation.id}/verify?email=ada@example.com',
                      headers=auth_header()).get_json()
    assert body['can_check_in'] is True
    assert body['reservation']['id'] == reservation.id


def test_cancel_endpoint(client, reservation):
    staff = auth_header()
    session = client.post(f'/api/reservations/{reservation.id}/check-in', json={}, headers=staff).get_json()['session']
    response = client.post(f"/api/sessions/{session['id']}/cancel", json={'reason': 'no show'}, headers=staff)
    assert response.get_json()['session']['status'] == 'cancelled'

    response = client.post(f"/api/sessions/{session['id']}/check-out", json={}, headers=staff)
    assert response.status_code == 409
    assert response.get_json()['error'] == 'InvalidStateTransition'


def test_active_sessions_and_history(client, clock, reservation):
    staff = auth_header()
    session = client.post(f'/api/reservations/{reservation.id}/check-in', json={}, headers=staff).get_json()['session']

    active = client.get('/api/sessions/active?space_id=1', headers=staff).get_json()
    assert active['count'] == 1
    assert active['active_sessions'][0]['id'] == session['id']
    assert client.get('/api/sessions/active?space_id=2', headers=staff).get_json()['count'] == 0

    clock.set(at(16, 0))
    client.post(f"/api/sessions/{session['id']}/check-out", json={}, headers=staff)

    history = client.get('/api/sessions/?status=checked_out&date_from=2026-03-10', headers=staff).get_json()
    assert history['total'] == 1
    assert history['stats']['total_hours'] == 1.92
    assert history['sessions'][0]['space_name'] == 'Open Space'

    detail = client.get(f"/api/sessions/{session['id']}", headers=staff).get_json()
    assert detail['status'] == 'checked_out'


def test_reservation_session_for_owner(client, reservation):
    owner = auth_header(user_id=7, role='user')
    assert client.get(f'/api/reservations/{reservation.id}/session', headers=owner).get_json()['session'] is None

    client.post(f'/api/reservations/{reservation.id}/check-in', json={}, headers=auth_header())
    body = client.get(f'/api/reservations/{reservation.id}/session', headers=owner).get_json()
    assert body['session']['status'] == 'checked_in'

    stranger = auth_header(user_id=8, role='user')
    assert client.get(f'/api/reservations/{reservation.id}/session', headers=stranger).status_code == 403


def test_extension_options_and_extend(client, bookings, reservation):
    owner = auth_header(user_id=7, role='user')
    bookings.add(id=2, space_id=1, start_time=time(17), end_time=time(19))

    body = client.get(f'/api/reservations/{reservation.id}/extension-options', headers=owner).get_json()
    assert body['success'] is True
    assert body['available_extensions']['same_space'] == [
        {'start': '16:00', 'end': '17:00', 'duration_hours': 1.0},
        {'start': '19:00', 'end': '20:00', 'duration_hours': 1.0},
    ]

    response = client.post(f'/api/reservations/{reservation.id}/extend',
                           json={'start': '19:00', 'end': '20:00'}, headers=owner)
    assert response.status_code == 409
    assert response.get_json()['error'] == 'AvailabilityConflict'

    response = client.post(f'/api/reservations/{reservation.id}/extend',
                           json={'start': '16:00', 'end': '17:00'}, headers=owner)
    assert response.status_code == 200
    assert response.get_json()['reservation']['end_time'] == '17:00'


def test_extend_requires_slot_bounds(client, reservation):
    response = client.post(f'/api/reservations/{reservation.id}/extend', json={'start': '16:00'},
                           headers=auth_header())
    assert response.status_code == 400


def test_session_status_for_owner_and_staff_only(client, reservation):
    response = client.post(f'/api/reservations/{reservation.id}/check-in', json={}, headers=auth_header())
    session_id = response.get_json()['session']['id']
    url = f'/api/sessions/{session_id}/status'

    assert client.get(url, headers=auth_header()).status_code == 200
    owner = client.get(url, headers=auth_header(user_id=7, role='user'))
    assert owner.status_code == 200
    assert owner.get_json()['status'] == 'checked_in'
    assert client.get(url, headers=auth_header(user_id=8, role='user')).status_code == 403
    assert client.get('/api/sessions/999/status', headers=auth_header()).status_code == 404


def test_check_in_with_non_numeric_reservation_number(client, reservation):
    response = client.post(f'/api/reservations/{reservation.id}/check-in',
                           json={'user_verification': {'reservation_id': 'abc'}},
                           headers=auth_header())
    assert response.status_code == 403
    assert response.get_json()['error'] == 'VerificationMismatch'
