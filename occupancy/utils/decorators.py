from functools import wraps
from flask import request, jsonify, current_app
import jwt
from occupancy.errors import OccupancyError

STAFF_ROLES = ('admin', 'staff')

def token_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        token = None
        if 'Authorization' in request.headers:
            # Bearer <token>
            auth_header = request.headers['Authorization']
            if auth_header.startswith("Bearer "):
                token = auth_header.split(" ")[1]

        if not token:
            return jsonify({'message': 'Token is missing!'}), 401

        try:
            data = jwt.decode(token, current_app.config['SECRET_KEY'], algorithms=["HS256"])
            current_user = {'id': int(data['user_id']), 'role': data.get('role', 'user')}
        except (jwt.InvalidTokenError, KeyError, TypeError, ValueError) as e:
            return jsonify({'message': 'Token is invalid!', 'error': str(e)}), 401

        return f(current_user, *args, **kwargs)

    return decorated

def json_errors(f):
    """Engine errors become {'error': kind, 'message': ...} with their own status code."""
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except OccupancyError as e:
            current_app.logger.info(f"{request.method} {request.path} -> {e.kind}: {e.message}")
            return jsonify(e.to_dict()), e.status_code
        except ValueError as e:
            return jsonify({'error': 'BadRequest', 'message': str(e)}), 400
        except Exception as e:
            current_app.logger.exception(f"Unhandled error on {request.method} {request.path}")
            return jsonify({'error': 'Server Error', 'details': str(e)}), 500
    return decorated

def staff_required(f):
    # Must be stacked under token_required, which passes current_user first
    @wraps(f)
    def decorated(*args, **kwargs):
        current_user = args[0]
        if current_user['role'] not in STAFF_ROLES:
            return jsonify({'message': 'Staff privilege required'}), 403
        return f(*args, **kwargs)
    return decorated
