"""
Flask web application for BP Tracker.

JSON API for registering patients, recording blood pressure measurements,
managing reminders and sharing a read-only view of a patient's history.

Run with: python -m web.app
Or use: bp web start
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path so we can import bp_tracker modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from flask import Blueprint, Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from bp_tracker import config
from bp_tracker.blood_pressure import classify
from bp_tracker.database import init_database
from bp_tracker.errors import BPTrackerError, InternalError, NotFoundError, ValidationError
from bp_tracker.models import (
    PATIENT_FIELDS,
    add_patient,
    get_patient_by_id,
    get_patient_by_email,
    update_patient,
    get_medications,
    get_relevant_conditions,
    get_patient_medications,
    get_patient_relevant_conditions,
    add_measurement,
    get_measurement_by_id,
    list_measurements,
)
from bp_tracker.notifications import (
    add_notification,
    get_notification,
    get_notifications,
    update_notification,
    delete_notification,
)
from bp_tracker.sharing import ShareTokenService


logger = logging.getLogger(__name__)

api = Blueprint('api', __name__)


# ============================================================
# HELPERS
# ============================================================

def _iso(value):
    """Render datetimes as ISO strings, leave everything else alone."""
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _json_record(record: dict) -> dict:
    return {key: _iso(value) for key, value in record.items()}


def _patient_json(patient: dict) -> dict:
    data = _json_record(patient)
    data['medications'] = get_patient_medications(patient['id'])
    data['relevant_conditions'] = get_patient_relevant_conditions(patient['id'])
    return data


def _measurement_json(measurement: dict, thresholds) -> dict:
    data = _json_record(measurement)
    data.update(classify(measurement['systolic_pressure'],
                         measurement['diastolic_pressure'],
                         thresholds).to_dict())
    return data


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _require_patient(user_id: str) -> dict:
    patient = get_patient_by_id(user_id)
    if patient is None:
        raise NotFoundError("User not found")
    return patient


def _share_service() -> ShareTokenService:
    return current_app.extensions['share_service']


# ============================================================
# ERROR HANDLERS
# ============================================================

@api.app_errorhandler(BPTrackerError)
def handle_tracker_error(error):
    """Turn our error types into JSON responses."""
    if isinstance(error, InternalError):
        logger.error("Internal error: %s", error.message)
    return jsonify(error.to_dict()), error.status_code


@api.app_errorhandler(Exception)
def handle_unexpected_error(error):
    """Log anything unexpected and answer with a generic 500."""
    if isinstance(error, HTTPException):
        return jsonify({'error': error.description}), error.code
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({'error': InternalError.PUBLIC_MESSAGE}), 500


# ============================================================
# ROUTES - PATIENTS
# ============================================================

@api.route('/api/users', methods=['POST'])
def users_create():
    """Register a patient."""
    body = _json_body()
    patient_id = add_patient(
        name=body.get('name'),
        email=body.get('email'),
        birthdate=body.get('birthdate'),
        gender=body.get('gender'),
        height=body.get('height'),
        weight=body.get('weight'),
    )
    logger.info("Registered patient %s", patient_id)
    return jsonify(_patient_json(get_patient_by_id(patient_id))), 201


@api.route('/api/users', methods=['GET'])
def users_lookup():
    """Find a patient by email (?email=...)."""
    email = request.args.get('email', '').strip()
    if not email:
        raise ValidationError("Email is required")

    patient = get_patient_by_email(email)
    if patient is None:
        raise NotFoundError("User not found")
    return jsonify(_patient_json(patient))


@api.route('/api/users/<user_id>', methods=['GET'])
def users_get(user_id):
    """Get a patient's profile."""
    return jsonify(_patient_json(_require_patient(user_id)))


@api.route('/api/users/<user_id>', methods=['PATCH'])
def users_update(user_id):
    """Update a patient's profile, medications and relevant conditions."""
    _require_patient(user_id)
    body = _json_body()
    fields = {key: body[key] for key in PATIENT_FIELDS if key in body}
    links = {key: body[key] for key in ('medications', 'relevant_conditions')
             if body.get(key) is not None}
    if not fields and not links:
        raise ValidationError("Nothing to update")

    update_patient(user_id, **links, **fields)
    return jsonify(_patient_json(get_patient_by_id(user_id)))


@api.route('/api/medications', methods=['GET'])
def medications_list():
    """The medication catalogue, sorted by name."""
    return jsonify(get_medications())


@api.route('/api/relevant-conditions', methods=['GET'])
def relevant_conditions_list():
    """The relevant-condition catalogue, sorted by name."""
    return jsonify(get_relevant_conditions())


# ============================================================
# ROUTES - MEASUREMENTS
# ============================================================

@api.route('/api/users/<user_id>/measurements', methods=['GET'])
def measurements_list(user_id):
    """Measurement history, newest first, with crisis status."""
    _require_patient(user_id)
    limit = request.args.get('limit', type=int)
    thresholds = config.get_crisis_thresholds()

    measurements = list_measurements(user_id, limit=limit)
    return jsonify([_measurement_json(m, thresholds) for m in measurements])


@api.route('/api/users/<user_id>/measurements', methods=['POST'])
def measurements_create(user_id):
    """Record a measurement and report whether it is a crisis."""
    body = _json_body()
    measurement_id = add_measurement(
        user_id,
        systolic=body.get('systolic_pressure'),
        diastolic=body.get('diastolic_pressure'),
        heart_rate=body.get('heart_rate'),
        tags=body.get('tags'),
    )

    measurement = get_measurement_by_id(measurement_id)
    data = _measurement_json(measurement, config.get_crisis_thresholds())
    if data['status'] != 'normal':
        logger.info("Crisis reading (%s) recorded for patient %s",
                    data['status'], user_id)
    return jsonify(data), 201


@api.route('/api/thresholds', methods=['GET'])
def thresholds():
    """Current crisis thresholds, so clients can colour readings."""
    return jsonify(config.get_crisis_thresholds().to_dict())


# ============================================================
# ROUTES - NOTIFICATIONS
# ============================================================

@api.route('/api/users/<user_id>/notifications', methods=['GET'])
def notifications_list(user_id):
    """All of a patient's reminders."""
    _require_patient(user_id)
    return jsonify([_json_record(n) for n in get_notifications(user_id)])


@api.route('/api/users/<user_id>/notifications', methods=['POST'])
def notifications_create(user_id):
    """Create a reminder."""
    body = _json_body()
    notification_id = add_notification(
        user_id,
        title=body.get('title'),
        type=body.get('type'),
        start_date=body.get('start_date'),
        repeat_interval=body.get('repeat_interval', 0),
        additional_notes=body.get('additional_notes'),
        push_token=body.get('push_token'),
    )
    return jsonify(_json_record(get_notification(user_id, notification_id))), 201


@api.route('/api/users/<user_id>/notifications/<int:notification_id>', methods=['GET'])
def notifications_get(user_id, notification_id):
    """Get one reminder."""
    notification = get_notification(user_id, notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    return jsonify(_json_record(notification))


@api.route('/api/users/<user_id>/notifications/<int:notification_id>', methods=['PATCH'])
def notifications_update(user_id, notification_id):
    """Replace a reminder's details."""
    body = _json_body()
    notification = update_notification(
        user_id,
        notification_id,
        title=body.get('title'),
        type=body.get('type'),
        start_date=body.get('start_date'),
        repeat_interval=body.get('repeat_interval'),
        additional_notes=body.get('additional_notes'),
    )
    return jsonify(_json_record(notification))


@api.route('/api/users/<user_id>/notifications/<int:notification_id>', methods=['DELETE'])
def notifications_delete(user_id, notification_id):
    """Delete a reminder."""
    if not delete_notification(user_id, notification_id):
        raise NotFoundError("Notification not found")
    return jsonify({'deleted': notification_id})


# ============================================================
# ROUTES - SHARING
# ============================================================

def _shared_json(shared: dict) -> dict:
    return {
        'success': True,
        'user': shared['user'],
        'measurements': [_json_record(m) for m in shared['measurements']],
        'token_info': _json_record(shared['token_info']),
    }


@api.route('/api/users/<user_id>/share-measurement', methods=['POST'])
def share_create(user_id):
    """Create a 2-day read-only link to the patient's history."""
    return jsonify(_share_service().issue_share_link(user_id))


@api.route('/api/check-shared-measurement', methods=['POST'])
def share_check():
    """Open a share link; the token comes in the JSON body."""
    token = _json_body().get('token')
    return jsonify(_shared_json(_share_service().verify_and_fetch(token)))


@api.route('/shared/<token>', methods=['GET'])
def share_view(token):
    """Open a share link straight from its URL."""
    return jsonify(_shared_json(_share_service().verify_and_fetch(token)))


# ============================================================
# APP FACTORY
# ============================================================

def create_app(share_service: ShareTokenService = None, init_db: bool = True) -> Flask:
    """
    Build the Flask app.

    The share-link service is created here, so a missing JWT_SECRET stops
    the server from starting instead of failing on the first request.
    """
    app = Flask(__name__)

    if share_service is None:
        share_service = ShareTokenService.from_config()
    app.extensions['share_service'] = share_service

    if init_db:
        init_database()

    app.register_blueprint(api)
    return app


# ============================================================
# RUN SERVER
# ============================================================

def run_server(host='0.0.0.0', port=5000, debug=False):
    """Run the Flask development server."""
    config.configure_logging()
    app = create_app()

    print(f"\n{'='*50}")
    print("  BP TRACKER WEB SERVER")
    print(f"{'='*50}")
    print(f"\n  Local:   http://localhost:{port}")
    print(f"  Share links: {config.APP_URL}/shared/<token>")
    print(f"\n  Press Ctrl+C to stop\n")

    app.run(host=host, port=port, debug=debug)


if __name__ == '__main__':
    run_server(debug=True)
