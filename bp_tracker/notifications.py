"""
Reminder records for BP Tracker.

Patients keep reminders for medical appointments, medication and taking a
blood pressure reading. This module only stores them; delivering push
notifications is handled elsewhere.

repeat_interval is the number of hours between repeats (0 = don't repeat).
"""

from datetime import datetime
from typing import List, Optional

from .database import get_connection
from .errors import NotFoundError, ValidationError
from .models import get_patient_by_id


# Reminder types with descriptions
NOTIFICATION_TYPES = {
    'appointment': 'Medical appointment',
    'medication': 'Medication',
    'bp_reading': 'Blood pressure reading',
}

# Allowed repeat intervals in hours
REPEAT_INTERVALS = {
    0: 'Do not repeat',
    1: 'Every hour',
    2: 'Every 2 hours',
    4: 'Every 4 hours',
    6: 'Every 6 hours',
    8: 'Every 8 hours',
    12: 'Every 12 hours',
    24: 'Every 24 hours',
}


def _parse_start_date(value) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError("Start date must be an ISO date/time")


def _from_row(row) -> Optional[dict]:
    if row is None:
        return None
    notification = dict(row)
    notification['start_date'] = datetime.fromisoformat(notification['start_date'])
    notification['created_at'] = datetime.fromisoformat(notification['created_at'])
    return notification


def validate_notification(title, type, start_date, repeat_interval=0,
                          additional_notes='') -> dict:
    """
    Check the fields of a reminder.

    Returns:
        Dict of cleaned values ready to store

    Raises:
        ValidationError: a required field is missing or invalid
    """
    if title is not None and not isinstance(title, str):
        raise ValidationError("Title must be text")
    title = (title or '').strip()
    if not title:
        raise ValidationError("Title is required")
    if not type:
        raise ValidationError("Type is required")
    if not isinstance(type, str) or type not in NOTIFICATION_TYPES:
        raise ValidationError(
            f"Type must be one of: {', '.join(NOTIFICATION_TYPES)}")
    if not start_date:
        raise ValidationError("Start date is required")
    if additional_notes is None:
        raise ValidationError("Additional notes are required")
    if not isinstance(additional_notes, str):
        raise ValidationError("Additional notes must be text")

    try:
        interval = int(repeat_interval or 0)
    except (TypeError, ValueError):
        raise ValidationError("Repeat interval must be a number of hours")
    if interval not in REPEAT_INTERVALS:
        raise ValidationError(
            f"Repeat interval must be one of: {', '.join(str(h) for h in REPEAT_INTERVALS)}")

    return {
        'title': title,
        'type': type,
        'start_date': _parse_start_date(start_date),
        'repeat_interval': interval,
        'additional_notes': additional_notes,
    }


def add_notification(patient_id: str, title: str, type: str, start_date,
                     repeat_interval: int = 0, additional_notes: str = '',
                     push_token: str = None) -> int:
    """
    Create a reminder for a patient.

    Args:
        patient_id: The patient's ID
        title: Short title shown in the reminder
        type: One of NOTIFICATION_TYPES
        start_date: First occurrence (datetime or ISO string)
        repeat_interval: Hours between repeats, one of REPEAT_INTERVALS
        additional_notes: Free text (may be empty, not None)
        push_token: Device token for push delivery (optional)

    Returns:
        The ID of the new reminder
    """
    values = validate_notification(title, type, start_date, repeat_interval,
                                   additional_notes)
    if push_token is not None and not isinstance(push_token, str):
        raise ValidationError("Push token must be text")
    if get_patient_by_id(patient_id) is None:
        raise NotFoundError("Patient not found")

    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute(
        """INSERT INTO notifications
           (patient_id, title, type, start_date, repeat_interval,
            additional_notes, push_token, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (patient_id, values['title'], values['type'],
         values['start_date'].isoformat(), values['repeat_interval'],
         values['additional_notes'], push_token, datetime.now().isoformat())
    )

    notification_id = cursor.lastrowid
    conn.commit()
    conn.close()

    return notification_id


def get_notification(patient_id: str, notification_id: int) -> Optional[dict]:
    """Get one of a patient's reminders, or None."""
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute(
        "SELECT * FROM notifications WHERE id = ? AND patient_id = ?",
        (notification_id, patient_id)
    )
    notification = cursor.fetchone()
    conn.close()

    return _from_row(notification)


def get_notifications(patient_id: str) -> List[dict]:
    """Get all of a patient's reminders, soonest first."""
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute(
        "SELECT * FROM notifications WHERE patient_id = ? ORDER BY start_date, id",
        (patient_id,)
    )
    notifications = [_from_row(row) for row in cursor.fetchall()]
    conn.close()

    return notifications


def update_notification(patient_id: str, notification_id: int, title: str,
                        type: str, start_date, repeat_interval: int = None,
                        additional_notes: str = '') -> dict:
    """
    Replace a reminder's details. The push token is left as is, and so is
    the repeat interval when none is given.

    Raises:
        NotFoundError: the reminder doesn't exist for this patient
        ValidationError: bad field values
    """
    current = get_notification(patient_id, notification_id)
    if current is None:
        raise NotFoundError("Notification not found")
    if repeat_interval is None:
        repeat_interval = current['repeat_interval']

    values = validate_notification(title, type, start_date, repeat_interval,
                                   additional_notes)

    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute(
        """UPDATE notifications
           SET title = ?, type = ?, start_date = ?, repeat_interval = ?,
               additional_notes = ?
           WHERE id = ? AND patient_id = ?""",
        (values['title'], values['type'], values['start_date'].isoformat(),
         values['repeat_interval'], values['additional_notes'],
         notification_id, patient_id)
    )
    conn.commit()
    conn.close()

    return get_notification(patient_id, notification_id)


def delete_notification(patient_id: str, notification_id: int) -> bool:
    """Delete a reminder. Returns True if it existed."""
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute(
        "DELETE FROM notifications WHERE id = ? AND patient_id = ?",
        (notification_id, patient_id)
    )
    success = cursor.rowcount > 0
    conn.commit()
    conn.close()

    return success


def format_notification(notification: dict) -> str:
    """Format a reminder for display."""
    start = notification['start_date'].strftime("%b %d, %I:%M %p")
    kind = NOTIFICATION_TYPES.get(notification['type'], notification['type'])
    repeat = REPEAT_INTERVALS.get(notification['repeat_interval'], '')
    return f"{notification['title']} ({kind}) - {start}, {repeat.lower()}"
