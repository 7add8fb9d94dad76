"""
Data store for BP Tracker.

This module provides functions to:
- Register, look up, update and remove patients
- Keep each patient's medications and relevant conditions (picked from
  shared catalogues)
- Record blood pressure measurements with tags
- List a patient's measurement history (newest first)

Each function handles its own database connection to keep things simple.
Records are returned as plain dicts with timestamps parsed to datetimes.
"""

import sqlite3
import uuid
from datetime import datetime
from typing import List, Optional

from . import config
from .blood_pressure import to_number, validate_measurement
from .database import get_connection
from .errors import NotFoundError, ValidationError


PATIENT_FIELDS = ('name', 'email', 'birthdate', 'gender', 'height', 'weight')

# Fields stored as numbers; the rest are text
NUMBER_FIELDS = ('height', 'weight')

# Catalogue table -> (link table, link column)
CATALOGUES = {
    'medications': ('patient_medications', 'medication_id'),
    'relevant_conditions': ('patient_relevant_conditions', 'relevant_condition_id'),
}


def _parse_time(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _patient_from_row(row) -> Optional[dict]:
    if row is None:
        return None
    patient = dict(row)
    patient['created_at'] = _parse_time(patient['created_at'])
    return patient


def _label(field: str) -> str:
    return field.replace('_', ' ').capitalize()


def _clean_field(field: str, value):
    """
    Check one profile value coming from a form or JSON body.

    Raises:
        ValidationError: wrong type, or an empty name/email
    """
    if field in NUMBER_FIELDS:
        number = to_number(value)
        if number is None:
            raise ValidationError(f"{_label(field)} must be a number")
        return number

    if not isinstance(value, str):
        raise ValidationError(f"{_label(field)} must be text")
    value = value.strip()
    if field in ('name', 'email') and not value:
        raise ValidationError(f"{_label(field)} is required")
    if field == 'email':
        value = value.lower()
    return value or None


# ============================================================
# PATIENT FUNCTIONS
# ============================================================

def add_patient(name: str, email: str, birthdate: str = None, gender: str = None,
                height: float = None, weight: float = None) -> str:
    """
    Register a new patient.

    Args:
        name: Patient's display name
        email: Email address (must be unique)
        birthdate: ISO date string (optional)
        gender: Free text (optional)
        height: Height in cm (optional)
        weight: Weight in kg (optional)

    Returns:
        The new patient's ID

    Raises:
        ValidationError: name or email missing, or email already registered
    """
    email = _clean_field('email', '' if email is None else email)
    name = _clean_field('name', '' if name is None else name)
    birthdate, gender, height, weight = (
        None if value is None else _clean_field(field, value)
        for field, value in (('birthdate', birthdate), ('gender', gender),
                             ('height', height), ('weight', weight))
    )

    patient_id = uuid.uuid4().hex

    conn = get_connection()
    cursor = conn.cursor()
    try:
        cursor.execute(
            """INSERT INTO patients
               (id, name, email, birthdate, gender, height, weight, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (patient_id, name, email, birthdate, gender, height, weight,
             datetime.now().isoformat())
        )
        conn.commit()
    except sqlite3.IntegrityError:
        raise ValidationError("A patient with this email already exists")
    finally:
        conn.close()

    return patient_id


def get_patient_by_id(patient_id: str) -> Optional[dict]:
    """
    Get a patient by ID.

    Returns:
        The patient record, or None if not found
    """
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute("SELECT * FROM patients WHERE id = ?", (patient_id,))
    patient = cursor.fetchone()
    conn.close()

    return _patient_from_row(patient)


def get_patient_by_email(email: str) -> Optional[dict]:
    """Get a patient by email address (case-insensitive)."""
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute("SELECT * FROM patients WHERE email = ?", ((email or '').strip().lower(),))
    patient = cursor.fetchone()
    conn.close()

    return _patient_from_row(patient)


def find_patient(identifier: str) -> Optional[dict]:
    """
    Find a patient by ID or email.

    Used by the CLI so you can type whichever you remember.
    """
    if not identifier:
        return None
    if '@' in identifier:
        return get_patient_by_email(identifier)
    return get_patient_by_id(identifier)


def get_all_patients() -> List[dict]:
    """Get all patients, sorted by name."""
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute("SELECT * FROM patients ORDER BY name")
    patients = [_patient_from_row(row) for row in cursor.fetchall()]
    conn.close()

    return patients


def update_patient(patient_id: str, medications: list = None,
                   relevant_conditions: list = None, **fields) -> bool:
    """
    Update a patient's profile.

    Only updates fields that are provided (not None). Accepted fields are
    name, email, birthdate, gender, height and weight.

    Args:
        patient_id: The patient's ID
        medications: Catalogue IDs (or {'id': ...} dicts) that replace the
            patient's current medications. An empty list clears them.
        relevant_conditions: Same, for relevant conditions
        **fields: Profile fields to change

    Returns:
        True if the patient was updated, False if not found or nothing to update
    """
    unknown = set(fields) - set(PATIENT_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown patient fields: {', '.join(sorted(unknown))}")

    # Build the UPDATE query dynamically based on what's provided
    updates = []
    values = []
    for field in PATIENT_FIELDS:
        value = fields.get(field)
        if value is None:
            continue
        updates.append(f"{field} = ?")
        values.append(_clean_field(field, value))

    links = {}
    if medications is not None:
        links['medications'] = _catalogue_ids('medications', medications)
    if relevant_conditions is not None:
        links['relevant_conditions'] = _catalogue_ids('relevant_conditions', relevant_conditions)

    if not updates and not links:
        return False

    conn = get_connection()
    cursor = conn.cursor()
    try:
        if updates:
            cursor.execute(f"UPDATE patients SET {', '.join(updates)} WHERE id = ?",
                           values + [patient_id])
            success = cursor.rowcount > 0
        else:
            cursor.execute("SELECT 1 FROM patients WHERE id = ?", (patient_id,))
            success = cursor.fetchone() is not None

        if success:
            for table, ids in links.items():
                _replace_links(cursor, table, patient_id, ids)
        conn.commit()
    except sqlite3.IntegrityError:
        raise ValidationError("A patient with this email already exists")
    finally:
        conn.close()

    return success


def delete_patient(patient_id: str) -> bool:
    """Remove a patient and (by cascade) all their measurements and reminders."""
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute("DELETE FROM patients WHERE id = ?", (patient_id,))
    success = cursor.rowcount > 0
    conn.commit()
    conn.close()

    return success


# ============================================================
# MEDICATION AND RELEVANT CONDITION CATALOGUES
# ============================================================

def _catalogue_ids(table: str, items) -> List[int]:
    """
    Turn a list of catalogue IDs (or {'id': ...} dicts) into checked IDs.

    Raises:
        ValidationError: not a list, a bad entry, or an ID not in the catalogue
    """
    if not isinstance(items, (list, tuple)):
        raise ValidationError(f"{_label(table)} must be a list")

    ids = []
    for item in items:
        if isinstance(item, dict):
            item = item.get('id')
        if isinstance(item, bool) or not isinstance(item, int):
            raise ValidationError(f"{_label(table)} must be a list of IDs")
        if item not in ids:
            ids.append(item)

    if ids:
        conn = get_connection()
        cursor = conn.cursor()
        placeholders = ', '.join('?' for _ in ids)
        cursor.execute(f"SELECT id FROM {table} WHERE id IN ({placeholders})", ids)
        known = {row['id'] for row in cursor.fetchall()}
        conn.close()

        unknown = [str(i) for i in ids if i not in known]
        if unknown:
            raise ValidationError(f"Unknown {_label(table).lower()}: {', '.join(unknown)}")

    return ids


def _replace_links(cursor, table: str, patient_id: str, ids: List[int]):
    link_table, column = CATALOGUES[table]
    cursor.execute(f"DELETE FROM {link_table} WHERE patient_id = ?", (patient_id,))
    cursor.executemany(
        f"INSERT INTO {link_table} (patient_id, {column}) VALUES (?, ?)",
        [(patient_id, item) for item in ids]
    )


def _list_catalogue(table: str) -> List[dict]:
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute(f"SELECT id, name FROM {table} ORDER BY name")
    entries = [dict(row) for row in cursor.fetchall()]
    conn.close()

    return entries


def _list_patient_links(table: str, patient_id: str) -> List[dict]:
    link_table, column = CATALOGUES[table]
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute(
        f"""SELECT c.id, c.name
            FROM {link_table} l
            JOIN {table} c ON c.id = l.{column}
            WHERE l.patient_id = ?
            ORDER BY c.name""",
        (patient_id,)
    )
    entries = [dict(row) for row in cursor.fetchall()]
    conn.close()

    return entries


def get_medications() -> List[dict]:
    """Get the medication catalogue ({'id', 'name'} records), sorted by name."""
    return _list_catalogue('medications')


def get_relevant_conditions() -> List[dict]:
    """Get the relevant-condition catalogue, sorted by name."""
    return _list_catalogue('relevant_conditions')


def get_patient_medications(patient_id: str) -> List[dict]:
    """Get the medications linked to a patient, sorted by name."""
    return _list_patient_links('medications', patient_id)


def get_patient_relevant_conditions(patient_id: str) -> List[dict]:
    return _list_patient_links('relevant_conditions', patient_id)


# ============================================================
# MEASUREMENT FUNCTIONS
# ============================================================

def validate_tags(tags, allowed: list = None) -> List[str]:
    """
    Check the tags chosen for a measurement.

    At least one tag is required and every tag must be in the allowed list
    (config.get_allowed_tags() by default). Duplicates are dropped, order kept.

    Raises:
        ValidationError: no tags, or tags outside the allowed list
    """
    if allowed is None:
        allowed = config.get_allowed_tags()

    if not tags or not isinstance(tags, (list, tuple)):
        raise ValidationError("At least one tag is required")

    cleaned = []
    for tag in tags:
        name = str(tag).strip()
        if name and name not in cleaned:
            cleaned.append(name)
    if not cleaned:
        raise ValidationError("At least one tag is required")

    invalid = [tag for tag in cleaned if tag not in allowed]
    if invalid:
        raise ValidationError(f"Invalid tags: {', '.join(invalid)}")

    return cleaned


def add_measurement(patient_id: str, systolic, diastolic, heart_rate, tags,
                    created_at: datetime = None, bounds=None,
                    allowed_tags: list = None) -> int:
    """
    Record a blood pressure measurement.

    Args:
        patient_id: The patient's ID
        systolic: Systolic pressure (mmHg); numbers or numeric strings accepted
        diastolic: Diastolic pressure (mmHg)
        heart_rate: Heart rate (bpm)
        tags: List of tag names (at least one, from the allowed list)
        created_at: When the reading was taken (defaults to now)
        bounds: Accepted input ranges (defaults to config)
        allowed_tags: Accepted tags (defaults to config)

    Returns:
        The ID of the new measurement

    Raises:
        ValidationError: bad values or tags
        NotFoundError: the patient doesn't exist
    """
    if bounds is None:
        bounds = config.get_measurement_bounds()
    systolic, diastolic, heart_rate = validate_measurement(
        systolic, diastolic, heart_rate, bounds)
    tags = validate_tags(tags, allowed_tags)

    if get_patient_by_id(patient_id) is None:
        raise NotFoundError("Patient not found")

    if created_at is None:
        created_at = datetime.now()

    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute(
        """INSERT INTO measurements
           (patient_id, systolic_pressure, diastolic_pressure, heart_rate, created_at)
           VALUES (?, ?, ?, ?, ?)""",
        (patient_id, systolic, diastolic, heart_rate, created_at.isoformat())
    )
    measurement_id = cursor.lastrowid

    for name in tags:
        # Create the tag the first time it's used
        cursor.execute("INSERT OR IGNORE INTO tags (name) VALUES (?)", (name,))
        cursor.execute("SELECT id FROM tags WHERE name = ?", (name,))
        tag_id = cursor.fetchone()['id']
        cursor.execute(
            "INSERT INTO measurement_tags (measurement_id, tag_id) VALUES (?, ?)",
            (measurement_id, tag_id)
        )

    conn.commit()
    conn.close()

    return measurement_id


def _attach_tags(cursor, measurements: List[dict]) -> List[dict]:
    """Fill in each measurement's 'tags' list in the order they were added."""
    by_id = {m['id']: m for m in measurements}
    for measurement in measurements:
        measurement['tags'] = []
    if not by_id:
        return measurements

    placeholders = ', '.join('?' for _ in by_id)
    cursor.execute(
        f"""SELECT mt.measurement_id, t.name
            FROM measurement_tags mt
            JOIN tags t ON t.id = mt.tag_id
            WHERE mt.measurement_id IN ({placeholders})
            ORDER BY mt.id""",
        list(by_id)
    )
    for row in cursor.fetchall():
        by_id[row['measurement_id']]['tags'].append(row['name'])

    return measurements


def _measurement_from_row(row) -> dict:
    measurement = dict(row)
    measurement['created_at'] = _parse_time(measurement['created_at'])
    return measurement


def get_measurement_by_id(measurement_id: int) -> Optional[dict]:
    """Get one measurement (with its tags), or None if not found."""
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute("SELECT * FROM measurements WHERE id = ?", (measurement_id,))
    row = cursor.fetchone()
    if row is None:
        conn.close()
        return None

    measurement = _attach_tags(cursor, [_measurement_from_row(row)])[0]
    conn.close()

    return measurement


def list_measurements(patient_id: str, limit: int = None) -> List[dict]:
    """
    Get a patient's measurements, newest first.

    Each record has id, patient_id, systolic_pressure, diastolic_pressure,
    heart_rate, created_at (datetime) and tags (list of names).

    Args:
        patient_id: The patient's ID
        limit: Only return the most recent N (optional)
    """
    query = """SELECT * FROM measurements
               WHERE patient_id = ?
               ORDER BY created_at DESC, id DESC"""
    params = [patient_id]
    if limit:
        query += " LIMIT ?"
        params.append(limit)

    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute(query, params)
    measurements = [_measurement_from_row(row) for row in cursor.fetchall()]
    _attach_tags(cursor, measurements)
    conn.close()

    return measurements


def delete_measurement(measurement_id: int) -> bool:
    """Delete a measurement. Returns True if it existed."""
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute("DELETE FROM measurements WHERE id = ?", (measurement_id,))
    success = cursor.rowcount > 0
    conn.commit()
    conn.close()

    return success
