"""
Database connection and initialization for BP Tracker.

This module handles:
- Connecting to the SQLite database
- Creating tables if they don't exist
- Providing a connection for other modules to use

The database location comes from config.DB_PATH, read on every call so tests
(and the BP_TRACKER_DB variable) can point it somewhere else.
"""

import logging
import sqlite3
from pathlib import Path

from . import config


logger = logging.getLogger(__name__)


def get_connection():
    """
    Get a connection to the database.

    Returns a sqlite3 Connection object that you can use to run queries.

    Example usage:
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM patients")
        rows = cursor.fetchall()
        conn.close()
    """
    db_path = Path(config.DB_PATH)

    # Make sure the data directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)

    # Rows behave like dicts: row['name'] instead of row[0]
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    return conn


def init_database():
    """
    Create all the database tables if they don't exist.

    This is safe to run multiple times - it won't delete existing data.
    """
    conn = get_connection()
    cursor = conn.cursor()

    # ============================================================
    # PATIENTS TABLE
    # id is an opaque string so it can be embedded in share links
    # ============================================================
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS patients (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            birthdate TEXT,
            gender TEXT,
            height REAL,
            weight REAL,
            created_at TIMESTAMP NOT NULL
        )
    """)

    # ============================================================
    # MEASUREMENTS TABLE
    # One blood pressure + heart rate reading
    # ============================================================
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS measurements (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            patient_id TEXT NOT NULL,
            systolic_pressure INTEGER NOT NULL,
            diastolic_pressure INTEGER NOT NULL,
            heart_rate INTEGER NOT NULL,
            created_at TIMESTAMP NOT NULL,
            FOREIGN KEY (patient_id) REFERENCES patients (id) ON DELETE CASCADE
        )
    """)

    # ============================================================
    # TAGS TABLES
    # Tag names are shared; measurement_tags links them in the
    # order they were chosen
    # ============================================================
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS tags (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS measurement_tags (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            measurement_id INTEGER NOT NULL,
            tag_id INTEGER NOT NULL,
            FOREIGN KEY (measurement_id) REFERENCES measurements (id) ON DELETE CASCADE,
            FOREIGN KEY (tag_id) REFERENCES tags (id)
        )
    """)

    # ============================================================
    # NOTIFICATIONS TABLE
    # Reminder records (appointments, medication, BP readings)
    # repeat_interval: hours between repeats, 0 = once
    # ============================================================
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            patient_id TEXT NOT NULL,
            title TEXT NOT NULL,
            type TEXT NOT NULL,
            start_date TIMESTAMP NOT NULL,
            repeat_interval INTEGER DEFAULT 0,
            additional_notes TEXT,
            push_token TEXT,
            created_at TIMESTAMP NOT NULL,
            FOREIGN KEY (patient_id) REFERENCES patients (id) ON DELETE CASCADE
        )
    """)

    # ============================================================
    # MEDICATION AND RELEVANT CONDITION CATALOGUES
    # Shared lists; each patient links to the entries that apply
    # ============================================================
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS medications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS relevant_conditions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS patient_medications (
            patient_id TEXT NOT NULL,
            medication_id INTEGER NOT NULL,
            PRIMARY KEY (patient_id, medication_id),
            FOREIGN KEY (patient_id) REFERENCES patients (id) ON DELETE CASCADE,
            FOREIGN KEY (medication_id) REFERENCES medications (id)
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS patient_relevant_conditions (
            patient_id TEXT NOT NULL,
            relevant_condition_id INTEGER NOT NULL,
            PRIMARY KEY (patient_id, relevant_condition_id),
            FOREIGN KEY (patient_id) REFERENCES patients (id) ON DELETE CASCADE,
            FOREIGN KEY (relevant_condition_id) REFERENCES relevant_conditions (id)
        )
    """)

    # Seed the catalogues; existing entries are left alone
    cursor.executemany("INSERT OR IGNORE INTO medications (name) VALUES (?)",
                       [(name,) for name in config.DEFAULT_MEDICATIONS])
    cursor.executemany("INSERT OR IGNORE INTO relevant_conditions (name) VALUES (?)",
                       [(name,) for name in config.DEFAULT_RELEVANT_CONDITIONS])

    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_measurements_patient
        ON measurements (patient_id, created_at)
    """)

    conn.commit()
    conn.close()

    logger.debug("Database initialized at: %s", config.DB_PATH)


if __name__ == "__main__":
    init_database()
