"""Shared fixtures: a throwaway SQLite database and a signing secret."""

from __future__ import annotations

from datetime import datetime

import pytest

from bp_tracker import config
from bp_tracker.database import init_database
from bp_tracker.models import add_measurement, add_patient
from bp_tracker.sharing import ShareTokenService

SECRET = "test-secret-for-share-links-0123456789"
APP_URL = "https://bp.example.com"


@pytest.fixture(autouse=True)
def temp_db(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Point every test at its own empty database."""
    monkeypatch.setattr(config, "DB_PATH", tmp_path / "bp_tracker.db")
    monkeypatch.setattr(config, "JWT_SECRET", SECRET)
    monkeypatch.setattr(config, "APP_URL", APP_URL)
    for name in ("PSYS_HIGH", "PDYS_HIGH", "PSYS_LOW", "PDYS_LOW", "ADDITIONAL_TAGS"):
        monkeypatch.delenv(name, raising=False)
    init_database()
    return tmp_path


@pytest.fixture
def patient_id() -> str:
    return add_patient("Ana Diaz", "ana@example.com")


@pytest.fixture
def readings(patient_id: str) -> list:
    """Three readings on different days, added oldest first."""
    return [
        add_measurement(patient_id, 120, 80, 70, ["Resting"],
                        created_at=datetime(2026, 3, 1, 8, 30)),
        add_measurement(patient_id, 185, 95, 88, ["Morning", "Stressed"],
                        created_at=datetime(2026, 3, 2, 9, 0)),
        add_measurement(patient_id, 88, 58, 60, ["After exercise"],
                        created_at=datetime(2026, 3, 3, 18, 45)),
    ]


@pytest.fixture
def service() -> ShareTokenService:
    return ShareTokenService(SECRET, APP_URL)
