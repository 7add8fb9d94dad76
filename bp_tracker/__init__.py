"""BP Tracker - blood pressure tracking with crisis alerts and share links."""

__version__ = "0.1.0"
