"""Flask web interface for BP Tracker."""
