"""Rich rendering helpers for CLI output."""
