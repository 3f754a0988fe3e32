"""Connection lifecycle, message intake, and errors."""
