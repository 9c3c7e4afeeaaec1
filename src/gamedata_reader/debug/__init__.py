"""Debug helpers: event tracing and logging setup."""
