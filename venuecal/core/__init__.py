"""Core infrastructure for venuecal: time zones, configuration, logging and errors."""
