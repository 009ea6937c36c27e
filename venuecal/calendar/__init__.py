"""Calendar models, recurrence rules and occurrence expansion."""
