"""Core access control, redaction and audit components."""
