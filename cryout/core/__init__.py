"""Core infrastructure: settings, logging, errors, lifecycle."""
