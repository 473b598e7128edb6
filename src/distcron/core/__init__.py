"""Core primitives: errors, logging, settings, models, persistence and scheduling."""
