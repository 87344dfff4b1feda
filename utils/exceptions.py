"""
Custom exception classes for the reminder service.
Provides specific error types instead of generic exceptions.
"""


class DatabaseError(Exception):
    """Base exception for persistent store operations."""

    pass


class ReminderStoreError(DatabaseError):
    """Raised when the reminder store cannot be read or written."""

    pass


class NotifierError(Exception):
    """Raised by a notifier for malformed input, never for delivery failures."""

    pass


class ConfigurationError(Exception):
    """Raised when the service is wired with an unusable configuration."""

    pass


class ValidationError(Exception):
    """Raised when input validation fails."""

    pass
