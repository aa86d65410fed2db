"""Exceptions raised by the tutor engine."""


class TutorError(Exception):
    """Base class for all tutor errors."""


class ValidationError(TutorError):
    """Malformed input to an operation, e.g. an unknown topic id."""


class NotFound(TutorError):
    """A progress, session, user or question record does not exist."""


class DuplicateError(TutorError):
    """A record that must be unique already exists."""


class TransientStoreError(TutorError):
    """A persistence call failed unexpectedly. Callers may retry."""
