"""
Error taxonomy for the practice engine.

Routers translate these to HTTP responses:
- ValidationError -> 400
- NotFoundError -> 404
"""

from __future__ import annotations


class PracticeError(Exception):
    """Base class for expected domain errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PracticeError):
    """Missing or malformed input. Never retried."""

    status_code = 400


class NotFoundError(PracticeError):
    """Unknown or foreign session, topic, subtopic or question."""

    status_code = 404
