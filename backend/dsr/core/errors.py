"""Domain error taxonomy.

Core modules raise only these; the HTTP layer maps each class onto a status
code through ``status_code`` / ``title`` and renders the message verbatim.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class DomainError(Exception):
    status_code = 400
    title = 'Bad Request'

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {'status': self.status_code, 'title': self.title, 'detail': self.message}


class ValidationError(DomainError):
    """Malformed or missing input (zero amount, empty reason, unknown store)."""
    status_code = 400
    title = 'Bad Request'


class ForbiddenError(DomainError):
    """Role or store scope check failed."""
    status_code = 403
    title = 'Forbidden'


class NotFoundError(DomainError):
    status_code = 404
    title = 'Not Found'


class InvalidStateError(DomainError):
    """Transition attempted from a state that does not allow it."""
    status_code = 409
    title = 'Conflict'


class DuplicateRecordError(InvalidStateError):
    pass


__all__ = [
    'DomainError', 'ValidationError', 'ForbiddenError', 'NotFoundError',
    'InvalidStateError', 'DuplicateRecordError',
]
