"""
Typed errors for the ledger service.

Every failure is scoped to a single user action and is never retried.
Each class carries a machine-readable ``code`` and the HTTP status used
when the error reaches a route:

    LekkaError
    +-- ValidationError      bad or missing input (400)
    +-- Unauthenticated      no acting user could be resolved (401)
    +-- PersistenceError     the record store rejected a write (500)
    |   +-- NotFound         record missing or owned by another user (404)
    +-- ReferentialError     dependent records block the operation (409)
    +-- AssistantError       the hosted LLM call failed (502)
"""


class LekkaError(Exception):
    code = 'error'
    status = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'success': False, 'error': self.code, 'message': self.message}


class ValidationError(LekkaError):
    code = 'validation_error'
    status = 400

    def __init__(self, field, message):
        super().__init__(message)
        self.field = field

    def to_dict(self):
        payload = super().to_dict()
        payload['field'] = self.field
        return payload


class Unauthenticated(LekkaError):
    code = 'unauthenticated'
    status = 401

    def __init__(self, message='Please log in to continue.'):
        super().__init__(message)


class PersistenceError(LekkaError):
    code = 'persistence_error'
    status = 500


class NotFound(PersistenceError):
    code = 'not_found'
    status = 404


class ReferentialError(LekkaError):
    code = 'referential_error'
    status = 409


class AssistantError(LekkaError):
    code = 'assistant_error'
    status = 502

    def __init__(self, message, status=None):
        super().__init__(message)
        if status is not None:
            self.status = status
