"""
Error taxonomy for the contest grading engine.

Every error carries an HTTP-ish status code and a machine-readable code so
the API layer can render it without inspecting the message text.
"""


class ContestError(Exception):
    status_code = 500
    code = 'error'
    default_message = 'Contest operation failed.'

    def __init__(self, message=None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict:
        data = {'success': False, 'code': self.code, 'message': self.message}
        data.update(self.extra)
        return data


class ValidationError(ContestError):
    """Malformed or missing payload, unknown contest type."""
    status_code = 400
    code = 'validation_error'
    default_message = 'Invalid submission payload.'


class NotFoundError(ContestError):
    status_code = 404
    code = 'not_found'
    default_message = 'Not found.'


class PolicyError(ContestError):
    """Submission refused by the contest window or the monthly gate."""
    status_code = 409
    code = 'policy_error'
    default_message = 'Submission not allowed.'

    def __init__(self, message=None, reason='', can_resubmit=False, next_available_date=None, **extra):
        self.reason = reason
        self.can_resubmit = can_resubmit
        self.next_available_date = next_available_date
        super().__init__(message, **extra)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['reason'] = self.reason
        data['can_resubmit'] = self.can_resubmit
        if self.next_available_date is not None:
            data['next_available_date'] = self.next_available_date.isoformat()
        return data


class ConflictError(PolicyError):
    code = 'conflict'
    default_message = 'Another submission for this contest is being processed. Please retry.'

    def __init__(self, message=None, **extra):
        super().__init__(message, reason='concurrent_submission', can_resubmit=True, **extra)


class StorageUnavailable(ContestError):
    """Persistence layer unreachable; safe to retry with backoff."""
    status_code = 503
    code = 'storage_unavailable'
    default_message = 'Storage is temporarily unavailable. Please retry later.'

    def __init__(self, message=None, retry_after=None, **extra):
        self.retry_after = retry_after
        if retry_after is not None:
            extra['retry_after'] = retry_after
        super().__init__(message, **extra)


class InternalError(ContestError):
    status_code = 500
    code = 'internal_error'
    default_message = 'Failed to process the request. Please try again.'
