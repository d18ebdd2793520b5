"""
DRF exception handler rendering ContestError subclasses as JSON bodies.
"""
import logging

from django.apps import apps
from django.db import InterfaceError, OperationalError
from rest_framework.response import Response
from rest_framework.views import exception_handler

from contests.exceptions import ContestError, InternalError, StorageUnavailable

logger = logging.getLogger(__name__)


def _storage_unavailable(exc):
    # Database errors raised outside a guard still count toward the cool-down.
    storage = apps.get_app_config('contests').storage_health
    storage.record_failure(exc)
    return StorageUnavailable(retry_after=int(storage.cool_down.total_seconds()))


def contest_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, (OperationalError, InterfaceError)):
        exc = _storage_unavailable(exc)
    elif not isinstance(exc, ContestError):
        view = context.get('view')
        logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}")
        exc = InternalError()

    response = Response(exc.to_dict(), status=exc.status_code)
    if isinstance(exc, StorageUnavailable) and exc.retry_after:
        response['Retry-After'] = str(exc.retry_after)
    return response
