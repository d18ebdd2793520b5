"""
Storage health tracking.

After `max_consecutive_failures` database errors in a row, every guarded
call fails fast with StorageUnavailable until `cool_down` has elapsed.
"""
import logging
import threading
from contextlib import contextmanager
from datetime import timedelta

from django.conf import settings
from django.db import InterfaceError, OperationalError
from django.utils import timezone

from contests.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)


class StorageHealth:

    def __init__(self, max_consecutive_failures=3, cool_down=timedelta(seconds=60), clock=timezone.now):
        self.max_consecutive_failures = max_consecutive_failures
        self.cool_down = cool_down
        self._clock = clock
        self._lock = threading.Lock()
        self.failure_count = 0
        self.last_failure = None

    @classmethod
    def from_settings(cls):
        config = getattr(settings, 'CONTEST_ENGINE', {})
        return cls(
            max_consecutive_failures=config.get('STORAGE_MAX_CONSECUTIVE_FAILURES', 3),
            cool_down=timedelta(seconds=config.get('STORAGE_COOL_DOWN_SECONDS', 60)),
        )

    def cool_down_remaining(self) -> float:
        """Seconds left before guarded calls are attempted again."""
        with self._lock:
            if self.failure_count < self.max_consecutive_failures or self.last_failure is None:
                return 0.0
            remaining = (self.last_failure + self.cool_down - self._clock()).total_seconds()
            return max(0.0, remaining)

    def is_cooling_down(self) -> bool:
        return self.cool_down_remaining() > 0

    def record_failure(self, error):
        with self._lock:
            self.failure_count += 1
            self.last_failure = self._clock()
            count = self.failure_count
        if count == 1 or count == self.max_consecutive_failures:
            logger.error(f"Storage failure #{count}: {error}")
        else:
            logger.warning(f"Storage failure #{count}: {error}")

    def record_success(self):
        with self._lock:
            self.failure_count = 0
            self.last_failure = None

    @contextmanager
    def guard(self, operation=''):
        remaining = self.cool_down_remaining()
        if remaining > 0:
            raise StorageUnavailable(
                f"Storage skipped during {operation or 'operation'} after repeated failures.",
                retry_after=int(remaining) + 1
            )

        try:
            yield
        except (OperationalError, InterfaceError) as e:
            self.record_failure(e)
            raise StorageUnavailable(retry_after=int(self.cool_down.total_seconds())) from e
        else:
            self.record_success()
