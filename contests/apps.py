from django.apps import AppConfig


class ContestsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'contests'
    verbose_name = 'Contests'

    def ready(self):
        from .services import KeyedLock, StorageHealth

        # Shared by every request in this process.
        self.storage_health = StorageHealth.from_settings()
        self.submission_locks = KeyedLock()
