import logging
import threading

from django.apps import AppConfig
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

MEMORY_BACKEND = "apps.storage.memory.MemoryStorage"


class StorageConfig(AppConfig):
    name = 'apps.storage'
    label = 'storage'

    storage = None
    fallback_active = False

    def ready(self):
        # No queries here: the fallback probe waits for the first request
        self.storage = import_string(settings.STOREFRONT_STORAGE)()
        self.fallback_active = False
        self._checked = not settings.STOREFRONT_STORAGE_FALLBACK or settings.STOREFRONT_STORAGE == MEMORY_BACKEND
        self._check_lock = threading.Lock()
        logger.info(f"Storage backend: {type(self.storage).__name__}")

    def get_storage(self):
        if not self._checked:
            with self._check_lock:
                if not self._checked:
                    self._probe()
                    self._checked = True
        return self.storage

    def _probe(self):
        if self.storage.ping():
            return
        logger.warning(
            "Database unreachable, falling back to in-memory storage. "
            "Data will NOT survive a restart."
        )
        self.storage = import_string(MEMORY_BACKEND)()
        self.fallback_active = True
