import logging
import threading

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class ClassifierConfig(AppConfig):
    """Owns the process-wide :class:`~lifecycle.manager.ModelLifecycleManager`.

    The manager is created on first use (building the Keras engine imports
    TensorFlow) and handed to views through :meth:`get_manager`.
    """

    name = "classifier"
    verbose_name = "Fruit classifier"

    def ready(self):
        from lifecycle.config import LifecycleConfig

        self.lifecycle_config = LifecycleConfig.from_settings()
        self._manager = None
        self._manager_lock = threading.Lock()
        self._initialize_started = False

    def get_manager(self):
        if self._manager is None:
            with self._manager_lock:
                if self._manager is None:
                    from lifecycle.manager import ModelLifecycleManager

                    self._manager = ModelLifecycleManager(self.lifecycle_config)
                    logger.info(
                        "Model lifecycle manager created (artifact root: %s)",
                        self.lifecycle_config.artifact_root,
                    )
        return self._manager

    def install_manager(self, manager):
        """Replace the manager (tests, alternative engines)."""
        with self._manager_lock:
            self._manager = manager
            self._initialize_started = False

    def start_background_initialize(self):
        """Launch ``initialize()`` once per process if auto-initialise is on."""
        if not self.lifecycle_config.auto_initialize or self._initialize_started:
            return None
        from lifecycle.tasks import start_initialize

        self._initialize_started = True
        return start_initialize(self.get_manager())
