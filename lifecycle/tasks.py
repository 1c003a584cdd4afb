"""
Background thread launchers for initialisation and training.

Simple threading-based approach: the manager's own state machine already
rejects overlapping runs, so these helpers only move the work off the
calling thread and make sure failures end up in the log.
"""

from __future__ import annotations

import logging
import threading

from .data import Dataset
from .errors import AlreadyInProgress
from .manager import BUSY_STATES, ModelLifecycleManager

logger = logging.getLogger(__name__)


def start_initialize(manager: ModelLifecycleManager) -> threading.Thread:
    """Run ``manager.initialize()`` on a daemon thread."""

    def _run():
        try:
            if not manager.initialize():
                logger.warning(
                    "No model available. Add images under %s/<label>/ and "
                    "train, or upload a labelled batch.",
                    manager.config.dataset_root,
                )
        except AlreadyInProgress:
            logger.info("Initialisation skipped: a run is already in progress")
        except Exception:
            logger.exception("Background initialisation failed")

    thread = threading.Thread(target=_run, name="model-initialize", daemon=True)
    thread.start()
    logger.info("Background initialisation started")
    return thread


def start_training(manager: ModelLifecycleManager, dataset: Dataset) -> threading.Thread:
    """Launch ``manager.train(dataset)`` on a daemon thread.

    Raises
    ------
    AlreadyInProgress
        Immediately, if a load or training run is already in progress,
        so the caller can report it instead of silently losing the request.
    """
    if manager.state in BUSY_STATES:
        raise AlreadyInProgress(f"Model is {manager.state.value}; retry later.")

    def _run():
        try:
            manager.train(dataset)
        except AlreadyInProgress:
            logger.warning("Background training rejected: another run started first")
        except Exception:
            logger.exception("Background training failed")

    logger.info("Background training starting on %d images", len(dataset))
    thread = threading.Thread(target=_run, name="model-training", daemon=True)
    thread.start()
    return thread


def is_training_running(manager: ModelLifecycleManager) -> bool:
    """Return True if a load or training run is currently in progress."""
    return manager.state in BUSY_STATES
