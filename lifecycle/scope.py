"""
Acquire / use / release discipline for tensor-shaped buffers.

The engine does not free intermediate arrays on its own, so every training
pass and every prediction keeps its buffers in a :class:`TensorScope` and
drops them on exit, whether the block succeeded or raised::

    with TensorScope() as scope:
        batch = scope.keep(prepare_batch(data))
        probs = scope.keep(engine.predict(model, batch))
        ...
"""

from __future__ import annotations

import gc
import logging
from typing import Any, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TensorScope:
    """Holds references to buffers and releases them together.

    Parameters
    ----------
    collect : bool
        Run a garbage collection pass on release.  Worth it after a
        training run (large stacked inputs), not after one prediction.
    """

    def __init__(self, collect: bool = False) -> None:
        self.collect = collect
        self._held: List[Any] = []
        self.released = False

    def keep(self, obj: T) -> T:
        self._held.append(obj)
        return obj

    def __len__(self) -> int:
        return len(self._held)

    def release(self) -> None:
        count = len(self._held)
        for obj in self._held:
            release = getattr(obj, "release", None)
            if callable(release):
                release()
        self._held.clear()
        self.released = True
        if self.collect:
            gc.collect()
        logger.debug("Released %d buffers", count)

    def __enter__(self) -> "TensorScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
