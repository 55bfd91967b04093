"""Propagation worker — background thread for batch propagation.

Runs a list of propagation jobs through one PropagationEngine off the
caller's thread. Jobs run one after another; the engine's process-wide
lock still applies, so no other propagation may run meanwhile.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PyQt6.QtCore import QThread, pyqtSignal

if TYPE_CHECKING:
    from trackprop.core.propagator import PropagationEngine
    from trackprop.models.state import FreeState
    from trackprop.models.surface import TargetSurface

logger = logging.getLogger(__name__)


class PropagationWorker(QThread):
    """Background thread for batch propagation.

    Emits progress (0-100), result_ready on success with the list of
    PropagationResult (in job order), error_occurred on failure.

    Usage:
        worker = PropagationWorker(engine)
        worker.setup(jobs, with_path=True)
        worker.progress.connect(on_progress)
        worker.result_ready.connect(on_result)
        worker.error_occurred.connect(on_error)
        worker.start()
    """

    progress = pyqtSignal(int)            # 0-100%
    result_ready = pyqtSignal(object)     # list[PropagationResult]
    error_occurred = pyqtSignal(str)

    def __init__(
        self,
        engine: PropagationEngine,
        parent=None,
    ):
        super().__init__(parent)
        self._engine = engine
        self._jobs: list[tuple[FreeState, TargetSurface]] = []
        self._with_path = False
        self._cancelled = False

    def setup(
        self,
        jobs: list[tuple[FreeState, TargetSurface]],
        with_path: bool = False,
    ) -> None:
        """Configure the batch before starting.

        Must be called before start().

        Args:
            jobs: (initial state, destination surface) pairs.
            with_path: Use propagate_with_path so results carry path_length.
        """
        self._jobs = list(jobs)
        self._with_path = with_path
        self._cancelled = False

    def cancel(self) -> None:
        """Request cancellation between jobs."""
        self._cancelled = True

    def run(self) -> None:
        """Execute the batch in the background thread."""
        try:
            if not self._jobs:
                self.error_occurred.emit("No propagation jobs configured.")
                return

            results = []
            total = len(self._jobs)
            for i, (state, surface) in enumerate(self._jobs):
                if self._cancelled:
                    return
                if self._with_path:
                    result, _ = self._engine.propagate_with_path(state, surface)
                else:
                    result = self._engine.propagate(state, surface)
                results.append(result)
                self.progress.emit(int((i + 1) / total * 100))

            if self._cancelled:
                return

            self.result_ready.emit(results)

        except Exception as e:
            logger.exception("Batch propagation failed")
            self.error_occurred.emit(str(e))
