"""Workers — QThread wrappers for long-running propagation batches."""

from trackprop.workers.propagation_worker import PropagationWorker

__all__ = [
    "PropagationWorker",
]
