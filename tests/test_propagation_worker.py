"""PropagationWorker — batch propagation signals.

run() is invoked directly so the signals fire synchronously.
"""

import sys

import pytest
from PyQt6.QtCore import QCoreApplication

from trackprop.core.propagator import PropagationEngine
from trackprop.models.propagation import IntegratorStatus
from trackprop.models.state import FreeState
from trackprop.models.surface import Cylinder, Plane
from trackprop.workers.propagation_worker import PropagationWorker

# QCoreApplication instance needed for QThread signals
_app = QCoreApplication.instance() or QCoreApplication(sys.argv)


def _connect(worker: PropagationWorker) -> dict:
    received = {"progress": [], "result": [], "error": []}
    worker.progress.connect(received["progress"].append)
    worker.result_ready.connect(received["result"].append)
    worker.error_occurred.connect(received["error"].append)
    return received


def _jobs():
    state = FreeState(position=[0, 0, 0], momentum=[0.0, 0.0, 10.0], charge=1)
    radial = FreeState(position=[0, 0, 0], momentum=[10.0, 0.0, 0.0], charge=-1)
    return [
        (state, Plane(point=[0, 0, 100.0], normal=[0, 0, 1.0])),
        (radial, Cylinder.from_axis(50.0)),
    ]


class TestPropagationWorker:
    def test_results_in_job_order(self):
        worker = PropagationWorker(PropagationEngine())
        received = _connect(worker)
        worker.setup(_jobs())

        worker.run()

        assert received["error"] == []
        assert received["progress"] == [50, 100]
        results = received["result"][0]
        assert [r.status for r in results] == [IntegratorStatus.SUCCESS] * 2
        assert results[0].position[2] == pytest.approx(100.0)
        assert results[1].position[0] == pytest.approx(50.0)
        assert results[0].path_length is None

    def test_with_path(self):
        worker = PropagationWorker(PropagationEngine())
        received = _connect(worker)
        worker.setup(_jobs(), with_path=True)

        worker.run()

        paths = [r.path_length for r in received["result"][0]]
        assert paths == [pytest.approx(100.0), pytest.approx(50.0)]

    def test_no_jobs(self):
        worker = PropagationWorker(PropagationEngine())
        received = _connect(worker)
        worker.run()
        assert received["error"] == ["No propagation jobs configured."]
        assert received["result"] == []

    def test_cancel_before_run(self):
        worker = PropagationWorker(PropagationEngine())
        received = _connect(worker)
        worker.setup(_jobs())
        worker.cancel()

        worker.run()

        assert received["result"] == []
        assert received["progress"] == []

    def test_failure_reported(self):
        state = FreeState(position=[0, 0, 0], momentum=[0.0, 0.0, 10.0], charge=1)
        worker = PropagationWorker(PropagationEngine())
        received = _connect(worker)
        worker.setup([(state, Plane(point=[0, 0, 1.0], normal=[0, 0, 0]))])

        worker.run()

        assert received["result"] == []
        assert len(received["error"]) == 1
        assert "normal" in received["error"][0]
