"""Integration tests for cross-process locking of knowledge-base files.

Tests that ConcurrentStore serializes read-modify-write cycles across
multiple processes so that no update is lost, for both the marker-file and
the OS-level lock backends.

Note: workers are started with the 'spawn' method so each process builds
its own store and lock registry instead of inheriting the parent's.
"""

from __future__ import annotations

import json
import multiprocessing
import tempfile
import time
from pathlib import Path
from typing import Any

import pytest

_mp_context = multiprocessing.get_context("spawn")

# =============================================================================
# Helper Functions for Multiprocess Tests
# =============================================================================


def _increment_worker(
    file_path: str,
    backend: str,
    worker_id: int,
    increments: int,
    results_queue: "multiprocessing.Queue[dict[str, Any]]",
) -> None:
    """Increment a shared counter ``increments`` times under the lock.

    Args:
        file_path: JSON file holding the counter.
        backend: Lock backend name.
        worker_id: Unique identifier for this worker.
        increments: Number of locked updates to perform.
        results_queue: Queue to report results back to main process.
    """
    try:
        from pattern_kb.core.file_lock import create_lock_backend
        from pattern_kb.core.store import ConcurrentStore

        store = ConcurrentStore(
            lock_backend=create_lock_backend(backend),
            max_wait=30.0,
            retry_interval=0.01,
        )

        def bump(data: dict[str, Any]) -> dict[str, Any]:
            writers = data.get("writers", [])
            return {"count": data.get("count", 0) + 1, "writers": [*writers, worker_id]}

        failures = 0
        for _ in range(increments):
            result = store.with_lock_sync(file_path, bump)
            if not result.success:
                failures += 1

        results_queue.put({"worker_id": worker_id, "success": failures == 0, "error": None})
    except Exception as e:
        results_queue.put({"worker_id": worker_id, "success": False, "error": str(e)})


def _try_update_worker(
    file_path: str,
    max_wait: float,
    results_queue: "multiprocessing.Queue[dict[str, Any]]",
) -> None:
    """Attempt a single update with a short wait and report the outcome."""
    try:
        from pattern_kb.core.store import ConcurrentStore

        store = ConcurrentStore(max_wait=max_wait, retry_interval=0.01)
        result = store.with_lock_sync(file_path, lambda data: {"touched": True})
        results_queue.put(
            {"success": result.success, "timed_out": result.timed_out, "error": result.error}
        )
    except Exception as e:
        results_queue.put({"success": False, "timed_out": False, "error": str(e)})


def _run_workers(file_path: Path, backend: str, num_workers: int, increments: int) -> list[dict[str, Any]]:
    results_queue: "multiprocessing.Queue[dict[str, Any]]" = _mp_context.Queue()
    processes: list[multiprocessing.Process] = []
    for worker_id in range(num_workers):
        p = _mp_context.Process(
            target=_increment_worker,
            args=(str(file_path), backend, worker_id, increments, results_queue),
        )
        processes.append(p)

    for p in processes:
        p.start()

    results = [results_queue.get(timeout=60) for _ in processes]

    for p in processes:
        p.join(timeout=60)
    return results


# =============================================================================
# Integration Tests
# =============================================================================


@pytest.mark.integration
class TestCrossProcessLocking:
    """Tests for cross-process locking behavior."""

    @pytest.mark.parametrize("backend", ["marker", "native"])
    def test_multiple_processes_no_lost_updates(self, backend: str) -> None:
        """Concurrent increments from several processes all land."""
        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = Path(tmpdir) / "llkb" / "counter.json"
            num_workers = 4
            increments = 10

            results = _run_workers(file_path, backend, num_workers, increments)

            for result in results:
                assert result["success"], f"Worker {result['worker_id']} failed: {result['error']}"

            data = json.loads(file_path.read_text(encoding="utf-8"))
            expected_total = num_workers * increments
            assert data["count"] == expected_total, (
                f"Expected {expected_total} increments, got {data['count']}. "
                "Updates were lost to concurrent writes."
            )
            assert len(data["writers"]) == expected_total
            assert {data["writers"].count(w) for w in range(num_workers)} == {increments}

            leftovers = [p.name for p in file_path.parent.iterdir() if ".tmp." in p.name]
            assert leftovers == []

    def test_held_marker_times_out_other_process(self) -> None:
        """A process waiting on a held marker gives up without writing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = Path(tmpdir) / "patterns.json"
            file_path.write_text(json.dumps({"touched": False}), encoding="utf-8")

            from pattern_kb.core.file_lock import MarkerFileLock

            main_lock = MarkerFileLock()
            assert main_lock.try_acquire(str(file_path))

            try:
                results_queue: "multiprocessing.Queue[dict[str, Any]]" = _mp_context.Queue()
                p = _mp_context.Process(
                    target=_try_update_worker,
                    args=(str(file_path), 0.3, results_queue),
                )
                started = time.monotonic()
                p.start()
                result = results_queue.get(timeout=30)
                p.join(timeout=10)

                assert result["success"] is False
                assert result["timed_out"] is True
                assert time.monotonic() - started >= 0.3
            finally:
                main_lock.release(str(file_path))

            assert json.loads(file_path.read_text(encoding="utf-8")) == {"touched": False}

    def test_unheld_lock_lets_other_process_write(self) -> None:
        """A process finding no holder writes straight away."""
        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = Path(tmpdir) / "patterns.json"

            results_queue: "multiprocessing.Queue[dict[str, Any]]" = _mp_context.Queue()
            p = _mp_context.Process(
                target=_try_update_worker,
                args=(str(file_path), 5.0, results_queue),
            )
            p.start()
            result = results_queue.get(timeout=30)
            p.join(timeout=10)

            assert result["success"] is True
            assert json.loads(file_path.read_text(encoding="utf-8")) == {"touched": True}
