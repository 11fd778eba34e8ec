from __future__ import annotations

from typing import Iterable, Optional

from PySide6 import QtCore

from ..core.models import StreamRecord
from .probe import Probe, ProbeResult, check_availability

# Worker Qt: lance check_availability dans un QThread et remonte l'avancement par signaux.


class ProbeWorker(QtCore.QObject):
    """Runs URL probes in a separate QThread, reporting status per record row."""

    progress = QtCore.Signal(int, str)  # row, status
    progress_count = QtCore.Signal(int, int)  # done, total
    finished = QtCore.Signal()

    def __init__(
        self,
        records: Iterable[StreamRecord],
        timeout_s: float = 5.0,
        max_workers: int = 8,
        total_timeout: Optional[float] = None,
        probe: Optional[Probe] = None,
    ):
        super().__init__()
        self.records = list(records)
        self.timeout_s = float(timeout_s)
        self.max_workers = max(1, int(max_workers))
        self.total_timeout = total_timeout
        self.probe = probe
        self.results: list[ProbeResult] = []
        self._stop = False
        self._done = 0

    def stop(self):
        self._stop = True

    def _on_result(self, idx: int, result: ProbeResult):
        self._done += 1
        self.progress.emit(idx, str(result))
        self.progress_count.emit(self._done, len(self.records))

    @QtCore.Slot()
    def run(self):
        """Boucle principale déclenchée dans un QThread parent."""
        self._done = 0
        try:
            self.results = check_availability(
                self.records,
                concurrency_limit=self.max_workers,
                timeout=self.timeout_s,
                total_timeout=self.total_timeout,
                probe=self.probe,
                on_result=self._on_result,
                should_stop=lambda: self._stop,
            )
        finally:
            self.finished.emit()
