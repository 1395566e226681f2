"""Runs a diagnosis off the UI thread."""

from PyQt6.QtCore import QThread, pyqtSignal

from core.diagnosis_engine import DiagnosisEngine, ImageSource
from core.utils import AnalysisCancelled, ClassificationError


class DiagnosisWorker(QThread):
    """Background worker for one leaf diagnosis."""

    progress = pyqtSignal(int, int, str)  # step, total, message
    finished = pyqtSignal(object)          # AnalysisResult
    error = pyqtSignal(str)                # error message
    cancelled = pyqtSignal()

    def __init__(self, engine: DiagnosisEngine, source: ImageSource, parent=None):
        super().__init__(parent)
        self._engine = engine
        self._source = source
        self._cancelled = False

    def run(self):
        try:
            result = self._engine.diagnose(
                self._source,
                on_progress=self._on_progress,
                is_cancelled=self._is_cancelled,
            )
        except AnalysisCancelled:
            self.cancelled.emit()
            return
        except ClassificationError as e:
            if not self._cancelled:
                self.error.emit(f"Diagnosis failed ({e.kind.value}): {e.message}")
            return
        except Exception as e:
            if not self._cancelled:
                self.error.emit(f"Diagnosis failed: {str(e)}")
            return

        if not self._cancelled:
            self.finished.emit(result)

    def cancel(self):
        """Request cancellation of the diagnosis."""
        self._cancelled = True

    def _on_progress(self, step: int, total: int, message: str):
        if not self._cancelled:
            self.progress.emit(step, total, message)

    def _is_cancelled(self) -> bool:
        return self._cancelled
