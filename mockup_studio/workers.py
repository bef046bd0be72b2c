# workers.py
"""
Background task execution for Mockup Studio.
Defines a Worker for QRunnable tasks and a decode submitter that delivers
results back on the GUI thread.
"""
import logging
from typing import Any, Callable, Optional, Set

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal

from . import config


class WorkerSignals(QObject):
    started = Signal()
    finished = Signal()
    error = Signal(str)
    progress = Signal(int)
    result = Signal(object)


class Worker(QRunnable):
    """Wraps any function to run in a QThreadPool."""
    def __init__(
        self,
        fn: Callable,
        *args,
        progress_callback: Optional[Callable[[int], Any]] = None,
        **kwargs
    ):
        super().__init__()
        self.fn = fn
        self.args = args
        self.kwargs = kwargs
        self.signals = WorkerSignals()
        if progress_callback:
            self.signals.progress.connect(progress_callback)

    def run(self) -> None:
        try:
            self.signals.started.emit()
            result = self.fn(*self.args, **self.kwargs)
            self.signals.result.emit(result)
        except Exception as e:
            logging.error("Worker error: %s", e)
            self.signals.error.emit(str(e))
        finally:
            self.signals.finished.emit()


class QtDecodeSubmitter:
    """Run screenshot decodes on a QThreadPool.

    The signals object lives on the GUI thread, so ``on_result`` and
    ``on_error`` are invoked there and may touch widgets.
    """
    def __init__(self, pool: Optional[QThreadPool] = None, max_threads: int = config.DECODE_WORKERS):
        self.thread_pool = pool or QThreadPool.globalInstance()
        if pool is None:
            self.thread_pool.setMaxThreadCount(max(self.thread_pool.maxThreadCount(), max_threads))
        self._active: Set[Worker] = set()

    def submit(self, fn, on_result, on_error) -> None:
        worker = Worker(fn)
        worker.setAutoDelete(False)
        worker.signals.result.connect(on_result)
        worker.signals.error.connect(on_error)
        worker.signals.finished.connect(lambda w=worker: self._active.discard(w))
        self._active.add(worker)
        self.thread_pool.start(worker)

    def pending(self) -> int:
        return len(self._active)

    def wait_for_done(self, msecs: int = -1) -> bool:
        return self.thread_pool.waitForDone(msecs)
