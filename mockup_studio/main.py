# main.py
"""
Entry point and main application window for Mockup Studio.
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QEventLoop, QStandardPaths, Qt, QThreadPool
from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QApplication,
    QComboBox,
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QProgressDialog,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from utils.frame_layout import CutPreset
from utils.validation import allowed_image_extensions, validate_image_path

from . import config
from .controllers import EditorSession, Intent, SetCutPreset
from .devices import CANVAS_SIZE_PRESETS
from .errors import MockupStudioError
from .export import ExportMode, ExportPipeline, ExportResult
from .image_loader import ImageLoadState, LoadStatus
from .store import FrameLimitError
from .widgets import StageWidget
from .workers import QtDecodeSubmitter, Worker

LOGGER_NAME = "mockup_studio"


def configure_logging() -> logging.Logger:
    """Configure and return the application logger.

    The handler setup is idempotent to avoid duplicate handlers when the module
    is imported multiple times (e.g., in tests). A rotating file handler limits
    on-disk log growth while mirroring output to stdout.
    """

    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    )

    log_path = Path(__file__).resolve().parents[1] / config.LOG_FILE_NAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=config.LOG_MAX_BYTES,
        backupCount=config.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(stream_handler)
    logger.propagate = False

    return logger


logger = configure_logging()


def global_exception_handler(exc_type, value, tb):
    logger.error("Uncaught exception", exc_info=(exc_type, value, tb))
    sys.__excepthook__(exc_type, value, tb)


sys.excepthook = global_exception_handler


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Mockup Studio - PySide6")
        self.resize(1100, 780)

        self._exporting = False
        self._progress: Optional[QProgressDialog] = None
        self.session = EditorSession(
            submitter=QtDecodeSubmitter(),
            pipeline=ExportPipeline(
                yield_fn=self._yield_to_events,
                on_progress=self._on_export_progress,
            ),
            on_load_change=self._on_load_change,
        )

        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QVBoxLayout(central)
        main_layout.setContentsMargins(8, 6, 8, 6)
        main_layout.setSpacing(8)

        toolbar = QHBoxLayout()
        self.open_btn = QPushButton("Open Screenshot")
        self.add_btn = QPushButton("Add Frame")
        self.remove_btn = QPushButton("Remove Frame")
        self.preset_combo = QComboBox()
        for preset in CutPreset.selectable():
            self.preset_combo.addItem(preset.value.title(), userData=preset.value)
        self.canvas_combo = QComboBox()
        self.canvas_combo.addItem("Auto", userData=None)
        for label, width, height in CANVAS_SIZE_PRESETS:
            self.canvas_combo.addItem(f"{label} ({width}x{height})", userData=(width, height))
        self.export_batch_btn = QPushButton("Export Frames (ZIP)")
        self.export_canvas_btn = QPushButton("Export Canvas (PNG)")

        toolbar.addWidget(self.open_btn)
        toolbar.addWidget(self.add_btn)
        toolbar.addWidget(self.remove_btn)
        toolbar.addWidget(QLabel("Cut:"))
        toolbar.addWidget(self.preset_combo)
        toolbar.addWidget(QLabel("Canvas:"))
        toolbar.addWidget(self.canvas_combo)
        toolbar.addStretch(1)
        toolbar.addWidget(self.export_batch_btn)
        toolbar.addWidget(self.export_canvas_btn)
        main_layout.addLayout(toolbar)

        self.stage = StageWidget(self.session)
        main_layout.addWidget(self.stage, 1)

        self.open_btn.clicked.connect(self._open_screenshot)
        self.add_btn.clicked.connect(self._add_frame)
        self.remove_btn.clicked.connect(self._remove_frame)
        self.preset_combo.currentIndexChanged.connect(self._on_preset_changed)
        self.canvas_combo.currentIndexChanged.connect(self._on_canvas_changed)
        self.export_batch_btn.clicked.connect(lambda: self._export(ExportMode.BATCH))
        self.export_canvas_btn.clicked.connect(lambda: self._export(ExportMode.SINGLE))
        self.stage.intentRequested.connect(self._apply_intent)

        self._create_shortcuts()
        self.session.refresh()
        self._update_frame_buttons()
        logging.info("MainWindow initialized.")

    def _create_shortcuts(self):
        QShortcut(QKeySequence(config.EXPORT_SHORTCUT), self, activated=lambda: self._export(ExportMode.BATCH))
        QShortcut(QKeySequence(config.OPEN_SHORTCUT), self, activated=self._open_screenshot)

    # --- Editing ---
    def _apply_intent(self, intent: Intent) -> None:
        if self._exporting:
            return
        try:
            self.session.apply(intent)
        except ValueError as exc:
            logging.warning("Rejected intent %r: %s", intent, exc)
            return
        self.stage.update()

    def _on_preset_changed(self, index: int) -> None:
        self._apply_intent(SetCutPreset(self.preset_combo.itemData(index)))

    def _on_canvas_changed(self, index: int) -> None:
        size = self.canvas_combo.itemData(index)
        width, height = size if size else (None, None)
        self.session.set_canvas_size(width, height)
        self.stage.update()

    def _add_frame(self) -> None:
        try:
            frame = self.session.add_frame()
        except FrameLimitError as exc:
            QMessageBox.information(self, "Frame limit", str(exc))
            return
        logging.info("Added %s", frame.id)
        self._update_frame_buttons()
        self.stage.update()

    def _remove_frame(self) -> None:
        try:
            self.session.remove_frame(self.session.store.active_frame_id)
        except FrameLimitError as exc:
            QMessageBox.information(self, "Frame limit", str(exc))
            return
        self._update_frame_buttons()
        self.stage.update()

    def _update_frame_buttons(self) -> None:
        count = len(self.session.store.frames)
        self.add_btn.setEnabled(count < config.MAX_FRAMES)
        self.remove_btn.setEnabled(count > 1)

    def _validate_selected_image(self, selection: str) -> Optional[Path]:
        try:
            return validate_image_path(selection, allowed_image_extensions(config.SUPPORTED_IMAGE_FORMATS))
        except ValueError as exc:
            logging.warning("Rejected screenshot %s: %s", selection, exc)
            QMessageBox.warning(self, "Invalid Screenshot", f"{selection}: {exc}")
            return None

    def _open_screenshot(self):
        exts = [f"*.{e}" for e in config.SUPPORTED_IMAGE_FORMATS]
        path, _ = QFileDialog.getOpenFileName(
            self,
            "Open Screenshot",
            QStandardPaths.writableLocation(QStandardPaths.PicturesLocation) or "",
            f"Images ({' '.join(exts)})",
        )
        if not path:
            return
        validated = self._validate_selected_image(path)
        if validated is None:
            return
        self.session.set_screenshot(self.session.store.active_frame_id, str(validated))
        self.stage.update()

    def _on_load_change(self, frame_id: str, state: ImageLoadState) -> None:
        if state.status is LoadStatus.FAILED:
            self.statusBar().showMessage(f"{frame_id}: screenshot failed to load ({state.error})", 5000)
        if state.status in (LoadStatus.LOADED, LoadStatus.FAILED):
            self.session.refresh()
            self.stage.update()

    # --- Export ---
    def _export_directory(self) -> Optional[str]:
        override = os.environ.get(config.EXPORT_DIR_ENV)
        if override:
            return override
        directory = QFileDialog.getExistingDirectory(
            self,
            "Export To",
            QStandardPaths.writableLocation(QStandardPaths.PicturesLocation) or "",
        )
        return directory or None

    def _yield_to_events(self) -> None:
        QApplication.processEvents(QEventLoop.ExcludeUserInputEvents)

    def _on_export_progress(self, done: int, total: int) -> None:
        if self._progress is not None:
            self._progress.setMaximum(total)
            self._progress.setValue(done)

    def _export(self, mode: ExportMode) -> None:
        if self._exporting:
            return
        directory = self._export_directory()
        if not directory:
            return

        dialog = QProgressDialog("Exporting...", "", 0, len(self.session.store.frames), self)
        dialog.setWindowTitle("Exporting")
        dialog.setWindowModality(Qt.WindowModal)
        dialog.setCancelButton(None)
        dialog.setMinimumDuration(0)
        dialog.show()
        self._progress = dialog
        self._exporting = True
        self.stage.setUpdatesEnabled(False)
        try:
            result = self.session.export(mode)
        except MockupStudioError as exc:
            logging.error("Export failed: %s", exc)
            QMessageBox.critical(self, "Export failed", f"Could not export: {exc}")
            return
        finally:
            self._exporting = False
            self._progress = None
            dialog.close()
            self.stage.setUpdatesEnabled(True)
            self.stage.update()
        self._run_save_worker(result, directory)

    def _run_save_worker(self, result: ExportResult, directory: str) -> None:
        worker = Worker(result.save, directory)

        def _on_result(path: Path) -> None:
            QMessageBox.information(self, "Exported", f"Saved: {path}")

        def _on_error(message: str) -> None:
            logging.error("Save failed: %s", message)
            QMessageBox.critical(self, "Error", f"Could not save export: {message}")

        worker.signals.result.connect(_on_result)
        worker.signals.error.connect(_on_error)

        QThreadPool.globalInstance().start(worker)

    def closeEvent(self, event):
        self.session.close()
        super().closeEvent(event)


def main() -> int:
    app = QApplication.instance() or QApplication(sys.argv)
    window = MainWindow()
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
