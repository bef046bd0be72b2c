# widgets/stage.py
"""
Defines the StageWidget that shows the strip and turns mouse input into intents.
"""
import logging
from io import BytesIO
from typing import Optional, Tuple

from PySide6.QtCore import QByteArray, QPointF, QRect, QSize, Qt, Signal
from PySide6.QtGui import QColor, QImage, QPainter, QPixmap
from PySide6.QtWidgets import QSizePolicy, QWidget

from .. import config
from ..controllers.session import EditorSession, SetActiveFrame, SetFrameOffset
from ..rendering import StripSurface


class StageWidget(QWidget):
    """Paint the session's strip scaled to fit and emit edit intents.

    Clicking a slice emits :class:`SetActiveFrame`; dragging the active frame
    emits one :class:`SetFrameOffset` on release.  The widget never writes to
    the store itself.
    """

    intentRequested = Signal(object)

    def __init__(self, session: EditorSession, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.session = session
        self._pixmap: Optional[QPixmap] = None
        self._pixmap_key: Optional[tuple] = None
        self._drag_frame: Optional[str] = None
        self._drag_start = QPointF()
        self._drag_origin: Tuple[int, int] = (0, 0)
        self.setMinimumSize(320, 240)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self.setFocusPolicy(Qt.StrongFocus)
        self.setAccessibleName("Mockup stage")

    @property
    def surface(self) -> StripSurface:
        return self.session.surface

    def sizeHint(self) -> QSize:
        return QSize(960, config.MAX_DISPLAY_HEIGHT)

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------
    def display_scale(self) -> float:
        """Largest scale at which the whole strip fits inside the widget."""
        scene = self.surface.scene
        if scene is None or scene.width <= 0 or scene.height <= 0:
            return 1.0
        available_h = min(self.height(), config.MAX_DISPLAY_HEIGHT)
        scale = min(self.width() / scene.width, available_h / scene.height, 1.0)
        return max(scale, config.MIN_DISPLAY_SCALE)

    def _strip_rect(self) -> QRect:
        scene = self.surface.scene
        scale = self.display_scale()
        width = round(scene.width * scale) if scene else 0
        height = round(scene.height * scale) if scene else 0
        return QRect((self.width() - width) // 2, (self.height() - height) // 2, width, height)

    def to_logical(self, pos: QPointF) -> QPointF:
        rect = self._strip_rect()
        scale = self.display_scale()
        return QPointF((pos.x() - rect.x()) / scale, (pos.y() - rect.y()) / scale)

    def frame_at(self, pos: QPointF) -> Optional[str]:
        """Frame id whose slice contains the widget position ``pos``."""
        scene = self.surface.scene
        if scene is None:
            return None
        logical = self.to_logical(pos)
        if not (0 <= logical.y() < scene.height):
            return None
        # later slices sit on top where presets overlap
        for frame_slice in reversed(scene.layout.frames):
            if frame_slice.x <= logical.x() < frame_slice.right:
                return frame_slice.id
        return None

    # ------------------------------------------------------------------
    # Painting
    # ------------------------------------------------------------------
    def _current_pixmap(self) -> Optional[QPixmap]:
        if not self.surface.is_ready:
            return None
        self.surface.scale = self.display_scale()
        key = (
            id(self.surface.scene),
            self.surface.scale,
            tuple(layer.visible for layer in self.surface.editor_layers()),
        )
        if key != self._pixmap_key or self._pixmap is None:
            scene = self.surface.scene
            image = self.surface.to_image(0, 0, scene.width, scene.height)
            self._pixmap = self._pil_to_qpixmap(image)
            self._pixmap_key = key
        return self._pixmap

    def paintEvent(self, event):
        painter = QPainter(self)
        try:
            painter.setRenderHint(QPainter.SmoothPixmapTransform)
            painter.fillRect(self.rect(), QColor(24, 24, 27))
            pixmap = self._current_pixmap()
            if pixmap is None:
                painter.setPen(QColor(161, 161, 170))
                painter.drawText(self.rect(), Qt.AlignCenter, "Nothing to show yet")
                return
            rect = self._strip_rect()
            painter.drawPixmap(rect.topLeft(), pixmap)
        finally:
            painter.end()

    def _pil_to_qpixmap(self, pil_img) -> QPixmap:
        out = BytesIO()
        pil_img.save(out, format='PNG')
        qimg = QImage.fromData(QByteArray(out.getvalue()), 'PNG')
        return QPixmap.fromImage(qimg)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------
    def mousePressEvent(self, event):
        if event.button() != Qt.LeftButton:
            return super().mousePressEvent(event)
        frame_id = self.frame_at(event.position())
        if frame_id is None:
            return
        if frame_id != self.session.store.active_frame_id:
            logging.info("Stage: selecting %s", frame_id)
            self.intentRequested.emit(SetActiveFrame(frame_id))
        transform = self.session.store.get_frame(frame_id).transform
        self._drag_frame = frame_id
        self._drag_start = event.position()
        self._drag_origin = (transform.offset_x, transform.offset_y)

    def mouseReleaseEvent(self, event):
        if event.button() != Qt.LeftButton or self._drag_frame is None:
            return super().mouseReleaseEvent(event)
        frame_id, self._drag_frame = self._drag_frame, None
        scale = self.display_scale()
        dx = round((event.position().x() - self._drag_start.x()) / scale)
        dy = round((event.position().y() - self._drag_start.y()) / scale)
        if dx or dy:
            intent = SetFrameOffset(frame_id, self._drag_origin[0] + dx, self._drag_origin[1] + dy)
            logging.info("Stage: moving %s to %s", frame_id, (intent.offset_x, intent.offset_y))
            self.intentRequested.emit(intent)
