"""Per-frame screenshot loading with stale-result suppression.

Every frame owns one :class:`ImageLoadState`.  Assigning a source bumps a
generation counter and hands out a ticket; a decode result is only applied
when its ticket still matches the current generation.  A newer source
therefore supersedes any decode that is still in flight without an explicit
cancellation step, and nothing from an older source can leak into a render.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from threading import RLock
from typing import Callable, Optional, Protocol, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from utils.image_operations import downscale_to_limit
from utils.validation import allowed_image_extensions, is_data_url, validate_image_path

from . import config
from .cache import ImageCache, get_cache, source_key
from .errors import ImageDecodeFailure, StaleResultDiscarded

LOGGER = logging.getLogger(__name__)

Source = Union[str, bytes, os.PathLike]
LoadTicket = Tuple[str, int]


class LoadStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


def _read_source(source: Source) -> bytes:
    if isinstance(source, bytes):
        return source
    text = os.fspath(source)
    if text.startswith("data:"):
        if not is_data_url(text):
            raise ImageDecodeFailure("Unsupported data URL; expected data:image/...;base64")
        try:
            return base64.b64decode(text.split(",", 1)[1], validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ImageDecodeFailure(f"Malformed base64 payload: {exc}") from exc
    try:
        path = validate_image_path(text, allowed_image_extensions(config.SUPPORTED_IMAGE_FORMATS))
    except ValueError as exc:
        raise ImageDecodeFailure(str(exc)) from exc
    return path.read_bytes()


def decode_image_source(source: Source, *, cache: Optional[ImageCache] = None) -> Image.Image:
    """Decode a screenshot into an RGBA Pillow image.

    ``source`` may be a file path, a ``data:image/...;base64,`` URL or raw
    encoded bytes.  EXIF orientation is applied and oversized images are
    downscaled to ``config.MAX_IMAGE_DIMENSION``.

    Raises:
        ImageDecodeFailure: If the source cannot be read or decoded.
    """
    cache = cache if cache is not None else get_cache()
    key = source_key(source)
    cached, _ = cache.get(key)
    if cached is not None:
        return cached

    data = _read_source(source)
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            oriented = ImageOps.exif_transpose(img)
            decoded = oriented.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageDecodeFailure(f"Cannot decode screenshot: {exc}") from exc

    if decoded.width <= 0 or decoded.height <= 0:
        raise ImageDecodeFailure("Screenshot has no pixels")
    decoded = downscale_to_limit(decoded, config.MAX_IMAGE_DIMENSION)
    cache.put(key, decoded, {"format": fmt, "size": decoded.size})
    return decoded


class ImageLoadState:
    """State machine for one frame: Idle, Loading, Loaded or Failed."""

    def __init__(self, frame_id: str):
        self.frame_id = frame_id
        self._lock = RLock()
        self._generation = 0
        self._status = LoadStatus.IDLE
        self._source: Optional[Source] = None
        self._image: Optional[Image.Image] = None
        self._error: Optional[str] = None

    @property
    def status(self) -> LoadStatus:
        return self._status

    @property
    def source(self) -> Optional[Source]:
        return self._source

    @property
    def image(self) -> Optional[Image.Image]:
        """The decoded screenshot, only while the state is ``LOADED``."""
        return self._image if self._status is LoadStatus.LOADED else None

    @property
    def error(self) -> Optional[str]:
        return self._error

    def set_source(self, source: Optional[Source]) -> Optional[LoadTicket]:
        """Point the frame at a new source.

        Returns the ticket the decode result must present, or ``None`` when the
        source was cleared.
        """
        with self._lock:
            self._generation += 1
            self._source = source
            self._image = None
            self._error = None
            if source is None:
                self._status = LoadStatus.IDLE
                return None
            self._status = LoadStatus.LOADING
            return (self.frame_id, self._generation)

    def _ensure_current(self, ticket: LoadTicket) -> None:
        if ticket != (self.frame_id, self._generation) or self._status is not LoadStatus.LOADING:
            raise StaleResultDiscarded(f"{ticket} superseded by generation {self._generation}")

    def complete(self, ticket: LoadTicket, image: Image.Image) -> bool:
        """Apply a successful decode; returns ``False`` if the ticket is stale."""
        with self._lock:
            try:
                self._ensure_current(ticket)
            except StaleResultDiscarded as stale:
                LOGGER.debug("Frame %s: discarded decode result: %s", self.frame_id, stale)
                return False
            self._image = image
            self._status = LoadStatus.LOADED
            return True

    def fail(self, ticket: LoadTicket, message: str) -> bool:
        """Apply a decode failure; returns ``False`` if the ticket is stale."""
        with self._lock:
            try:
                self._ensure_current(ticket)
            except StaleResultDiscarded as stale:
                LOGGER.debug("Frame %s: discarded decode failure: %s", self.frame_id, stale)
                return False
            self._error = message
            self._status = LoadStatus.FAILED
            return True


class DecodeSubmitter(Protocol):
    def submit(
        self,
        fn: Callable[[], Image.Image],
        on_result: Callable[[Image.Image], None],
        on_error: Callable[[str], None],
    ) -> None: ...


class ThreadPoolSubmitter:
    """Run decodes on a ``concurrent.futures`` thread pool.

    Callbacks fire on the worker thread; :class:`ImageLoadState` is locked so
    this is safe, but GUI hosts should prefer
    :class:`mockup_studio.workers.QtDecodeSubmitter`.
    """

    def __init__(self, max_workers: int = config.DECODE_WORKERS):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="decode")

    def submit(self, fn, on_result, on_error) -> None:
        future = self._executor.submit(fn)

        def _done(done: Future) -> None:
            exc = done.exception()
            if exc is not None:
                LOGGER.error("Decode error: %s", exc)
                on_error(str(exc))
            else:
                on_result(done.result())

        future.add_done_callback(_done)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


ChangeCallback = Callable[[str, ImageLoadState], None]


class FrameImageLoader:
    """Drive one frame's :class:`ImageLoadState` through an async decoder."""

    def __init__(
        self,
        frame_id: str,
        submitter: DecodeSubmitter,
        *,
        decoder: Callable[[Source], Image.Image] = decode_image_source,
        on_change: Optional[ChangeCallback] = None,
    ):
        self.state = ImageLoadState(frame_id)
        self._submitter = submitter
        self._decoder = decoder
        self._on_change = on_change
        self._closed = False

    @property
    def frame_id(self) -> str:
        return self.state.frame_id

    def set_source(self, source: Optional[Source]) -> None:
        if self._closed:
            return
        ticket = self.state.set_source(source)
        self._notify()
        if ticket is None:
            return
        LOGGER.info("Frame %s: loading screenshot", self.frame_id)
        self._submitter.submit(
            lambda: self._decoder(source),
            lambda image, expected=ticket: self._handle_result(expected, image),
            lambda message, expected=ticket: self._handle_error(expected, message),
        )

    def _handle_result(self, ticket: LoadTicket, image: Image.Image) -> None:
        if self.state.complete(ticket, image):
            LOGGER.info("Frame %s: screenshot loaded (%dx%d)", self.frame_id, image.width, image.height)
            self._notify()

    def _handle_error(self, ticket: LoadTicket, message: str) -> None:
        if self.state.fail(ticket, message):
            LOGGER.warning("Frame %s: screenshot failed to load: %s", self.frame_id, message)
            self._notify()

    def _notify(self) -> None:
        if self._on_change is not None and not self._closed:
            self._on_change(self.frame_id, self.state)

    def close(self) -> None:
        """Detach the loader; any outstanding decode becomes stale."""
        self.state.set_source(None)
        self._closed = True
