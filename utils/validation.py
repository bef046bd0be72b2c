"""Checks applied to screenshot sources before decoding and to export targets
before writing."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Union
from urllib.parse import urlparse

_DATA_URL = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,", re.ASCII)


def is_data_url(source: str) -> bool:
    """Return True if *source* is a base64 ``data:image/...`` URL."""
    return bool(_DATA_URL.match(source))


def allowed_image_extensions(formats: Iterable[str]) -> set[str]:
    """Normalise bare format names (``"png"``) into suffixes (``".png"``)."""
    return {f".{fmt.lower().lstrip('.')}" for fmt in formats}


def _is_remote(location: str) -> bool:
    # one-letter schemes are Windows drive letters
    scheme = urlparse(location).scheme
    return len(scheme) > 1


def _check_suffix(target: Path, allowed_exts: Iterable[str], what: str) -> None:
    if target.suffix.lower() not in {ext.lower() for ext in allowed_exts}:
        raise ValueError(f"Unsupported {what} type: {target.suffix or '(none)'}")


def validate_image_path(path: Union[str, Path], allowed_exts: Iterable[str]) -> Path:
    """Resolve a screenshot file chosen by the user.

    Screenshots are read from local files only; anything with a URL scheme is
    refused, as are missing files, directories and unknown image suffixes.
    """
    location = str(path)
    if _is_remote(location):
        raise ValueError(f"Screenshots must be local files, not URLs: {location}")

    try:
        screenshot = Path(location).expanduser().resolve(strict=True)
    except FileNotFoundError as exc:
        raise ValueError(f"Screenshot does not exist: {location}") from exc

    if not screenshot.is_file():
        raise ValueError(f"Screenshot is not a file: {location}")
    _check_suffix(screenshot, allowed_exts, "screenshot")
    return screenshot


def validate_output_path(path: Union[str, Path], allowed_exts: Iterable[str]) -> Path:
    """Resolve the file an export will be written to.

    The export folder must already exist and the name must end in one of
    *allowed_exts* (``.png`` or ``.zip`` for exports).
    """
    location = str(path)
    if _is_remote(location):
        raise ValueError(f"Exports are written to local folders, not URLs: {location}")

    target = Path(location).expanduser().resolve()
    if not target.parent.is_dir():
        raise ValueError(f"Export folder does not exist: {target.parent}")
    _check_suffix(target, allowed_exts, "export")
    return target
